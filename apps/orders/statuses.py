"""
Legal order statuses per shipment kind.

Stored order statuses arrive in mixed case ("Confirmed", "confirmed"); every
comparison goes through `canonical`, which lower-cases.
"""

PRE_DISPATCH   = ("confirmed", "processing", "pending", "paid")
POST_DELIVERY  = ("delivered", "completed")

DISPATCHED            = "Dispatched"
RETURN_INITIATED      = "Return Initiated"
REPLACEMENT_INITIATED = "Replacement Initiated"

_ALLOWED = {
    "FORWARD":     PRE_DISPATCH,
    "MPS":         PRE_DISPATCH,
    "REVERSE":     POST_DELIVERY,
    "REPLACEMENT": POST_DELIVERY,
}


def canonical(status) -> str:
    return str(status or "").strip().lower()


def allowed_statuses(shipment_type) -> tuple:
    return _ALLOWED.get(str(shipment_type).upper(), ())


def is_allowed(status, shipment_type) -> bool:
    return canonical(status) in allowed_statuses(shipment_type)
