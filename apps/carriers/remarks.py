"""
Free-text carrier remark classification.

Delhivery reports most business outcomes as human-readable strings
(`rmk`, `remarks`, `message`, `error`). All substring heuristics used to
steer control flow live here and nowhere else.
"""

import enum
import logging

logger = logging.getLogger("shipdesk.carrier")


class RemarkKind(enum.Enum):
    INSUFFICIENT_BALANCE     = "insufficient_balance"
    WAREHOUSE_NOT_REGISTERED = "warehouse_not_registered"
    DUPLICATE_ORDER          = "duplicate_order"
    INTERNAL_ERROR           = "internal_error"
    NOT_SERVICEABLE          = "not_serviceable"
    STATUS_DISALLOWS_EDIT    = "status_disallows_edit"
    PAYMENT_MODE_CONVERSION  = "payment_mode_conversion"
    NOT_FOUND                = "not_found"
    SUCCESS                  = "success"
    FAILURE                  = "failure"
    UNKNOWN                  = "unknown"


# Checked in order; the first matching needle wins.
_RULES = [
    (RemarkKind.INSUFFICIENT_BALANCE,     ("insufficient balance",)),
    (RemarkKind.WAREHOUSE_NOT_REGISTERED, ("clientwarehouse matching query does not exist",)),
    (RemarkKind.DUPLICATE_ORDER,          ("duplicate order",)),
    (RemarkKind.INTERNAL_ERROR,           ("internal error",)),
    (RemarkKind.NOT_SERVICEABLE,          ("non-serviceable", "not serviceable", "nsz")),
    (RemarkKind.STATUS_DISALLOWS_EDIT,    ("cannot be edited in current status",)),
    (RemarkKind.PAYMENT_MODE_CONVERSION,  ("payment mode conversion",)),
    (RemarkKind.NOT_FOUND,                ("not found", "404")),
    (RemarkKind.SUCCESS,                  ("cancelled", "canceled", "success")),
    (RemarkKind.FAILURE,                  ("error", "fail")),
]


def remark_text(value) -> str:
    """Flatten a remark that may be a string, a list of strings or missing."""
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(str(v) for v in value if v)
    return str(value)


def classify_remark(value) -> RemarkKind:
    text = remark_text(value).lower()
    if not text.strip():
        return RemarkKind.UNKNOWN
    for kind, needles in _RULES:
        if any(needle in text for needle in needles):
            return kind
    return RemarkKind.UNKNOWN


def classify_package_remarks(packages) -> RemarkKind:
    """
    Classify the remarks of the failed packages of a create response.
    Duplicate-order wins over every other package remark so recovery is
    always attempted first.
    """
    kinds = [classify_remark(pkg.get("remarks")) for pkg in packages or []]
    for preferred in (RemarkKind.DUPLICATE_ORDER, RemarkKind.INSUFFICIENT_BALANCE):
        if preferred in kinds:
            return preferred
    if any(pkg.get("serviceable") is False for pkg in packages or []):
        return RemarkKind.NOT_SERVICEABLE
    return kinds[0] if kinds else RemarkKind.UNKNOWN


def interpret_cancel_response(payload) -> dict:
    """
    Decide whether a 2xx cancellation response means the shipment was
    cancelled. Returns {"cancelled": bool, "message": str, "explicit": bool};
    `explicit` is False when success was inferred from the absence of error
    language only.
    """
    if not isinstance(payload, dict):
        logger.warning("Unclear cancellation response, treating as cancelled: %r", payload)
        return {"cancelled": True, "message": "", "explicit": False}

    message  = remark_text(payload.get("message"))
    packages = payload.get("packages") or []

    explicit_success = (
        payload.get("success") is True
        or str(payload.get("status", "")).lower() == "success"
        or classify_remark(message) == RemarkKind.SUCCESS
        or (packages and isinstance(packages[0], dict) and packages[0].get("status") == "Success")
        or classify_remark(payload.get("rmk")) == RemarkKind.SUCCESS
    )
    if explicit_success:
        return {"cancelled": True, "message": message or "Shipment cancelled", "explicit": True}

    error = remark_text(payload.get("error"))
    if error:
        return {"cancelled": False, "message": error, "explicit": True}
    if classify_remark(message) in (RemarkKind.FAILURE, RemarkKind.NOT_FOUND):
        return {"cancelled": False, "message": message, "explicit": True}

    logger.warning("Unclear cancellation response, treating as cancelled: %s", payload)
    return {"cancelled": True, "message": message, "explicit": False}


def interpret_edit_response(payload) -> dict:
    """
    Decide whether a 2xx edit response means the carrier applied the edit.
    Returns {"accepted": bool, "message": str, "kind": RemarkKind}.
    """
    if not isinstance(payload, dict):
        return {"accepted": True, "message": "", "kind": RemarkKind.UNKNOWN}

    error = remark_text(payload.get("error"))
    if error:
        return {"accepted": False, "message": error, "kind": classify_remark(error)}

    message = remark_text(payload.get("remark") or payload.get("rmk") or payload.get("message"))
    kind    = classify_remark(message)
    if payload.get("success") is False or payload.get("status") is False:
        return {"accepted": False, "message": message or "Carrier rejected the edit", "kind": kind}
    if kind in (RemarkKind.STATUS_DISALLOWS_EDIT, RemarkKind.PAYMENT_MODE_CONVERSION, RemarkKind.FAILURE):
        return {"accepted": False, "message": message, "kind": kind}
    return {"accepted": True, "message": message or "Shipment updated", "kind": kind}
