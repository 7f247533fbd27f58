"""
Carrier error taxonomy.

Transport errors (non-2xx, network failure, HTML where JSON was expected) and
client-side business-rule violations raised by DelhiveryClient before it
touches the network.
"""


class CarrierError(Exception):
    """Base class for everything the carrier client raises."""

    def __init__(self, message, status_code=None, body=""):
        super().__init__(message)
        self.status_code = status_code
        self.body        = body


class CarrierNotConfiguredError(CarrierError):
    pass


class CarrierTransportError(CarrierError):
    """Non-2xx response, network failure or an unparseable body."""


class CarrierNotFoundError(CarrierTransportError):
    pass


class CarrierAuthError(CarrierTransportError):
    pass


class CarrierHTMLResponseError(CarrierTransportError):
    """Gateway or login page returned instead of a JSON document."""


class CarrierValidationError(CarrierError):
    """Outgoing payload is missing a field the carrier requires."""


class InsufficientWaybillsError(CarrierError):
    def __init__(self, requested, received):
        super().__init__(
            f"Not enough waybills generated. Required: {requested}, Generated: {received}"
        )
        self.requested = requested
        self.received  = received


# ── Edit rules enforced client-side ──────────────────────────────────────────

class EditRuleError(CarrierError):
    pass


class EditNotAllowedError(EditRuleError):
    def __init__(self, current_status, allowed):
        super().__init__(
            f"Shipment cannot be edited in current status: {current_status}. "
            f"Editing is only allowed for: {', '.join(allowed)}"
        )
        self.current_status = current_status


class WeightLockedError(EditRuleError):
    def __init__(self, current_status):
        super().__init__(f"Weight cannot be modified in status: {current_status}")
        self.current_status = current_status


class PaymentModeConversionError(EditRuleError):
    def __init__(self, from_mode, to_mode, allowed):
        super().__init__(
            f"Payment mode conversion from {from_mode} to {to_mode} is not allowed. "
            f"Allowed conversions from {from_mode}: {', '.join(allowed) if allowed else 'None'}"
        )
        self.from_mode = from_mode
        self.to_mode   = to_mode


class CodAmountMismatchError(EditRuleError):
    pass
