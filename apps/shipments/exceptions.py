"""
Workflow-level errors raised inside ShipmentService.

ShipmentService converts these into {"success": false, "error", "code",
["suggestion"]} envelopes; they never reach the API layer as exceptions.
"""


class ShipmentError(Exception):
    code       = "SHIPMENT_ERROR"
    suggestion = None

    def __init__(self, message, suggestion=None):
        super().__init__(message)
        if suggestion:
            self.suggestion = suggestion

    def as_result(self) -> dict:
        result = {"success": False, "error": str(self), "code": self.code}
        if self.suggestion:
            result["suggestion"] = self.suggestion
        return result


# ── Preconditions ────────────────────────────────────────────────────────────
class OrderNotFound(ShipmentError):
    code = "ORDER_NOT_FOUND"


class InvalidOrderStatus(ShipmentError):
    code = "INVALID_ORDER_STATUS"


class DuplicateShipment(ShipmentError):
    code = "DUPLICATE_SHIPMENT"


class WarehouseNotFound(ShipmentError):
    code = "WAREHOUSE_NOT_FOUND"


class ShipmentNotFound(ShipmentError):
    code = "SHIPMENT_NOT_FOUND"


class InvalidStatusTransition(ShipmentError):
    code = "INVALID_STATUS_TRANSITION"


class ShipmentNotEditable(ShipmentError):
    code = "SHIPMENT_NOT_EDITABLE"


# ── Carrier outcomes ─────────────────────────────────────────────────────────
class CarrierUnavailable(ShipmentError):
    code = "CARRIER_NOT_CONFIGURED"


class InsufficientCarrierBalance(ShipmentError):
    code = "INSUFFICIENT_BALANCE"


class WarehouseNotRegistered(ShipmentError):
    code = "WAREHOUSE_NOT_REGISTERED"


class CarrierTechnicalError(ShipmentError):
    code = "CARRIER_TECHNICAL_ERROR"


class CarrierRejected(ShipmentError):
    code = "CARRIER_REJECTED"


class AddressNotServiceable(ShipmentError):
    code = "ADDRESS_NOT_SERVICEABLE"


class PackageProcessingFailed(ShipmentError):
    code = "PACKAGE_PROCESSING_FAILED"


class NoWaybillsReturned(ShipmentError):
    code = "NO_WAYBILLS"


# ── Data integrity ───────────────────────────────────────────────────────────
class UnreconciledDuplicate(ShipmentError):
    """Carrier already holds this order but no local record exists."""
    code = "UNRECONCILED_DUPLICATE"
