"""
WarehouseService: register and edit pickup locations.

The carrier is the system of record for warehouse names: registration goes
to the carrier first and is mirrored locally only when the carrier accepts
it. Edits are limited to address, pin and phone because the carrier cannot
rename a warehouse.
"""

import logging

from django.db import transaction

from apps.carriers.client import DelhiveryClient
from apps.carriers.remarks import remark_text
from .models import Warehouse

logger = logging.getLogger("shipdesk.warehouses")

EDITABLE_FIELDS = ("address", "pin", "phone")


class WarehouseError(Exception):
    code = "WAREHOUSE_ERROR"


class WarehouseNotFound(WarehouseError):
    code = "WAREHOUSE_NOT_FOUND"


class WarehouseRegistrationError(WarehouseError):
    code = "WAREHOUSE_REGISTRATION_FAILED"


def _carrier_failure(response):
    """Error text of a rejected carrier warehouse call, or ''."""
    if not isinstance(response, dict):
        return ""
    if response.get("success") is False or response.get("error"):
        return remark_text(response.get("error") or response.get("message") or response.get("rmk")) \
            or "Carrier rejected the warehouse request"
    return ""


class WarehouseService:

    def __init__(self, carrier=None):
        self.carrier = carrier or DelhiveryClient.from_settings()

    def list_warehouses(self, status=None):
        qs = Warehouse.objects.all()
        if status:
            qs = qs.filter(status=status)
        return qs

    @transaction.atomic
    def register_warehouse(self, data: dict) -> Warehouse:
        name = data["name"]
        if Warehouse.objects.filter(name=name).exists():
            raise WarehouseError(f"Warehouse '{name}' is already registered")

        response = None
        status   = Warehouse.Status.PENDING
        if self.carrier.is_configured():
            response = self.carrier.register_warehouse(data)
            failure  = _carrier_failure(response)
            if failure:
                logger.warning("Carrier rejected warehouse %s: %s", name, failure)
                raise WarehouseRegistrationError(failure)
            status = Warehouse.Status.ACTIVE
        else:
            logger.warning("Carrier not configured, warehouse %s stored as pending", name)

        if data.get("is_default"):
            Warehouse.objects.filter(is_default=True).update(is_default=False)

        model_fields = {f.name for f in Warehouse._meta.get_fields()}
        warehouse = Warehouse.objects.create(
            **{k: v for k, v in data.items() if k in model_fields and k not in ("status", "carrier_response")},
            status=status,
            carrier_response=response,
        )
        logger.info("Warehouse %s registered (%s)", name, status)
        return warehouse

    @transaction.atomic
    def update_warehouse(self, name: str, fields: dict) -> Warehouse:
        if fields.get("name") not in (None, name):
            raise WarehouseError("Warehouse name cannot be changed once registered with the carrier")
        rejected = sorted(set(fields) - set(EDITABLE_FIELDS) - {"name"})
        if rejected:
            raise WarehouseError(
                f"Only {', '.join(EDITABLE_FIELDS)} can be edited; got {', '.join(rejected)}"
            )

        warehouse = Warehouse.objects.select_for_update().filter(name=name).first()
        if warehouse is None:
            raise WarehouseNotFound(f"Warehouse '{name}' not found")

        changes = {k: fields[k] for k in EDITABLE_FIELDS if fields.get(k) not in (None, "")}
        if not changes:
            return warehouse

        if self.carrier.is_configured():
            response = self.carrier.update_warehouse({"name": name, **changes})
            failure  = _carrier_failure(response)
            if failure:
                raise WarehouseRegistrationError(failure)
            warehouse.carrier_response = response

        for key, value in changes.items():
            setattr(warehouse, key, value)
        warehouse.save()
        logger.info("Warehouse %s updated: %s", name, sorted(changes))
        return warehouse
