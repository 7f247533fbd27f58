"""
ShipmentService: the central orchestrator.

create_shipment runs strictly in order:

    load order → status gate → duplicate gate → resolve warehouse
        → reserve pool waybills → build payload → carrier create
        → interpret response (duplicate recovery) → persist
        → mark waybills used → schedule pickup (best effort) → return

Every public workflow method returns an envelope dict
({"success": True, "data": ...} or ShipmentError.as_result()); carrier
exceptions are converted here and never reach the views.
"""

import json
import logging
from collections import namedtuple

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.paginator import Paginator
from django.db import transaction
from django.db.models import Q

from apps.carriers.client import (
    DelhiveryClient,
    validate_cod_amount,
    validate_payment_mode_conversion,
)
from apps.carriers.exceptions import (
    CarrierError,
    CarrierHTMLResponseError,
    CarrierNotConfiguredError,
    CarrierNotFoundError,
    EditNotAllowedError,
    EditRuleError,
    PaymentModeConversionError,
    WeightLockedError,
)
from apps.carriers.normalizers import TrackingOutcome, normalize_tracking
from apps.carriers.remarks import (
    RemarkKind,
    classify_package_remarks,
    classify_remark,
    interpret_edit_response,
    remark_text,
)
from apps.orders import statuses
from apps.orders.models import Order
from apps.waybills.service import WaybillService

from .exceptions import (
    AddressNotServiceable,
    CarrierRejected,
    CarrierTechnicalError,
    CarrierUnavailable,
    DuplicateShipment,
    InsufficientCarrierBalance,
    InvalidOrderStatus,
    InvalidStatusTransition,
    NoWaybillsReturned,
    OrderNotFound,
    PackageProcessingFailed,
    ShipmentError,
    ShipmentNotEditable,
    ShipmentNotFound,
    UnreconciledDuplicate,
    WarehouseNotFound,
    WarehouseNotRegistered,
)
from .models import Shipment, ShipmentEvent, ShipmentPackage
from .payloads import (
    build_create_payload,
    build_shipment_details,
    carrier_edit_fields,
    customer_from_order,
    demo_create_response,
    demo_tracking,
    estimate_package,
    next_business_day,
    payment_mode_for,
)
from .warehouses import WarehouseResolver

logger = logging.getLogger("shipdesk.shipments")

PICKUP_TIME = "11:00:00"

INSUFFICIENT_BALANCE_MSG = (
    "Insufficient balance in Delhivery account. "
    "Please recharge your account to continue creating shipments."
)
TECHNICAL_ERROR_MSG  = "Delhivery is experiencing technical issues. Please try again later."
NOT_SERVICEABLE_MSG  = "The delivery address is not serviceable by Delhivery. Please check the address and pincode."
NOT_CONFIGURED_MSG   = "Delhivery API not configured. Please set up your API credentials."

STATUS_EDIT_SUGGESTION  = ("The shipment may have already been picked up or is in transit. "
                           "Contact support for assistance.")
PAYMENT_EDIT_SUGGESTION = ("If you need to change payment mode, you may need to cancel "
                           "and recreate the shipment.")
LOCAL_EDIT_SUGGESTION   = ("Some fields were updated locally. For other changes, you may need "
                           "to cancel and recreate the shipment.")
RECREATE_SUGGESTION     = ("To modify this shipment, you may need to cancel it and create "
                           "a new one with the updated details.")
CANCEL_SUGGESTION       = "You may need to contact Delhivery support directly or try again later"

# Fields that can be changed without the carrier's consent
LOCAL_ONLY_EDIT_FIELDS = ("products_desc",)

PickupOutcome = namedtuple("PickupOutcome", ["success", "pickup_date", "pickup_time", "response", "error"])


def _ok(data=None, **extra) -> dict:
    return {"success": True, "data": data, **extra}


def _tracking_json(tracking: dict) -> dict:
    outcome = tracking.get("outcome")
    if isinstance(outcome, TrackingOutcome):
        tracking = {**tracking, "outcome": outcome.value}
    return tracking


def _label_url(label) -> str:
    """pdf_download_link of a packing-slip response, or ''."""
    if isinstance(label, str):
        try:
            label = json.loads(label)
        except ValueError:
            return ""
    if not isinstance(label, dict):
        return ""
    packages = label.get("packages") or []
    if packages and isinstance(packages[0], dict):
        return packages[0].get("pdf_download_link") or ""
    return ""


class ShipmentService:
    """
    Shipment workflows over one carrier client.
    Dependencies are injected so they can be swapped in tests.
    """

    def __init__(self, carrier=None, waybill_service=None, warehouse_resolver=None):
        self.carrier    = carrier or DelhiveryClient.from_settings()
        self.waybills   = waybill_service    or WaybillService(carrier=self.carrier)
        self.warehouses = warehouse_resolver or WarehouseResolver(carrier=self.carrier)

    # ── Lookups ───────────────────────────────────────────────────────────────
    @staticmethod
    def _get_order(order_id) -> Order:
        try:
            return Order.objects.get(pk=order_id)
        except (Order.DoesNotExist, ValidationError, ValueError):
            raise OrderNotFound(f"Order {order_id} not found")

    @staticmethod
    def _find_by_waybill(waybill):
        return (
            Shipment.objects
            .filter(Q(primary_waybill=waybill) | Q(packages__waybill=waybill))
            .distinct()
            .first()
        )

    def get_shipment_by_id(self, shipment_id) -> Shipment:
        try:
            return Shipment.objects.select_related("order").get(pk=shipment_id)
        except (Shipment.DoesNotExist, ValidationError, ValueError):
            raise ShipmentNotFound(f"Shipment {shipment_id} not found")

    def get_shipment_by_waybill(self, waybill) -> Shipment:
        shipment = self._find_by_waybill(waybill)
        if shipment is None:
            raise ShipmentNotFound(f"Shipment with waybill {waybill} not found in our records")
        return shipment

    def get_shipments(self, filters=None, page=1, limit=10) -> dict:
        filters = filters or {}
        qs = (
            Shipment.objects.filter(is_active=True)
            .select_related("order")
            .prefetch_related("packages")
        )
        if filters.get("status"):
            qs = qs.filter(status__iexact=filters["status"])
        if filters.get("shipment_type"):
            qs = qs.filter(shipment_type=str(filters["shipment_type"]).upper())
        if filters.get("order_id"):
            qs = qs.filter(order_id=filters["order_id"])
        if filters.get("waybill"):
            needle = filters["waybill"]
            qs = qs.filter(Q(primary_waybill__icontains=needle) | Q(packages__waybill__icontains=needle)).distinct()

        paginator = Paginator(qs.order_by("-created_at"), max(int(limit or 10), 1))
        page_obj  = paginator.get_page(page)
        return {
            "shipments": list(page_obj.object_list),
            "pagination": {
                "current_page":   page_obj.number,
                "total_pages":    paginator.num_pages,
                "total_items":    paginator.count,
                "items_per_page": paginator.per_page,
            },
        }

    # ── Create ────────────────────────────────────────────────────────────────
    def create_shipment(self, request: dict) -> dict:
        try:
            return self._create_shipment(request)
        except ShipmentError as exc:
            logger.warning("Shipment creation for order %s failed [%s]: %s",
                           request.get("order_id"), exc.code, exc)
            return exc.as_result()

    def _prepare(self, request: dict):
        """Steps 1-4. Returns (request, order, warehouse); raises ShipmentError."""
        shipment_type = str(request.get("shipment_type") or Shipment.Type.FORWARD).upper()
        if shipment_type not in Shipment.Type.values:
            raise ShipmentError(f"Unsupported shipment type: {shipment_type}")
        request = {**request, "shipment_type": shipment_type}

        # 1. order
        order = self._get_order(request.get("order_id"))

        # 2. status gate
        if not statuses.is_allowed(order.status, shipment_type):
            raise InvalidOrderStatus(
                f"Order status '{order.status}' does not allow a {shipment_type} shipment. "
                f"Allowed statuses: {', '.join(statuses.allowed_statuses(shipment_type))}"
            )

        # 3. duplicate gate
        if shipment_type == Shipment.Type.FORWARD and order.shipment_created:
            raise DuplicateShipment(f"Shipment already created for order {order.id}")

        # 4. warehouse
        pickup_name = request.get("pickup_location") or "Main Warehouse"
        warehouse   = self.warehouses.get_by_name(pickup_name)
        if not warehouse:
            raise WarehouseNotFound(f'Warehouse "{pickup_name}" not found')
        return request, order, warehouse

    def _create_shipment(self, request: dict) -> dict:
        request, order, warehouse = self._prepare(request)
        shipment_type = request["shipment_type"]

        # 5. pool waybills
        package_count = len(request.get("packages") or []) if shipment_type == Shipment.Type.MPS else 1
        package_count = max(package_count, 1)
        reserved      = self._reserve_pool_waybills(order, package_count)

        # 6. payload
        payload = build_create_payload(order, request, warehouse, reserved)

        # 7. carrier
        response = self._call_carrier_create(payload)

        # 8. interpret
        waybills, existing = self._interpret_create_response(order, shipment_type, warehouse, response)

        # 9. persist
        details  = build_shipment_details(request, warehouse, waybills, response)
        shipment = self._persist(order, request, warehouse, payload, response, waybills, details, existing)
        details["shipment_id"] = str(shipment.id)
        if existing is not None:
            details["recovered_from_duplicate"] = True

        # 10. consume pool waybills
        self._settle_pool_waybills(reserved, waybills, order, shipment)

        # 11. pickup, best effort
        if existing is None:
            pickup = self.schedule_pickup(warehouse["name"], len(waybills))
            details["pickup_request"] = pickup._asdict()
            shipment.pickup_request   = details["pickup_request"]
            shipment.save(update_fields=["pickup_request", "updated_at"])
            self._store_order_details(order, shipment_type, details)

        logger.info("Shipment %s created for order %s (%s, %d package(s))",
                    waybills[0], order.id, shipment_type, len(waybills))
        # 12.
        return _ok({"shipment_details": details, "carrier_response": response})

    def validate_shipment(self, request: dict) -> dict:
        """Dry run of create: preconditions, payload and destination serviceability."""
        try:
            request, order, warehouse = self._prepare(request)
        except ShipmentError as exc:
            return exc.as_result()
        if not self.carrier.is_configured():
            return CarrierUnavailable(NOT_CONFIGURED_MSG).as_result()

        payload = build_create_payload(order, request, warehouse)
        try:
            report = self.carrier.validate_shipment_before_creation(payload)
        except CarrierError as exc:
            return CarrierRejected(f"Failed to validate shipment: {exc}").as_result()
        return _ok({**report, "payload": payload})

    def _reserve_pool_waybills(self, order, count) -> list:
        if not (self.carrier.is_configured() and settings.SHIPMENT_USE_WAYBILL_POOL):
            return []
        return self.waybills.acquire_waybills(count, reserved_by=f"order:{order.id}")

    def _call_carrier_create(self, payload) -> dict:
        if not self.carrier.is_configured():
            if not settings.DEBUG:
                raise CarrierUnavailable(NOT_CONFIGURED_MSG)
            logger.warning("Carrier not configured, synthesizing demo shipment")
            response, _ = demo_create_response(payload)
            return response

        try:
            return self.carrier.create_shipment(payload)
        except CarrierNotConfiguredError:
            raise CarrierUnavailable(NOT_CONFIGURED_MSG)
        except CarrierHTMLResponseError as exc:
            logger.error("Carrier create returned HTML: %s", exc)
            raise CarrierTechnicalError(TECHNICAL_ERROR_MSG)
        except CarrierError as exc:
            raise CarrierRejected(f"Failed to create shipment: {exc}")

    def _interpret_create_response(self, order, shipment_type, warehouse, response):
        """
        Returns (waybills, existing_shipment_or_None). A duplicate-order
        response is resolved to the identifiers already on record.
        """
        if not isinstance(response, dict):
            raise CarrierRejected("Unexpected response from Delhivery")

        packages = [p for p in response.get("packages") or [] if isinstance(p, dict)]
        failed   = [p for p in packages if p.get("status") == "Fail" or (p.get("remarks") and not p.get("waybill"))]

        if response.get("success") and not failed:
            waybills = [str(p["waybill"]) for p in packages if p.get("waybill")]
            if not waybills:
                raise NoWaybillsReturned("Delhivery did not return any waybill numbers")
            return waybills, None

        rmk_kind = classify_remark(response.get("rmk"))
        pkg_kind = classify_package_remarks(failed or packages)

        if RemarkKind.INSUFFICIENT_BALANCE in (rmk_kind, pkg_kind):
            raise InsufficientCarrierBalance(INSUFFICIENT_BALANCE_MSG)
        if rmk_kind == RemarkKind.WAREHOUSE_NOT_REGISTERED:
            raise WarehouseNotRegistered(
                f'Warehouse "{warehouse["name"]}" is not registered in your Delhivery account. '
                f"Please register the warehouse first."
            )
        if RemarkKind.DUPLICATE_ORDER in (rmk_kind, pkg_kind):
            return self._recover_duplicate(order, shipment_type)
        if rmk_kind == RemarkKind.INTERNAL_ERROR:
            raise CarrierTechnicalError(TECHNICAL_ERROR_MSG)
        if RemarkKind.NOT_SERVICEABLE in (rmk_kind, pkg_kind):
            raise AddressNotServiceable(NOT_SERVICEABLE_MSG)
        if failed:
            reasons = "; ".join(remark_text(p.get("remarks")) or "Unknown error" for p in failed)
            raise PackageProcessingFailed(f"Package processing failed: {reasons}")
        raise CarrierRejected(remark_text(response.get("rmk")) or "Shipment creation failed")

    def _recover_duplicate(self, order, shipment_type):
        existing = (
            Shipment.objects
            .filter(order=order, shipment_type=shipment_type, is_active=True)
            .exclude(status=Shipment.CANCELLED)
            .first()
        )
        if existing is not None and existing.waybill_numbers:
            logger.warning("Duplicate order %s at carrier, reusing shipment %s", order.id, existing.id)
            return existing.waybill_numbers, existing

        legacy   = self._order_details(order, shipment_type) or {}
        waybills = [str(w) for w in legacy.get("waybill_numbers") or []]
        # Waybills of a cancelled or inactive shipment are not ours to reuse
        if waybills and not ShipmentPackage.objects.filter(waybill__in=waybills).exists():
            logger.warning("Duplicate order %s at carrier, reusing order shipment details", order.id)
            return waybills, None

        logger.error("Duplicate order %s at carrier with no local record", order.id)
        raise UnreconciledDuplicate(
            f"A shipment for order {order.id} already exists in Delhivery but not found in our records. "
            f"Please contact support to resolve this issue."
        )

    @staticmethod
    def _order_details(order, shipment_type):
        if shipment_type == Shipment.Type.REVERSE:
            return order.reverse_shipment
        if shipment_type == Shipment.Type.REPLACEMENT:
            return order.replacement_shipment
        return order.shipment_details

    @staticmethod
    def _store_order_details(order, shipment_type, details):
        if shipment_type == Shipment.Type.REVERSE:
            order.reverse_shipment = details
            order.status           = statuses.RETURN_INITIATED
        elif shipment_type == Shipment.Type.REPLACEMENT:
            order.replacement_shipment = details
            order.status               = statuses.REPLACEMENT_INITIATED
        else:
            order.shipment_created = True
            order.shipment_details = details
            order.status           = statuses.DISPATCHED
        order.save()

    @transaction.atomic
    def _persist(self, order, request, warehouse, payload, response, waybills, details, existing):
        if existing is None:
            first    = payload["shipments"][0]
            estimate = estimate_package(order)
            mode     = payment_mode_for(request["shipment_type"], order)
            shipment = Shipment.objects.create(
                order             = order,
                shipment_type     = request["shipment_type"],
                primary_waybill   = waybills[0],
                pickup_location   = warehouse["name"],
                warehouse_details = warehouse,
                customer_details  = customer_from_order(order),
                package_details   = {
                    "weight":              request.get("weight") or first.get("weight"),
                    "dimensions":          request.get("dimensions") or estimate["dimensions"],
                    "product_description": first.get("products_desc") or estimate["product_description"],
                    "payment_mode":        mode,
                    "cod_amount":          first.get("cod_amount"),
                    "shipping_mode":       first.get("shipping_mode"),
                    "packages":            request.get("packages"),
                },
                carrier_response  = response,
            )
            ShipmentPackage.objects.bulk_create([
                ShipmentPackage(shipment=shipment, waybill=w, sequence=i) for i, w in enumerate(waybills)
            ])
            ShipmentEvent.objects.create(
                shipment=shipment, from_status="", to_status=Shipment.CREATED,
                note=f"{request['shipment_type']} shipment created with {len(waybills)} package(s)",
            )
        else:
            shipment = existing

        self._store_order_details(order, request["shipment_type"], {**details, "shipment_id": str(shipment.id)})
        return shipment

    def _settle_pool_waybills(self, reserved, waybills, order, shipment):
        for waybill in reserved:
            if waybill in waybills:
                self.waybills.use_waybill(waybill, order.id, shipment.id)
            else:
                self.waybills.cancel_waybill(waybill)

    # ── Pickup ────────────────────────────────────────────────────────────────
    def schedule_pickup(self, warehouse_name, package_count, today=None) -> PickupOutcome:
        """Request a carrier pickup for the next business day. Never raises."""
        pickup_date = next_business_day(today).isoformat()
        try:
            response = self.carrier.create_pickup_request(pickup_date, PICKUP_TIME, warehouse_name, package_count)
        except CarrierError as exc:
            logger.warning("Pickup request for %s failed: %s", warehouse_name, exc)
            return PickupOutcome(False, pickup_date, PICKUP_TIME, None, str(exc))

        if isinstance(response, dict) and (response.get("error") or response.get("success") is False):
            error = remark_text(response.get("error") or response.get("message") or response.get("rmk"))
            logger.warning("Pickup request for %s rejected: %s", warehouse_name, error)
            return PickupOutcome(False, pickup_date, PICKUP_TIME, response, error or "Pickup request rejected")

        logger.info("Pickup scheduled at %s on %s for %d package(s)", warehouse_name, pickup_date, package_count)
        return PickupOutcome(True, pickup_date, PICKUP_TIME, response, None)

    def create_pickup(self, pickup_date, pickup_time, warehouse_name, package_count) -> dict:
        try:
            return _ok(self.carrier.create_pickup_request(pickup_date, pickup_time, warehouse_name, package_count))
        except CarrierNotConfiguredError:
            return CarrierUnavailable(NOT_CONFIGURED_MSG).as_result()
        except CarrierError as exc:
            return CarrierRejected(f"Failed to create pickup request: {exc}").as_result()

    # ── Tracking ──────────────────────────────────────────────────────────────
    def track_shipment(self, waybill):
        """Canonical tracking dict, demo data in DEBUG, or None."""
        if not self.carrier.is_configured():
            return demo_tracking(waybill) if settings.DEBUG else None
        try:
            raw = self.carrier.track_shipment(waybill)
        except CarrierError as exc:
            logger.error("Tracking %s failed: %s", waybill, exc)
            return demo_tracking(waybill) if settings.DEBUG else None
        return _tracking_json(normalize_tracking(raw, waybill))

    def sync_tracking(self, shipment) -> bool:
        """Store fresh tracking on `shipment`; True when its status changed."""
        tracking = self.track_shipment(shipment.primary_waybill)
        if not tracking or tracking.get("outcome") != TrackingOutcome.AVAILABLE.value:
            return False
        if shipment.status in Shipment.TERMINAL_STATUSES or tracking["status"] == shipment.status:
            shipment.tracking_info = tracking
            shipment.save(update_fields=["tracking_info", "updated_at"])
            return False
        self._transition(shipment, tracking["status"], tracking, note="Carrier tracking update")
        return True

    # ── Order shipment details ────────────────────────────────────────────────
    @staticmethod
    def available_actions(order) -> list:
        actions = []
        if not order.shipment_created and statuses.is_allowed(order.status, Shipment.Type.FORWARD):
            actions.extend([Shipment.Type.FORWARD.value, Shipment.Type.MPS.value])
        if statuses.is_allowed(order.status, Shipment.Type.REVERSE):
            if not order.reverse_shipment:
                actions.append(Shipment.Type.REVERSE.value)
            if not order.replacement_shipment:
                actions.append(Shipment.Type.REPLACEMENT.value)
        return actions

    def get_shipment_details(self, order_id) -> dict:
        try:
            order = self._get_order(order_id)
        except ShipmentError as exc:
            return exc.as_result()

        actions = self.available_actions(order)
        return _ok({
            "order_id":             str(order.id),
            "status":               order.status,
            "payment_method":       order.payment_method,
            "shipment_created":     order.shipment_created,
            "shipment_details":     order.shipment_details,
            "reverse_shipment":     order.reverse_shipment,
            "replacement_shipment": order.replacement_shipment,
            "shipping_address":     customer_from_order(order),
            "package_details":      estimate_package(order),
            "available_actions":    actions,
            "can_create_shipment":  bool(actions),
            "warehouses":           self.warehouses.get_active(),
        })

    # ── Carrier pass-throughs ─────────────────────────────────────────────────
    def check_serviceability(self, pincode, heavy=False) -> dict:
        try:
            if heavy:
                return _ok(self.carrier.check_heavy_pincode_serviceability(pincode))
            return _ok(self.carrier.check_pincode_serviceability(pincode))
        except CarrierNotConfiguredError:
            return CarrierUnavailable(NOT_CONFIGURED_MSG).as_result()
        except CarrierError as exc:
            return {"success": False, "error": str(exc)}

    def update_ewaybill(self, waybill, dcn, ewbn) -> dict:
        try:
            return _ok(self.carrier.update_ewaybill(waybill, dcn, ewbn))
        except CarrierNotConfiguredError:
            return CarrierUnavailable(NOT_CONFIGURED_MSG).as_result()
        except CarrierError as exc:
            return {"success": False, "error": f"Failed to update e-waybill: {exc}"}

    # ── Update (local rules + carrier edit) ───────────────────────────────────
    def update_shipment(self, waybill, fields: dict) -> dict:
        shipment = self._find_by_waybill(waybill)
        if shipment is None:
            return ShipmentNotFound("Shipment not found in database").as_result()
        if not shipment.is_editable:
            return ShipmentNotEditable(
                f"Shipment cannot be edited in current status: {shipment.status}. "
                f"Allowed statuses: PENDING, PICKUP_PENDING, PICKUP_SCHEDULED, MANIFEST_GENERATED"
            ).as_result()
        if not self.carrier.is_configured():
            return CarrierUnavailable(NOT_CONFIGURED_MSG).as_result()

        edit    = carrier_edit_fields(fields)
        current = (shipment.package_details or {}).get("payment_mode")
        try:
            if edit.get("payment_mode") and current and edit["payment_mode"] != current:
                validate_payment_mode_conversion(current, edit["payment_mode"])
            if edit.get("cod_amount") is not None:
                validate_cod_amount(edit.get("payment_mode") or current, edit["cod_amount"])
        except EditRuleError as exc:
            return {"success": False, "error": str(exc)}

        try:
            response = self.carrier.edit_shipment({**edit, "waybill": waybill}, current)
        except (EditNotAllowedError, WeightLockedError) as exc:
            return {"success": False, "error": str(exc), "suggestion": STATUS_EDIT_SUGGESTION}
        except PaymentModeConversionError as exc:
            return {"success": False, "error": str(exc), "suggestion": PAYMENT_EDIT_SUGGESTION}
        except EditRuleError as exc:
            return {"success": False, "error": str(exc)}
        except CarrierError as exc:
            return self._apply_local_only(shipment, fields, str(exc))

        verdict = interpret_edit_response(response)
        if not verdict["accepted"]:
            if verdict["kind"] == RemarkKind.STATUS_DISALLOWS_EDIT:
                return {"success": False, "error": verdict["message"], "suggestion": STATUS_EDIT_SUGGESTION}
            if verdict["kind"] == RemarkKind.PAYMENT_MODE_CONVERSION:
                return {"success": False, "error": verdict["message"], "suggestion": PAYMENT_EDIT_SUGGESTION}
            return self._apply_local_only(shipment, fields, verdict["message"])

        self._apply_edit(shipment, edit)
        logger.info("Shipment %s updated: %s", waybill, sorted(edit))
        return _ok(
            {"waybill": waybill, "updated_fields": sorted(fields), "delhivery_response": response},
            message="Shipment updated successfully",
        )

    @staticmethod
    def _apply_edit(shipment, edit):
        customer = dict(shipment.customer_details or {})
        package  = dict(shipment.package_details or {})
        for src, dst in (("name", "name"), ("phone", "phone"), ("add", "address")):
            if src in edit:
                customer[dst] = edit[src]
        if "weight" in edit:
            package["weight"] = edit["weight"]
        if "products_desc" in edit:
            package["product_description"] = edit["products_desc"]
        if "payment_mode" in edit:
            package["payment_mode"] = edit["payment_mode"]
        if "cod_amount" in edit:
            package["cod_amount"] = edit["cod_amount"]
        dims = dict(package.get("dimensions") or {})
        for axis in ("height", "width", "length"):
            if f"shipment_{axis}" in edit:
                dims[axis] = edit[f"shipment_{axis}"]
        if dims:
            package["dimensions"] = dims

        shipment.customer_details = customer
        shipment.package_details  = package
        shipment.save(update_fields=["customer_details", "package_details", "updated_at"])

    def _apply_local_only(self, shipment, fields, error) -> dict:
        logger.warning("Carrier edit of %s failed, applying local-only fields: %s", shipment.primary_waybill, error)
        local = {k: fields[k] for k in LOCAL_ONLY_EDIT_FIELDS if fields.get(k)}
        if local:
            self._apply_edit(shipment, local)
        return {
            "success":         False,
            "error":           f"Delhivery edit failed: {error}",
            "partial_success": bool(local),
            "suggestion":      LOCAL_EDIT_SUGGESTION if local else RECREATE_SUGGESTION,
        }

    # ── Cancel (idempotent) ───────────────────────────────────────────────────
    def cancel_shipment_by_waybill(self, waybill) -> dict:
        shipment = self._find_by_waybill(waybill)
        if shipment is None:
            return ShipmentNotFound(f"Shipment with waybill {waybill} not found in our records").as_result()
        if shipment.is_cancelled:
            return {"success": True, "message": "Shipment is already cancelled", "waybill": waybill}
        if shipment.status in Shipment.TERMINAL_STATUSES:
            return InvalidStatusTransition(
                f"Shipment in status {shipment.status} cannot be cancelled"
            ).as_result()

        if not self.carrier.is_configured():
            self._transition(shipment, Shipment.CANCELLED, note="Cancelled locally, carrier not configured")
            return {
                "success": True, "waybill": waybill, "local_only": True,
                "message": "Shipment cancelled in local database (Delhivery API not configured)",
            }

        try:
            verdict = self.carrier.cancel_shipment(waybill)
        except CarrierNotFoundError as exc:
            return self._cancel_locally(shipment, waybill, exc)
        except CarrierError as exc:
            if classify_remark(str(exc)) == RemarkKind.NOT_FOUND:
                return self._cancel_locally(shipment, waybill, exc)
            return {"success": False, "error": f"Failed to cancel shipment: {exc}", "suggestion": CANCEL_SUGGESTION}

        if not verdict["cancelled"]:
            if classify_remark(verdict["message"]) == RemarkKind.NOT_FOUND:
                return self._cancel_locally(shipment, waybill, verdict["message"])
            return {
                "success": False,
                "error": verdict["message"] or "Delhivery API returned failure for cancellation",
                "suggestion": CANCEL_SUGGESTION,
            }

        self._transition(shipment, Shipment.CANCELLED, note=verdict["message"] or "Cancelled at carrier")
        logger.info("Shipment %s cancelled", waybill)
        return {"success": True, "message": "Shipment cancelled successfully", "waybill": waybill}

    def _cancel_locally(self, shipment, waybill, reason) -> dict:
        """The carrier has no such waybill: nothing left to cancel there."""
        logger.warning("Cancel %s: %s, cancelling locally", waybill, reason)
        self._transition(shipment, Shipment.CANCELLED, note="Not found at carrier, cancelled locally")
        return {
            "success": True, "waybill": waybill,
            "message": "Shipment cancelled locally (not found on Delhivery)",
            "warning": "Shipment was not found on Delhivery servers, but cancelled in our database",
        }

    # ── Label ─────────────────────────────────────────────────────────────────
    def generate_shipping_label(self, waybill, pdf=True, pdf_size="4R") -> dict:
        if not self.carrier.is_configured():
            return CarrierUnavailable(NOT_CONFIGURED_MSG).as_result()
        try:
            label = self.carrier.generate_shipping_label(waybill, pdf=pdf, pdf_size=pdf_size)
        except CarrierError as exc:
            logger.error("Label generation for %s failed: %s", waybill, exc)
            return {"success": False, "error": f"Failed to generate shipping label: {exc}"}

        shipment = self._find_by_waybill(waybill)
        if shipment is not None:
            shipment.label_generated = True
            shipment.label_url       = _label_url(label)[:500]
            shipment.save(update_fields=["label_generated", "label_url", "updated_at"])
        return _ok(label, waybill=waybill)

    # ── Status ────────────────────────────────────────────────────────────────
    @transaction.atomic
    def _transition(self, shipment, status, tracking_info=None, note=""):
        if shipment.status in Shipment.TERMINAL_STATUSES and status != shipment.status:
            raise InvalidStatusTransition(
                f"Shipment {shipment.primary_waybill} is {shipment.status}; no further status changes allowed"
            )
        previous        = shipment.status
        shipment.status = status
        fields          = ["status", "updated_at"]
        if tracking_info is not None:
            shipment.tracking_info = tracking_info
            fields.append("tracking_info")
        shipment.save(update_fields=fields)
        ShipmentEvent.objects.create(shipment=shipment, from_status=previous, to_status=status, note=note[:255])
        return shipment

    def update_shipment_status(self, shipment_id, status, tracking_info=None) -> dict:
        try:
            shipment = self.get_shipment_by_id(shipment_id)
            self._transition(shipment, status, tracking_info, note="Manual status update")
        except ShipmentError as exc:
            return exc.as_result()
        logger.info("Shipment %s status -> %s", shipment_id, status)
        return _ok(shipment)

    # ── Carrier order listings ────────────────────────────────────────────────
    def carrier_orders(self, **filters) -> dict:
        return self.carrier.fetch_orders(**filters)

    def carrier_order_by_reference(self, reference_number):
        """One carrier-side order row for our order reference, or None."""
        return self.carrier.fetch_order_by_reference(reference_number)

    def search_carrier_orders(self, **filters) -> dict:
        return self.carrier.search_orders(**filters)

    def carrier_order_analytics(self, **filters) -> dict:
        return self.carrier.get_order_analytics(**filters)
