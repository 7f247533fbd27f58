"""
Delhivery API client.

DelhiveryClient is the only component that talks HTTP to the carrier. It
owns request construction, the carrier's client-side business rules
(edit restrictions, payment-mode conversion matrix, payload self-healing)
and delegates response-shape handling to `normalizers` and free-text
interpretation to `remarks`.

Transport failures raise CarrierTransportError subclasses carrying the HTTP
status and body. Carrier-reported business failures come back as data.
"""

import copy
import json
import logging
import time
from collections import namedtuple
from datetime import date, timedelta

import requests
from django.conf import settings
from django.utils import timezone

from . import insights
from .exceptions import (
    CarrierAuthError,
    CarrierError,
    CarrierHTMLResponseError,
    CarrierNotConfiguredError,
    CarrierNotFoundError,
    CarrierTransportError,
    CarrierValidationError,
    CodAmountMismatchError,
    EditNotAllowedError,
    InsufficientWaybillsError,
    PaymentModeConversionError,
    WeightLockedError,
)
from .normalizers import (
    canonical_status,
    current_status,
    extract_package_rows,
    extract_warehouse_list,
    is_html,
    normalize_heavy_serviceability,
    normalize_package_row,
    normalize_serviceability,
    normalize_single_waybill,
    normalize_tracking,
    normalize_waybill_list,
)
from .remarks import interpret_cancel_response

logger = logging.getLogger("shipdesk.carrier")

PLACEHOLDER_TOKEN     = "your-delhivery-auth-token-here"
MAX_BULK_WAYBILLS     = 10000
MAX_TRACKED_WAYBILLS  = 50
ORDER_LOOKUP_BATCH    = 20
ORDER_LOOKUP_DELAY    = 0.1
SHIPMENT_WINDOW_DAYS  = 7

EDITABLE_STATUSES      = ("PENDING", "PICKUP_PENDING", "PICKUP_SCHEDULED", "MANIFEST_GENERATED")
WEIGHT_LOCKED_STATUSES = ("MANIFEST_GENERATED", "PICKUP_SCHEDULED")

PAYMENT_MODE_CONVERSIONS = {
    "COD":     ("Prepaid",),
    "Prepaid": (),
    "Pickup":  ("COD", "Prepaid"),
    "REPL":    (),
}

EDITABLE_FIELDS = (
    "name", "add", "pin", "city", "state", "phone",
    "payment_mode", "cod_amount", "weight",
    "shipment_width", "shipment_height", "shipment_length",
    "products_desc", "seller_name", "seller_add",
    "return_name", "return_add", "return_city", "return_phone",
    "return_pin", "return_state", "return_country",
)
NUMERIC_EDIT_FIELDS = ("cod_amount", "weight", "shipment_width", "shipment_height", "shipment_length")

REQUIRED_SHIPMENT_FIELDS = (
    ("name",         "Customer name"),
    ("add",          "Customer address"),
    ("pin",          "Customer pincode"),
    ("phone",        "Customer phone"),
    ("order",        "Order ID"),
    ("payment_mode", "Payment mode"),
)

WAREHOUSE_REGISTRATION_FIELDS = (
    "name", "registered_name", "phone", "email", "address", "city", "pin", "country",
    "return_address", "return_city", "return_pin", "return_state", "return_country",
)
WAREHOUSE_EDIT_FIELDS = ("name", "address", "pin", "phone")

# No single documented listing endpoint; tried in order.
WAREHOUSE_ENDPOINTS = (
    "/api/backend/clientwarehouse/",
    "/api/backend/clientwarehouse/list/",
    "/api/backend/clientwarehouse/get/",
    "/api/backend/warehouse/",
    "/api/backend/warehouse/list/",
    "/api/cmu/warehouse/",
    "/api/warehouse/",
    "/api/v1/warehouse/",
    "/warehouse/api/list/",
    "/api/pickup/warehouse/",
    "/api/pickup/location/",
    "/api/pickup/locations/",
)

FALLBACK_WAREHOUSES = (
    {
        "name": "Main Warehouse", "address": "Main Warehouse Address", "pin": "400001",
        "phone": "+919876543210", "city": "Mumbai", "state": "Maharashtra",
        "active": True, "status": "active",
    },
    {
        "name": "Delhi Hub", "address": "Delhi Hub Address", "pin": "110001",
        "phone": "+919876543211", "city": "Delhi", "state": "Delhi",
        "active": True, "status": "active",
    },
)

WarehouseListing = namedtuple("WarehouseListing", ["warehouses", "live"])


# ── Payload rules (pure) ─────────────────────────────────────────────────────

def format_phone_number(phone) -> str:
    """Reduce any Indian phone notation to 10 digits."""
    digits = "".join(ch for ch in str(phone or "") if ch.isdigit())
    if len(digits) == 10:
        return digits
    if len(digits) == 11 and digits.startswith("0"):
        return digits[1:]
    if len(digits) == 12 and digits.startswith("91"):
        return digits[2:]
    return "9999999999"


def heal_shipment_dates(shipment: dict, today=None) -> dict:
    """
    A missing send_date/end_date makes the carrier fail with an opaque
    internal error; fill them in before sending.
    """
    today = today or timezone.localdate()
    if not shipment.get("send_date"):
        shipment["send_date"] = today.isoformat()
        logger.info("Added missing send_date to shipment %s", shipment.get("order"))
    if not shipment.get("end_date"):
        start = shipment["send_date"]
        try:
            start_day = date.fromisoformat(str(start)[:10])
        except ValueError:
            start_day = today
        shipment["end_date"] = (start_day + timedelta(days=SHIPMENT_WINDOW_DAYS)).isoformat()
        logger.info("Added missing end_date to shipment %s", shipment.get("order"))
    return shipment


def validate_shipment_payload(payload: dict, today=None) -> dict:
    shipments = payload.get("shipments") or []
    if not shipments:
        raise CarrierValidationError("At least one shipment is required")

    for index, shipment in enumerate(shipments, start=1):
        for field, label in REQUIRED_SHIPMENT_FIELDS:
            if not shipment.get(field):
                raise CarrierValidationError(f"Shipment {index}: {label} is required")
        if not (shipment.get("return_name") and shipment.get("return_add") and shipment.get("return_pin")):
            raise CarrierValidationError(f"Shipment {index}: Return address details are required")

        heal_shipment_dates(shipment, today)

        pin = str(shipment["pin"])
        if not (len(pin) == 6 and pin.isdigit()):
            logger.warning("Invalid pincode format for shipment %s: %s", index, pin)
        if len("".join(ch for ch in str(shipment["phone"]) if ch.isdigit())) != 10:
            logger.warning("Invalid phone format for shipment %s: %s", index, shipment["phone"])

    if not (payload.get("pickup_location") or {}).get("name"):
        raise CarrierValidationError("Pickup location is required")
    return payload


def validate_payment_mode_conversion(from_mode, to_mode):
    allowed = PAYMENT_MODE_CONVERSIONS.get(from_mode, ())
    if to_mode not in allowed:
        raise PaymentModeConversionError(from_mode, to_mode, allowed)


def validate_cod_amount(payment_mode, cod_amount):
    try:
        amount = float(cod_amount)
    except (TypeError, ValueError):
        raise CodAmountMismatchError(f"COD amount must be a number, got {cod_amount!r}")
    if payment_mode == "Prepaid" and amount > 0:
        raise CodAmountMismatchError("COD amount must be 0 for Prepaid shipments")
    if payment_mode == "COD" and amount <= 0:
        raise CodAmountMismatchError("COD amount must be greater than 0 for COD shipments")


def validate_edit_restrictions(current, payload: dict, current_payment_mode=None):
    """
    Rules the carrier documents but does not reliably enforce itself.
    `current` is the carrier (or locally cached) shipment status.
    """
    status = canonical_status(current)
    if status not in EDITABLE_STATUSES:
        raise EditNotAllowedError(current, EDITABLE_STATUSES)

    target_mode = payload.get("payment_mode")
    if target_mode and current_payment_mode and target_mode != current_payment_mode:
        validate_payment_mode_conversion(current_payment_mode, target_mode)

    if payload.get("cod_amount") is not None:
        validate_cod_amount(target_mode or current_payment_mode, payload["cod_amount"])

    if status in WEIGHT_LOCKED_STATUSES and payload.get("weight") not in (None, ""):
        raise WeightLockedError(current)


def prepare_edit_payload(payload: dict) -> dict:
    body = {"waybill": payload["waybill"]}
    for field in EDITABLE_FIELDS:
        if payload.get(field) is not None:
            value = payload[field]
            body[field] = str(value) if field in NUMERIC_EDIT_FIELDS else value
    return body


# ── Client ───────────────────────────────────────────────────────────────────

class DelhiveryClient:
    """
    Explicitly constructed carrier client. Configuration is captured once at
    construction; nothing is read from ambient state afterwards.
    """

    def __init__(self, token=None, base_url=None, session=None, timeout=None, batch_delay=None):
        self.token       = token if token is not None else settings.DELHIVERY_API_TOKEN
        self.base_url    = (base_url or settings.DELHIVERY_BASE_URL).rstrip("/")
        self.timeout     = timeout if timeout is not None else settings.DELHIVERY_TIMEOUT
        self.batch_delay = batch_delay if batch_delay is not None else settings.WAYBILL_BATCH_DELAY_SECONDS
        self.session     = session or requests.Session()

    @classmethod
    def from_settings(cls):
        return cls()

    def is_configured(self) -> bool:
        return bool(self.token) and self.token != PLACEHOLDER_TOKEN

    def get_status(self) -> dict:
        return {
            "configured": self.is_configured(),
            "base_url":   self.base_url,
            "has_token":  bool(self.token),
        }

    @staticmethod
    def get_waybill_rate_limits() -> dict:
        return {
            "bulk_waybill":   {"max_per_request": MAX_BULK_WAYBILLS, "max_per_5_minutes": 50000,
                               "throttle_time": "1 minute"},
            "single_waybill": {"max_per_5_minutes": 750},
        }

    # ── Transport ────────────────────────────────────────────────────────────
    def _request(self, method, path, *, params=None, json=None, data=None, expect_json=True):
        if not self.is_configured():
            raise CarrierNotConfiguredError("Delhivery API not configured. Please set up your API credentials.")

        headers = {
            "Authorization": f"Token {self.token}",
            "Accept":        "application/json",
        }
        try:
            resp = self.session.request(
                method,
                f"{self.base_url}{path}",
                params=params,
                json=json,
                data=data,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Carrier %s %s failed: %s", method, path, exc)
            raise CarrierTransportError(f"Carrier request failed: {exc}") from exc

        if not resp.ok:
            raise self._http_error(resp, path)
        if not expect_json:
            return resp.text
        if is_html(resp.text):
            raise CarrierHTMLResponseError(
                f"Carrier returned an HTML page instead of JSON ({resp.status_code})",
                resp.status_code, resp.text[:500],
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise CarrierTransportError(
                "Carrier returned a non-JSON body", resp.status_code, resp.text[:500]
            ) from exc

    @staticmethod
    def _http_error(resp, path) -> CarrierTransportError:
        status, body = resp.status_code, resp.text or ""
        logger.error("Carrier %s returned %s: %s", path, status, body[:200])

        if status == 404:
            return CarrierNotFoundError(f"Carrier resource not found: {path}", status, body)
        if is_html(body):
            if status in (401, 403):
                return CarrierAuthError(
                    "Authentication failed with Delhivery API. Please check your API token.", status, body
                )
            return CarrierHTMLResponseError(
                f"Delhivery API returned an error page ({status}). Please try again later.", status, body
            )
        if status in (401, 403):
            return CarrierAuthError(f"Delhivery API authentication failed ({status})", status, body)

        message = ""
        try:
            parsed = json.loads(body)
            if isinstance(parsed, dict):
                message = parsed.get("message") or parsed.get("error") or parsed.get("rmk") or ""
        except ValueError:
            pass
        return CarrierTransportError(f"Delhivery API error: {status} - {message or body[:200]}", status, body)

    # ── Shipment creation ────────────────────────────────────────────────────
    def create_shipment(self, payload: dict) -> dict:
        payload = validate_shipment_payload(copy.deepcopy(payload))
        logger.info(
            "Creating %d shipment(s) at pickup location %s",
            len(payload["shipments"]), payload["pickup_location"]["name"],
        )
        result = self._request(
            "POST", "/api/cmu/create.json",
            data={"format": "json", "data": json.dumps(payload)},
        )
        if isinstance(result, dict) and not result.get("success") and result.get("rmk"):
            logger.warning("Carrier rejected create: %s", result["rmk"])
            for index, pkg in enumerate(result.get("packages") or [], start=1):
                if pkg.get("status") == "Fail" and pkg.get("remarks"):
                    logger.warning("Package %d remarks: %s", index, pkg["remarks"])
        return result

    def validate_shipment_before_creation(self, payload: dict) -> dict:
        errors, warnings = [], []
        try:
            payload = validate_shipment_payload(copy.deepcopy(payload))
        except CarrierValidationError as exc:
            return {"valid": False, "errors": [str(exc)], "warnings": warnings}

        for shipment in payload["shipments"]:
            result = self.check_pincode_serviceability(shipment["pin"])
            if not result["serviceable"] and not result["embargo"]:
                errors.append(f"Pincode {shipment['pin']} is not serviceable: {result['remark']}")
            if result["embargo"]:
                warnings.append(f"Pincode {shipment['pin']} is under embargo")
        return {"valid": not errors, "errors": errors, "warnings": warnings}

    # ── Waybills ─────────────────────────────────────────────────────────────
    def fetch_single_waybill(self) -> str:
        raw = self._request("GET", "/waybill/api/fetch/json/", params={"token": self.token})
        return normalize_single_waybill(raw)

    def fetch_bulk_waybills(self, count: int) -> list:
        if count > MAX_BULK_WAYBILLS:
            raise CarrierValidationError(f"Cannot fetch more than {MAX_BULK_WAYBILLS} waybills at once")
        raw = self._request("GET", "/waybill/api/bulk/json/", params={"token": self.token, "count": count})
        return normalize_waybill_list(raw)

    def _bulk_batch(self, count):
        waybills = self.fetch_bulk_waybills(count)
        if len(waybills) < count:
            raise InsufficientWaybillsError(count, len(waybills))
        return waybills[:count]

    def generate_waybills_with_fallback(self, count: int) -> list:
        if count < 1:
            raise CarrierValidationError("Waybill count must be at least 1")
        if count == 1:
            return [self.fetch_single_waybill()]
        if count <= MAX_BULK_WAYBILLS:
            return self._bulk_batch(count)

        waybills  = []
        remaining = count
        while remaining > 0:
            size = min(MAX_BULK_WAYBILLS, remaining)
            waybills.extend(self._bulk_batch(size))
            remaining -= size
            if remaining > 0:
                time.sleep(self.batch_delay)
        logger.info("Generated %d waybills in batches", len(waybills))
        return waybills

    # ── Tracking ─────────────────────────────────────────────────────────────
    def track_shipment(self, waybill: str) -> dict:
        return self._request("GET", "/api/v1/packages/json/", params={"waybill": waybill})

    def track_shipment_enhanced(self, waybills, order_ids=None) -> dict:
        if isinstance(waybills, str):
            waybills = [waybills]
        if len(waybills) > MAX_TRACKED_WAYBILLS:
            raise CarrierValidationError(f"At most {MAX_TRACKED_WAYBILLS} waybills can be tracked per request")
        params = {"waybill": ",".join(waybills)}
        if order_ids:
            params["ref_ids"] = ",".join(order_ids)
        return self._request("GET", "/api/v1/packages/json/", params=params)

    def get_current_status(self, waybill: str) -> str:
        return current_status(self.track_shipment(waybill))

    def get_shipment_status(self, waybill: str) -> dict:
        tracking = normalize_tracking(self.track_shipment(waybill), waybill)
        latest   = tracking["scans"][-1] if tracking["scans"] else {}
        status   = latest.get("status") or tracking["status"]
        lowered  = status.lower()
        return {
            "status":             status,
            "location":           latest.get("location") or tracking["current_location"],
            "timestamp":          latest.get("timestamp", ""),
            "remarks":            latest.get("instructions", ""),
            "is_delivered":       "delivered" in lowered,
            "is_in_transit":      "in transit" in lowered,
            "is_picked_up":       "picked" in lowered,
            "estimated_delivery": tracking["estimated_delivery"],
        }

    # ── Edit / cancel ────────────────────────────────────────────────────────
    def edit_shipment(self, payload: dict, current_payment_mode=None) -> dict:
        waybill = payload.get("waybill")
        if not waybill:
            raise CarrierValidationError("waybill is required to edit a shipment")

        status = self.get_current_status(waybill)
        validate_edit_restrictions(status, payload, current_payment_mode)

        body = prepare_edit_payload(payload)
        logger.info("Editing shipment %s fields=%s", waybill, sorted(k for k in body if k != "waybill"))
        return self._request("POST", "/api/p/edit", json=body)

    def cancel_shipment(self, waybill: str) -> dict:
        try:
            result = self._request("POST", "/api/p/edit", json={"waybill": waybill, "cancellation": "true"})
        except CarrierNotFoundError as exc:
            logger.warning("Waybill %s not found for cancellation", waybill)
            raise CarrierNotFoundError(
                f"Shipment with waybill {waybill} not found on Delhivery", exc.status_code, exc.body
            ) from exc

        verdict = interpret_cancel_response(result)
        verdict["response"] = result
        logger.info("Cancel %s -> cancelled=%s", waybill, verdict["cancelled"])
        return verdict

    # ── Serviceability ───────────────────────────────────────────────────────
    def check_pincode_serviceability(self, pincode: str) -> dict:
        try:
            raw = self._request("GET", "/c/api/pin-codes/json/", params={"filter_codes": pincode})
        except CarrierTransportError as exc:
            # Non-critical check: never block other flows on it.
            logger.warning("Serviceability check failed for %s: %s", pincode, exc)
            return {
                "serviceable": True,
                "embargo":     False,
                "remark":      "Serviceability could not be verified",
                "details":     None,
            }
        return normalize_serviceability(raw)

    def check_heavy_pincode_serviceability(self, pincode: str) -> dict:
        raw = self._request(
            "GET", "/api/dc/fetch/serviceability/pincode",
            params={"product_type": "Heavy", "pincode": pincode},
        )
        return normalize_heavy_serviceability(raw)

    # ── Warehouses ───────────────────────────────────────────────────────────
    def fetch_warehouses(self) -> WarehouseListing:
        if not self.is_configured():
            return WarehouseListing([dict(w) for w in FALLBACK_WAREHOUSES], False)

        for path in WAREHOUSE_ENDPOINTS:
            try:
                raw = self._request("GET", path)
            except CarrierError as exc:
                logger.debug("Warehouse endpoint %s unusable: %s", path, exc)
                continue
            rows = extract_warehouse_list(raw)
            if rows is not None:
                logger.info("Fetched %d warehouses from %s", len(rows), path)
                return WarehouseListing(rows, True)
            logger.debug("Warehouse endpoint %s returned an unrecognised shape", path)

        logger.warning("No warehouse endpoint worked, using synthetic warehouses")
        return WarehouseListing([dict(w) for w in FALLBACK_WAREHOUSES], False)

    def register_warehouse(self, data: dict) -> dict:
        body = {k: data[k] for k in WAREHOUSE_REGISTRATION_FIELDS if data.get(k) not in (None, "")}
        logger.info("Registering warehouse %s", body.get("name"))
        return self._request("POST", "/api/backend/clientwarehouse/create/", json=body)

    def update_warehouse(self, data: dict) -> dict:
        body = {k: data[k] for k in WAREHOUSE_EDIT_FIELDS if data.get(k) not in (None, "")}
        logger.info("Updating warehouse %s", body.get("name"))
        return self._request("POST", "/api/backend/clientwarehouse/edit/", json=body)

    # ── Pickup / e-waybill / label ───────────────────────────────────────────
    def create_pickup_request(self, pickup_date, pickup_time, pickup_location, expected_package_count) -> dict:
        body = {
            "pickup_time":            pickup_time,
            "pickup_date":            pickup_date,
            "pickup_location":        pickup_location,
            "expected_package_count": expected_package_count,
        }
        logger.info("Requesting pickup %s", body)
        return self._request("POST", "/fm/request/new/", json=body)

    def update_ewaybill(self, waybill: str, dcn: str, ewbn: str) -> dict:
        return self._request(
            "PUT", f"/api/rest/ewaybill/{waybill}/",
            json={"data": [{"dcn": dcn, "ewbn": ewbn}]},
        )

    def generate_shipping_label(self, waybill: str, pdf=True, pdf_size="4R"):
        params = {"wbns": waybill, "pdf": "true" if pdf else "false", "pdf_size": pdf_size}
        return self._request("GET", "/api/p/packing_slip", params=params, expect_json=not pdf)

    # ── Orders (client-side aggregation) ─────────────────────────────────────
    @staticmethod
    def _empty_orders(page=1, limit=50) -> dict:
        _, pagination = insights.paginate([], page, limit)
        return {"orders": [], "pagination": pagination, "summary": insights.empty_summary()}

    def _package_rows(self, params) -> list:
        raw = self._request("GET", "/api/v1/packages/json/", params=params)
        return [normalize_package_row(r) for r in extract_package_rows(raw) if isinstance(r, dict)]

    def _load_order_rows(self, waybill=None, reference_number=None, waybills=None):
        if waybills:
            return self.fetch_orders_by_waybills(waybills)
        if not waybill and not reference_number:
            logger.info("No waybill or reference number provided, returning empty order list")
            return []
        params = {}
        if waybill:
            params["waybill"] = waybill
        if reference_number:
            params["ref_ids"] = reference_number
        try:
            return insights.enhance_rows(self._package_rows(params))
        except CarrierError as exc:
            logger.error("Error fetching orders: %s", exc)
            return []

    def fetch_orders(self, page=1, limit=50, waybill=None, reference_number=None, waybills=None,
                     status=None, payment_mode=None, state=None, city=None,
                     from_date=None, to_date=None, sort_by="date", sort_order="desc") -> dict:
        rows = self._load_order_rows(waybill, reference_number, waybills)
        if not rows:
            return self._empty_orders(page, limit)

        rows = insights.filter_rows(
            rows, status=status, payment_mode=payment_mode, state=state, city=city,
            from_date=from_date, to_date=to_date,
        )
        rows = insights.sort_rows(rows, sort_by, sort_order)
        page_rows, pagination = insights.paginate(rows, page, limit)
        return {"orders": page_rows, "pagination": pagination, "summary": insights.summarize(rows)}

    def fetch_orders_by_waybills(self, waybills) -> list:
        rows = []
        for start in range(0, len(waybills), ORDER_LOOKUP_BATCH):
            batch = waybills[start:start + ORDER_LOOKUP_BATCH]
            try:
                rows.extend(self._package_rows({"waybill": ",".join(batch)}))
            except CarrierError as exc:
                logger.error("Skipping waybill batch %s: %s", batch, exc)
            if start + ORDER_LOOKUP_BATCH < len(waybills):
                time.sleep(ORDER_LOOKUP_DELAY)
        return insights.enhance_rows(rows)

    def fetch_order_by_reference(self, reference_number: str):
        rows = self._load_order_rows(reference_number=reference_number)
        return rows[0] if rows else None

    def search_orders(self, query=None, waybill=None, reference_number=None, waybills=None,
                      customer_name=None, customer_phone=None, customer_email=None,
                      address=None, pincode=None, amount_min=None, amount_max=None,
                      from_date=None, to_date=None, status=None, payment_mode=None,
                      states=None, cities=None, page=1, limit=100) -> dict:
        started = time.monotonic()
        rows = self._load_order_rows(waybill, reference_number, waybills)
        rows = insights.filter_rows(
            rows, status=status, payment_mode=payment_mode, state=states, city=cities,
            from_date=from_date, to_date=to_date,
        )
        rows = insights.search_rows(
            rows, query=query, customer_name=customer_name, customer_phone=customer_phone,
            customer_email=customer_email, address=address, pincode=pincode,
            amount_min=amount_min, amount_max=amount_max,
        )
        page_rows, pagination = insights.paginate(rows, page, limit)
        return {
            "orders":         page_rows,
            "total_results":  len(rows),
            "pagination":     pagination,
            "search_time_ms": int((time.monotonic() - started) * 1000),
            "suggestions":    insights.search_suggestions(rows, query),
        }

    def get_order_analytics(self, group_by="day", waybill=None, reference_number=None,
                            waybills=None, from_date=None, to_date=None) -> dict:
        rows = self._load_order_rows(waybill, reference_number, waybills)
        rows = insights.filter_rows(rows, from_date=from_date, to_date=to_date)
        return insights.build_analytics(rows, group_by)
