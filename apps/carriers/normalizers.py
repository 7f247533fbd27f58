"""
Delhivery response normalizers.

Each function maps one family of raw carrier JSON shapes to the canonical
structure the rest of ShipDesk works with. They are pure: no I/O, no
settings, no logging of business decisions.
"""

import enum

from django.utils.dateparse import parse_date, parse_datetime

from .exceptions import CarrierTransportError

NSZ_REMARK = "Non-serviceable zone (NSZ)"

WAREHOUSE_LIST_KEYS = ("data", "warehouses", "results", "pickup_locations")

_NAME_KEYS    = ("name", "warehouse_name", "pickup_location_name")
_ADDRESS_KEYS = ("address", "warehouse_address", "pickup_address", "return_address")
_PIN_KEYS     = ("pin", "pincode", "warehouse_pin", "pickup_pin", "return_pin")
_PHONE_KEYS   = ("phone", "warehouse_phone", "pickup_phone")
_CITY_KEYS    = ("city", "warehouse_city", "return_city")
_STATE_KEYS   = ("state", "warehouse_state", "return_state")


def is_html(body) -> bool:
    if not isinstance(body, str):
        return False
    head = body.lstrip()[:200].lower()
    return head.startswith("<!doctype html") or "<html" in head


def canonical_status(value) -> str:
    """'Pickup Scheduled' / 'pickup-scheduled' -> 'PICKUP_SCHEDULED'."""
    text = str(value or "").strip()
    if not text:
        return "UNKNOWN"
    return "_".join(text.replace("-", " ").split()).upper()


def _split_csv(text):
    return [w.strip() for w in text.split(",") if w.strip()]


def _first(raw, keys, default=""):
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return default


def _to_float(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


# ── Waybills ─────────────────────────────────────────────────────────────────

def normalize_waybill_list(raw) -> list:
    """
    Accepts a bare list, {"waybills": [...]}, {"data": [...]}, or any of
    those carrying a comma-separated string instead of a list.
    """
    if isinstance(raw, list):
        return [str(w).strip() for w in raw if str(w).strip()]
    if isinstance(raw, str):
        return _split_csv(raw)
    if isinstance(raw, dict):
        for key in ("waybills", "data"):
            value = raw.get(key)
            if isinstance(value, list):
                return [str(w).strip() for w in value if str(w).strip()]
            if isinstance(value, str):
                return _split_csv(value)
    raise CarrierTransportError("Unexpected waybill response format", body=repr(raw)[:500])


def normalize_single_waybill(raw) -> str:
    if isinstance(raw, str) and raw.strip():
        return _split_csv(raw)[0]
    if isinstance(raw, dict):
        for key in ("waybill", "data"):
            value = raw.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
            if isinstance(value, list) and value:
                return str(value[0]).strip()
    if isinstance(raw, list) and raw:
        return str(raw[0]).strip()
    raise CarrierTransportError("Unexpected waybill response format", body=repr(raw)[:500])


# ── Tracking ─────────────────────────────────────────────────────────────────

class TrackingOutcome(enum.Enum):
    ERROR      = "error"        # carrier explicitly rejected the lookup
    NO_HISTORY = "no_history"   # waybill known, nothing scanned yet
    AVAILABLE  = "available"


def _first_track(raw):
    if not isinstance(raw, dict):
        return None
    for key in ("ShipmentTrack", "ShipmentData"):
        rows = raw.get(key)
        if isinstance(rows, list) and rows:
            return rows[0]
    return None


def _status_block(track):
    shipment = track.get("Shipment") or {}
    return shipment.get("Status") or track.get("Status") or {}


def current_status(raw) -> str:
    """Raw carrier status string of the first tracked shipment, or 'Unknown'."""
    track = _first_track(raw)
    if not track:
        return "Unknown"
    return _status_block(track).get("Status") or "Unknown"


def normalize_scan(scan) -> dict:
    detail    = scan.get("ScanDetail") or scan
    timestamp = detail.get("ScanDateTime") or ""
    return {
        "location":     detail.get("ScanLocation") or "",
        "status":       detail.get("Scan") or "",
        "instructions": detail.get("Instructions") or "",
        "description":  detail.get("Scan") or "",
        "date":         timestamp.replace("T", " ").split(" ")[0] if timestamp else "",
        "timestamp":    timestamp,
    }


def normalize_tracking(raw, waybill) -> dict:
    if not isinstance(raw, dict) or raw.get("Success") is False or raw.get("Error"):
        message = raw.get("Error") if isinstance(raw, dict) else None
        return {
            "waybill":            waybill,
            "outcome":            TrackingOutcome.ERROR,
            "status":             "No tracking data available",
            "current_location":   "Waybill not found in carrier system",
            "estimated_delivery": "",
            "scans":              [],
            "is_available":       False,
            "message":            message or "This waybill was not found in the carrier system.",
        }

    track = _first_track(raw)
    if not track:
        return {
            "waybill":            waybill,
            "outcome":            TrackingOutcome.NO_HISTORY,
            "status":             "No tracking data available",
            "current_location":   "Waybill generated but not yet in transit",
            "estimated_delivery": "",
            "scans":              [],
            "is_available":       False,
            "message":            "Tracking will be available once the package is handed over to the carrier.",
        }

    status   = _status_block(track)
    shipment = track.get("Shipment") or track
    scans    = [normalize_scan(s) for s in shipment.get("Scans") or [] if isinstance(s, dict)]
    return {
        "waybill":            waybill,
        "outcome":            TrackingOutcome.AVAILABLE,
        "status":             status.get("Status") or "Unknown",
        "current_location":   status.get("StatusLocation") or "",
        "estimated_delivery": shipment.get("ExpectedDeliveryDate") or status.get("StatusDateTime") or "",
        "scans":              scans,
        "is_available":       True,
        "message":            "Tracking data available",
    }


# ── Serviceability ───────────────────────────────────────────────────────────

def normalize_serviceability(raw) -> dict:
    if isinstance(raw, dict) and "delivery_codes" in raw:
        rows = raw.get("delivery_codes") or []
    elif isinstance(raw, list):
        rows = raw
    elif isinstance(raw, dict) and raw:
        rows = [raw]
    else:
        rows = []

    if not rows:
        return {"serviceable": False, "embargo": False, "remark": NSZ_REMARK, "details": raw}

    row = rows[0] if isinstance(rows[0], dict) else {}
    if isinstance(row.get("postal_code"), dict):
        row = row["postal_code"]
    remark  = row.get("remark") or row.get("remarks") or ""
    embargo = remark == "Embargo"
    return {"serviceable": not embargo, "embargo": embargo, "remark": remark, "details": row}


def normalize_heavy_serviceability(raw) -> dict:
    raw = raw if isinstance(raw, dict) else {}
    if raw.get("message") == "NSZ" or raw.get("status") == "NSZ":
        return {"serviceable": False, "payment_types": [], "details": raw}
    payment_type = raw.get("payment_type")
    if isinstance(payment_type, list):
        payment_types = list(payment_type)
    else:
        payment_types = [payment_type] if payment_type else []
    return {"serviceable": bool(payment_types), "payment_types": payment_types, "details": raw}


# ── Warehouses ───────────────────────────────────────────────────────────────

def extract_warehouse_list(raw):
    """The warehouse array inside a listing response, or None if unrecognised."""
    if isinstance(raw, list):
        return raw
    if isinstance(raw, dict):
        for key in WAREHOUSE_LIST_KEYS:
            if isinstance(raw.get(key), list):
                return raw[key]
    return None


def warehouse_names(raw) -> list:
    return [str(raw[k]) for k in _NAME_KEYS if raw.get(k)]


def normalize_warehouse(raw, index=0) -> dict:
    status = raw.get("status")
    active = raw.get("active")
    return {
        "name":       _first(raw, _NAME_KEYS, f"Warehouse {index + 1}"),
        "address":    _first(raw, _ADDRESS_KEYS, "No address available"),
        "pin":        str(_first(raw, _PIN_KEYS, "000000")),
        "phone":      str(_first(raw, _PHONE_KEYS, "+919876543210")),
        "city":       _first(raw, _CITY_KEYS, ""),
        "state":      _first(raw, _STATE_KEYS, ""),
        "country":    raw.get("country") or "India",
        "active":     bool(active) if active is not None else status in (None, "", "active"),
        "is_default": bool(raw.get("is_default") or raw.get("isDefault")),
    }


# ── Packages (order listings) ────────────────────────────────────────────────

def extract_package_rows(raw) -> list:
    if isinstance(raw, dict):
        if isinstance(raw.get("ShipmentData"), list):
            return [item.get("Shipment") for item in raw["ShipmentData"]
                    if isinstance(item, dict) and item.get("Shipment")]
        if isinstance(raw.get("data"), list):
            return raw["data"]
    if isinstance(raw, list):
        return raw
    return []


def _payment_mode(value) -> str:
    text = str(value or "").strip()
    if text.lower() in ("pre-paid", "prepaid"):
        return "Prepaid"
    if text.lower() == "cod":
        return "COD"
    return text


def _as_text(value) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value if v)
    return str(value) if value not in (None, "") else ""


def parse_carrier_date(value):
    """Date part of a carrier timestamp string, or None."""
    if not value:
        return None
    text = str(value).strip()
    try:
        parsed = parse_datetime(text.replace("Z", "+00:00"))
        if parsed is not None:
            return parsed.date()
        return parse_date(text[:10])
    except ValueError:
        return None


def normalize_package_row(raw) -> dict:
    """
    Flatten one packages-API `Shipment` object (AWB, Consignee, Status …)
    into an order row. Rows that are already flat pass through unchanged.
    """
    status_block = raw.get("Status") if isinstance(raw.get("Status"), dict) else {}
    consignee    = raw.get("Consignee") or {}
    status       = raw.get("status") if isinstance(raw.get("status"), str) else status_block.get("Status")
    return {
        "waybill":          str(raw.get("waybill") or raw.get("AWB") or ""),
        "reference_number": str(raw.get("reference_number") or raw.get("ReferenceNo") or ""),
        "status":           status or "Unknown",
        "customer_name":    raw.get("customer_name") or consignee.get("Name") or "",
        "customer_phone":   _as_text(raw.get("customer_phone") or consignee.get("Telephone1")),
        "customer_email":   raw.get("customer_email") or consignee.get("Email") or "",
        "address":          _as_text(raw.get("address") or consignee.get("Address1")),
        "city":             raw.get("city") or consignee.get("City") or "",
        "state":            raw.get("state") or consignee.get("State") or "",
        "pincode":          str(raw.get("pincode") or consignee.get("PinCode") or ""),
        "total_amount":     _to_float(raw.get("total_amount", raw.get("InvoiceAmount"))),
        "cod_amount":       _to_float(raw.get("cod_amount", raw.get("CODAmount"))),
        "payment_mode":     _payment_mode(raw.get("payment_mode") or raw.get("OrderType")),
        "shipping_mode":    raw.get("shipping_mode") or raw.get("Mode") or "Surface",
        "order_date":       raw.get("order_date") or raw.get("OrderDate") or raw.get("PickUpDate") or "",
        "delivery_date":    raw.get("delivery_date") or raw.get("DeliveryDate") or "",
        "last_update":      raw.get("last_update") or status_block.get("StatusDateTime") or "",
        "current_location": raw.get("current_location") or status_block.get("StatusLocation") or "",
    }
