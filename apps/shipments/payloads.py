"""
Builders for carrier create payloads and the shipment summaries stored on
orders. Pure functions over Order data; no I/O.
"""

import random
import time
from datetime import timedelta

from django.utils import timezone

from apps.carriers.client import SHIPMENT_WINDOW_DAYS, format_phone_number

DEFAULT_WEIGHT     = 500                                   # grams
DEFAULT_DIMENSIONS = {"length": 10, "width": 10, "height": 10}
DESCRIPTION_LIMIT  = 50

# First keyword contained in the product name wins.
HSN_CODES = (
    ("clothing",   "6109"),
    ("shirt",      "6205"),
    ("tshirt",     "6109"),
    ("dress",      "6204"),
    ("electronics", "8517"),
    ("mobile",     "8517"),
    ("phone",      "8517"),
    ("laptop",     "8471"),
    ("computer",   "8471"),
    ("book",       "4901"),
    ("shoes",      "6403"),
    ("bag",        "4202"),
    ("watch",      "9102"),
    ("jewelry",    "7113"),
    ("cosmetics",  "3304"),
    ("perfume",    "3303"),
    ("toy",        "9503"),
    ("furniture",  "9403"),
    ("home",       "9403"),
    ("kitchen",    "7323"),
    ("food",       "2106"),
    ("health",     "3004"),
    ("medicine",   "3004"),
    ("sports",     "9506"),
    ("automotive", "8708"),
    ("general",    "9999"),
)
DEFAULT_HSN = "9999"


def hsn_code_for(product_name) -> str:
    lowered = str(product_name or "").lower()
    for keyword, code in HSN_CODES:
        if keyword in lowered:
            return code
    return DEFAULT_HSN


def payment_mode_for(shipment_type, order) -> str:
    if shipment_type == "REVERSE":
        return "Pickup"
    if shipment_type == "REPLACEMENT":
        return "REPL"
    return "COD" if order.is_cod else "Prepaid"


def next_business_day(today=None):
    day = (today or timezone.localdate()) + timedelta(days=1)
    while day.weekday() >= 5:
        day += timedelta(days=1)
    return day


# ── Order → customer / package ───────────────────────────────────────────────

def customer_from_order(order) -> dict:
    """Delivery address of an order in canonical form, with storefront defaults."""
    addr = order.shipping_address or {}

    if addr.get("first_name") and addr.get("last_name"):
        name = f"{addr['first_name']} {addr['last_name']}".strip()
    else:
        name = addr.get("name") or addr.get("customer_name") or order.customer_name or "Customer"

    if addr.get("address1") and addr.get("address2"):
        address = f"{addr['address1']}, {addr['address2']}".strip()
    else:
        address = addr.get("address") or addr.get("address1") or addr.get("full_address") or "Default Address"

    return {
        "name":    name,
        "address": address,
        "phone":   addr.get("phone_number") or addr.get("phone") or order.customer_phone or "9999999999",
        "pincode": str(addr.get("zip_code") or addr.get("pincode") or addr.get("postal_code") or "400001"),
        "city":    addr.get("city") or "Mumbai",
        "state":   addr.get("state") or "Maharashtra",
        "country": addr.get("country") or "India",
    }


def item_names(order) -> list:
    return [str(item["name"]) for item in order.items or [] if item.get("name")]


def estimate_package(order) -> dict:
    """
    Package weight (grams) and bounding dimensions (cm) from order items.
    Item weights are stored in kg.
    """
    total_weight = 0
    dims = dict(DEFAULT_DIMENSIONS)
    for item in order.items or []:
        qty = int(item.get("quantity") or 1)
        total_weight += float(item.get("weight") or 0) * 1000 * qty
        dims["length"] = max(dims["length"], float(item.get("length") or 0))
        dims["width"]  = max(dims["width"],  float(item.get("breadth") or item.get("width") or 0))
        dims["height"] = max(dims["height"], float(item.get("height") or 0))

    names = item_names(order)
    return {
        "weight":              total_weight or DEFAULT_WEIGHT,
        "dimensions":          dims,
        "product_description": ", ".join(names)[:DESCRIPTION_LIMIT] if names else "General Product",
    }


# ── Carrier create payload ───────────────────────────────────────────────────

def _package_spec(request, index):
    packages = request.get("packages") or []
    spec = packages[index] if index < len(packages) else {}
    return (
        spec.get("weight") or request.get("weight") or DEFAULT_WEIGHT,
        spec.get("dimensions") or request.get("dimensions") or DEFAULT_DIMENSIONS,
    )


def build_shipment_record(order, request, warehouse, index=0, waybill=None, today=None) -> dict:
    """One carrier `shipments[]` entry for package `index` of the request."""
    today         = today or timezone.localdate()
    shipment_type = request.get("shipment_type", "FORWARD")
    customer      = customer_from_order(order)
    mode          = payment_mode_for(shipment_type, order)
    weight, dims  = _package_spec(request, index)
    custom        = request.get("custom_fields") or {}
    names         = item_names(order)
    amount        = str(order.total_amount)

    record = {
        "name":         customer["name"],
        "add":          customer["address"],
        "pin":          customer["pincode"],
        "phone":        format_phone_number(customer["phone"]),
        "order":        str(order.id),
        "payment_mode": mode,

        "city":         customer["city"],
        "state":        customer["state"],
        "country":      customer["country"],
        "address_type": "home",

        "return_name":    warehouse.get("name") or "Return Center",
        "return_add":     warehouse.get("address") or "Warehouse Address",
        "return_city":    warehouse.get("city") or "Mumbai",
        "return_phone":   warehouse.get("phone") or "9999999999",
        "return_pin":     warehouse.get("pin") or "400001",
        "return_state":   warehouse.get("state") or "Maharashtra",
        "return_country": warehouse.get("country") or "India",

        "products_desc": ", ".join(names) or "E-commerce Product",
        "hsn_code":      custom.get("hsn_code") or request.get("auto_hsn_code")
                         or hsn_code_for(names[0] if names else "General Item"),
        "cod_amount":    amount if mode == "COD" else "0",
        "order_date":    today.isoformat(),
        "send_date":     today.isoformat(),
        "end_date":      (today + timedelta(days=SHIPMENT_WINDOW_DAYS)).isoformat(),
        "total_amount":  amount,
        "quantity":      str(len(order.items or []) or 1),

        "seller_name": warehouse.get("name") or "Seller",
        "seller_add":  warehouse.get("address") or "Warehouse Address",
        "seller_inv":  f"INV_{str(order.id)[-8:]}_{int(time.time() * 1000)}",

        "weight":          str(weight),
        "shipment_width":  str(dims.get("width", 10)),
        "shipment_height": str(dims.get("height", 10)),
        "shipment_length": str(dims.get("length", 10)),
        "shipping_mode":   request.get("shipping_mode") or "Surface",

        "fragile_shipment":  bool(custom.get("fragile_shipment")),
        "dangerous_good":    bool(custom.get("dangerous_good")),
        "plastic_packaging": bool(custom.get("plastic_packaging")),
        "ewb": "",
    }
    if waybill:
        record["waybill"] = waybill

    if shipment_type == "MPS":
        packages = request.get("packages") or []
        record.update({
            "shipment_type": "MPS",
            "mps_amount":    amount if mode == "COD" else "0",
            "mps_children":  str(len(packages) or 1),
            "master_id":     (packages[0].get("waybill") if packages else None)
                             or request.get("master_waybill")
                             or f"MASTER_{order.id}_{int(time.time() * 1000)}",
        })
    return record


def build_create_payload(order, request, warehouse, waybills=()) -> dict:
    waybills = list(waybills)
    count    = len(request.get("packages") or []) if request.get("shipment_type") == "MPS" else 0
    count    = max(count, 1)

    if request.get("shipment_type") == "MPS" and waybills:
        request = {**request, "master_waybill": waybills[0]}

    shipments = [
        build_shipment_record(order, request, warehouse, index=i,
                              waybill=waybills[i] if i < len(waybills) else None)
        for i in range(count)
    ]
    return {"shipments": shipments, "pickup_location": {"name": warehouse["name"]}}


def demo_create_response(payload) -> tuple:
    """Synthetic carrier response for development without credentials."""
    stamp    = int(time.time() * 1000)
    waybills = [f"DEMO_{stamp}_{random.randint(0, 999)}_{i}" for i in range(len(payload["shipments"]))]
    response = {
        "success":  True,
        "packages": [{"waybill": w, "status": "Success"} for w in waybills],
        "rmk":      "Demo shipment created - Delhivery integration needed for production",
    }
    return response, waybills


def demo_tracking(waybill) -> dict:
    now   = timezone.now()
    today = now.date().isoformat()
    return {
        "waybill":            waybill,
        "outcome":            "demo",
        "status":             "In Transit",
        "current_location":   "Demo Location",
        "estimated_delivery": (now + timedelta(days=1)).isoformat(),
        "scans": [
            {"location": "Origin Hub", "status": "Picked Up", "instructions": "Package picked up from origin",
             "description": "Shipment has been picked up", "date": today, "timestamp": now.isoformat()},
            {"location": "Transit Hub", "status": "In Transit", "instructions": "Package in transit",
             "description": "Shipment is in transit", "date": today, "timestamp": now.isoformat()},
        ],
        "is_available": True,
        "message":      "Demo tracking data",
    }


# ── Summaries written back to the order ──────────────────────────────────────

def build_shipment_details(request, warehouse, waybills, carrier_response) -> dict:
    shipment_type = request.get("shipment_type", "FORWARD")
    details = {
        "waybill_numbers":  list(waybills),
        "primary_waybill":  waybills[0] if waybills else "",
        "pickup_location":  warehouse["name"],
        "shipping_mode":    request.get("shipping_mode") or "Surface",
        "shipment_type":    shipment_type,
        "weight":           request.get("weight"),
        "dimensions":       request.get("dimensions"),
        "packages":         request.get("packages"),
        "created_at":       timezone.now().isoformat(),
        "carrier_response": carrier_response,
    }
    if shipment_type == "MPS":
        details["master_waybill"] = waybills[0] if waybills else ""
        details["child_waybills"] = list(waybills[1:])
    return details


# ── Edit field mapping ───────────────────────────────────────────────────────

def carrier_edit_fields(fields: dict) -> dict:
    """
    Translate storefront edit fields (pt, cod, phone list …) to carrier
    edit fields. Unknown keys are dropped.
    """
    mapped = {}
    for key in ("name", "add", "products_desc", "weight",
                "shipment_height", "shipment_width", "shipment_length"):
        if fields.get(key) not in (None, ""):
            mapped[key] = fields[key]

    phone = fields.get("phone")
    if isinstance(phone, (list, tuple)):
        phone = phone[0] if phone else None
    if phone:
        mapped["phone"] = phone

    if fields.get("pt"):
        mapped["payment_mode"] = "Prepaid" if fields["pt"] in ("Pre-paid", "Prepaid") else "COD"
    if fields.get("cod") is not None:
        mapped["cod_amount"] = fields["cod"]
    return mapped
