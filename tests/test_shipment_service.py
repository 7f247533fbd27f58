"""
ShipmentService Test Suite
==========================
Covers: create workflow | duplicate recovery | pickup | edit | cancel |
        status transitions | tracking sync | labels | listings

Carrier HTTP is answered by the `carrier_api` route table (see conftest.py).
"""

import json
import uuid
from decimal import Decimal

import pytest

from apps.orders.models import Order
from apps.shipments.models import Shipment, ShipmentEvent, ShipmentPackage
from apps.shipments.service import (
    LOCAL_EDIT_SUGGESTION,
    PAYMENT_EDIT_SUGGESTION,
    STATUS_EDIT_SUGGESTION,
    ShipmentService,
)
from apps.warehouses.models import Warehouse
from apps.waybills.models import Waybill

CREATE  = "/api/cmu/create.json"
PICKUP  = "/fm/request/new/"
TRACK   = "/api/v1/packages/json/"
EDIT    = "/api/p/edit"
LABEL   = "/api/p/packing_slip"


# ═══════════════════════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_order(db):
    def _make(status="Confirmed", payment_method=Order.PaymentMethod.PREPAID, **kwargs):
        kwargs.setdefault("customer_name", "Asha Rao")
        kwargs.setdefault("customer_phone", "+91 98765 43210")
        kwargs.setdefault("total_amount", Decimal("1499.00"))
        kwargs.setdefault("shipping_address", {
            "first_name": "Asha", "last_name": "Rao",
            "address1": "12 MG Road", "address2": "Near Metro",
            "city": "Bengaluru", "state": "Karnataka", "zip_code": "560001",
        })
        kwargs.setdefault("items", [{"name": "Cotton Shirt", "quantity": 2, "weight": 0.3}])
        return Order.objects.create(status=status, payment_method=payment_method, **kwargs)
    return _make


@pytest.fixture
def order(make_order):
    return make_order()


@pytest.fixture
def main_warehouse(db):
    return Warehouse.objects.create(
        name="Main Warehouse", pin="741235", phone="9876543210",
        address="A-Block, Phase I, Kalyani Township", city="Kalyani", state="West Bengal",
        is_default=True,
    )


@pytest.fixture
def service(carrier, main_warehouse):
    return ShipmentService(carrier=carrier)


@pytest.fixture
def demo_service(unconfigured_carrier, main_warehouse):
    return ShipmentService(carrier=unconfigured_carrier)


@pytest.fixture
def pool_stock(db):
    def _stock(*waybills):
        for w in waybills:
            Waybill.objects.create(waybill=w)
    return _stock


@pytest.fixture
def no_pool(settings):
    settings.SHIPMENT_USE_WAYBILL_POOL = False


@pytest.fixture
def make_shipment(db):
    def _make(order, waybills=("WB1",), status=Shipment.CREATED,
              shipment_type=Shipment.Type.FORWARD, payment_mode="Prepaid"):
        shipment = Shipment.objects.create(
            order=order, shipment_type=shipment_type, primary_waybill=waybills[0],
            status=status, pickup_location="Main Warehouse",
            customer_details={"name": "Asha Rao", "phone": "9876543210"},
            package_details={"payment_mode": payment_mode, "weight": 500,
                             "product_description": "Cotton Shirt"},
        )
        ShipmentPackage.objects.bulk_create([
            ShipmentPackage(shipment=shipment, waybill=w, sequence=i) for i, w in enumerate(waybills)
        ])
        return shipment
    return _make


def created(*waybills):
    return {"success": True, "packages": [{"waybill": w, "status": "Success"} for w in waybills]}


def rejected(rmk=None, remarks=None):
    body = {"success": False, "packages": [{"status": "Fail", "remarks": remarks or []}]}
    if rmk:
        body["rmk"] = rmk
    return body


def tracking_body(status, location="Pune Hub"):
    return {"ShipmentData": [{"Shipment": {
        "Status": {"Status": status, "StatusLocation": location},
        "Scans": [{"ScanDetail": {"Scan": status, "ScanLocation": location,
                                  "ScanDateTime": "2026-10-19T10:00:00"}}],
    }}]}


def sent_shipments(carrier_api):
    return json.loads(carrier_api.last("POST", CREATE)["data"]["data"])


# ═══════════════════════════════════════════════════════════════════════════════
# CREATE: happy paths
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.django_db
class TestCreateShipment:

    def test_forward_shipment_from_pool(self, service, order, pool_stock, carrier_api):
        pool_stock("WB100")
        carrier_api.on("POST", CREATE, body=created("WB100"))
        carrier_api.on("POST", PICKUP, body={"pickup_id": 77})

        result = service.create_shipment({"order_id": str(order.id), "shipment_type": "FORWARD",
                                          "pickup_location": "Main Warehouse"})

        assert result["success"] is True
        details = result["data"]["shipment_details"]
        assert details["primary_waybill"] == details["waybill_numbers"][0] == "WB100"

        order.refresh_from_db()
        assert order.shipment_created is True
        assert order.status == "Dispatched"
        assert order.shipment_details["primary_waybill"] == "WB100"

        shipment = Shipment.objects.get(order=order)
        assert shipment.primary_waybill == "WB100"
        assert shipment.waybill_numbers == ["WB100"]
        assert shipment.warehouse_details["pin"] == "741235"
        assert shipment.events.count() == 1

        pooled = Waybill.objects.get(waybill="WB100")
        assert pooled.status == Waybill.Status.USED
        assert pooled.order_id == str(order.id)

    def test_payload_sent_to_carrier(self, service, order, pool_stock, carrier_api):
        pool_stock("WB100")
        carrier_api.on("POST", CREATE, body=created("WB100"))

        service.create_shipment({"order_id": str(order.id)})

        payload = sent_shipments(carrier_api)
        record  = payload["shipments"][0]
        assert payload["pickup_location"] == {"name": "Main Warehouse"}
        assert record["waybill"] == "WB100"
        assert record["order"] == str(order.id)
        assert record["name"] == "Asha Rao"
        assert record["pin"] == "560001"
        assert record["phone"] == "9876543210"
        assert record["payment_mode"] == "Prepaid"
        assert record["cod_amount"] == "0"
        assert record["return_pin"] == "741235"
        assert record["hsn_code"] == "6205"
        assert record["send_date"] and record["end_date"]

    def test_cod_order(self, service, make_order, no_pool, carrier_api):
        order = make_order(payment_method=Order.PaymentMethod.COD)
        carrier_api.on("POST", CREATE, body=created("WB7"))
        service.create_shipment({"order_id": str(order.id)})
        record = sent_shipments(carrier_api)["shipments"][0]
        assert record["payment_mode"] == "COD"
        assert record["cod_amount"] == "1499.00"

    def test_carrier_assigns_waybill_without_pool(self, service, order, no_pool, carrier_api):
        carrier_api.on("POST", CREATE, body=created("WB200"))
        result = service.create_shipment({"order_id": str(order.id)})
        assert result["data"]["shipment_details"]["primary_waybill"] == "WB200"
        assert "waybill" not in sent_shipments(carrier_api)["shipments"][0]

    def test_pool_tops_up_before_create(self, service, order, carrier_api):
        carrier_api.on("GET", "/waybill/api/fetch/json/", body="WB555")
        carrier_api.on("POST", CREATE, body=created("WB555"))
        result = service.create_shipment({"order_id": str(order.id)})
        assert result["success"] is True
        assert Waybill.objects.get(waybill="WB555").status == Waybill.Status.USED

    def test_multi_package_shipment(self, service, order, pool_stock, carrier_api):
        pool_stock("WB1", "WB2")
        carrier_api.on("POST", CREATE, body=created("WB1", "WB2"))

        result = service.create_shipment({
            "order_id": str(order.id), "shipment_type": "MPS",
            "packages": [{"weight": 500}, {"weight": 700}],
        })

        details = result["data"]["shipment_details"]
        assert details["master_waybill"] == "WB1"
        assert details["child_waybills"] == ["WB2"]
        records = sent_shipments(carrier_api)["shipments"]
        assert [r["weight"] for r in records] == ["500", "700"]
        assert {r["master_id"] for r in records} == {"WB1"}
        assert {r["mps_children"] for r in records} == {"2"}
        shipment = Shipment.objects.get(order=order)
        assert list(shipment.packages.values_list("waybill", "sequence")) == [("WB1", 0), ("WB2", 1)]
        assert carrier_api.last("POST", PICKUP)["json"]["expected_package_count"] == 2

    def test_reverse_shipment(self, service, make_order, no_pool, carrier_api):
        order = make_order(status="Delivered", shipment_created=True)
        carrier_api.on("POST", CREATE, body=created("RV1"))

        result = service.create_shipment({"order_id": str(order.id), "shipment_type": "REVERSE"})

        assert result["success"] is True
        assert sent_shipments(carrier_api)["shipments"][0]["payment_mode"] == "Pickup"
        order.refresh_from_db()
        assert order.status == "Return Initiated"
        assert order.reverse_shipment["primary_waybill"] == "RV1"

    def test_replacement_shipment(self, service, make_order, no_pool, carrier_api):
        order = make_order(status="completed")
        carrier_api.on("POST", CREATE, body=created("RP1"))
        service.create_shipment({"order_id": str(order.id), "shipment_type": "replacement"})
        assert sent_shipments(carrier_api)["shipments"][0]["payment_mode"] == "REPL"
        order.refresh_from_db()
        assert order.status == "Replacement Initiated"


# ═══════════════════════════════════════════════════════════════════════════════
# CREATE: preconditions
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.django_db
class TestCreatePreconditions:

    def test_pending_payment_is_rejected(self, service, make_order, carrier_api):
        order = make_order(status="Pending Payment")
        result = service.create_shipment({"order_id": str(order.id), "shipment_type": "FORWARD"})
        assert result["success"] is False
        assert result["code"] == "INVALID_ORDER_STATUS"
        assert not Shipment.objects.exists()
        assert carrier_api.calls == []

    @pytest.mark.parametrize("status", ["confirmed", "PROCESSING", "Paid"])
    def test_status_comparison_ignores_case(self, service, make_order, no_pool, carrier_api, status):
        order = make_order(status=status)
        carrier_api.on("POST", CREATE, body=created("WB1"))
        assert service.create_shipment({"order_id": str(order.id)})["success"] is True

    def test_reverse_needs_delivered_order(self, service, order, carrier_api):
        result = service.create_shipment({"order_id": str(order.id), "shipment_type": "REVERSE"})
        assert result["code"] == "INVALID_ORDER_STATUS"

    def test_second_forward_is_rejected(self, service, make_order, carrier_api):
        order = make_order(shipment_created=True)
        result = service.create_shipment({"order_id": str(order.id)})
        assert result["code"] == "DUPLICATE_SHIPMENT"
        assert carrier_api.calls == []

    @pytest.mark.parametrize("order_id", [str(uuid.uuid4()), "not-a-uuid", None])
    def test_unknown_order(self, service, order_id):
        assert service.create_shipment({"order_id": order_id})["code"] == "ORDER_NOT_FOUND"

    def test_unknown_shipment_type(self, service, order):
        result = service.create_shipment({"order_id": str(order.id), "shipment_type": "TELEPORT"})
        assert result["success"] is False


# ═══════════════════════════════════════════════════════════════════════════════
# CREATE: carrier outcomes
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.django_db
class TestCreateCarrierOutcomes:

    def test_insufficient_balance(self, service, order, pool_stock, carrier_api):
        pool_stock("WB100")
        carrier_api.on("POST", CREATE, body=rejected(rmk="Insufficient Balance in wallet"))

        result = service.create_shipment({"order_id": str(order.id)})

        assert result["code"] == "INSUFFICIENT_BALANCE"
        assert "recharge" in result["error"]
        assert not Shipment.objects.exists()
        order.refresh_from_db()
        assert order.shipment_created is False
        # held for the retry
        pooled = Waybill.objects.get(waybill="WB100")
        assert pooled.status == Waybill.Status.RESERVED
        assert pooled.reserved_by == f"order:{order.id}"

    def test_retry_reuses_reserved_waybill(self, service, order, pool_stock, carrier_api):
        pool_stock("WB100", "WB101")
        carrier_api.on("POST", CREATE, body=rejected(rmk="Insufficient Balance"))
        service.create_shipment({"order_id": str(order.id)})

        carrier_api.on("POST", CREATE, body=created("WB100"))
        result = service.create_shipment({"order_id": str(order.id)})

        assert result["data"]["shipment_details"]["primary_waybill"] == "WB100"
        assert Waybill.objects.get(waybill="WB101").status == Waybill.Status.GENERATED

    def test_unregistered_warehouse(self, service, order, no_pool, carrier_api):
        carrier_api.on("POST", CREATE, body=rejected(rmk="ClientWarehouse matching query does not exist."))
        result = service.create_shipment({"order_id": str(order.id)})
        assert result["code"] == "WAREHOUSE_NOT_REGISTERED"
        assert '"Main Warehouse"' in result["error"]

    def test_html_error_page(self, service, order, no_pool, carrier_api):
        carrier_api.on("POST", CREATE, status=502, text="<!DOCTYPE html><html>Bad Gateway</html>")
        result = service.create_shipment({"order_id": str(order.id)})
        assert result["code"] == "CARRIER_TECHNICAL_ERROR"

    def test_internal_error_remark(self, service, order, no_pool, carrier_api):
        carrier_api.on("POST", CREATE, body=rejected(rmk="An internal Error has occurred"))
        assert service.create_shipment({"order_id": str(order.id)})["code"] == "CARRIER_TECHNICAL_ERROR"

    def test_not_serviceable(self, service, order, no_pool, carrier_api):
        carrier_api.on("POST", CREATE, body=rejected(remarks=["Pincode is non-serviceable"]))
        assert service.create_shipment({"order_id": str(order.id)})["code"] == "ADDRESS_NOT_SERVICEABLE"

    def test_package_failure(self, service, order, no_pool, carrier_api):
        carrier_api.on("POST", CREATE, body=rejected(remarks=["Invalid weight"]))
        result = service.create_shipment({"order_id": str(order.id)})
        assert result["code"] == "PACKAGE_PROCESSING_FAILED"
        assert "Invalid weight" in result["error"]

    def test_success_without_waybills(self, service, order, no_pool, carrier_api):
        carrier_api.on("POST", CREATE, body={"success": True, "packages": []})
        assert service.create_shipment({"order_id": str(order.id)})["code"] == "NO_WAYBILLS"

    def test_transport_error(self, service, order, no_pool, carrier_api):
        carrier_api.on("POST", CREATE, status=500, body={"message": "boom"})
        result = service.create_shipment({"order_id": str(order.id)})
        assert result["code"] == "CARRIER_REJECTED"
        assert "boom" in result["error"]

    def test_pickup_failure_is_not_fatal(self, service, order, no_pool, carrier_api):
        carrier_api.on("POST", CREATE, body=created("WB1"))
        carrier_api.on("POST", PICKUP, status=500, body={"error": "No slots available"})

        result = service.create_shipment({"order_id": str(order.id)})

        assert result["success"] is True
        pickup = result["data"]["shipment_details"]["pickup_request"]
        assert pickup["success"] is False
        assert pickup["pickup_time"] == "11:00:00"
        assert Shipment.objects.get(order=order).pickup_request["success"] is False


# ═══════════════════════════════════════════════════════════════════════════════
# CREATE: duplicate-order recovery
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.django_db
class TestDuplicateRecovery:

    def test_existing_shipment_is_reused(self, service, order, make_shipment, no_pool, carrier_api):
        existing = make_shipment(order, waybills=("WB300",))
        carrier_api.on("POST", CREATE, body=rejected(remarks=["Duplicate order id"]))

        result = service.create_shipment({"order_id": str(order.id)})

        assert result["success"] is True
        details = result["data"]["shipment_details"]
        assert details["shipment_id"] == str(existing.id)
        assert details["primary_waybill"] == "WB300"
        assert details["recovered_from_duplicate"] is True
        assert Shipment.objects.count() == 1
        assert carrier_api.count("POST", PICKUP) == 0
        order.refresh_from_db()
        assert order.shipment_created is True

    def test_legacy_order_details_are_used(self, service, make_order, no_pool, carrier_api):
        order = make_order(shipment_details={"waybill_numbers": ["WB400"]})
        carrier_api.on("POST", CREATE, body=rejected(rmk="Duplicate order id"))

        result = service.create_shipment({"order_id": str(order.id)})

        assert result["success"] is True
        assert Shipment.objects.get(order=order).primary_waybill == "WB400"

    def test_unreconciled_duplicate(self, service, order, no_pool, carrier_api):
        carrier_api.on("POST", CREATE, body=rejected(remarks=["Duplicate order id"]))
        result = service.create_shipment({"order_id": str(order.id)})
        assert result["code"] == "UNRECONCILED_DUPLICATE"
        assert not Shipment.objects.exists()

    def test_cancelled_shipment_waybills_are_not_reused(self, service, make_order, no_pool, carrier_api):
        order = make_order(status="Delivered", shipment_created=True)
        carrier_api.on("POST", CREATE, body=created("RV1"))
        carrier_api.on("POST", EDIT, body={"status": "Success", "remark": "Cancelled"})
        service.create_shipment({"order_id": str(order.id), "shipment_type": "REVERSE"})
        assert service.cancel_shipment_by_waybill("RV1")["success"] is True

        order.refresh_from_db()
        order.status = "Delivered"
        order.save()
        carrier_api.on("POST", CREATE, body=rejected(remarks=["Duplicate order id"]))

        result = service.create_shipment({"order_id": str(order.id), "shipment_type": "REVERSE"})

        assert result["success"] is False
        assert result["code"] == "UNRECONCILED_DUPLICATE"
        assert list(ShipmentPackage.objects.values_list("waybill", flat=True)) == ["RV1"]
        assert Shipment.objects.get().status == Shipment.CANCELLED

    def test_legacy_waybill_on_record_is_not_reused(self, service, make_order, make_shipment,
                                                    no_pool, carrier_api):
        order = make_order(shipment_details={"waybill_numbers": ["WB500"]})
        make_shipment(order, waybills=("WB500",), status=Shipment.CANCELLED)
        carrier_api.on("POST", CREATE, body=rejected(rmk="Duplicate order id"))

        result = service.create_shipment({"order_id": str(order.id)})

        assert result["code"] == "UNRECONCILED_DUPLICATE"
        assert Shipment.objects.count() == 1

    def test_pool_waybill_not_used_by_carrier_is_released(self, service, order, make_shipment,
                                                          pool_stock, carrier_api):
        make_shipment(order, waybills=("WB300",))
        pool_stock("WB100")
        carrier_api.on("POST", CREATE, body=rejected(remarks=["Duplicate order id"]))

        service.create_shipment({"order_id": str(order.id)})

        assert Waybill.objects.get(waybill="WB100").status == Waybill.Status.CANCELLED


# ═══════════════════════════════════════════════════════════════════════════════
# VALIDATE (dry run)
# ═══════════════════════════════════════════════════════════════════════════════

SERVICEABILITY = "/c/api/pin-codes/json/"


@pytest.mark.django_db
class TestValidateShipment:

    def test_serviceable_order(self, service, order, pool_stock, carrier_api):
        pool_stock("WB100")
        carrier_api.on("GET", SERVICEABILITY, body={"delivery_codes": [{"postal_code": {"pin": 560001}}]})

        result = service.validate_shipment({"order_id": str(order.id)})

        assert result["success"] is True
        assert result["data"]["valid"] is True
        assert result["data"]["payload"]["shipments"][0]["pin"] == "560001"
        assert carrier_api.count("POST", CREATE) == 0
        assert Waybill.objects.get(waybill="WB100").status == Waybill.Status.GENERATED
        assert not Shipment.objects.exists()

    def test_non_serviceable_destination(self, service, order, carrier_api):
        carrier_api.on("GET", SERVICEABILITY, body={"delivery_codes": []})
        data = service.validate_shipment({"order_id": str(order.id)})["data"]
        assert data["valid"] is False
        assert data["errors"][0].startswith("Pincode 560001 is not serviceable")

    def test_preconditions_apply(self, service, make_order, carrier_api):
        order = make_order(status="Pending Payment")
        assert service.validate_shipment({"order_id": str(order.id)})["code"] == "INVALID_ORDER_STATUS"
        assert carrier_api.calls == []

    def test_unconfigured(self, demo_service, order):
        assert demo_service.validate_shipment({"order_id": str(order.id)})["code"] == "CARRIER_NOT_CONFIGURED"


# ═══════════════════════════════════════════════════════════════════════════════
# CREATE: without carrier credentials
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.django_db
class TestUnconfiguredCarrier:

    def test_create_refused_outside_debug(self, demo_service, order, settings):
        settings.DEBUG = False
        result = demo_service.create_shipment({"order_id": str(order.id)})
        assert result["code"] == "CARRIER_NOT_CONFIGURED"
        assert not Shipment.objects.exists()

    def test_demo_shipment_in_debug(self, demo_service, order, settings, carrier_session):
        settings.DEBUG = True
        result = demo_service.create_shipment({"order_id": str(order.id)})
        assert result["success"] is True
        assert result["data"]["shipment_details"]["primary_waybill"].startswith("DEMO_")
        assert result["data"]["shipment_details"]["pickup_request"]["success"] is False
        carrier_session.request.assert_not_called()

    def test_tracking(self, demo_service, settings):
        settings.DEBUG = False
        assert demo_service.track_shipment("WB1") is None
        settings.DEBUG = True
        assert demo_service.track_shipment("WB1")["outcome"] == "demo"


# ═══════════════════════════════════════════════════════════════════════════════
# UPDATE
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.django_db
class TestUpdateShipment:

    def test_accepted_edit_updates_snapshot(self, service, order, make_shipment, carrier_api):
        make_shipment(order)
        carrier_api.on("GET", TRACK, body=tracking_body("Pending"))
        carrier_api.on("POST", EDIT, body={"status": True})

        result = service.update_shipment("WB1", {"name": "Asha R", "phone": ["9000000001"], "weight": 650})

        assert result["success"] is True
        assert result["data"]["updated_fields"] == ["name", "phone", "weight"]
        assert carrier_api.last("POST", EDIT)["json"] == {
            "waybill": "WB1", "name": "Asha R", "phone": "9000000001", "weight": "650",
        }
        shipment = Shipment.objects.get(primary_waybill="WB1")
        assert shipment.customer_details["name"] == "Asha R"
        assert shipment.customer_details["phone"] == "9000000001"
        assert shipment.package_details["weight"] == 650

    def test_unknown_waybill(self, service):
        assert service.update_shipment("NOPE", {"name": "x"})["code"] == "SHIPMENT_NOT_FOUND"

    def test_local_status_blocks_edit(self, service, order, make_shipment, carrier_api):
        make_shipment(order, status="In Transit")
        result = service.update_shipment("WB1", {"name": "x"})
        assert result["code"] == "SHIPMENT_NOT_EDITABLE"
        assert carrier_api.calls == []

    def test_cod_amount_checked_before_carrier(self, service, order, make_shipment, carrier_api):
        make_shipment(order, payment_mode="COD")
        result = service.update_shipment("WB1", {"pt": "Pre-paid", "cod": 100})
        assert result["success"] is False
        assert "COD amount must be 0" in result["error"]
        assert carrier_api.calls == []

    def test_prepaid_cannot_become_cod(self, service, order, make_shipment, carrier_api):
        make_shipment(order, payment_mode="Prepaid")
        result = service.update_shipment("WB1", {"pt": "COD", "cod": 500})
        assert result["success"] is False
        assert "not allowed" in result["error"]
        assert carrier_api.calls == []

    def test_carrier_status_blocks_edit(self, service, order, make_shipment, carrier_api):
        make_shipment(order)
        carrier_api.on("GET", TRACK, body=tracking_body("Delivered"))

        result = service.update_shipment("WB1", {"name": "x"})

        assert result["success"] is False
        assert result["suggestion"] == STATUS_EDIT_SUGGESTION
        assert carrier_api.count("POST", EDIT) == 0

    def test_carrier_rejects_conversion(self, service, order, make_shipment, carrier_api):
        make_shipment(order)
        carrier_api.on("GET", TRACK, body=tracking_body("Pending"))
        carrier_api.on("POST", EDIT, body={"status": False, "remark": "Payment mode conversion not allowed"})
        result = service.update_shipment("WB1", {"name": "x"})
        assert result["suggestion"] == PAYMENT_EDIT_SUGGESTION

    def test_failed_edit_keeps_local_only_fields(self, service, order, make_shipment, carrier_api):
        make_shipment(order)
        carrier_api.on("GET", TRACK, body=tracking_body("Pending"))
        carrier_api.on("POST", EDIT, body={"status": False, "remark": "Something went wrong"})

        result = service.update_shipment("WB1", {"name": "Other", "products_desc": "Blue shirt"})

        assert result["success"] is False
        assert result["partial_success"] is True
        assert result["suggestion"] == LOCAL_EDIT_SUGGESTION
        shipment = Shipment.objects.get(primary_waybill="WB1")
        assert shipment.package_details["product_description"] == "Blue shirt"
        assert shipment.customer_details["name"] == "Asha Rao"

    def test_unconfigured(self, demo_service, order, make_shipment):
        make_shipment(order)
        assert demo_service.update_shipment("WB1", {"name": "x"})["code"] == "CARRIER_NOT_CONFIGURED"


# ═══════════════════════════════════════════════════════════════════════════════
# CANCEL
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.django_db
class TestCancelShipment:

    def test_cancel_is_idempotent(self, service, order, make_shipment, carrier_api):
        make_shipment(order)
        carrier_api.on("POST", EDIT, body={"status": "Success", "remark": "Cancelled"})

        first  = service.cancel_shipment_by_waybill("WB1")
        second = service.cancel_shipment_by_waybill("WB1")

        assert first["success"] is True
        assert second["success"] is True
        assert second["message"] == "Shipment is already cancelled"
        assert carrier_api.count("POST", EDIT) == 1
        shipment = Shipment.objects.get(primary_waybill="WB1")
        assert shipment.status == Shipment.CANCELLED
        assert list(shipment.events.values_list("from_status", "to_status")) == [("Created", "Cancelled")]

    def test_cancel_by_child_waybill(self, service, order, make_shipment, carrier_api):
        make_shipment(order, waybills=("WB1", "WB2"), shipment_type=Shipment.Type.MPS)
        carrier_api.on("POST", EDIT, body={"success": True})
        assert service.cancel_shipment_by_waybill("WB2")["success"] is True

    def test_not_found_at_carrier_cancels_locally(self, service, order, make_shipment, carrier_api):
        make_shipment(order)
        result = service.cancel_shipment_by_waybill("WB1")
        assert result["success"] is True
        assert "warning" in result
        assert Shipment.objects.get(primary_waybill="WB1").is_cancelled

    @pytest.mark.parametrize("status,body", [
        (200, {"error": "Waybill WB1 not found"}),
        (200, {"message": "Waybill not found"}),
        (400, {"message": "Waybill not found"}),
    ])
    def test_not_found_reply_cancels_locally(self, service, order, make_shipment, carrier_api, status, body):
        make_shipment(order)
        carrier_api.on("POST", EDIT, status=status, body=body)

        result = service.cancel_shipment_by_waybill("WB1")

        assert result["success"] is True
        assert "warning" in result
        shipment = Shipment.objects.get(primary_waybill="WB1")
        assert shipment.is_cancelled
        assert shipment.events.get().note == "Not found at carrier, cancelled locally"

    def test_other_carrier_error_keeps_shipment(self, service, order, make_shipment, carrier_api):
        make_shipment(order)
        carrier_api.on("POST", EDIT, status=500, body={"message": "Upstream timeout"})
        result = service.cancel_shipment_by_waybill("WB1")
        assert result["success"] is False
        assert "Upstream timeout" in result["error"]
        assert Shipment.objects.get(primary_waybill="WB1").status == Shipment.CREATED

    def test_carrier_refusal(self, service, order, make_shipment, carrier_api):
        make_shipment(order)
        carrier_api.on("POST", EDIT, body={"error": "Shipment already dispatched"})
        result = service.cancel_shipment_by_waybill("WB1")
        assert result["success"] is False
        assert result["error"] == "Shipment already dispatched"
        assert "suggestion" in result
        assert Shipment.objects.get(primary_waybill="WB1").status == Shipment.CREATED

    def test_delivered_cannot_be_cancelled(self, service, order, make_shipment, carrier_api):
        make_shipment(order, status=Shipment.DELIVERED)
        assert service.cancel_shipment_by_waybill("WB1")["code"] == "INVALID_STATUS_TRANSITION"
        assert carrier_api.calls == []

    def test_unconfigured_cancels_locally(self, demo_service, order, make_shipment):
        make_shipment(order)
        result = demo_service.cancel_shipment_by_waybill("WB1")
        assert result["local_only"] is True
        assert Shipment.objects.get(primary_waybill="WB1").is_cancelled

    def test_unknown_waybill(self, service):
        assert service.cancel_shipment_by_waybill("NOPE")["code"] == "SHIPMENT_NOT_FOUND"


# ═══════════════════════════════════════════════════════════════════════════════
# STATUS / TRACKING
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.django_db
class TestStatusAndTracking:

    def test_manual_status_update(self, service, order, make_shipment):
        shipment = make_shipment(order)
        result = service.update_shipment_status(shipment.id, "In Transit", {"note": "handed over"})
        assert result["success"] is True
        shipment.refresh_from_db()
        assert shipment.status == "In Transit"
        assert shipment.tracking_info == {"note": "handed over"}
        assert ShipmentEvent.objects.filter(shipment=shipment, to_status="In Transit").exists()

    @pytest.mark.parametrize("terminal", [Shipment.DELIVERED, Shipment.CANCELLED])
    def test_terminal_status_is_final(self, service, order, make_shipment, terminal):
        shipment = make_shipment(order, status=terminal)
        result = service.update_shipment_status(shipment.id, "In Transit")
        assert result["code"] == "INVALID_STATUS_TRANSITION"
        shipment.refresh_from_db()
        assert shipment.status == terminal

    def test_unknown_shipment(self, service):
        assert service.update_shipment_status(uuid.uuid4(), "In Transit")["code"] == "SHIPMENT_NOT_FOUND"

    def test_track(self, service, carrier_api):
        carrier_api.on("GET", TRACK, body=tracking_body("In Transit"))
        tracking = service.track_shipment("WB1")
        assert tracking["outcome"] == "available"
        assert tracking["current_location"] == "Pune Hub"

    def test_sync_tracking_transitions_once(self, service, order, make_shipment, carrier_api):
        shipment = make_shipment(order)
        carrier_api.on("GET", TRACK, body=tracking_body("In Transit"))
        assert service.sync_tracking(shipment) is True
        assert service.sync_tracking(shipment) is False
        shipment.refresh_from_db()
        assert shipment.status == "In Transit"
        assert shipment.events.count() == 1

    def test_sync_leaves_terminal_status(self, service, order, make_shipment, carrier_api):
        shipment = make_shipment(order, status=Shipment.DELIVERED)
        carrier_api.on("GET", TRACK, body=tracking_body("RTO"))
        assert service.sync_tracking(shipment) is False
        shipment.refresh_from_db()
        assert shipment.status == Shipment.DELIVERED
        assert shipment.tracking_info["status"] == "RTO"

    def test_sync_task(self, carrier, order, make_shipment, main_warehouse, carrier_api, monkeypatch):
        from apps.carriers.client import DelhiveryClient
        from apps.shipments.tasks import sync_active_shipments

        make_shipment(order, waybills=("WB1",))
        make_shipment(order, waybills=("WB2",), status=Shipment.DELIVERED)
        carrier_api.on("GET", TRACK, body=tracking_body("In Transit"))
        monkeypatch.setattr(DelhiveryClient, "from_settings", classmethod(lambda cls: carrier))

        assert sync_active_shipments.apply().get() == 1
        assert carrier_api.count("GET", TRACK) == 1


# ═══════════════════════════════════════════════════════════════════════════════
# LABELS / LOOKUPS / ORDER DETAILS
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.django_db
class TestLabelsAndLookups:

    def test_label_marks_shipment(self, service, order, make_shipment, carrier_api):
        make_shipment(order)
        carrier_api.on("GET", LABEL, text=json.dumps(
            {"packages": [{"pdf_download_link": "https://labels.test/WB1.pdf"}]}
        ))
        result = service.generate_shipping_label("WB1")
        assert result["success"] is True
        shipment = Shipment.objects.get(primary_waybill="WB1")
        assert shipment.label_generated is True
        assert shipment.label_url == "https://labels.test/WB1.pdf"
        assert carrier_api.last("GET", LABEL)["params"] == {"wbns": "WB1", "pdf": "true", "pdf_size": "4R"}

    def test_lookup_by_child_waybill(self, service, order, make_shipment):
        shipment = make_shipment(order, waybills=("WB1", "WB2"), shipment_type=Shipment.Type.MPS)
        assert service.get_shipment_by_waybill("WB2").id == shipment.id
        assert service.get_shipment_by_id(shipment.id).primary_waybill == "WB1"

    def test_paginated_listing(self, service, order, make_shipment):
        for i in range(3):
            make_shipment(order, waybills=(f"WB{i}",))
        result = service.get_shipments(page=1, limit=2)
        assert len(result["shipments"]) == 2
        assert result["pagination"] == {"current_page": 1, "total_pages": 2, "total_items": 3, "items_per_page": 2}
        assert [s.primary_waybill for s in service.get_shipments({"waybill": "WB2"})["shipments"]] == ["WB2"]

    def test_order_details_for_new_order(self, service, order):
        result = service.get_shipment_details(order.id)
        data = result["data"]
        assert data["available_actions"] == ["FORWARD", "MPS"]
        assert data["can_create_shipment"] is True
        assert data["package_details"]["weight"] == 600
        assert data["shipping_address"]["pincode"] == "560001"
        assert [w["name"] for w in data["warehouses"]] == ["Main Warehouse"]

    def test_order_details_after_delivery(self, service, make_order):
        order = make_order(status="Delivered", shipment_created=True)
        actions = service.get_shipment_details(order.id)["data"]["available_actions"]
        assert actions == ["REVERSE", "REPLACEMENT"]

    def test_schedule_pickup_skips_weekend(self, service, carrier_api):
        from datetime import date

        carrier_api.on("POST", PICKUP, body={"pickup_id": 1})
        outcome = service.schedule_pickup("Main Warehouse", 1, today=date(2026, 10, 23))  # Friday
        assert outcome.success is True
        assert outcome.pickup_date == "2026-10-26"
        assert carrier_api.last("POST", PICKUP)["json"]["pickup_date"] == "2026-10-26"
