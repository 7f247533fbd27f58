"""Shipment API views."""

import logging

from drf_spectacular.utils import extend_schema
from rest_framework import permissions, status
from rest_framework.views import APIView

from .envelope import fail, from_result, ok
from .exceptions import ShipmentError
from .service import ShipmentService
from . import serializers as sz

logger = logging.getLogger("shipdesk.shipments")
shipment_service = ShipmentService()

# Service error codes that are the caller's fault rather than the carrier's
_CLIENT_ERROR_STATUS = {
    "ORDER_NOT_FOUND":           status.HTTP_404_NOT_FOUND,
    "SHIPMENT_NOT_FOUND":        status.HTTP_404_NOT_FOUND,
    "WAREHOUSE_NOT_FOUND":       status.HTTP_404_NOT_FOUND,
    "DUPLICATE_SHIPMENT":        status.HTTP_409_CONFLICT,
    "UNRECONCILED_DUPLICATE":    status.HTTP_409_CONFLICT,
    "INVALID_ORDER_STATUS":      status.HTTP_422_UNPROCESSABLE_ENTITY,
    "INVALID_STATUS_TRANSITION": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "SHIPMENT_NOT_EDITABLE":     status.HTTP_422_UNPROCESSABLE_ENTITY,
    "CARRIER_NOT_CONFIGURED":    status.HTTP_503_SERVICE_UNAVAILABLE,
    "CARRIER_TECHNICAL_ERROR":   status.HTTP_502_BAD_GATEWAY,
}


def _respond(result, success_status=status.HTTP_200_OK):
    error_status = _CLIENT_ERROR_STATUS.get(result.get("code"), status.HTTP_400_BAD_REQUEST)
    return from_result(result, error_status=error_status, success_status=success_status)


def _shipment_result(result, serializer=sz.ShipmentDetailSerializer):
    if result.get("success"):
        result = {**result, "data": serializer(result["data"]).data}
    return _respond(result)


# ── POST /api/shipments/create/ ───────────────────────────────────────────────
@extend_schema(tags=["Shipments"], summary="Create a carrier shipment for an order",
               request=sz.ShipmentCreateSerializer)
class ShipmentCreateView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request):
        ser = sz.ShipmentCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        result = shipment_service.create_shipment(ser.validated_data)
        return _respond(result, success_status=status.HTTP_201_CREATED)


# ── POST /api/shipments/validate/ ─────────────────────────────────────────────
@extend_schema(tags=["Shipments"], summary="Dry-run a shipment: preconditions and serviceability",
               request=sz.ShipmentCreateSerializer)
class ShipmentValidateView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request):
        ser = sz.ShipmentCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        return _respond(shipment_service.validate_shipment(ser.validated_data))


# ── GET /api/shipments/ ────────────────────────────────────────────────────────
@extend_schema(tags=["Shipments"], summary="List active shipments",
               parameters=[sz.ShipmentListQuerySerializer])
class ShipmentListView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def get(self, request):
        ser = sz.ShipmentListQuerySerializer(data=request.query_params)
        ser.is_valid(raise_exception=True)
        filters = dict(ser.validated_data)
        page, limit = filters.pop("page"), filters.pop("limit")
        result = shipment_service.get_shipments(filters=filters, page=page, limit=limit)
        return ok({
            "shipments":  sz.ShipmentSerializer(result["shipments"], many=True).data,
            "pagination": result["pagination"],
        })


# ── GET /api/shipments/{id}/ ──────────────────────────────────────────────────
@extend_schema(tags=["Shipments"], summary="Retrieve a shipment by id")
class ShipmentDetailView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def get(self, request, shipment_id):
        try:
            shipment = shipment_service.get_shipment_by_id(shipment_id)
        except ShipmentError as exc:
            return _respond(exc.as_result())
        return ok(sz.ShipmentDetailSerializer(shipment).data)


# ── GET /api/shipments/waybill/{waybill}/ ─────────────────────────────────────
@extend_schema(tags=["Shipments"], summary="Retrieve a shipment by any of its waybills")
class ShipmentByWaybillView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def get(self, request, waybill):
        try:
            shipment = shipment_service.get_shipment_by_waybill(waybill)
        except ShipmentError as exc:
            return _respond(exc.as_result())
        return ok(sz.ShipmentDetailSerializer(shipment).data)


# ── PATCH /api/shipments/waybill/{waybill}/edit/ ──────────────────────────────
@extend_schema(tags=["Shipments"], summary="Edit a shipment at the carrier and locally",
               request=sz.ShipmentUpdateSerializer)
class ShipmentUpdateView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def patch(self, request, waybill):
        ser = sz.ShipmentUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        return _respond(shipment_service.update_shipment(waybill, ser.validated_data))


# ── POST /api/shipments/waybill/{waybill}/cancel/ ─────────────────────────────
@extend_schema(tags=["Shipments"], summary="Cancel a shipment (idempotent)")
class ShipmentCancelView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request, waybill):
        return _respond(shipment_service.cancel_shipment_by_waybill(waybill))


# ── GET /api/shipments/waybill/{waybill}/track/ ───────────────────────────────
@extend_schema(tags=["Shipments"], summary="Live tracking for a waybill")
class ShipmentTrackView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def get(self, request, waybill):
        tracking = shipment_service.track_shipment(waybill)
        if tracking is None:
            return fail("Tracking is unavailable for this waybill", status=status.HTTP_503_SERVICE_UNAVAILABLE)
        return ok(tracking)


# ── POST /api/shipments/waybill/{waybill}/label/ ──────────────────────────────
@extend_schema(tags=["Shipments"], summary="Generate the packing slip / label",
               request=sz.LabelSerializer)
class ShipmentLabelView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request, waybill):
        ser = sz.LabelSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        return _respond(shipment_service.generate_shipping_label(waybill, **ser.validated_data))


# ── PUT /api/shipments/waybill/{waybill}/ewaybill/ ────────────────────────────
@extend_schema(tags=["Shipments"], summary="Attach an e-waybill to a shipment",
               request=sz.EwaybillSerializer)
class ShipmentEwaybillView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def put(self, request, waybill):
        ser = sz.EwaybillSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        return _respond(shipment_service.update_ewaybill(waybill, **ser.validated_data))


# ── PATCH /api/shipments/{id}/status/ ─────────────────────────────────────────
@extend_schema(tags=["Shipments"], summary="Set a shipment's status",
               request=sz.StatusUpdateSerializer)
class ShipmentStatusView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def patch(self, request, shipment_id):
        ser = sz.StatusUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        result = shipment_service.update_shipment_status(
            shipment_id, ser.validated_data["status"], ser.validated_data.get("tracking_info"),
        )
        return _shipment_result(result)


# ── GET /api/orders/{order_id}/shipment-details/ ──────────────────────────────
@extend_schema(tags=["Orders"], summary="Shipment form data for an order")
class OrderShipmentDetailsView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def get(self, request, order_id):
        return _respond(shipment_service.get_shipment_details(order_id))


# ── GET /api/serviceability/ ──────────────────────────────────────────────────
@extend_schema(tags=["Carrier"], summary="Check pincode serviceability",
               parameters=[sz.ServiceabilitySerializer])
class ServiceabilityView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def get(self, request):
        ser = sz.ServiceabilitySerializer(data=request.query_params)
        ser.is_valid(raise_exception=True)
        return _respond(shipment_service.check_serviceability(**ser.validated_data))


# ── POST /api/pickups/ ────────────────────────────────────────────────────────
@extend_schema(tags=["Carrier"], summary="Request a carrier pickup",
               request=sz.PickupRequestSerializer)
class PickupRequestView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request):
        ser = sz.PickupRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        d = ser.validated_data
        result = shipment_service.create_pickup(
            d["pickup_date"].isoformat(), d["pickup_time"].strftime("%H:%M:%S"),
            d["pickup_location"], d["expected_package_count"],
        )
        return _respond(result, success_status=status.HTTP_201_CREATED)


# ── GET /api/carrier/orders/ ──────────────────────────────────────────────────
@extend_schema(tags=["Carrier"], summary="Carrier-side order listing",
               parameters=[sz.CarrierOrderQuerySerializer])
class CarrierOrderListView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def get(self, request):
        ser = sz.CarrierOrderQuerySerializer(data=request.query_params)
        ser.is_valid(raise_exception=True)
        return ok(shipment_service.carrier_orders(**ser.validated_data))


# ── GET /api/carrier/orders/search/ ───────────────────────────────────────────
@extend_schema(tags=["Carrier"], summary="Search carrier-side orders",
               parameters=[sz.CarrierOrderSearchSerializer])
class CarrierOrderSearchView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def get(self, request):
        ser = sz.CarrierOrderSearchSerializer(data=request.query_params)
        ser.is_valid(raise_exception=True)
        return ok(shipment_service.search_carrier_orders(**ser.validated_data))


# ── GET /api/carrier/orders/analytics/ ────────────────────────────────────────
@extend_schema(tags=["Carrier"], summary="Aggregate analytics over carrier-side orders",
               parameters=[sz.CarrierAnalyticsSerializer])
class CarrierOrderAnalyticsView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def get(self, request):
        ser = sz.CarrierAnalyticsSerializer(data=request.query_params)
        ser.is_valid(raise_exception=True)
        return ok(shipment_service.carrier_order_analytics(**ser.validated_data))


# ── GET /api/carrier/status/ ──────────────────────────────────────────────────
@extend_schema(tags=["Carrier"], summary="Carrier configuration status")
class CarrierStatusView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def get(self, request):
        return ok(shipment_service.carrier.get_status())


# ── GET /api/carrier/orders/reference/{reference}/ ────────────────────────────
@extend_schema(tags=["Carrier"], summary="Carrier-side order for one order reference")
class CarrierOrderByReferenceView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def get(self, request, reference):
        row = shipment_service.carrier_order_by_reference(reference)
        if row is None:
            return fail(f"No carrier order found for reference {reference}", status=status.HTTP_404_NOT_FOUND)
        return ok(row)
