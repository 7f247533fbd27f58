"""Waybill pool API views."""

import logging

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from rest_framework import generics, permissions, status
from rest_framework.views import APIView

from apps.carriers.exceptions import CarrierError
from apps.shipments.envelope import fail, ok
from .models import Waybill
from .service import WaybillService
from . import serializers as sz

logger = logging.getLogger("shipdesk.waybills")
waybill_service = WaybillService()


# ── GET /api/waybills/ ────────────────────────────────────────────────────────
@extend_schema(tags=["Waybills"], summary="List pooled waybills")
class WaybillListView(generics.ListAPIView):
    serializer_class   = sz.WaybillSerializer
    permission_classes = [permissions.IsAdminUser]
    filter_backends    = [DjangoFilterBackend]
    filterset_fields   = ["status", "source", "order_id"]
    queryset           = Waybill.objects.all()


# ── GET /api/waybills/stats/ ──────────────────────────────────────────────────
@extend_schema(tags=["Waybills"], summary="Pool counts by status and source")
class WaybillStatsView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def get(self, request):
        return ok({
            "stats":       waybill_service.get_waybill_stats(),
            "rate_limits": waybill_service.carrier.get_waybill_rate_limits(),
        })


# ── POST /api/waybills/generate/ ──────────────────────────────────────────────
@extend_schema(tags=["Waybills"], summary="Generate waybills, optionally storing them in the pool",
               request=sz.WaybillGenerateSerializer)
class WaybillGenerateView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request):
        ser = sz.WaybillGenerateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        count = ser.validated_data["count"]
        try:
            if ser.validated_data["store"]:
                waybills = waybill_service.generate_and_store_waybills(count)
            else:
                waybills = waybill_service.carrier.generate_waybills_with_fallback(count)
        except CarrierError as exc:
            return fail(exc, status=status.HTTP_502_BAD_GATEWAY, code="CARRIER_ERROR")
        return ok({"waybills": waybills, "count": len(waybills)}, status=status.HTTP_201_CREATED)


# ── POST /api/waybills/reserve/ ───────────────────────────────────────────────
@extend_schema(tags=["Waybills"], summary="Reserve specific pooled waybills",
               request=sz.WaybillReserveSerializer)
class WaybillReserveView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request):
        ser = sz.WaybillReserveSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        requested = ser.validated_data["waybills"]
        reserved  = waybill_service.reserve_waybills(requested, ser.validated_data["reserved_by"])
        if reserved != len(requested):
            return fail(
                f"Reserved {reserved} of {len(requested)} waybills",
                status=status.HTTP_409_CONFLICT, code="PARTIAL_RESERVATION", reserved=reserved,
            )
        return ok({"reserved": reserved})


# ── POST /api/waybills/use/ ───────────────────────────────────────────────────
@extend_schema(tags=["Waybills"], summary="Mark a waybill as used", request=sz.WaybillUseSerializer)
class WaybillUseView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request):
        ser = sz.WaybillUseSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        if not waybill_service.use_waybill(**ser.validated_data):
            return fail("Waybill is not available for use", status=status.HTTP_409_CONFLICT)
        return ok({"waybill": ser.validated_data["waybill"]})


# ── POST /api/waybills/{waybill}/cancel/ ──────────────────────────────────────
@extend_schema(tags=["Waybills"], summary="Cancel a pooled waybill")
class WaybillCancelView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request, waybill):
        if not waybill_service.cancel_waybill(waybill):
            return fail("Waybill not found or already used/cancelled", status=status.HTTP_409_CONFLICT)
        return ok({"waybill": waybill})


# ── POST /api/waybills/stock/ ─────────────────────────────────────────────────
@extend_schema(tags=["Waybills"], summary="Top up the pool to the minimum stock level",
               request=sz.StockSerializer)
class WaybillStockView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request):
        ser = sz.StockSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        try:
            result = waybill_service.ensure_minimum_stock(ser.validated_data.get("min_stock"))
        except CarrierError as exc:
            return fail(exc, status=status.HTTP_502_BAD_GATEWAY, code="CARRIER_ERROR")
        return ok({**result, "stats": waybill_service.get_waybill_stats()})
