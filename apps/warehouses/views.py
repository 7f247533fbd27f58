"""Warehouse API views."""

import logging

from drf_spectacular.utils import extend_schema
from rest_framework import permissions, status
from rest_framework.views import APIView

from apps.carriers.exceptions import CarrierError
from apps.shipments.envelope import fail, ok
from . import serializers as sz
from .service import WarehouseNotFound, WarehouseService, WarehouseError

logger = logging.getLogger("shipdesk.warehouses")
warehouse_service = WarehouseService()


# ── GET/POST /api/warehouses/ ─────────────────────────────────────────────────
class WarehouseListView(APIView):
    permission_classes = [permissions.IsAdminUser]

    @extend_schema(tags=["Warehouses"], summary="List locally registered warehouses")
    def get(self, request):
        qs = warehouse_service.list_warehouses(status=request.query_params.get("status"))
        return ok(sz.WarehouseSerializer(qs, many=True).data)

    @extend_schema(tags=["Warehouses"], summary="Register a warehouse with the carrier",
                   request=sz.WarehouseRegisterSerializer)
    def post(self, request):
        ser = sz.WarehouseRegisterSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        try:
            warehouse = warehouse_service.register_warehouse(ser.validated_data)
        except (WarehouseError, CarrierError) as exc:
            return fail(exc, code=getattr(exc, "code", "CARRIER_ERROR"))
        return ok(sz.WarehouseSerializer(warehouse).data, status=status.HTTP_201_CREATED)


# ── PATCH /api/warehouses/{name}/ ─────────────────────────────────────────────
@extend_schema(tags=["Warehouses"], summary="Edit warehouse address, pin or phone",
               request=sz.WarehouseUpdateSerializer)
class WarehouseUpdateView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def patch(self, request, name):
        ser = sz.WarehouseUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        try:
            warehouse = warehouse_service.update_warehouse(name, ser.validated_data)
        except WarehouseNotFound as exc:
            return fail(exc, status=status.HTTP_404_NOT_FOUND, code=exc.code)
        except (WarehouseError, CarrierError) as exc:
            return fail(exc, code=getattr(exc, "code", "CARRIER_ERROR"))
        return ok(sz.WarehouseSerializer(warehouse).data)
