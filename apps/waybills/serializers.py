"""Waybill serializers."""

from rest_framework import serializers
from .models import Waybill


class WaybillSerializer(serializers.ModelSerializer):
    class Meta:
        model  = Waybill
        fields = [
            "waybill", "status", "source", "generated_at",
            "reserved_by", "reserved_at", "used_at", "order_id", "shipment_id", "metadata",
        ]


class WaybillGenerateSerializer(serializers.Serializer):
    count = serializers.IntegerField(min_value=1, max_value=100000)
    store = serializers.BooleanField(default=True)


class WaybillReserveSerializer(serializers.Serializer):
    waybills    = serializers.ListField(child=serializers.CharField(max_length=64), allow_empty=False)
    reserved_by = serializers.CharField(max_length=120)


class WaybillUseSerializer(serializers.Serializer):
    waybill     = serializers.CharField(max_length=64)
    order_id    = serializers.CharField(max_length=64)
    shipment_id = serializers.CharField(max_length=64)


class StockSerializer(serializers.Serializer):
    min_stock = serializers.IntegerField(min_value=0, required=False)
