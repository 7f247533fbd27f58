"""Shipment serializers."""

from rest_framework import serializers
from .models import Shipment, ShipmentEvent


class ShipmentEventSerializer(serializers.ModelSerializer):
    class Meta:
        model  = ShipmentEvent
        fields = ["from_status", "to_status", "note", "occurred_at"]


class ShipmentSerializer(serializers.ModelSerializer):
    waybill_numbers = serializers.ListField(child=serializers.CharField(), read_only=True)
    order_id        = serializers.UUIDField(read_only=True)
    order_status    = serializers.CharField(source="order.status", read_only=True)
    customer_name   = serializers.CharField(source="order.customer_name", read_only=True)

    class Meta:
        model  = Shipment
        fields = [
            "id", "order_id", "order_status", "customer_name", "shipment_type",
            "primary_waybill", "waybill_numbers", "status", "pickup_location",
            "label_generated", "label_url", "is_active", "created_at", "updated_at",
        ]


class ShipmentDetailSerializer(ShipmentSerializer):
    events = ShipmentEventSerializer(many=True, read_only=True)

    class Meta(ShipmentSerializer.Meta):
        fields = ShipmentSerializer.Meta.fields + [
            "warehouse_details", "customer_details", "package_details",
            "carrier_response", "pickup_request", "tracking_info", "events",
        ]


# ── Requests ─────────────────────────────────────────────────────────────────

class DimensionsSerializer(serializers.Serializer):
    length = serializers.FloatField(min_value=0)
    width  = serializers.FloatField(min_value=0)
    height = serializers.FloatField(min_value=0)


class PackageSerializer(serializers.Serializer):
    weight     = serializers.FloatField(min_value=0, required=False)
    dimensions = DimensionsSerializer(required=False)


class ShipmentCreateSerializer(serializers.Serializer):
    order_id        = serializers.UUIDField()
    shipment_type   = serializers.ChoiceField(choices=Shipment.Type.choices, default=Shipment.Type.FORWARD)
    pickup_location = serializers.CharField(max_length=120, required=False, default="Main Warehouse")
    shipping_mode   = serializers.ChoiceField(choices=["Surface", "Express"], default="Surface")
    weight          = serializers.FloatField(min_value=0, required=False)
    dimensions      = DimensionsSerializer(required=False)
    packages        = PackageSerializer(many=True, required=False)
    custom_fields   = serializers.DictField(required=False)

    def validate(self, data):
        if data["shipment_type"] == Shipment.Type.MPS and len(data.get("packages") or []) < 2:
            raise serializers.ValidationError("MPS shipments need at least two packages")
        data["order_id"] = str(data["order_id"])
        return data


class ShipmentUpdateSerializer(serializers.Serializer):
    name            = serializers.CharField(max_length=120, required=False)
    add             = serializers.CharField(max_length=500, required=False)
    phone           = serializers.ListField(child=serializers.CharField(max_length=20), required=False)
    pt              = serializers.ChoiceField(choices=["COD", "Pre-paid"], required=False)
    cod             = serializers.FloatField(min_value=0, required=False)
    products_desc   = serializers.CharField(max_length=500, required=False)
    weight          = serializers.FloatField(min_value=0, required=False)
    shipment_height = serializers.FloatField(min_value=0, required=False)
    shipment_width  = serializers.FloatField(min_value=0, required=False)
    shipment_length = serializers.FloatField(min_value=0, required=False)

    def validate(self, data):
        if not data:
            raise serializers.ValidationError("No fields to update")
        return data


class StatusUpdateSerializer(serializers.Serializer):
    status        = serializers.CharField(max_length=60)
    tracking_info = serializers.DictField(required=False)


class LabelSerializer(serializers.Serializer):
    pdf      = serializers.BooleanField(default=True)
    pdf_size = serializers.ChoiceField(choices=["A4", "4R"], default="4R")


class EwaybillSerializer(serializers.Serializer):
    dcn  = serializers.CharField(max_length=64)
    ewbn = serializers.CharField(max_length=64)


class PickupRequestSerializer(serializers.Serializer):
    pickup_date            = serializers.DateField()
    pickup_time            = serializers.TimeField(format="%H:%M:%S")
    pickup_location        = serializers.CharField(max_length=120)
    expected_package_count = serializers.IntegerField(min_value=1)


class ServiceabilitySerializer(serializers.Serializer):
    pincode = serializers.RegexField(r"^\d{6}$")
    heavy   = serializers.BooleanField(default=False)


class CarrierOrderQuerySerializer(serializers.Serializer):
    page             = serializers.IntegerField(min_value=1, default=1)
    limit            = serializers.IntegerField(min_value=1, max_value=500, default=50)
    waybill          = serializers.CharField(required=False)
    reference_number = serializers.CharField(required=False)
    waybills         = serializers.CharField(required=False, help_text="Comma-separated")
    status           = serializers.CharField(required=False)
    payment_mode     = serializers.CharField(required=False)
    state            = serializers.CharField(required=False)
    city             = serializers.CharField(required=False)
    from_date        = serializers.CharField(required=False)
    to_date          = serializers.CharField(required=False)
    sort_by          = serializers.ChoiceField(choices=["date", "status", "amount", "waybill"], default="date")
    sort_order       = serializers.ChoiceField(choices=["asc", "desc"], default="desc")

    def validate_waybills(self, value):
        return [w.strip() for w in value.split(",") if w.strip()]


class CarrierOrderSearchSerializer(serializers.Serializer):
    query            = serializers.CharField(required=False)
    waybill          = serializers.CharField(required=False)
    reference_number = serializers.CharField(required=False)
    waybills         = serializers.CharField(required=False)
    customer_name    = serializers.CharField(required=False)
    customer_phone   = serializers.CharField(required=False)
    customer_email   = serializers.CharField(required=False)
    address          = serializers.CharField(required=False)
    pincode          = serializers.CharField(required=False)
    amount_min       = serializers.FloatField(required=False)
    amount_max       = serializers.FloatField(required=False)
    from_date        = serializers.CharField(required=False)
    to_date          = serializers.CharField(required=False)
    status           = serializers.CharField(required=False)
    payment_mode     = serializers.CharField(required=False)
    states           = serializers.CharField(required=False)
    cities           = serializers.CharField(required=False)
    page             = serializers.IntegerField(min_value=1, default=1)
    limit            = serializers.IntegerField(min_value=1, max_value=500, default=100)

    def validate_waybills(self, value):
        return [w.strip() for w in value.split(",") if w.strip()]


class CarrierAnalyticsSerializer(serializers.Serializer):
    group_by         = serializers.ChoiceField(choices=["day", "week", "month"], default="day")
    waybill          = serializers.CharField(required=False)
    reference_number = serializers.CharField(required=False)
    waybills         = serializers.CharField(required=False)
    from_date        = serializers.CharField(required=False)
    to_date          = serializers.CharField(required=False)

    def validate_waybills(self, value):
        return [w.strip() for w in value.split(",") if w.strip()]


class ShipmentListQuerySerializer(serializers.Serializer):
    page          = serializers.IntegerField(min_value=1, default=1)
    limit         = serializers.IntegerField(min_value=1, max_value=200, default=10)
    status        = serializers.CharField(required=False)
    shipment_type = serializers.ChoiceField(choices=Shipment.Type.choices, required=False)
    order_id      = serializers.UUIDField(required=False)
    waybill       = serializers.CharField(required=False)
