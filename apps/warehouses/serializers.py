"""Warehouse serializers."""

from rest_framework import serializers

from .models import Warehouse, pin_validator


class WarehouseSerializer(serializers.ModelSerializer):
    class Meta:
        model  = Warehouse
        fields = [
            "id", "name", "registered_name", "phone", "email",
            "address", "city", "pin", "state", "country",
            "return_address", "return_city", "return_pin", "return_state", "return_country",
            "status", "is_default", "business_days", "business_hours", "vehicle_constraints",
            "created_at", "updated_at",
        ]
        read_only_fields = ["id", "status", "created_at", "updated_at"]


class WarehouseRegisterSerializer(serializers.Serializer):
    name            = serializers.CharField(max_length=120)
    registered_name = serializers.CharField(max_length=120, required=False, allow_blank=True)
    phone           = serializers.CharField(max_length=20)
    email           = serializers.EmailField(required=False, allow_blank=True)
    address         = serializers.CharField()
    city            = serializers.CharField(max_length=80, required=False, allow_blank=True)
    pin             = serializers.CharField(max_length=6, validators=[pin_validator])
    state           = serializers.CharField(max_length=80, required=False, allow_blank=True)
    country         = serializers.CharField(max_length=60, default="India")
    return_address  = serializers.CharField(required=False, allow_blank=True)
    return_city     = serializers.CharField(max_length=80, required=False, allow_blank=True)
    return_pin      = serializers.CharField(max_length=6, required=False, allow_blank=True)
    return_state    = serializers.CharField(max_length=80, required=False, allow_blank=True)
    return_country  = serializers.CharField(max_length=60, required=False, allow_blank=True)
    is_default      = serializers.BooleanField(default=False)


class WarehouseUpdateSerializer(serializers.Serializer):
    name    = serializers.CharField(max_length=120, required=False)
    address = serializers.CharField(required=False)
    pin     = serializers.CharField(max_length=6, required=False, validators=[pin_validator])
    phone   = serializers.CharField(max_length=20, required=False)

    def to_internal_value(self, data):
        unknown = sorted(set(data) - set(self.fields))
        if unknown:
            raise serializers.ValidationError(
                {field: "This field cannot be edited." for field in unknown}
            )
        return super().to_internal_value(data)
