from django.contrib import admin
from .models import Shipment, ShipmentEvent, ShipmentPackage


class ShipmentPackageInline(admin.TabularInline):
    model         = ShipmentPackage
    extra         = 0
    readonly_fields = ("waybill", "sequence")


@admin.register(Shipment)
class ShipmentAdmin(admin.ModelAdmin):
    list_display  = ("primary_waybill", "shipment_type", "status", "order", "pickup_location",
                     "label_generated", "is_active", "created_at")
    list_filter   = ("status", "shipment_type", "is_active", "label_generated")
    search_fields = ("primary_waybill", "packages__waybill", "order__customer_name")
    readonly_fields = ("id", "carrier_response", "created_at", "updated_at")
    ordering      = ("-created_at",)
    inlines       = [ShipmentPackageInline]


@admin.register(ShipmentEvent)
class ShipmentEventAdmin(admin.ModelAdmin):
    list_display  = ("shipment", "from_status", "to_status", "note", "occurred_at")
    readonly_fields = ("occurred_at",)
