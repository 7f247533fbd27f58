from django.contrib import admin
from .models import Waybill


@admin.register(Waybill)
class WaybillAdmin(admin.ModelAdmin):
    list_display    = ("waybill", "status", "source", "generated_at", "reserved_by", "order_id")
    list_filter     = ("status", "source")
    search_fields   = ("waybill", "order_id", "shipment_id")
    readonly_fields = ("waybill", "generated_at", "created_at", "updated_at")
    ordering        = ("-generated_at",)
