from django.contrib import admin
from .models import Warehouse


@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display    = ("name", "pin", "city", "state", "phone", "status", "is_default", "updated_at")
    list_filter     = ("status", "is_default", "state")
    search_fields   = ("name", "pin", "city")
    readonly_fields = ("carrier_response", "created_at", "updated_at")
