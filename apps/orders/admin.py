from django.contrib import admin
from .models import Order


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display    = ("id", "customer_name", "status", "payment_method", "total_amount",
                       "shipment_created", "created_at")
    list_filter     = ("status", "payment_method", "shipment_created")
    search_fields   = ("id", "customer_name", "customer_phone", "customer_email")
    readonly_fields = ("id", "created_at", "updated_at")
    ordering        = ("-created_at",)
