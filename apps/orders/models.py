"""
Order model.

Orders are owned by the storefront; ShipDesk reads them to decide which
shipment kinds are legal and writes back the shipment summary fields.
"""

import uuid

from django.db import models


class Order(models.Model):

    class PaymentMethod(models.TextChoices):
        COD     = "cod",     "Cash on Delivery"
        PREPAID = "prepaid", "Prepaid"

    id               = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    customer_name    = models.CharField(max_length=120, blank=True)
    customer_email   = models.EmailField(blank=True)
    customer_phone   = models.CharField(max_length=20, blank=True)
    payment_method   = models.CharField(max_length=10, choices=PaymentMethod.choices,
                                        default=PaymentMethod.PREPAID)
    total_amount     = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    # Free text; compared case-insensitively (see statuses.py)
    status           = models.CharField(max_length=40, default="pending", db_index=True)

    shipping_address = models.JSONField(default=dict, blank=True)
    items            = models.JSONField(default=list, blank=True)

    # Shipment summary written back by ShipmentService
    shipment_created     = models.BooleanField(default=False)
    shipment_details     = models.JSONField(null=True, blank=True)
    reverse_shipment     = models.JSONField(null=True, blank=True)
    replacement_shipment = models.JSONField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Order {self.id} [{self.status}]"

    @property
    def is_cod(self) -> bool:
        return self.payment_method == self.PaymentMethod.COD

    @property
    def item_count(self) -> int:
        return sum(int(item.get("quantity") or 1) for item in self.items or [])
