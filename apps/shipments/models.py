"""
Shipment models.

A Shipment is one carrier transaction for one Order. Its waybills live in
ShipmentPackage rows (ordered by `sequence`); the primary waybill is always
the first package's. Warehouse, customer and package data are snapshots
taken at creation time and are never re-linked to live records.
"""

import uuid

from django.db import models

from apps.carriers.client import EDITABLE_STATUSES
from apps.carriers.normalizers import canonical_status


class Shipment(models.Model):

    class Type(models.TextChoices):
        FORWARD     = "FORWARD",     "Forward"
        MPS         = "MPS",         "Multi-package"
        REVERSE     = "REVERSE",     "Reverse"
        REPLACEMENT = "REPLACEMENT", "Replacement"

    # Free-text status; these are the values ShipDesk itself writes.
    CREATED   = "Created"
    CANCELLED = "Cancelled"
    DELIVERED = "Delivered"
    TERMINAL_STATUSES = (CANCELLED, DELIVERED)

    id              = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order           = models.ForeignKey("orders.Order", on_delete=models.PROTECT, related_name="shipments")
    shipment_type   = models.CharField(max_length=12, choices=Type.choices, default=Type.FORWARD)
    primary_waybill = models.CharField(max_length=64, db_index=True)
    status          = models.CharField(max_length=60, default=CREATED, db_index=True)
    pickup_location = models.CharField(max_length=120)

    # Snapshots as of creation
    warehouse_details = models.JSONField(default=dict)
    customer_details  = models.JSONField(default=dict)
    package_details   = models.JSONField(default=dict)

    carrier_response  = models.JSONField(null=True, blank=True)   # verbatim, for audit
    pickup_request    = models.JSONField(null=True, blank=True)
    tracking_info     = models.JSONField(null=True, blank=True)
    label_generated   = models.BooleanField(default=False)
    label_url         = models.URLField(blank=True, max_length=500)

    is_active  = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes  = [
            models.Index(fields=["status"],                   name="shipment_status_idx"),
            models.Index(fields=["order", "shipment_type"],   name="shipment_order_type_idx"),
            models.Index(fields=["created_at"],               name="shipment_created_idx"),
        ]

    def __str__(self):
        return f"{self.primary_waybill} [{self.status}]"

    @property
    def waybill_numbers(self) -> list:
        return [p.waybill for p in self.packages.all()]

    @property
    def is_cancelled(self) -> bool:
        return self.status == self.CANCELLED

    @property
    def is_editable(self) -> bool:
        # A freshly created shipment has not been manifested yet
        return self.status == self.CREATED or canonical_status(self.status) in EDITABLE_STATUSES


class ShipmentPackage(models.Model):
    """One physical package; `sequence` 0 carries the primary/master waybill."""
    shipment = models.ForeignKey(Shipment, on_delete=models.CASCADE, related_name="packages")
    waybill  = models.CharField(max_length=64, unique=True)
    sequence = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering        = ["sequence"]
        unique_together = [("shipment", "sequence")]

    def __str__(self):
        return f"{self.waybill} (#{self.sequence})"


class ShipmentEvent(models.Model):
    """Immutable audit trail for every status change."""
    shipment    = models.ForeignKey(Shipment, on_delete=models.CASCADE, related_name="events")
    from_status = models.CharField(max_length=60, blank=True)
    to_status   = models.CharField(max_length=60)
    note        = models.CharField(max_length=255, blank=True)
    occurred_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["occurred_at", "id"]
