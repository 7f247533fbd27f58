"""
Waybill pool.

Each row is one carrier-issued waybill fetched ahead of demand.
Transitions: GENERATED → RESERVED → USED; any non-terminal state → CANCELLED.
Every transition is a conditional UPDATE on the current status.
"""

from django.db import models
from django.utils import timezone


class Waybill(models.Model):

    class Status(models.TextChoices):
        GENERATED = "GENERATED", "Generated"
        RESERVED  = "RESERVED",  "Reserved"
        USED      = "USED",      "Used"
        CANCELLED = "CANCELLED", "Cancelled"

    class Source(models.TextChoices):
        DELHIVERY_BULK   = "DELHIVERY_BULK",   "Delhivery bulk API"
        DELHIVERY_SINGLE = "DELHIVERY_SINGLE", "Delhivery single API"
        DEMO             = "DEMO",             "Demo generator"

    waybill      = models.CharField(max_length=64, unique=True)
    status       = models.CharField(max_length=10, choices=Status.choices, default=Status.GENERATED)
    source       = models.CharField(max_length=20, choices=Source.choices, default=Source.DELHIVERY_BULK)
    generated_at = models.DateTimeField(default=timezone.now)

    reserved_by  = models.CharField(max_length=120, blank=True)
    reserved_at  = models.DateTimeField(null=True, blank=True)
    used_at      = models.DateTimeField(null=True, blank=True)
    order_id     = models.CharField(max_length=64, blank=True, db_index=True)
    shipment_id  = models.CharField(max_length=64, blank=True)

    metadata     = models.JSONField(default=dict, blank=True)   # batch_id, generated_count
    created_at   = models.DateTimeField(auto_now_add=True)
    updated_at   = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["generated_at"]
        indexes  = [
            models.Index(fields=["status", "generated_at"], name="waybill_status_generated_idx"),
            models.Index(fields=["source", "status"],       name="waybill_source_status_idx"),
        ]

    def __str__(self):
        return f"{self.waybill} [{self.status}]"
