"""
Pickup / return locations registered with the carrier.

`name` is the carrier-side business key: case-sensitive, must match the
registered name exactly, and cannot be changed after registration.
"""

from django.core.validators import RegexValidator
from django.db import models

pin_validator = RegexValidator(r"^\d{6}$", "Pincode must be exactly 6 digits.")


class Warehouse(models.Model):

    class Status(models.TextChoices):
        ACTIVE   = "active",   "Active"
        INACTIVE = "inactive", "Inactive"
        PENDING  = "pending",  "Pending"

    name            = models.CharField(max_length=120, unique=True)
    registered_name = models.CharField(max_length=120, blank=True)
    phone           = models.CharField(max_length=20)
    email           = models.EmailField(blank=True)
    address         = models.TextField()
    city            = models.CharField(max_length=80, blank=True)
    pin             = models.CharField(max_length=6, validators=[pin_validator])
    state           = models.CharField(max_length=80, blank=True)
    country         = models.CharField(max_length=60, default="India")

    return_address  = models.TextField(blank=True)
    return_city     = models.CharField(max_length=80, blank=True)
    return_pin      = models.CharField(max_length=6, blank=True)
    return_state    = models.CharField(max_length=80, blank=True)
    return_country  = models.CharField(max_length=60, blank=True)

    status          = models.CharField(max_length=10, choices=Status.choices,
                                       default=Status.ACTIVE, db_index=True)
    is_default      = models.BooleanField(default=False)

    # Carrier metadata
    business_days       = models.JSONField(default=list, blank=True)
    business_hours      = models.JSONField(default=dict, blank=True)
    vehicle_constraints = models.JSONField(default=list, blank=True)
    carrier_response    = models.JSONField(null=True, blank=True)
    vendor_id           = models.CharField(max_length=64, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-is_default", "name"]
        indexes  = [models.Index(fields=["status", "is_default"], name="warehouse_status_default_idx")]

    def __str__(self):
        return f"{self.name} ({self.pin})"

    def as_pickup_location(self) -> dict:
        """Canonical warehouse shape shared with the carrier fallbacks."""
        return {
            "name":       self.name,
            "address":    self.address,
            "pin":        self.pin,
            "phone":      self.phone,
            "city":       self.city,
            "state":      self.state,
            "country":    self.country,
            "active":     self.status == self.Status.ACTIVE,
            "is_default": self.is_default,
        }
