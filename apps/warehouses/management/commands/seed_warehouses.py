"""
Management command: seed the default pickup locations for local development.

Usage:
    python manage.py seed_warehouses

Refuses to run unless DEBUG is on; production warehouses must be registered
with the carrier through the API.
"""

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from apps.warehouses.models import Warehouse


WAREHOUSES = [
    ("Main Warehouse", "Kalyani, Nadia, West Bengal", "Kalyani", "West Bengal", "741235", "+919876543210", True),
    ("Delhi Hub",      "Sector 62, Noida",            "Noida",   "Uttar Pradesh", "201301", "+919876543211", False),
    ("Mumbai Hub",     "Andheri East, Mumbai",        "Mumbai",  "Maharashtra",   "400069", "+919876543212", False),
]


class Command(BaseCommand):
    help = "Seed default pickup warehouses (DEBUG only)"

    def handle(self, *args, **options):
        if not settings.DEBUG:
            raise CommandError("seed_warehouses only runs with DEBUG enabled")

        created_count = 0
        for name, address, city, state, pin, phone, is_default in WAREHOUSES:
            _, created = Warehouse.objects.get_or_create(
                name=name,
                defaults={
                    "address":    address,
                    "city":       city,
                    "state":      state,
                    "pin":        pin,
                    "phone":      phone,
                    "is_default": is_default,
                    "status":     Warehouse.Status.ACTIVE,
                },
            )
            if created:
                created_count += 1

        self.stdout.write(self.style.SUCCESS(f"Seeded {created_count} warehouses."))
