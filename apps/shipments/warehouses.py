"""
Pickup-warehouse resolution.

Local warehouses and the carrier's warehouse list disagree often enough that
lookups go through an ordered list of strategies; each returns a canonical
warehouse dict (see Warehouse.as_pickup_location) or None.

    local exact name → carrier (live data only) → any active local → default
"""

import logging

from django.db import DatabaseError

from apps.carriers.client import DelhiveryClient
from apps.carriers.normalizers import normalize_warehouse, warehouse_names
from apps.warehouses.models import Warehouse

logger = logging.getLogger("shipdesk.warehouses")

DEFAULT_WAREHOUSE = {
    "name":            "Main Warehouse",
    "registered_name": "Default Warehouse",
    "address":         "Default Warehouse Address, Business District",
    "pin":             "400001",
    "phone":           "+919876543210",
    "email":           "warehouse@example.com",
    "city":            "Mumbai",
    "state":           "Maharashtra",
    "country":         "India",
    "return_address":  "Default Warehouse Address, Business District",
    "return_city":     "Mumbai",
    "return_pin":      "400001",
    "return_state":    "Maharashtra",
    "return_country":  "India",
    "active":          True,
    "is_default":      True,
}

DEFAULT_ACTIVE_WAREHOUSES = (
    {
        "name":    "Main Warehouse",
        "address": "A-Block, Phase I, Kalyani Township, Near Kalyani University, Kalyani, Nadia, West Bengal",
        "pin":     "741235",
        "phone":   "+919876543210",
        "city":    "Kalyani",
        "state":   "West Bengal",
    },
    {
        "name":    "Delhi Hub",
        "address": "Plot No. 123, Sector 63, Noida, Near Metro Station, Uttar Pradesh",
        "pin":     "201301",
        "phone":   "+919876543211",
        "city":    "Noida",
        "state":   "Uttar Pradesh",
    },
    {
        "name":    "Mumbai Hub",
        "address": "Unit 45, Industrial Estate, Andheri East, Near Airport, Maharashtra",
        "pin":     "400069",
        "phone":   "+919876543212",
        "city":    "Mumbai",
        "state":   "Maharashtra",
    },
)


def _tag(warehouse: dict, source: str) -> dict:
    return {**warehouse, "source": source}


class LocalWarehouseStrategy:
    source = "local"

    def resolve(self, name):
        warehouse = Warehouse.objects.filter(name=name, status=Warehouse.Status.ACTIVE).first()
        return _tag(warehouse.as_pickup_location(), self.source) if warehouse else None

    def active(self):
        return [_tag(w.as_pickup_location(), self.source)
                for w in Warehouse.objects.filter(status=Warehouse.Status.ACTIVE)]


class CarrierWarehouseStrategy:
    """Case-insensitive match against the carrier's live warehouse list."""
    source = "carrier"

    def __init__(self, carrier):
        self.carrier = carrier

    def _live_rows(self):
        if not self.carrier.is_configured():
            return []
        listing = self.carrier.fetch_warehouses()
        if not listing.live:
            return []
        return [row for row in listing.warehouses if isinstance(row, dict)]

    def resolve(self, name):
        wanted = (name or "").lower()
        for index, row in enumerate(self._live_rows()):
            if any(candidate.lower() == wanted for candidate in warehouse_names(row)):
                return _tag(normalize_warehouse(row, index), self.source)
        return None

    def active(self):
        return [_tag(normalize_warehouse(row, i), self.source) for i, row in enumerate(self._live_rows())]


class AnyActiveLocalStrategy:
    """Name lookup fallback: the first active local warehouse, defaults first."""
    source = "local_fallback"

    def resolve(self, name):
        warehouse = Warehouse.objects.filter(status=Warehouse.Status.ACTIVE).first()
        if warehouse is None:
            return None
        logger.info("Warehouse '%s' not found, using '%s' instead", name, warehouse.name)
        return _tag(warehouse.as_pickup_location(), self.source)

    def active(self):
        return []


class DefaultWarehouseStrategy:
    source = "default"

    def resolve(self, name):
        logger.warning("No warehouse available for '%s', using built-in default", name)
        return _tag(dict(DEFAULT_WAREHOUSE), self.source)

    def active(self):
        return [
            _tag({**w, "country": "India", "active": True, "is_default": i == 0}, self.source)
            for i, w in enumerate(DEFAULT_ACTIVE_WAREHOUSES)
        ]


def default_strategies(carrier):
    return [
        LocalWarehouseStrategy(),
        CarrierWarehouseStrategy(carrier),
        AnyActiveLocalStrategy(),
        DefaultWarehouseStrategy(),
    ]


class WarehouseResolver:

    def __init__(self, strategies=None, carrier=None):
        if strategies is None:
            strategies = default_strategies(carrier or DelhiveryClient.from_settings())
        self.strategies = list(strategies)

    def get_by_name(self, name):
        for strategy in self.strategies:
            try:
                found = strategy.resolve(name)
            except DatabaseError as exc:
                logger.error("Warehouse lookup via %s failed: %s", strategy.source, exc)
                continue
            if found:
                logger.info("Resolved warehouse '%s' via %s", name, strategy.source)
                return found
        return None

    def get_active(self) -> list:
        """First non-empty set wins; local data always shadows the carrier's."""
        for strategy in self.strategies:
            try:
                rows = strategy.active()
            except DatabaseError as exc:
                logger.error("Active warehouse listing via %s failed: %s", strategy.source, exc)
                continue
            if rows:
                return rows
        return []
