"""
WaybillService: local buffer of pre-fetched carrier waybills.

Pool operations degrade instead of failing: an empty pool or a carrier
outage yields fewer waybills, and ShipmentService falls back to letting the
carrier assign them at creation time.
"""

import logging
import time

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Count
from django.utils import timezone

from apps.carriers.client import DelhiveryClient
from apps.carriers.exceptions import CarrierError
from .models import Waybill

logger = logging.getLogger("shipdesk.waybills")

ACTIVE_STATES = (Waybill.Status.GENERATED, Waybill.Status.RESERVED)


def demo_waybills(count):
    stamp = int(time.time() * 1000)
    return [f"DEMO_WB_{stamp}_{i}" for i in range(count)]


class WaybillService:

    def __init__(self, carrier=None):
        self.carrier = carrier or DelhiveryClient.from_settings()

    # ── Generation ────────────────────────────────────────────────────────────
    def generate_and_store_waybills(self, count: int, source=None) -> list:
        """
        Fetch `count` waybills and store them as GENERATED. Rows that collide
        with an existing waybill are skipped; the stored subset is returned.
        """
        if count < 1:
            return []

        if self.carrier.is_configured():
            waybills = self.carrier.generate_waybills_with_fallback(count)
            source   = source or (Waybill.Source.DELHIVERY_SINGLE if count == 1 else Waybill.Source.DELHIVERY_BULK)
        else:
            logger.warning("Carrier not configured, generating %d demo waybills", count)
            waybills = demo_waybills(count)
            source   = Waybill.Source.DEMO

        batch_id = f"BATCH_{int(time.time() * 1000)}"
        stored   = []
        for waybill in waybills:
            try:
                with transaction.atomic():
                    Waybill.objects.create(
                        waybill  = waybill,
                        status   = Waybill.Status.GENERATED,
                        source   = source,
                        metadata = {"batch_id": batch_id, "generated_count": len(waybills)},
                    )
            except IntegrityError:
                logger.warning("Waybill %s already stored, skipping", waybill)
                continue
            stored.append(waybill)

        logger.info("Stored %d/%d waybills from %s (batch %s)", len(stored), len(waybills), source, batch_id)
        return stored

    # ── Queries ───────────────────────────────────────────────────────────────
    def get_available_waybills(self, count: int, source=None) -> list:
        qs = Waybill.objects.filter(status=Waybill.Status.GENERATED)
        if source:
            qs = qs.filter(source=source)
        return list(qs.order_by("generated_at", "id").values_list("waybill", flat=True)[:count])

    def get_waybill_stats(self) -> dict:
        by_status = dict(Waybill.objects.order_by().values_list("status").annotate(n=Count("id")))
        by_source = dict(Waybill.objects.order_by().values_list("source").annotate(n=Count("id")))
        return {
            "total":     sum(by_status.values()),
            "available": by_status.get(Waybill.Status.GENERATED, 0),
            "by_status": {s: by_status.get(s, 0) for s in Waybill.Status.values},
            "by_source": {s: by_source.get(s, 0) for s in Waybill.Source.values},
        }

    # ── Transitions (conditional UPDATEs only) ────────────────────────────────
    def reserve_waybills(self, waybills, reserved_by: str) -> int:
        """Returns the number of rows moved; callers compare it with len(waybills)."""
        return Waybill.objects.filter(
            waybill__in=list(waybills), status=Waybill.Status.GENERATED,
        ).update(
            status=Waybill.Status.RESERVED, reserved_by=reserved_by, reserved_at=timezone.now(),
        )

    def _claim(self, candidates, reserved_by):
        claimed = []
        now = timezone.now()
        for waybill in candidates:
            moved = Waybill.objects.filter(
                waybill=waybill, status=Waybill.Status.GENERATED,
            ).update(status=Waybill.Status.RESERVED, reserved_by=reserved_by, reserved_at=now)
            if moved:
                claimed.append(waybill)
        return claimed

    def acquire_waybills(self, count: int, reserved_by: str) -> list:
        """
        Reserve up to `count` waybills for `reserved_by`. Waybills this owner
        already holds are returned first. Never raises; a short list means
        the pool could not cover the request.
        """
        try:
            held = list(
                Waybill.objects.filter(status=Waybill.Status.RESERVED, reserved_by=reserved_by)
                .order_by("reserved_at", "id").values_list("waybill", flat=True)[:count]
            )
            needed = count - len(held)
            if needed <= 0:
                return held

            shortfall = needed - Waybill.objects.filter(status=Waybill.Status.GENERATED).count()
            if shortfall > 0:
                try:
                    self.generate_and_store_waybills(shortfall)
                except CarrierError as exc:
                    logger.warning("Could not top up waybill pool by %d: %s", shortfall, exc)

            with transaction.atomic():
                candidates = list(
                    Waybill.objects.select_for_update(skip_locked=True)
                    .filter(status=Waybill.Status.GENERATED)
                    .order_by("generated_at", "id")
                    .values_list("waybill", flat=True)[:needed]
                )
                claimed = self._claim(candidates, reserved_by)
        except DatabaseError as exc:
            logger.error("Waybill acquisition failed for %s: %s", reserved_by, exc)
            return []

        if len(held) + len(claimed) < count:
            logger.warning("Waybill pool short for %s: wanted %d, got %d",
                           reserved_by, count, len(held) + len(claimed))
        return held + claimed

    def use_waybill(self, waybill: str, order_id: str, shipment_id: str) -> bool:
        moved = Waybill.objects.filter(
            waybill=waybill, status__in=ACTIVE_STATES,
        ).update(
            status=Waybill.Status.USED, order_id=str(order_id),
            shipment_id=str(shipment_id), used_at=timezone.now(),
        )
        if moved:
            return True
        already = Waybill.objects.filter(
            waybill=waybill, status=Waybill.Status.USED, order_id=str(order_id),
        ).exists()
        if not already:
            logger.warning("Waybill %s could not be marked used for order %s", waybill, order_id)
        return already

    def cancel_waybill(self, waybill: str) -> bool:
        return bool(
            Waybill.objects.filter(waybill=waybill, status__in=ACTIVE_STATES)
            .update(status=Waybill.Status.CANCELLED)
        )

    # ── Replenishment ─────────────────────────────────────────────────────────
    def ensure_minimum_stock(self, min_stock=None) -> dict:
        floor     = settings.WAYBILL_MIN_STOCK if min_stock is None else min_stock
        available = Waybill.objects.filter(status=Waybill.Status.GENERATED).count()
        if available >= floor:
            return {"available": available, "generated": 0}

        shortfall = floor - available
        logger.info("Waybill stock %d below floor %d, generating %d", available, floor, shortfall)
        stored = self.generate_and_store_waybills(shortfall)
        return {"available": available + len(stored), "generated": len(stored)}
