"""Celery tasks for shipment lifecycle."""

import logging
from celery import shared_task

logger = logging.getLogger("shipdesk.tasks")

SYNC_BATCH_SIZE = 200


@shared_task
def sync_active_shipments(limit=SYNC_BATCH_SIZE):
    """
    Beat task: pull carrier tracking for active, non-terminal shipments,
    least recently updated first.
    """
    from apps.shipments.models import Shipment
    from apps.shipments.service import ShipmentService

    service = ShipmentService()
    if not service.carrier.is_configured():
        logger.info("Carrier not configured, skipping tracking sync")
        return 0

    stale = (
        Shipment.objects.filter(is_active=True)
        .exclude(status__in=Shipment.TERMINAL_STATUSES)
        .order_by("updated_at")[:limit]
    )
    changed = 0
    for shipment in stale:
        if service.sync_tracking(shipment):
            changed += 1
    logger.info("Tracking sync: %d shipment(s) changed status", changed)
    return changed
