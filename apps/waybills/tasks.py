"""Celery tasks for the waybill pool."""

import logging
from celery import shared_task

logger = logging.getLogger("shipdesk.tasks")


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def ensure_waybill_stock(self, min_stock=None):
    """Beat task: keep the GENERATED pool at or above WAYBILL_MIN_STOCK."""
    from apps.carriers.exceptions import CarrierError
    from apps.waybills.service import WaybillService

    try:
        result = WaybillService().ensure_minimum_stock(min_stock)
    except CarrierError as exc:
        logger.warning("Waybill replenishment failed: %s", exc)
        raise self.retry(exc=exc)
    logger.info("Waybill stock check: %s", result)
    return result
