"""Periodic housekeeping for the orders app."""

from datetime import timedelta

import structlog
from celery import shared_task
from django.conf import settings
from django.utils import timezone

from modules.orders.repositories import PartialOrderDjangoRepository

logger = structlog.get_logger(__name__)


@shared_task(name="orders.purge_stale_drafts")
def purge_stale_drafts(ttl_hours=None):
    """Delete drafts nobody has touched for ``ORDER_DRAFT_TTL_HOURS``."""
    hours = ttl_hours if ttl_hours is not None else settings.ORDER_DRAFT_TTL_HOURS
    cutoff = timezone.now() - timedelta(hours=hours)
    purged = PartialOrderDjangoRepository().purge_idle(cutoff)
    logger.info("draft.purged", count=purged, cutoff=cutoff.isoformat())
    return {"purged": purged}
