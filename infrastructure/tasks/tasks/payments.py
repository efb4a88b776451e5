"""
Periodic payment maintenance: orphaned-charge adoption and ledger retention.
"""
from __future__ import annotations

from typing import Optional

from celery import shared_task

from application.services.order_service import OrderService
from application.services.reconciliation import ReconciliationHandlers
from application.services.webhook_service import WebhookService
from core.logging_config import get_logger
from core.settings import payment_settings
from domain.common.clock import SystemClock
from infrastructure.external.payments import get_webhook_verifier
from ..utils.base_task import BaseTask


logger = get_logger(__name__)


async def _link_orphans(uow_factory, limit: int) -> int:
    return await OrderService(uow_factory, SystemClock()).link_orphans(limit)


async def _purge_ledger(uow_factory, older_than_days: int) -> int:
    clock = SystemClock()
    handlers = ReconciliationHandlers(
        uow_factory, clock, cas_attempts=payment_settings.reconciliation.cas_max_attempts
    )
    service = WebhookService(get_webhook_verifier(), handlers, uow_factory, clock)
    return await service.purge_ledger(older_than_days)


@shared_task(
    name="payments.link_orphan_payments",
    bind=True,
    base=BaseTask,
    max_retries=3,
    default_retry_delay=30,
)
def link_orphan_payments(self, limit: Optional[int] = None) -> dict:
    batch = limit or payment_settings.reconciliation.orphan_sweep_batch
    try:
        linked = self.run_async(_link_orphans, batch)
    except Exception as exc:
        logger.error("orphan_sweep_failed", error=str(exc))
        raise self.retry(exc=exc)
    return {"linked": linked}


@shared_task(
    name="payments.purge_event_ledger",
    bind=True,
    base=BaseTask,
    max_retries=3,
    default_retry_delay=60,
)
def purge_event_ledger(self, older_than_days: Optional[int] = None) -> dict:
    days = older_than_days or payment_settings.webhook.ledger_retention_days
    try:
        deleted = self.run_async(_purge_ledger, days)
    except Exception as exc:
        logger.error("event_ledger_purge_failed", error=str(exc))
        raise self.retry(exc=exc)
    return {"deleted": deleted}
