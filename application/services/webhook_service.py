"""
Webhook intake: verify, de-duplicate, dispatch.

The processor delivers at least once, in any order, possibly concurrently.
The ledger insert is its own transaction and is the single gate between
"seen" and "not seen": whichever delivery inserts the row dispatches, every
other delivery of the same event id is acknowledged without side effects.
Handler failures are recorded on the ledger row and never turned into a
non-2xx response, since a retry would be rejected by the ledger anyway.
"""
from __future__ import annotations

from datetime import timedelta
from typing import Any, Callable, Optional

from application.dtos.payments import ReplayResult
from application.ports.payment_gateway import WebhookVerifier
from application.services.reconciliation import ReconciliationHandlers, ReconciliationOutcome
from core.logging_config import get_logger
from domain.common.clock import Clock
from domain.common.exceptions import EventNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.entity import EventStatus, ProcessedEvent
from domain.payment.events import ReconciliationEvent, UnknownEvent


logger = get_logger(__name__)


def _order_ref(payload: dict[str, Any]) -> Optional[str]:
    obj = (payload.get("data") or {}).get("object") or {}
    metadata = obj.get("metadata") if isinstance(obj, dict) else None
    return (metadata or {}).get("order_id")


class WebhookService:
    def __init__(
        self,
        verifier: WebhookVerifier,
        handlers: ReconciliationHandlers,
        uow_factory: Callable[..., AbstractUnitOfWork],
        clock: Clock,
    ) -> None:
        self._verifier = verifier
        self._routes = handlers.routes()
        self._uow_factory = uow_factory
        self._clock = clock

    async def receive(self, body: bytes, signature: Optional[str]) -> bool:
        """
        Process one delivery. Returns True when this delivery dispatched the
        event, False when it was a duplicate. Raises PaymentSignatureError
        (and touches nothing) when the delivery is not authentic.
        """
        payload = self._verifier.verify(body, signature)

        event_id = str(payload["id"])
        event_type = str(payload["type"])

        if not await self._record(event_id, event_type, payload):
            logger.info("webhook_duplicate_ignored", event_id=event_id, event_type=event_type)
            return False

        logger.info("webhook_received", event_id=event_id, event_type=event_type)
        await self._dispatch(event_id, event_type, payload)
        return True

    async def replay(self, event_id: str) -> ReplayResult:
        """Re-run the handler for a ledger row that did not finish processing."""
        async with self._uow_factory(readonly=True) as uow:
            entry = await uow.event_ledger_repository.get(event_id)
        if entry is None:
            raise EventNotFoundException(event_id)

        if entry.status == EventStatus.PROCESSED:
            logger.info("webhook_replay_skipped", event_id=event_id, status=entry.status.value)
            return ReplayResult(
                event_id=event_id, event_type=entry.event_type, status=entry.status.value, replayed=False
            )

        logger.info("webhook_replay", event_id=event_id, event_type=entry.event_type, previous_status=entry.status.value)
        status = await self._dispatch(event_id, entry.event_type, entry.payload)
        return ReplayResult(event_id=event_id, event_type=entry.event_type, status=status.value, replayed=True)

    async def purge_ledger(self, older_than_days: int) -> int:
        cutoff = self._clock.now() - timedelta(days=older_than_days)
        async with self._uow_factory() as uow:
            deleted = await uow.event_ledger_repository.purge_processed_before(cutoff)
        logger.info("webhook_ledger_purged", deleted=deleted, cutoff=cutoff.isoformat())
        return deleted

    async def _record(self, event_id: str, event_type: str, payload: dict[str, Any]) -> bool:
        async with self._uow_factory(readonly=True) as uow:
            if await uow.event_ledger_repository.get(event_id) is not None:
                return False
        async with self._uow_factory() as uow:
            return await uow.event_ledger_repository.try_insert(
                ProcessedEvent(
                    event_id=event_id,
                    event_type=event_type,
                    payload=payload,
                    received_at=self._clock.now(),
                )
            )

    async def _dispatch(self, event_id: str, event_type: str, payload: dict[str, Any]) -> EventStatus:
        try:
            event = self._verifier.to_event(payload)
            outcome = await self._handle(event)
        except Exception as exc:
            logger.error(
                "webhook_handler_failed",
                event_id=event_id,
                event_type=event_type,
                order_id=_order_ref(payload),
                error=str(exc),
                exc_info=True,
            )
            await self._mark(event_id, EventStatus.FAILED, error=str(exc) or exc.__class__.__name__)
            return EventStatus.FAILED

        logger.info("webhook_processed", event_id=event_id, event_type=event_type, outcome=outcome.value)
        await self._mark(event_id, EventStatus.PROCESSED)
        return EventStatus.PROCESSED

    async def _handle(self, event: ReconciliationEvent) -> ReconciliationOutcome:
        handler = self._routes.get(type(event))
        if handler is None or isinstance(event, UnknownEvent):
            logger.info("webhook_event_unhandled", event_id=event.event_id, event_type=event.event_type)
            return ReconciliationOutcome.UNHANDLED
        return await handler(event)

    async def _mark(self, event_id: str, status: EventStatus, *, error: Optional[str] = None) -> None:
        try:
            async with self._uow_factory() as uow:
                await uow.event_ledger_repository.mark(event_id, status, at=self._clock.now(), error=error)
        except Exception as exc:
            # The row stays in its previous state and can be replayed
            logger.error("webhook_ledger_mark_failed", event_id=event_id, status=status.value, error=str(exc))
