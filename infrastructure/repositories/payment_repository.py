"""
Payment ledger repositories - SQLAlchemy implementations
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, exists, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.exceptions import ConcurrentUpdateException
from domain.payment.entity import (
    EventStatus,
    OrphanPayment,
    PaymentRecord,
    PaymentRecordStatus,
    ProcessedEvent,
)
from domain.payment.repository import (
    EventLedgerRepository,
    OrphanPaymentRepository,
    PaymentRecordRepository,
)
from infrastructure.models.order import OrderModel
from infrastructure.models.payment import (
    OrphanPaymentModel,
    PaymentRecordModel,
    ProcessedEventModel,
)


logger = get_logger(__name__)


class SQLAlchemyPaymentRecordRepository(PaymentRecordRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PaymentRecordModel) -> PaymentRecord:
        return PaymentRecord(
            id=model.id,
            order_id=model.order_id,
            intent_id=model.intent_id,
            status=PaymentRecordStatus(model.status),
            amount=model.amount,
            currency=model.currency,
            payment_method_id=model.payment_method_id,
            failure_reason=model.failure_reason,
            event_id=model.event_id,
            created_at=model.created_at,
        )

    async def add(self, record: PaymentRecord) -> PaymentRecord:
        model = PaymentRecordModel(
            order_id=record.order_id,
            intent_id=record.intent_id,
            status=record.status.value,
            amount=record.amount,
            currency=record.currency,
            payment_method_id=record.payment_method_id,
            failure_reason=record.failure_reason,
            event_id=record.event_id,
            created_at=record.created_at,
        )
        self.session.add(model)
        try:
            await self.session.flush()
        except IntegrityError:
            logger.info("payment_record_conflict", intent_id=record.intent_id, status=record.status.value)
            raise ConcurrentUpdateException("PaymentRecord", record.intent_id, 0)
        record.id = model.id
        return record

    async def list_by_order(self, order_id: str) -> List[PaymentRecord]:
        result = await self.session.execute(
            select(PaymentRecordModel)
            .where(PaymentRecordModel.order_id == order_id)
            .order_by(PaymentRecordModel.id)
        )
        return [self._to_entity(m) for m in result.scalars().all()]


class SQLAlchemyOrphanPaymentRepository(OrphanPaymentRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: OrphanPaymentModel) -> OrphanPayment:
        return OrphanPayment(
            intent_id=model.intent_id,
            amount=model.amount,
            currency=model.currency,
            order_id=model.order_id,
            customer_id=model.customer_id,
            payment_method_id=model.payment_method_id,
            event_id=model.event_id,
            metadata=model.extra_metadata or {},
            created_at=model.created_at,
            linked_at=model.linked_at,
        )

    async def get(self, intent_id: str) -> Optional[OrphanPayment]:
        model = await self.session.get(OrphanPaymentModel, intent_id, populate_existing=True)
        return self._to_entity(model) if model else None

    async def add(self, orphan: OrphanPayment) -> OrphanPayment:
        self.session.add(
            OrphanPaymentModel(
                intent_id=orphan.intent_id,
                order_id=orphan.order_id,
                amount=orphan.amount,
                currency=orphan.currency,
                customer_id=orphan.customer_id,
                payment_method_id=orphan.payment_method_id,
                event_id=orphan.event_id,
                extra_metadata=orphan.metadata,
                created_at=orphan.created_at,
            )
        )
        try:
            await self.session.flush()
        except IntegrityError:
            raise ConcurrentUpdateException("OrphanPayment", orphan.intent_id, 0)
        return orphan

    async def list_unlinked(
        self,
        *,
        order_id: Optional[str] = None,
        limit: int = 100,
        adoptable_only: bool = False,
    ) -> List[OrphanPayment]:
        stmt = select(OrphanPaymentModel).where(OrphanPaymentModel.linked_at.is_(None))
        if order_id is not None:
            stmt = stmt.where(OrphanPaymentModel.order_id == order_id)
        if adoptable_only:
            stmt = stmt.where(
                or_(
                    exists().where(OrderModel.id == OrphanPaymentModel.order_id),
                    exists().where(OrderModel.intent_id == OrphanPaymentModel.intent_id),
                )
            )
        stmt = stmt.order_by(OrphanPaymentModel.created_at).limit(limit)
        result = await self.session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def mark_linked(self, intent_id: str, linked_at: datetime) -> None:
        await self.session.execute(
            update(OrphanPaymentModel)
            .where(OrphanPaymentModel.intent_id == intent_id)
            .values({OrphanPaymentModel.linked_at: linked_at})
            .execution_options(synchronize_session=False)
        )


class SQLAlchemyEventLedgerRepository(EventLedgerRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: ProcessedEventModel) -> ProcessedEvent:
        return ProcessedEvent(
            event_id=model.event_id,
            event_type=model.event_type,
            status=EventStatus(model.status),
            payload=model.payload or {},
            error=model.error,
            attempts=model.attempts or 0,
            received_at=model.received_at,
            processed_at=model.processed_at,
        )

    async def get(self, event_id: str) -> Optional[ProcessedEvent]:
        model = await self.session.get(ProcessedEventModel, event_id, populate_existing=True)
        return self._to_entity(model) if model else None

    async def try_insert(self, event: ProcessedEvent) -> bool:
        self.session.add(
            ProcessedEventModel(
                event_id=event.event_id,
                event_type=event.event_type,
                status=event.status.value,
                payload=event.payload,
                attempts=0,
                received_at=event.received_at,
            )
        )
        try:
            await self.session.flush()
        except IntegrityError:
            await self.session.rollback()
            logger.info("event_ledger_conflict", event_id=event.event_id)
            return False
        return True

    async def mark(
        self,
        event_id: str,
        status: EventStatus,
        *,
        at: datetime,
        error: Optional[str] = None,
    ) -> None:
        await self.session.execute(
            update(ProcessedEventModel)
            .where(ProcessedEventModel.event_id == event_id)
            .values(
                {
                    ProcessedEventModel.status: status.value,
                    ProcessedEventModel.processed_at: at,
                    ProcessedEventModel.error: error,
                    ProcessedEventModel.attempts: ProcessedEventModel.attempts + 1,
                }
            )
            .execution_options(synchronize_session=False)
        )

    async def purge_processed_before(self, cutoff: datetime) -> int:
        result = await self.session.execute(
            delete(ProcessedEventModel)
            .where(
                ProcessedEventModel.status == EventStatus.PROCESSED.value,
                ProcessedEventModel.received_at < cutoff,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
