"""
Order repository implementation (SQLAlchemy)
"""
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.exceptions import ConcurrentUpdateException
from domain.order.entity import Order, OrderStatus, PaymentStatus
from domain.order.repository import OrderRepository
from infrastructure.models.order import OrderModel


logger = get_logger(__name__)


class SQLAlchemyOrderRepository(OrderRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: OrderModel) -> Order:
        return Order(
            id=model.id,
            amount=model.amount,
            currency=model.currency,
            customer_id=model.customer_id,
            email=model.email,
            payment_status=PaymentStatus(model.payment_status),
            order_status=OrderStatus(model.order_status),
            intent_id=model.intent_id,
            payment_method_id=model.payment_method_id,
            failure_reason=model.failure_reason,
            metadata=model.extra_metadata or {},
            created_at=model.created_at,
            updated_at=model.updated_at,
            paid_at=model.paid_at,
            version=model.version,
        )

    def _values(self, entity: Order) -> dict:
        return dict(
            amount=entity.amount,
            currency=entity.currency,
            customer_id=entity.customer_id,
            email=entity.email,
            payment_status=entity.payment_status.value,
            order_status=entity.order_status.value,
            intent_id=entity.intent_id,
            payment_method_id=entity.payment_method_id,
            failure_reason=entity.failure_reason,
            extra_metadata=entity.metadata,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            paid_at=entity.paid_at,
        )

    def _columns(self, entity, version: int) -> dict:
        values = {getattr(OrderModel, key): value for key, value in self._values(entity).items()}
        values[OrderModel.version] = version
        return values

    async def add(self, order: Order) -> Order:
        self.session.add(OrderModel(id=order.id, version=0, **self._values(order)))
        try:
            await self.session.flush()
        except IntegrityError:
            logger.info("order_create_conflict", order_id=order.id)
            raise ConcurrentUpdateException("Order", order.id, 0)
        order.version = 0
        return order

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        result = await self.session.execute(
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def get_by_intent_id(self, intent_id: str) -> Optional[Order]:
        result = await self.session.execute(
            select(OrderModel)
            .where(OrderModel.intent_id == intent_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalars().first()
        return self._to_entity(model) if model else None

    async def save(self, order: Order, expected_version: int) -> Order:
        result = await self.session.execute(
            update(OrderModel)
            .where(OrderModel.id == order.id, OrderModel.version == expected_version)
            .values(self._columns(order, expected_version + 1))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrentUpdateException("Order", order.id, expected_version)
        order.version = expected_version + 1
        return order
