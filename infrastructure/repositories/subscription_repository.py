"""
Subscription repository implementation (SQLAlchemy)
"""
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.exceptions import ConcurrentUpdateException
from domain.subscription.entity import Subscription, SubscriptionStatus
from domain.subscription.repository import SubscriptionRepository
from infrastructure.models.subscription import SubscriptionModel


class SQLAlchemySubscriptionRepository(SubscriptionRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: SubscriptionModel) -> Subscription:
        return Subscription(
            id=model.id,
            customer_id=model.customer_id,
            status=SubscriptionStatus(model.status),
            price_id=model.price_id,
            product_id=model.product_id,
            current_period_start=model.current_period_start,
            current_period_end=model.current_period_end,
            cancel_at_period_end=bool(model.cancel_at_period_end),
            canceled_at=model.canceled_at,
            metadata=model.extra_metadata or {},
            last_event_at=model.last_event_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
            version=model.version,
        )

    def _values(self, entity: Subscription) -> dict:
        return dict(
            customer_id=entity.customer_id,
            status=entity.status.value,
            price_id=entity.price_id,
            product_id=entity.product_id,
            current_period_start=entity.current_period_start,
            current_period_end=entity.current_period_end,
            cancel_at_period_end=entity.cancel_at_period_end,
            canceled_at=entity.canceled_at,
            extra_metadata=entity.metadata,
            last_event_at=entity.last_event_at,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    def _columns(self, entity, version: int) -> dict:
        values = {getattr(SubscriptionModel, key): value for key, value in self._values(entity).items()}
        values[SubscriptionModel.version] = version
        return values

    async def add(self, subscription: Subscription) -> Subscription:
        self.session.add(SubscriptionModel(id=subscription.id, version=0, **self._values(subscription)))
        try:
            await self.session.flush()
        except IntegrityError:
            raise ConcurrentUpdateException("Subscription", subscription.id, 0)
        subscription.version = 0
        return subscription

    async def get_by_id(self, subscription_id: str) -> Optional[Subscription]:
        result = await self.session.execute(
            select(SubscriptionModel)
            .where(SubscriptionModel.id == subscription_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def save(self, subscription: Subscription, expected_version: int) -> Subscription:
        result = await self.session.execute(
            update(SubscriptionModel)
            .where(SubscriptionModel.id == subscription.id, SubscriptionModel.version == expected_version)
            .values(self._columns(subscription, expected_version + 1))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrentUpdateException("Subscription", subscription.id, expected_version)
        subscription.version = expected_version + 1
        return subscription
