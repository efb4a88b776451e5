"""
Customer repository implementation (SQLAlchemy)
"""
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.exceptions import ConcurrentUpdateException
from domain.customer.entity import Customer
from domain.customer.repository import CustomerRepository
from infrastructure.models.customer import CustomerModel


class SQLAlchemyCustomerRepository(CustomerRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: CustomerModel) -> Customer:
        return Customer(
            email=model.email,
            name=model.name,
            billing_id=model.billing_id,
            payment_method_ids=list(model.payment_method_ids or []),
            subscription_ids=list(model.subscription_ids or []),
            created_at=model.created_at,
            updated_at=model.updated_at,
            version=model.version,
        )

    def _values(self, entity: Customer) -> dict:
        return dict(
            name=entity.name,
            billing_id=entity.billing_id,
            payment_method_ids=list(entity.payment_method_ids),
            subscription_ids=list(entity.subscription_ids),
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    def _columns(self, entity, version: int) -> dict:
        values = {getattr(CustomerModel, key): value for key, value in self._values(entity).items()}
        values[CustomerModel.version] = version
        return values

    async def add(self, customer: Customer) -> Customer:
        self.session.add(CustomerModel(email=customer.email, version=0, **self._values(customer)))
        try:
            await self.session.flush()
        except IntegrityError:
            raise ConcurrentUpdateException("Customer", customer.email, 0)
        customer.version = 0
        return customer

    async def _one(self, stmt) -> Optional[Customer]:
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def get_by_email(self, email: str) -> Optional[Customer]:
        return await self._one(select(CustomerModel).where(CustomerModel.email == email.strip().lower()))

    async def get_by_billing_id(self, billing_id: str) -> Optional[Customer]:
        return await self._one(select(CustomerModel).where(CustomerModel.billing_id == billing_id))

    async def save(self, customer: Customer, expected_version: int) -> Customer:
        result = await self.session.execute(
            update(CustomerModel)
            .where(CustomerModel.email == customer.email, CustomerModel.version == expected_version)
            .values(self._columns(customer, expected_version + 1))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrentUpdateException("Customer", customer.email, expected_version)
        customer.version = expected_version + 1
        return customer
