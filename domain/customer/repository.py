"""
Customer repository interface
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Customer


class CustomerRepository(ABC):

    @abstractmethod
    async def add(self, customer: Customer) -> Customer:
        """Insert a new customer. A duplicate email raises ConcurrentUpdateException."""

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[Customer]:
        pass

    @abstractmethod
    async def get_by_billing_id(self, billing_id: str) -> Optional[Customer]:
        pass

    @abstractmethod
    async def save(self, customer: Customer, expected_version: int) -> Customer:
        """Conditional write guarded by `version`, see OrderRepository.save."""
