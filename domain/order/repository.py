"""
Order repository interface
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Order


class OrderRepository(ABC):

    @abstractmethod
    async def add(self, order: Order) -> Order:
        """Insert a new order (version 0). Raises ConcurrentUpdateException if the id exists."""

    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def get_by_intent_id(self, intent_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def save(self, order: Order, expected_version: int) -> Order:
        """
        Conditional write: persist only if the stored version still equals
        `expected_version`, bumping it by one. Raises ConcurrentUpdateException otherwise.
        """
