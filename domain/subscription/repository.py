"""
Subscription repository interface
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Subscription


class SubscriptionRepository(ABC):

    @abstractmethod
    async def add(self, subscription: Subscription) -> Subscription:
        """Insert a new subscription. A duplicate id raises ConcurrentUpdateException."""

    @abstractmethod
    async def get_by_id(self, subscription_id: str) -> Optional[Subscription]:
        pass

    @abstractmethod
    async def save(self, subscription: Subscription, expected_version: int) -> Subscription:
        pass
