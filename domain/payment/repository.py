"""
Payment ledger repository interfaces
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from .entity import EventStatus, OrphanPayment, PaymentRecord, ProcessedEvent


class PaymentRecordRepository(ABC):

    @abstractmethod
    async def add(self, record: PaymentRecord) -> PaymentRecord:
        """Insert a record. A duplicate (intent_id, status) raises ConcurrentUpdateException."""

    @abstractmethod
    async def list_by_order(self, order_id: str) -> List[PaymentRecord]:
        pass


class OrphanPaymentRepository(ABC):

    @abstractmethod
    async def get(self, intent_id: str) -> Optional[OrphanPayment]:
        pass

    @abstractmethod
    async def add(self, orphan: OrphanPayment) -> OrphanPayment:
        """Insert an orphan. A duplicate intent_id raises ConcurrentUpdateException."""

    @abstractmethod
    async def list_unlinked(
        self,
        *,
        order_id: Optional[str] = None,
        limit: int = 100,
        adoptable_only: bool = False,
    ) -> List[OrphanPayment]:
        """Oldest first. `adoptable_only` keeps orphans whose order now exists."""

    @abstractmethod
    async def mark_linked(self, intent_id: str, linked_at: datetime) -> None:
        pass


class EventLedgerRepository(ABC):
    """Processed-event ledger keyed by processor event id"""

    @abstractmethod
    async def get(self, event_id: str) -> Optional[ProcessedEvent]:
        pass

    @abstractmethod
    async def try_insert(self, event: ProcessedEvent) -> bool:
        """
        Insert the ledger row. Returns False when the event id already exists
        (including losing a concurrent insert race).
        """

    @abstractmethod
    async def mark(
        self,
        event_id: str,
        status: EventStatus,
        *,
        at: datetime,
        error: Optional[str] = None,
    ) -> None:
        pass

    @abstractmethod
    async def purge_processed_before(self, cutoff: datetime) -> int:
        """Delete processed rows received before `cutoff`. Returns the number deleted."""
