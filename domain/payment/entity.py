"""
Payment ledger entities - charge records, orphaned charges and the processed-event ledger
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from domain.common.clock import ensure_utc


class PaymentRecordStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class EventStatus(str, Enum):
    """Ledger row lifecycle"""
    RECEIVED = "received"      # inserted, handler not finished
    PROCESSED = "processed"    # handler finished (including no-op outcomes)
    FAILED = "failed"          # handler raised; eligible for replay


@dataclass
class PaymentRecord:
    """
    One applied charge outcome for an order.

    (intent_id, status) is unique so the history never holds the same
    outcome twice, however often the processor redelivers it.
    """

    id: Optional[int]
    order_id: str
    intent_id: str
    status: PaymentRecordStatus
    amount: int
    currency: str
    payment_method_id: Optional[str] = None
    failure_reason: Optional[str] = None
    event_id: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        self.currency = (self.currency or "").lower()
        self.created_at = ensure_utc(self.created_at)


@dataclass
class OrphanPayment:
    """A succeeded charge whose order did not exist when the event arrived."""

    intent_id: str
    amount: int
    currency: str
    order_id: Optional[str] = None
    customer_id: Optional[str] = None
    payment_method_id: Optional[str] = None
    event_id: Optional[str] = None
    metadata: dict = field(default_factory=dict)
    created_at: Optional[datetime] = None
    linked_at: Optional[datetime] = None

    def __post_init__(self):
        self.currency = (self.currency or "").lower()
        self.metadata = dict(self.metadata or {})
        self.created_at = ensure_utc(self.created_at)
        self.linked_at = ensure_utc(self.linked_at)

    @property
    def is_linked(self) -> bool:
        return self.linked_at is not None


@dataclass
class ProcessedEvent:
    """
    Ledger entry for one processor event id.

    The row is written before any handler runs; its existence alone marks the
    event as seen. `payload` keeps the verified body so a failed event can be replayed.
    """

    event_id: str
    event_type: str
    status: EventStatus = EventStatus.RECEIVED
    payload: dict = field(default_factory=dict)
    error: Optional[str] = None
    attempts: int = 0
    received_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    def __post_init__(self):
        self.received_at = ensure_utc(self.received_at)
        self.processed_at = ensure_utc(self.processed_at)
