"""
Subscription aggregate - local mirror of a processor subscription.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, TYPE_CHECKING

from domain.common.clock import ensure_utc
from domain.order.entity import TransitionResult

if TYPE_CHECKING:
    from domain.payment.events import SubscriptionSnapshot


class SubscriptionStatus(str, Enum):
    INCOMPLETE = "incomplete"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


@dataclass
class Subscription:
    """
    Subscription aggregate.

    Rules:
    1. canceled is terminal; later snapshots are ignored.
    2. A snapshot from an event older than last_event_at is stale and ignored.
    """

    id: str
    customer_id: Optional[str]
    status: SubscriptionStatus
    price_id: Optional[str] = None
    product_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    canceled_at: Optional[datetime] = None
    metadata: dict = field(default_factory=dict)
    last_event_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0

    def __post_init__(self):
        self.status = SubscriptionStatus(self.status)
        self.metadata = dict(self.metadata or {})
        for name in (
            "current_period_start",
            "current_period_end",
            "canceled_at",
            "last_event_at",
            "created_at",
            "updated_at",
        ):
            setattr(self, name, ensure_utc(getattr(self, name)))

    @classmethod
    def from_snapshot(
        cls,
        snapshot: "SubscriptionSnapshot",
        *,
        now: datetime,
        event_at: Optional[datetime] = None,
    ) -> "Subscription":
        return cls(
            id=snapshot.subscription_id,
            customer_id=snapshot.customer_id,
            status=snapshot.status,
            price_id=snapshot.price_id,
            product_id=snapshot.product_id,
            current_period_start=snapshot.current_period_start,
            current_period_end=snapshot.current_period_end,
            cancel_at_period_end=snapshot.cancel_at_period_end,
            canceled_at=snapshot.canceled_at
            or (now if snapshot.status == SubscriptionStatus.CANCELED else None),
            metadata=snapshot.metadata,
            last_event_at=event_at,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_canceled(self) -> bool:
        return self.status == SubscriptionStatus.CANCELED

    def _is_stale(self, event_at: Optional[datetime]) -> bool:
        event_at = ensure_utc(event_at)
        return bool(event_at and self.last_event_at and event_at < self.last_event_at)

    def apply_snapshot(
        self,
        snapshot: "SubscriptionSnapshot",
        *,
        now: datetime,
        event_at: Optional[datetime] = None,
    ) -> TransitionResult:
        if self.is_canceled:
            return TransitionResult.NOOP if snapshot.status == SubscriptionStatus.CANCELED else TransitionResult.REJECTED
        if self._is_stale(event_at):
            return TransitionResult.REJECTED
        if snapshot.status == SubscriptionStatus.CANCELED:
            return self.mark_canceled(now=now, event_at=event_at, canceled_at=snapshot.canceled_at)

        self.status = snapshot.status
        self.customer_id = snapshot.customer_id or self.customer_id
        self.price_id = snapshot.price_id or self.price_id
        self.product_id = snapshot.product_id or self.product_id
        self.current_period_start = ensure_utc(snapshot.current_period_start) or self.current_period_start
        self.current_period_end = ensure_utc(snapshot.current_period_end) or self.current_period_end
        self.cancel_at_period_end = snapshot.cancel_at_period_end
        if snapshot.metadata:
            self.metadata = dict(snapshot.metadata)
        self._touch(now, event_at)
        return TransitionResult.APPLIED

    def mark_canceled(
        self,
        *,
        now: datetime,
        event_at: Optional[datetime] = None,
        canceled_at: Optional[datetime] = None,
    ) -> TransitionResult:
        if self.is_canceled:
            return TransitionResult.NOOP
        self.status = SubscriptionStatus.CANCELED
        self.canceled_at = ensure_utc(canceled_at) or now
        self._touch(now, event_at)
        return TransitionResult.APPLIED

    def _touch(self, now: datetime, event_at: Optional[datetime]) -> None:
        event_at = ensure_utc(event_at)
        if event_at and (self.last_event_at is None or event_at > self.last_event_at):
            self.last_event_at = event_at
        self.updated_at = now
