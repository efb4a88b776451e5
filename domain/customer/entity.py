"""
Customer aggregate - links a storefront email to its processor customer.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from domain.common.clock import ensure_utc
from domain.common.exceptions import DomainValidationException


@dataclass
class Customer:
    """
    Customer aggregate, unique by email.

    payment_method_ids and subscription_ids behave as sets: adding an id
    already present, or removing one that is absent, changes nothing.
    """

    email: str
    name: str
    billing_id: Optional[str] = None
    payment_method_ids: List[str] = field(default_factory=list)
    subscription_ids: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0

    def __post_init__(self):
        if not self.email:
            raise DomainValidationException("Email is required", field="email", missing=True)
        self.email = self.email.strip().lower()
        self.payment_method_ids = list(dict.fromkeys(self.payment_method_ids or []))
        self.subscription_ids = list(dict.fromkeys(self.subscription_ids or []))
        self.created_at = ensure_utc(self.created_at)
        self.updated_at = ensure_utc(self.updated_at)

    def rename(self, name: str, at: datetime) -> bool:
        if not name or name == self.name:
            return False
        self.name = name
        self.updated_at = at
        return True

    def link_billing(self, billing_id: str, at: datetime) -> bool:
        if self.billing_id == billing_id:
            return False
        self.billing_id = billing_id
        self.updated_at = at
        return True

    def add_payment_method(self, payment_method_id: str, at: datetime) -> bool:
        if payment_method_id in self.payment_method_ids:
            return False
        self.payment_method_ids.append(payment_method_id)
        self.updated_at = at
        return True

    def add_subscription(self, subscription_id: str, at: datetime) -> bool:
        if subscription_id in self.subscription_ids:
            return False
        self.subscription_ids.append(subscription_id)
        self.updated_at = at
        return True

    def remove_subscription(self, subscription_id: str, at: datetime) -> bool:
        if subscription_id not in self.subscription_ids:
            return False
        self.subscription_ids.remove(subscription_id)
        self.updated_at = at
        return True
