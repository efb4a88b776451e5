"""
Subscription ORM model
"""
from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String

from .base import Base, utcnow


class SubscriptionModel(Base):
    __tablename__ = "subscriptions"

    id = Column(String(100), primary_key=True, comment="Processor subscription ID")
    customer_id = Column(String(100), nullable=True, index=True, comment="Processor customer ID")
    status = Column(String(20), nullable=False, index=True, comment="incomplete/active/past_due/canceled")
    price_id = Column(String(100), nullable=True)
    product_id = Column(String(100), nullable=True)

    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    canceled_at = Column(DateTime(timezone=True), nullable=True)

    extra_metadata = Column("metadata", JSON, nullable=True)

    # Creation time of the newest processor event applied
    last_event_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    version = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<SubscriptionModel(id={self.id}, status={self.status})>"
