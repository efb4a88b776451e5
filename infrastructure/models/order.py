"""
Order ORM model
Note: infrastructure detail; business rules live in domain.order.entity.Order
"""
from sqlalchemy import Column, DateTime, Index, Integer, JSON, String, Text

from .base import Base, utcnow


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(String(100), primary_key=True, comment="Order ID (caller supplied)")
    customer_id = Column(String(100), nullable=True, index=True, comment="Processor customer ID")
    email = Column(String(255), nullable=True, comment="Receipt email")

    # Minor units
    amount = Column(Integer, nullable=False, comment="Amount in minor units")
    currency = Column(String(3), nullable=False, default="usd", comment="ISO-4217, lowercase")

    payment_status = Column(
        String(20),
        nullable=False,
        default="pending",
        index=True,
        comment="pending/paid/failed/refunded",
    )
    order_status = Column(
        String(20),
        nullable=False,
        default="pending",
        comment="pending/confirmed/payment_failed/cancelled",
    )

    intent_id = Column(String(200), nullable=True, index=True, comment="Current charge attempt")
    payment_method_id = Column(String(200), nullable=True)
    failure_reason = Column(Text, nullable=True)

    extra_metadata = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    # Compare-and-set guard
    version = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("ix_orders_status", "payment_status", "order_status"),
    )

    def __repr__(self):
        return f"<OrderModel(id={self.id}, payment_status={self.payment_status}, version={self.version})>"
