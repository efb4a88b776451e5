"""
Payment ledger ORM models
Note: infrastructure detail; see domain.payment.entity
"""
from sqlalchemy import Column, DateTime, Index, Integer, JSON, String, Text, UniqueConstraint

from .base import Base, utcnow


class PaymentRecordModel(Base):
    """Applied charge outcomes, one row per (intent, status)."""
    __tablename__ = "payment_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(100), nullable=False, index=True)
    intent_id = Column(String(200), nullable=False)
    status = Column(String(20), nullable=False, comment="succeeded/failed")
    amount = Column(Integer, nullable=False, comment="Minor units")
    currency = Column(String(3), nullable=False)
    payment_method_id = Column(String(200), nullable=True)
    failure_reason = Column(Text, nullable=True)
    event_id = Column(String(200), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("intent_id", "status", name="uq_payment_records_intent_status"),
    )


class OrphanPaymentModel(Base):
    """Succeeded charges that arrived before their order existed."""
    __tablename__ = "orphan_payments"

    intent_id = Column(String(200), primary_key=True)
    order_id = Column(String(100), nullable=True, index=True)
    amount = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    customer_id = Column(String(100), nullable=True)
    payment_method_id = Column(String(200), nullable=True)
    event_id = Column(String(200), nullable=True)
    extra_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    linked_at = Column(DateTime(timezone=True), nullable=True, index=True)


class ProcessedEventModel(Base):
    """Processor event ledger; the primary key is the de-duplication gate."""
    __tablename__ = "processed_events"

    event_id = Column(String(200), primary_key=True)
    event_type = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, default="received", comment="received/processed/failed")
    payload = Column(JSON, nullable=True, comment="Verified event body, kept for replay")
    error = Column(Text, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    received_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_processed_events_status_received", "status", "received_at"),
    )
