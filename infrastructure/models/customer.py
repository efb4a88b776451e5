"""
Customer ORM model
"""
from sqlalchemy import Column, DateTime, Integer, JSON, String

from .base import Base, utcnow


class CustomerModel(Base):
    __tablename__ = "customers"

    email = Column(String(255), primary_key=True, comment="Lowercased email")
    name = Column(String(255), nullable=False)
    billing_id = Column(String(100), nullable=True, unique=True, index=True, comment="Processor customer ID")

    payment_method_ids = Column(JSON, nullable=False, default=list)
    subscription_ids = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    version = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<CustomerModel(email={self.email}, billing_id={self.billing_id})>"
