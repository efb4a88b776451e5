"""Infrastructure models package exports."""
from .base import Base, metadata
from .order import OrderModel
from .customer import CustomerModel
from .subscription import SubscriptionModel
from .payment import (
    PaymentRecordModel,
    OrphanPaymentModel,
    ProcessedEventModel,
)

__all__ = [
    "Base",
    "metadata",
    "OrderModel",
    "CustomerModel",
    "SubscriptionModel",
    "PaymentRecordModel",
    "OrphanPaymentModel",
    "ProcessedEventModel",
]
