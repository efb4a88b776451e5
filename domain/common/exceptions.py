"""Domain business exceptions, shared by domain and infrastructure.

The core layer only maps them to HTTP; the domain never imports core.
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """Base business exception"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    """Missing or malformed input. Never retried."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
        missing: bool = False,
    ):
        super().__init__(
            code=BusinessCode.PARAM_MISSING if missing else BusinessCode.PARAM_ERROR,
            message=message,
            error_type="ValidationError",
            details=details,
            field=field,
        )


class OrderNotFoundException(BusinessException):
    def __init__(self, order_id: Optional[str] = None):
        super().__init__(
            code=BusinessCode.ORDER_NOT_FOUND,
            message="Order not found",
            error_type="OrderNotFound",
            details={"order_id": order_id} if order_id else None,
        )


class CustomerNotFoundException(BusinessException):
    def __init__(self, customer_id: Optional[str] = None):
        super().__init__(
            code=BusinessCode.CUSTOMER_NOT_FOUND,
            message="Customer not found",
            error_type="CustomerNotFound",
            details={"customer_id": customer_id} if customer_id else None,
        )


class EventNotFoundException(BusinessException):
    def __init__(self, event_id: str):
        super().__init__(
            code=BusinessCode.EVENT_NOT_FOUND,
            message="Event not found",
            error_type="EventNotFound",
            details={"event_id": event_id},
        )


class OrderStateConflictException(BusinessException):
    """A requested order transition is not allowed from the current state."""

    def __init__(self, order_id: str, message: str):
        super().__init__(
            code=BusinessCode.ORDER_STATE_CONFLICT,
            message=message,
            error_type="OrderStateConflict",
            details={"order_id": order_id},
        )


class ConcurrentUpdateException(BusinessException):
    """A conditional write lost the race: the row moved past the expected version."""

    def __init__(self, entity: str, key: str, expected_version: int):
        super().__init__(
            code=BusinessCode.CONCURRENT_UPDATE,
            message=f"{entity} {key} was modified concurrently",
            error_type="ConcurrentUpdate",
            details={"entity": entity, "key": key, "expected_version": expected_version},
        )
