"""
Customer routes
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from api.dependencies import get_customer_service
from application.dtos.payments import (
    CustomerResult,
    PaymentMethodList,
    SavePaymentMethod,
    UpsertCustomer,
)
from application.services.customer_service import CustomerService


router = APIRouter(prefix="/customers", tags=["Customers"])


@router.post("", response_model=CustomerResult)
async def upsert_customer(
    req: UpsertCustomer,
    service: CustomerService = Depends(get_customer_service),
) -> CustomerResult:
    return await service.upsert(req)


@router.post("/payment-methods", response_model=CustomerResult)
async def save_payment_method(
    req: SavePaymentMethod,
    service: CustomerService = Depends(get_customer_service),
) -> CustomerResult:
    return await service.save_payment_method(req)


@router.get("/{customer_id}/payment-methods", response_model=PaymentMethodList)
async def list_payment_methods(
    customer_id: str,
    service: CustomerService = Depends(get_customer_service),
) -> PaymentMethodList:
    return await service.list_payment_methods(customer_id)
