"""
Order routes
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from api.dependencies import get_order_service
from application.dtos.payments import CreateOrder, OrderView
from application.services.order_service import OrderService


router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("", response_model=OrderView)
async def create_order(
    req: CreateOrder,
    service: OrderService = Depends(get_order_service),
) -> OrderView:
    return await service.create(req)


@router.get("/{order_id}", response_model=OrderView)
async def get_order(
    order_id: str,
    service: OrderService = Depends(get_order_service),
) -> OrderView:
    return await service.get(order_id)


@router.post("/{order_id}/cancel", response_model=OrderView)
async def cancel_order(
    order_id: str,
    service: OrderService = Depends(get_order_service),
) -> OrderView:
    return await service.cancel(order_id)
