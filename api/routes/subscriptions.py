"""
Subscription routes
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from api.dependencies import get_subscription_service
from application.dtos.payments import CancelSubscription, CreateSubscription, SubscriptionResult
from application.services.subscription_service import SubscriptionService


router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])


@router.post("", response_model=SubscriptionResult)
async def create_subscription(
    req: CreateSubscription,
    service: SubscriptionService = Depends(get_subscription_service),
) -> SubscriptionResult:
    return await service.create(req)


@router.post("/cancel", response_model=SubscriptionResult, response_model_exclude_none=True)
async def cancel_subscription(
    req: CancelSubscription,
    service: SubscriptionService = Depends(get_subscription_service),
) -> SubscriptionResult:
    return await service.cancel(req)
