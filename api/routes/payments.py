"""
Payments API routes: charge attempts and server-side confirmation.

Keep this thin: no SDK details here.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Header
from typing import Optional

from api.dependencies import get_charge_service, get_intent_service
from application.dtos.payments import ChargeResult, ConfirmCharge, CreateIntent, IntentResult
from application.services.payment_service import ChargeConfirmationService, IntentService


router = APIRouter(tags=["Payments"])


@router.post("/intents", response_model=IntentResult)
async def create_intent(
    req: CreateIntent,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    service: IntentService = Depends(get_intent_service),
) -> IntentResult:
    if idempotency_key and not req.idempotency_key:
        req.idempotency_key = idempotency_key
    return await service.create_intent(req)


@router.post("/charges/confirm", response_model=ChargeResult)
async def confirm_charge(
    req: ConfirmCharge,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    service: ChargeConfirmationService = Depends(get_charge_service),
) -> ChargeResult:
    if idempotency_key and not req.idempotency_key:
        req.idempotency_key = idempotency_key
    return await service.confirm(req)
