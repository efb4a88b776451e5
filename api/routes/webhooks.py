"""
Processor webhook intake.

The body is read raw: the signature covers the exact bytes received.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from api.dependencies import get_webhook_service
from application.dtos.payments import ReplayResult, WebhookAck
from application.services.webhook_service import WebhookService
from core.logging_config import get_logger
from infrastructure.external.payments.exceptions import PaymentSignatureError


router = APIRouter(tags=["Webhooks"])
logger = get_logger(__name__)


@router.post("/webhooks/payments", response_model=WebhookAck)
async def payments_webhook(
    request: Request,
    service: WebhookService = Depends(get_webhook_service),
):
    raw_body = await request.body()
    signature = request.headers.get("stripe-signature")
    try:
        await service.receive(raw_body, signature)
    except PaymentSignatureError as exc:
        logger.error(
            "webhook_signature_invalid",
            provider=exc.provider,
            error=exc.message,
            has_signature=bool(signature),
            client=request.client.host if request.client else None,
        )
        return PlainTextResponse(f"Webhook Error: {exc.message}", status_code=400)
    return WebhookAck(received=True)


@router.post("/webhooks/payments/{event_id}/replay", response_model=ReplayResult)
async def replay_webhook(
    event_id: str,
    service: WebhookService = Depends(get_webhook_service),
) -> ReplayResult:
    return await service.replay(event_id)
