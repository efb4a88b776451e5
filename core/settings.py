"""
Payment-related settings using pydantic-settings v2 with nested env keys.

Kept apart from core.config.Settings so the processor adapter and the
reconciliation services can be configured without touching app settings.
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class PaymentTimeouts(BaseModel):
    # Upper bound for a single processor call (seconds)
    total: float = 10.0


class PaymentRetry(BaseModel):
    max: int = 2
    base_backoff: float = 0.2
    max_backoff: float = 2.0


class WebhookSettings(BaseModel):
    tolerance_seconds: int = 300
    ledger_retention_days: int = 30


class ReconciliationSettings(BaseModel):
    # Attempts for a guarded (compare-and-set) write before giving up
    cas_max_attempts: int = 5
    orphan_sweep_batch: int = 100


class StripeSettings(BaseModel):
    secret_key: Optional[str] = None
    webhook_secret: Optional[str] = None
    api_version: str = "2023-10-16"


class PaymentSettings(BaseSettings):
    default_currency: str = Field(default="usd")
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    reconciliation: ReconciliationSettings = Field(default_factory=ReconciliationSettings)

    stripe: StripeSettings = Field(default_factory=StripeSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
