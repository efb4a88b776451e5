"""
Processor failures mapped onto BusinessException so the API layer can
translate them like any other business error.

- PaymentProviderError: the processor refused the request (decline, invalid
  parameters, auth). Never retried.
- PaymentRecoverableError: transport failure, timeout or rate limit. Retried
  with the same idempotency key; surfaced only once retries are exhausted.
- PaymentSignatureError: an inbound notification failed verification.
"""
from __future__ import annotations

from typing import Optional

from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class PaymentGatewayError(BusinessException):
    error_type = "PaymentGatewayError"
    default_code = PaymentCode.PROVIDER_ERROR

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        provider_code: Optional[str] = None,
        code: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        self.provider = provider
        self.provider_code = provider_code
        merged = {"provider": provider}
        if provider_code:
            merged["provider_code"] = provider_code
        merged.update(details or {})
        super().__init__(
            code=code or self.default_code,
            message=message,
            error_type=self.error_type,
            details=merged,
        )


class PaymentProviderError(PaymentGatewayError):
    error_type = "ProcessorError"
    default_code = PaymentCode.PROVIDER_ERROR


class PaymentRecoverableError(PaymentGatewayError):
    error_type = "TransientError"
    default_code = PaymentCode.PROVIDER_RECOVERABLE


class PaymentSignatureError(PaymentGatewayError):
    error_type = "SignatureError"
    default_code = PaymentCode.SIGNATURE_ERROR
