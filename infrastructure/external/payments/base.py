"""
Base payment client implementing shared concerns: blocking-call offload,
timeouts, bounded retry, logging and status mapping.

Concrete providers subclass it, implement the PaymentGateway methods and
translate their SDK exceptions in `_translate_error`.
"""
from __future__ import annotations

import functools
from typing import Any, Callable, Optional

import anyio
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from core.logging_config import get_logger
from infrastructure.external.payments.exceptions import (
    PaymentGatewayError,
    PaymentProviderError,
    PaymentRecoverableError,
)
from shared.codes.payment_codes import PROVIDER_STATUS_TO_INTERNAL, PaymentCode


logger = get_logger(__name__)


class BasePaymentClient:
    provider: str = "base"

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        retry: Optional[dict[str, Any]] = None,
    ) -> None:
        self._timeout = float(timeout)
        self._retry_cfg = retry or {"max": 2, "base": 0.2, "max_backoff": 2.0}

    async def _retry(self, fn: Callable[[], Any]):
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(int(self._retry_cfg["max"]) + 1),
            wait=wait_exponential(
                multiplier=self._retry_cfg["base"],
                min=0.1,
                max=self._retry_cfg.get("max_backoff", 2.0),
            ),
            retry=retry_if_exception_type(PaymentRecoverableError),
            reraise=True,
        ):
            with attempt:
                return await fn()

    async def _call(self, operation: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """Run one blocking SDK call off the event loop, with timeout and retry."""
        call = functools.partial(fn, *args, **kwargs)

        async def once():
            try:
                with anyio.fail_after(self._timeout):
                    return await anyio.to_thread.run_sync(call, abandon_on_cancel=True)
            except TimeoutError as exc:
                self._log("payment_call_timeout", operation=operation, timeout=self._timeout)
                raise PaymentRecoverableError(
                    f"{operation} timed out after {self._timeout}s",
                    provider=self.provider,
                    code=PaymentCode.TIMEOUT,
                ) from exc
            except PaymentGatewayError:
                raise
            except Exception as exc:
                translated = self._translate_error(exc)
                if translated is None:
                    raise
                self._log(
                    "payment_call_failed",
                    operation=operation,
                    error_type=translated.error_type,
                    provider_code=translated.provider_code,
                    error=translated.message,
                )
                raise translated from exc

        return await self._retry(once)

    def _translate_error(self, exc: Exception) -> Optional[PaymentGatewayError]:
        """Map an SDK exception; None lets it propagate unchanged."""
        return PaymentProviderError(str(exc), provider=self.provider)

    # Helpers
    def _map_status(self, provider_status: str) -> str:
        mapping = PROVIDER_STATUS_TO_INTERNAL.get(self.provider, {})
        return mapping.get(provider_status, provider_status)

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )
