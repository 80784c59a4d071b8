"""Resilient Anthropic Client: wraps AsyncAnthropic with retry, backoff, and error mapping.

Invariants:
    - Rate limits (429): exponential backoff with jitter, respects Retry-After header
    - Transient errors (5xx, 529, connection): max N retries with exponential backoff
    - Client errors (4xx except 429): immediate failure, no retry
    - All failures mapped to ExternalServiceError (core/errors.py)

Design Decisions:
    - Wrapper over raw client: isolates retry logic from the question/judge adapters
    - ±25% jitter on backoff: prevents thundering herd when a whole room rates at once
    - stream_text has no retry: a half-streamed question cannot be resumed
"""

import asyncio
import logging
import random
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import anthropic
from anthropic import (
    APIError,
    APIConnectionError,
    APIStatusError,
    RateLimitError,
    APITimeoutError,
    InternalServerError,
)

from mindmeld.core.errors import ExternalServiceError, ErrorContext

logger = logging.getLogger(__name__)

# 529 Overloaded is not re-exported by the SDK; detect via status code.
_OVERLOADED_STATUS = 529


def _is_overloaded(e: APIError) -> bool:
    """Check if error is Anthropic 529 Overloaded."""
    return isinstance(e, APIStatusError) and e.status_code == _OVERLOADED_STATUS


class ResilientAnthropicClient:
    """Wraps Anthropic client with retry logic, timeouts, and error mapping."""

    def __init__(
        self,
        api_key: str,
        max_retries: int = 3,
        base_delay_ms: int = 500,
        max_delay_ms: int = 10_000,
        timeout_seconds: int = 60,
    ):
        self.client = anthropic.AsyncAnthropic(
            api_key=api_key,
            timeout=timeout_seconds,
            max_retries=0,
        )
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    async def create_message(
        self,
        *,
        model: str,
        max_tokens: int,
        system: str,
        messages: list,
        temperature: float = 1.0,
        context: ErrorContext | None = None,
    ):
        """Create message with automatic retry on transient failures."""
        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.messages.create(
                    model=model,
                    max_tokens=max_tokens,
                    system=system,
                    messages=messages,
                    temperature=temperature,
                )
                self._log_success(response, attempt)
                return response

            except RateLimitError as e:
                await self._handle_rate_limit(e, attempt, context)

            except (APIConnectionError, InternalServerError) as e:
                await self._handle_transient_error(e, attempt, context)

            except APITimeoutError:
                raise ExternalServiceError(
                    "API timeout", "timeout", context=context,
                )

            except APIError as e:
                if _is_overloaded(e):
                    await self._handle_transient_error(e, attempt, context)
                    continue
                raise ExternalServiceError(
                    str(e), "client_error", context=context,
                )

        raise ExternalServiceError(
            "Retries exhausted", "connection_error", context=context,
        )

    @asynccontextmanager
    async def stream_text(
        self,
        *,
        model: str,
        max_tokens: int,
        system: str,
        messages: list,
        temperature: float = 1.0,
        context: ErrorContext | None = None,
    ) -> AsyncIterator[AsyncIterator[str]]:
        """Stream text deltas with Anthropic error -> ExternalServiceError mapping.

        Catches errors from both connection setup AND mid-stream (errors from the
        caller's `async for` propagate through the yield).
        CancelledError (BaseException) passes through uncaught.
        """
        try:
            cm = self.client.messages.stream(
                model=model, max_tokens=max_tokens,
                system=system, messages=messages, temperature=temperature,
            )
            async with cm as stream:
                yield stream.text_stream
        except RateLimitError as e:
            raise ExternalServiceError(
                "Rate limit exceeded (streaming)",
                "rate_limit",
                retry_after_ms=self._extract_retry_after(e),
                context=context,
            )
        except (APIConnectionError, InternalServerError) as e:
            raise ExternalServiceError(
                f"Connection error during stream: {e}",
                "connection_error",
                context=context,
            )
        except APITimeoutError:
            raise ExternalServiceError(
                "API timeout during stream", "timeout", context=context,
            )
        except APIError as e:
            if _is_overloaded(e):
                raise ExternalServiceError(
                    "Anthropic API overloaded (529)", "overloaded", context=context,
                )
            raise ExternalServiceError(
                str(e), "client_error", context=context,
            )

    def _log_success(self, response, attempt: int) -> None:
        usage = response.usage
        logger.info(
            "Anthropic API success",
            extra={
                "attempt": attempt + 1,
                "input_tokens": usage.input_tokens,
                "output_tokens": usage.output_tokens,
            },
        )

    async def _handle_rate_limit(
        self, e: RateLimitError, attempt: int, context: ErrorContext | None,
    ) -> None:
        """Handle rate limit error with retry or raise."""
        retry_after_ms = self._extract_retry_after(e)
        if attempt >= self.max_retries:
            raise ExternalServiceError(
                "Rate limit exceeded after retries",
                "rate_limit",
                retry_after_ms=retry_after_ms,
                context=context,
            )
        delay = retry_after_ms or self._backoff(attempt)
        logger.warning(
            f"Rate limit hit, retry after {delay}ms (attempt {attempt + 1})",
        )
        await asyncio.sleep(delay / 1000)

    async def _handle_transient_error(
        self, e: Exception, attempt: int, context: ErrorContext | None,
    ) -> None:
        """Handle transient errors with retry or raise."""
        if attempt >= self.max_retries:
            raise ExternalServiceError(
                f"Transient failure after {self.max_retries} retries: {e}",
                "connection_error",
                context=context,
            )
        delay = self._backoff(attempt)
        logger.warning(f"Transient error, retry after {delay}ms: {e}")
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311

    def _extract_retry_after(self, error: RateLimitError) -> int | None:
        """Extract Retry-After header (returns milliseconds)."""
        try:
            if hasattr(error, "response") and error.response:
                val = error.response.headers.get("retry-after")
                if val:
                    return int(val) * 1000
        except (AttributeError, TypeError, ValueError):
            return None
        return None
