"""Exponential backoff for transient LLM provider failures."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from typing import Any

from resonance.utils.logger import get_logger

logger = get_logger("llm.retry")


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 10000
    backoff_multiplier: float = 2
    retryable_status_codes: frozenset[int] = field(
        default_factory=lambda: frozenset({429, 503, 504})
    )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RetryConfig:
        """Build from a config section, ignoring malformed values."""
        default = cls()
        kwargs: dict[str, Any] = {}
        for key in ("max_retries", "initial_delay_ms", "max_delay_ms"):
            value = data.get(key)
            if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
                kwargs[key] = value
        mult = data.get("backoff_multiplier")
        if isinstance(mult, int | float) and not isinstance(mult, bool) and mult >= 1:
            kwargs["backoff_multiplier"] = mult
        codes = data.get("retryable_status_codes")
        if isinstance(codes, list | tuple | set | frozenset):
            kwargs["retryable_status_codes"] = frozenset(
                c for c in codes if isinstance(c, int)
            )
        return replace(default, **kwargs)

    def delay_ms(self, retry_number: int) -> float:
        """Delay before retry ``retry_number`` (0-based)."""
        delay = self.initial_delay_ms * (self.backoff_multiplier**retry_number)
        return min(delay, self.max_delay_ms)


def _status_of(obj: Any) -> int | None:
    for attr in ("status", "status_code"):
        value = getattr(obj, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def is_retryable(error: BaseException, config: RetryConfig) -> bool:
    """Classify ``error`` by explicit status, then response status, then message."""
    if _status_of(error) in config.retryable_status_codes:
        return True
    response = getattr(error, "response", None)
    if response is not None and _status_of(response) in config.retryable_status_codes:
        return True
    # Rate-limit errors that carry no status field
    return "429" in str(error)


class RetryPolicy:
    """Runs an async operation, retrying retryable failures with backoff.

    Delays are purely exponential with no jitter.
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config or RetryConfig()
        self._sleep = sleep

    async def execute[T](
        self,
        operation: Callable[[], Awaitable[T]],
        config: RetryConfig | None = None,
    ) -> T:
        cfg = config or self.config
        attempt = 0
        while True:
            try:
                return await operation()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if attempt >= cfg.max_retries or not is_retryable(e, cfg):
                    raise
                delay = cfg.delay_ms(attempt)
                attempt += 1
                logger.warning(
                    "Retrying LLM request",
                    attempt=attempt,
                    max_attempts=cfg.max_retries + 1,
                    delay_ms=delay,
                    error=str(e),
                )
                await self._sleep(delay / 1000)
