"""Managed retry layer: per-step backoff policies run through tenacity."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception_type, stop_after_attempt

from config.settings import RetrySettings
from utils.exceptions import RetryableStepError

logger = logging.getLogger(__name__)

T = TypeVar("T")
SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff: ``initial_backoff_ms * base ** (attempt - 1)``."""

    max_attempts: int
    initial_backoff_ms: int
    base: float

    def delay_seconds(self, attempt_number: int) -> float:
        return self.initial_backoff_ms * (self.base ** max(0, attempt_number - 1)) / 1000.0


@dataclass(frozen=True)
class RetryPolicies:
    metadata: RetryPolicy
    link_metadata: RetryPolicy
    link_enrichment: RetryPolicy

    @classmethod
    def from_settings(cls, settings: Optional[RetrySettings] = None) -> "RetryPolicies":
        settings = settings or RetrySettings()
        return cls(
            metadata=RetryPolicy(
                settings.metadata_max_attempts, settings.metadata_initial_backoff_ms, settings.metadata_base
            ),
            link_metadata=RetryPolicy(
                settings.link_metadata_max_attempts,
                settings.link_metadata_initial_backoff_ms,
                settings.link_metadata_base,
            ),
            link_enrichment=RetryPolicy(
                settings.link_enrichment_max_attempts,
                settings.link_enrichment_initial_backoff_ms,
                settings.link_enrichment_base,
            ),
        )


async def run_with_retry(
    policy: RetryPolicy,
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    sleep: SleepFn = asyncio.sleep,
    **kwargs: Any,
) -> T:
    """Await ``fn`` until it stops raising ``RetryableStepError`` or attempts run out.

    Other exceptions propagate immediately. When attempts are exhausted the last
    ``RetryableStepError`` is re-raised.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, policy.max_attempts)),
        wait=lambda retry_state: policy.delay_seconds(retry_state.attempt_number),
        retry=retry_if_exception_type(RetryableStepError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
        sleep=sleep,
    )
    return await retrying(fn, *args, **kwargs)
