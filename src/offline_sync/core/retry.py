from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from offline_sync.core.clock import Clock
from offline_sync.core.errors import NetworkUnreachable, TransportError, is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """
    Bounded exponential backoff for read-style requests.

    `max_attempts` counts every attempt, including the first one.
    """

    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay_seconds * (2 ** max(0, attempt - 1)), self.max_delay_seconds)

    def should_retry(self, attempt: int, error: BaseException) -> bool:
        if attempt >= self.max_attempts:
            return False
        return is_retryable(error)


NO_RETRY = RetryPolicy(max_attempts=1)


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    clock: Clock,
    is_online: Optional[Callable[[], bool]] = None,
    label: str = "",
) -> T:
    """
    Run `operation` until it succeeds or the failure is not worth retrying.

    A transport failure raised while `is_online()` reports False is re-raised as
    NetworkUnreachable so the caller can wait for connectivity instead of spinning.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except NetworkUnreachable:
            raise
        except Exception as e:
            if is_online is not None and isinstance(e, TransportError) and not is_online():
                raise NetworkUnreachable(str(e), status=e.status) from e
            if not policy.should_retry(attempt, e):
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "Request failed and will be retried. label=%s attempt=%s delay_seconds=%.2f error=%s",
                label,
                attempt,
                delay,
                e,
            )
        await clock.sleep(delay)
        if is_online is not None and not is_online():
            raise NetworkUnreachable(f"Went offline before retrying. label={label}")
