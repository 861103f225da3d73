"""
Retry Logic with Exponential Backoff

Bounded retry policy for transient cluster API failures. A failing API
server is retried a fixed number of times with growing waits instead of
being hammered until the pass deadline expires.
"""
from typing import Any, Awaitable, Callable, Optional

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.shared.core.config import Settings
from app.shared.core.exceptions import ClusterAPIError

logger = structlog.get_logger()

DEFAULT_MULTIPLIER = 2.0


def _log_before_sleep(
    operation_type: str, context: dict[str, Any]
) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "operation_failed_will_retry",
            operation_type=operation_type,
            attempt=retry_state.attempt_number,
            delay_seconds=round(delay, 3),
            error=str(error),
            error_type=type(error).__name__,
            **context,
        )

    return before_sleep


def cluster_api_retrying(
    operation_type: str,
    *,
    max_attempts: int,
    min_wait: float,
    max_wait: float,
    multiplier: float = DEFAULT_MULTIPLIER,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    **context: Any,
) -> AsyncRetrying:
    """
    Build a tenacity controller that retries ClusterAPIError only.

    The wait starts at ``min_wait`` and grows by ``multiplier`` per attempt,
    capped at ``max_wait``. The last error is re-raised once attempts run out.

    Usage:
        async for attempt in cluster_api_retrying("list", max_attempts=3, ...):
            with attempt:
                await client.list_resources(...)
    """
    kwargs: dict[str, Any] = {}
    if sleep is not None:
        kwargs["sleep"] = sleep
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait, exp_base=multiplier),
        retry=retry_if_exception_type(ClusterAPIError),
        before_sleep=_log_before_sleep(operation_type, context),
        reraise=True,
        **kwargs,
    )


def list_retrying(settings: Settings, **context: Any) -> AsyncRetrying:
    """Retry policy for paginated list requests, driven by settings."""
    return cluster_api_retrying(
        "cluster_list",
        max_attempts=settings.LIST_MAX_ATTEMPTS,
        min_wait=settings.LIST_RETRY_MIN_WAIT_SECONDS,
        max_wait=settings.LIST_RETRY_MAX_WAIT_SECONDS,
        **context,
    )
