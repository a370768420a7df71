"""Retry decorator for idempotent provider calls, built on tenacity.

Only transient ``TransportError`` (network failure, timeout, 429 or 5xx
from the provider) is retried.  Credential rejections such as ``RefreshRevoked`` fail
immediately.  Never apply this to the Gmail send endpoint: a retried send
can deliver the same message twice.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from outreach.domain.errors import TransportError

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Any])

MAX_ATTEMPTS = 3


def is_transient(exc: BaseException) -> bool:
    """Return True for transport failures worth retrying.

    Network errors and timeouts carry no status.  Of the HTTP failures only
    429 and 5xx are retried; other 4xx answers will not change on retry.
    """
    if not isinstance(exc, TransportError):
        return False
    status = getattr(exc, "status", None)
    return status is None or status == 429 or status >= 500


def log_final_failure(retry_state: RetryCallState) -> Any:
    """Log retry exhaustion and re-raise the last exception.

    Args:
        retry_state: Tenacity retry state with attempt info and exception.
    """
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    api_name = getattr(retry_state.fn, "_api_name", "unknown") if retry_state.fn else "unknown"

    logger.error(
        "API call failed after all retries",
        api_name=api_name,
        attempts=retry_state.attempt_number,
        exception=str(exception),
    )
    if exception is not None:
        raise exception
    return None


def _before_sleep_log(retry_state: RetryCallState) -> None:
    """Log a warning before each retry attempt.

    Args:
        retry_state: Tenacity retry state with attempt info.
    """
    api_name = getattr(retry_state.fn, "_api_name", "unknown") if retry_state.fn else "unknown"
    logger.warning(
        "Retrying API call",
        api_name=api_name,
        attempt=retry_state.attempt_number,
        wait=retry_state.next_action.sleep if retry_state.next_action else 0,
    )


def resilient_api_call(api_name: str) -> Callable[[F], F]:
    """Create a retry decorator for an idempotent API call.

    Returns a tenacity retry decorator configured with:
    - 3 attempts maximum
    - Exponential backoff with jitter (1s initial, 30s max, 5s jitter)
    - Retry only on transient ``TransportError`` (see ``is_transient``)
    - Warning log before each retry, error log on exhaustion
    - Original exception re-raised after exhaustion

    Args:
        api_name: Human-readable name for the API (used in logs).

    Returns:
        A decorator that wraps the function with retry logic.
    """

    def decorator(func: F) -> F:
        # Store api_name on function for before_sleep_log access
        func._api_name = api_name  # type: ignore[attr-defined]

        wrapped = retry(
            retry=retry_if_exception(is_transient),
            stop=stop_after_attempt(MAX_ATTEMPTS),
            wait=wait_exponential_jitter(initial=1, max=30, jitter=5),
            before_sleep=_before_sleep_log,
            retry_error_callback=log_final_failure,
            reraise=True,
        )(func)

        return wrapped  # type: ignore[return-value]

    return decorator
