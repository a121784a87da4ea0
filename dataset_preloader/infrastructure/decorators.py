"""
Infrastructure-specific decorators, providing cross-cutting concerns like
retry logic for network operations.
"""

import logging

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from ..application.exceptions import FetchTimeoutError, NetworkError

logger = logging.getLogger(__name__)

# --- Defaults for Retry Logic ---
_RETRY_ATTEMPTS = 3
_RETRY_MIN_WAIT_SECONDS = 1
_RETRY_MAX_WAIT_SECONDS = 10

# Integrity, protocol and archive errors are never transient
TRANSIENT_ERRORS = (NetworkError, FetchTimeoutError)


def _log_before_retry(retry_state):
    """Log the retry attempt with details about the exception and wait time."""
    exception = retry_state.outcome.exception()
    next_attempt_in = retry_state.next_action.sleep
    logger.warning(
        f"Retrying {retry_state.fn.__name__} in {next_attempt_in:.2f}s due to "
        f"{type(exception).__name__}: {exception} "
        f"(attempt {retry_state.attempt_number})..."
    )


def retry_on_transient_error(
    attempts: int = _RETRY_ATTEMPTS,
    min_wait: float = _RETRY_MIN_WAIT_SECONDS,
    max_wait: float = _RETRY_MAX_WAIT_SECONDS,
):
    """
    Builds a decorator retrying a blocking call on transient network errors.

    The last error is re-raised unchanged once the attempts are exhausted.
    """

    return retry(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        before_sleep=_log_before_retry,
        reraise=True,
    )
