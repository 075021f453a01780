# client/retry.py
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from coordinator.errors import NetworkFailure


def is_transient(exc):
    """Transport errors and 5xx answers are worth another attempt; 4xx are not."""
    if not isinstance(exc, NetworkFailure):
        return False
    return exc.status_code is None or exc.status_code >= 500


def network_retry(attempts=3, wait=None):
    """
    Create a tenacity AsyncRetrying for idempotent backend reads.

    Args:
        attempts (int): Maximum number of attempts. Defaults to 3.
        wait: tenacity wait strategy. Defaults to exponential backoff,
            min=1s, max=10s, multiplier=1.

    Returns:
        tenacity.AsyncRetrying: Re-raises the last NetworkFailure once the
            attempts are used up

    Example:
        async for attempt in network_retry(attempts=5):
            with attempt:
                data = await fetch()

    Note:
        Retries live at the transport layer only. A cancelled attempt is not
        retried: asyncio.CancelledError is not a NetworkFailure.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait if wait is not None else wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception(is_transient),
        reraise=True,
    )
