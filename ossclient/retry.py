"""Retry policy with exponential backoff for transient failures.

The executor consults a ``RetryStrategy`` after every failed attempt. The
default strategy separates transient failures (worth retrying) from
permanent ones (retrying won't help).

Transient (Retryable):
- Server errors (500-598)
- Connection refused, timeouts
- Partial transfers, empty responses
- Send/receive/write errors

Permanent (Not Retryable):
- Client errors (4xx)
- Checksum mismatches
- Disabled dispatch, missing credentials
"""

from abc import ABC, abstractmethod

from ossclient.models import HttpError, TransportErrorCode

# Transport failures that indicate a flaky network rather than a bad request
RETRYABLE_TRANSPORT_ERRORS = frozenset({
    TransportErrorCode.CONNECTION_REFUSED,
    TransportErrorCode.PARTIAL_TRANSFER,
    TransportErrorCode.WRITE_ERROR,
    TransportErrorCode.TIMEOUT,
    TransportErrorCode.EMPTY_RESPONSE,
    TransportErrorCode.SEND_ERROR,
    TransportErrorCode.RECEIVE_ERROR,
})

DEFAULT_MAX_RETRIES = 3
DEFAULT_SCALE_FACTOR_MS = 300


def is_retryable_error(error: HttpError) -> bool:
    """Determine if a failed attempt is transient and worth retrying.

    Args:
        error: The failed attempt.

    Returns:
        True if the error is transient and should trigger a retry,
        False if the error is permanent and retrying won't help.
    """
    # Server-side errors are transient
    if 499 < error.status < 599:
        return True

    return error.status in RETRYABLE_TRANSPORT_ERRORS


class RetryStrategy(ABC):
    """Decides whether and when a failed attempt is repeated."""

    @abstractmethod
    def should_retry(self, error: HttpError, attempted_retries: int) -> bool:
        """Return True if another attempt should follow ``error``."""
        pass

    @abstractmethod
    def calc_delay_ms(self, error: HttpError, attempted_retries: int) -> int:
        """Return how long to wait before the next attempt, in milliseconds."""
        pass


class DefaultRetryStrategy(RetryStrategy):
    """Retry transient errors up to ``max_retries`` times.

    The delay before retry ``n`` (0-based) is ``2**n * scale_factor``
    milliseconds.

    Args:
        max_retries: Maximum number of retries after the first attempt.
        scale_factor: Base delay in milliseconds.
    """

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        scale_factor: int = DEFAULT_SCALE_FACTOR_MS,
    ):
        self.max_retries = max_retries
        self.scale_factor = scale_factor

    def should_retry(self, error: HttpError, attempted_retries: int) -> bool:
        if attempted_retries >= self.max_retries:
            return False
        return is_retryable_error(error)

    def calc_delay_ms(self, error: HttpError, attempted_retries: int) -> int:
        return (1 << attempted_retries) * self.scale_factor


class NoRetryStrategy(RetryStrategy):
    """Never retry; every call makes exactly one attempt."""

    def should_retry(self, error: HttpError, attempted_retries: int) -> bool:
        return False

    def calc_delay_ms(self, error: HttpError, attempted_retries: int) -> int:
        return 0
