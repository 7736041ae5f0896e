"""Request dispatch with retries.

One logical call moves through ``Idle -> Sending -> Succeeded | Failed``.
A failed attempt goes back to ``Sending`` after a backoff delay while the
retry strategy allows it; otherwise the failure is final.

Dispatch can be suspended for new calls with ``disable_request`` and
resumed with ``enable_request``. Calls already past the entry check are
not affected.
"""

import logging
import threading
import time
from typing import Callable, Union

from ossclient.auth import CredentialsError
from ossclient.builder import RequestBuilder
from ossclient.normalizer import has_response_error
from ossclient.models import HttpError, HttpRequest, HttpResponse, TransportErrorCode
from ossclient.requests import OssRequest
from ossclient.retry import RetryStrategy
from ossclient.transport import Transport, TransportError

logger = logging.getLogger(__name__)

AttemptResult = Union[HttpResponse, HttpError]


class RequestExecutor:
    """Sends built requests through a transport, retrying per strategy.

    Args:
        builder: Builds a fresh signed request for every attempt.
        transport: Sends requests.
        retry_strategy: Decides on retries and backoff.
        sleep: Called with the delay in seconds between attempts.
    """

    def __init__(
        self,
        builder: RequestBuilder,
        transport: Transport,
        retry_strategy: RetryStrategy,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.builder = builder
        self.transport = transport
        self.retry_strategy = retry_strategy
        self._sleep = sleep
        self._enabled = threading.Event()
        self._enabled.set()

    @property
    def is_enabled(self) -> bool:
        return self._enabled.is_set()

    def disable_request(self) -> None:
        """Make every new call fail fast without touching the network."""
        self._enabled.clear()
        logger.debug("executor(%s) requests disabled", id(self))

    def enable_request(self) -> None:
        """Allow new calls to be dispatched again."""
        self._enabled.set()
        logger.debug("executor(%s) requests enabled", id(self))

    def attempt(self, endpoint: str, request: OssRequest, method: str) -> AttemptResult:
        """Run one logical call, retrying transient failures.

        Args:
            endpoint: Service endpoint.
            request: A validated operation request.
            method: HTTP method.

        Returns:
            The successful HttpResponse, or the HttpError of the last
            attempt.
        """
        attempted_retries = 0
        while True:
            http_request, result = self._attempt_once(endpoint, request, method)
            if isinstance(result, HttpResponse):
                return result

            if not self.is_enabled:
                return result

            if not self.retry_strategy.should_retry(result, attempted_retries):
                return result

            delay_ms = self.retry_strategy.calc_delay_ms(result, attempted_retries)
            logger.warning(
                "%s %s failed with status %s, retry %d in %d ms",
                method,
                http_request.url if http_request else endpoint,
                result.status,
                attempted_retries + 1,
                delay_ms,
            )
            if http_request is not None:
                http_request.rewind()
            self._sleep(delay_ms / 1000)
            attempted_retries += 1

    def _attempt_once(self, endpoint: str, request: OssRequest, method: str):
        if not self.is_enabled:
            return None, HttpError(
                status=TransportErrorCode.REQUEST_DISABLED,
                code=f"ClientError:{int(TransportErrorCode.REQUEST_DISABLED)}",
                message="Disable all requests by upper.",
            )

        try:
            http_request = self.builder.build(endpoint, request, method)
        except CredentialsError as e:
            return None, HttpError(
                status=TransportErrorCode.CREDENTIALS_ERROR,
                code=f"ClientError:{int(TransportErrorCode.CREDENTIALS_ERROR)}",
                message=str(e),
            )

        return http_request, self.send(http_request)

    def send(self, http_request: HttpRequest) -> AttemptResult:
        """Send one built request and classify the answer."""
        try:
            response = self.transport.send(http_request)
        except TransportError as e:
            logger.debug("%s %s transport error: %s", http_request.method, http_request.url, e)
            return HttpError(
                status=e.code,
                code=f"ClientError:{int(e.code)}",
                message=e.message,
            )

        error = has_response_error(response)
        if error is not None:
            return error
        return response
