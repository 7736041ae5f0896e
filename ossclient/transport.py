"""HTTP transport for the client.

Wraps an ``httpx.Client`` configured from ``ClientConfiguration`` (timeouts,
connection limit, proxy, TLS verification). Bodies are streamed in both
directions so the transport can report transferred bytes, fire progress
callbacks and accumulate a CRC64 of the payload for integrity checks.

httpx exceptions are translated into ``TransportError`` with a
``TransportErrorCode`` the retry strategy understands.
"""

import io
from abc import ABC, abstractmethod
from typing import Iterator, Optional

import crcmod
import httpx

from ossclient.config import ClientConfiguration
from ossclient.models import HttpRequest, HttpResponse, TransportErrorCode

# CRC-64/ECMA-182 (reflected), as reported in x-oss-hash-crc64ecma
CRC64_POLY = 0x142F0E1EBA9EA3693
CRC64_XOROUT = 0xFFFFFFFFFFFFFFFF

# Read size used when streaming request bodies
UPLOAD_CHUNK_SIZE = 64 * 1024


def new_crc64(init_crc: int = 0) -> "crcmod.Crc":
    """Create an incremental CRC64 calculator (``update`` / ``crcValue``)."""
    return crcmod.Crc(CRC64_POLY, initCrc=init_crc, rev=True, xorOut=CRC64_XOROUT)


class TransportError(Exception):
    """Raised when a request could not be completed at the network level."""

    def __init__(self, code: TransportErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def classify_httpx_error(error: httpx.HTTPError) -> TransportErrorCode:
    """Map an httpx exception onto the transport error taxonomy.

    Args:
        error: The exception raised by httpx.

    Returns:
        The matching TransportErrorCode.
    """
    # Order matters: ConnectTimeout is both a TimeoutException and a transport error
    if isinstance(error, httpx.TimeoutException):
        return TransportErrorCode.TIMEOUT
    if isinstance(error, httpx.ConnectError):
        return TransportErrorCode.CONNECTION_REFUSED
    if isinstance(error, httpx.WriteError):
        return TransportErrorCode.WRITE_ERROR
    if isinstance(error, httpx.ReadError):
        return TransportErrorCode.RECEIVE_ERROR
    if isinstance(error, httpx.RemoteProtocolError):
        return TransportErrorCode.EMPTY_RESPONSE
    if isinstance(error, httpx.LocalProtocolError):
        return TransportErrorCode.PARTIAL_TRANSFER
    if isinstance(error, (httpx.UnsupportedProtocol, httpx.InvalidURL)):
        return TransportErrorCode.INVALID_URL
    if isinstance(error, httpx.NetworkError):
        return TransportErrorCode.SEND_ERROR
    return TransportErrorCode.UNKNOWN


def build_http_client(configuration: ClientConfiguration) -> httpx.Client:
    """Build an httpx client for the given configuration.

    Args:
        configuration: Client configuration carrying timeouts, the
                       connection limit, proxy and TLS settings.

    Returns:
        A configured httpx client.

    Note:
        Redirects are not followed; a 3xx answer is surfaced as an error
        so a signed request is never replayed against another host.
    """
    timeout = httpx.Timeout(
        configuration.request_timeout_ms / 1000,
        connect=configuration.connect_timeout_ms / 1000,
    )
    limits = httpx.Limits(max_connections=configuration.max_connections)

    return httpx.Client(
        timeout=timeout,
        limits=limits,
        verify=configuration.verify_ssl,
        proxy=configuration.proxy,
        follow_redirects=False,
        # Downloaded bytes must match the stored object for the CRC64 check
        headers={"Accept-Encoding": "identity"},
    )


class Transport(ABC):
    """Sends one request and returns the raw response."""

    @abstractmethod
    def send(self, request: HttpRequest) -> HttpResponse:
        """Send ``request``.

        Raises:
            TransportError: If no HTTP response was obtained.
        """
        pass

    def close(self) -> None:
        """Release network resources."""
        pass


class _TransferStats:
    def __init__(self, total: Optional[int], callback, check_crc64: bool):
        self.total = total
        self.callback = callback
        self.transferred = 0
        self.crc = new_crc64() if check_crc64 else None

    def update(self, chunk: bytes) -> None:
        self.transferred += len(chunk)
        if self.crc is not None:
            self.crc.update(chunk)
        if self.callback is not None:
            self.callback(self.transferred, self.total)

    @property
    def crc64(self) -> Optional[int]:
        return self.crc.crcValue if self.crc is not None else None


def _content_length(headers: httpx.Headers) -> Optional[int]:
    value = headers.get("Content-Length")
    if value is None or not value.isdigit():
        return None
    return int(value)


class HttpxTransport(Transport):
    """Transport backed by an ``httpx.Client``.

    Args:
        configuration: Used to build the client when none is given.
        client: Pre-built httpx client (e.g. with a mock transport).
    """

    def __init__(
        self,
        configuration: Optional[ClientConfiguration] = None,
        client: Optional[httpx.Client] = None,
    ):
        if client is None:
            client = build_http_client(configuration or ClientConfiguration())
        self.client = client

    def send(self, request: HttpRequest) -> HttpResponse:
        upload = None
        content = None
        if request.body is not None:
            upload = _TransferStats(
                _content_length(request.headers),
                request.progress_callback,
                request.check_crc64,
            )
            content = self._iter_body(request, upload)

        try:
            httpx_request = self.client.build_request(
                request.method,
                request.url,
                headers=request.headers,
                content=content,
            )
            response = self.client.send(httpx_request, stream=True)
        except httpx.HTTPError as e:
            raise TransportError(classify_httpx_error(e), str(e)) from e

        try:
            return self._read_response(request, response, upload)
        except httpx.HTTPError as e:
            raise TransportError(classify_httpx_error(e), str(e)) from e
        finally:
            response.close()

    def close(self) -> None:
        self.client.close()

    @staticmethod
    def _iter_body(request: HttpRequest, stats: _TransferStats) -> Iterator[bytes]:
        while True:
            chunk = request.body.read(UPLOAD_CHUNK_SIZE)
            if not chunk:
                break
            stats.update(chunk)
            yield chunk

    def _read_response(
        self,
        request: HttpRequest,
        response: httpx.Response,
        upload: Optional[_TransferStats],
    ) -> HttpResponse:
        succeeded = response.is_success
        download = None
        if upload is None and succeeded:
            download = _TransferStats(
                _content_length(response.headers),
                request.progress_callback,
                request.check_crc64,
            )

        # Successful downloads go to the caller's stream when one is given
        sink = request.response_stream if succeeded and request.response_stream else io.BytesIO()
        for chunk in response.iter_bytes():
            if download is not None:
                download.update(chunk)
            sink.write(chunk)

        stats = upload or download
        http_response = HttpResponse(
            status_code=response.status_code,
            headers=response.headers,
            request=request,
            transferred_bytes=stats.transferred if stats else 0,
            client_crc64=stats.crc64 if stats else None,
        )
        if sink is request.response_stream:
            http_response.stream = sink
        else:
            http_response.body = sink.getvalue()
        return http_response
