"""Tests for the httpx transport."""

import io

import httpx
import pytest

from ossclient.config import ClientConfiguration
from ossclient.models import HttpRequest, TransportErrorCode
from ossclient.transport import (
    HttpxTransport,
    TransportError,
    build_http_client,
    classify_httpx_error,
    new_crc64,
)


def make_transport(handler) -> HttpxTransport:
    return HttpxTransport(client=httpx.Client(transport=httpx.MockTransport(handler)))


def crc64_of(data: bytes) -> int:
    crc = new_crc64()
    crc.update(data)
    return crc.crcValue


class TestCrc64:
    """Tests for the CRC64 calculator."""

    def test_check_value(self):
        """CRC-64/XZ check value over the standard test vector."""
        assert crc64_of(b"123456789") == 0x995DC9BBDF1939FA

    def test_empty_is_zero(self):
        assert crc64_of(b"") == 0

    def test_incremental_equals_whole(self):
        crc = new_crc64()
        crc.update(b"1234")
        crc.update(b"56789")
        assert crc.crcValue == crc64_of(b"123456789")


class TestClassifyHttpxError:
    """Tests for mapping httpx exceptions."""

    @pytest.mark.parametrize("error, expected", [
        (httpx.ConnectTimeout("t"), TransportErrorCode.TIMEOUT),
        (httpx.ReadTimeout("t"), TransportErrorCode.TIMEOUT),
        (httpx.PoolTimeout("t"), TransportErrorCode.TIMEOUT),
        (httpx.ConnectError("refused"), TransportErrorCode.CONNECTION_REFUSED),
        (httpx.WriteError("broken pipe"), TransportErrorCode.WRITE_ERROR),
        (httpx.ReadError("reset"), TransportErrorCode.RECEIVE_ERROR),
        (httpx.RemoteProtocolError("closed"), TransportErrorCode.EMPTY_RESPONSE),
        (httpx.LocalProtocolError("short body"), TransportErrorCode.PARTIAL_TRANSFER),
        (httpx.UnsupportedProtocol("ftp"), TransportErrorCode.INVALID_URL),
        (httpx.CloseError("close"), TransportErrorCode.SEND_ERROR),
        (httpx.TooManyRedirects("loop"), TransportErrorCode.UNKNOWN),
    ])
    def test_mapping(self, error, expected):
        assert classify_httpx_error(error) == expected


class TestBuildHttpClient:
    """Tests for client construction."""

    def test_timeouts_from_configuration(self):
        client = build_http_client(
            ClientConfiguration(request_timeout_ms=2500, connect_timeout_ms=500)
        )
        try:
            assert client.timeout.read == 2.5
            assert client.timeout.connect == 0.5
            assert client.follow_redirects is False
            assert client.headers["Accept-Encoding"] == "identity"
        finally:
            client.close()


class TestHttpxTransportSend:
    """Tests for sending requests."""

    def test_download_body_and_crc(self):
        data = b"object payload"

        def handler(request):
            return httpx.Response(200, content=data, headers={"x-oss-request-id": "RID"})

        transport = make_transport(handler)
        response = transport.send(
            HttpRequest(method="GET", url="http://b.oss.example.com/k", check_crc64=True)
        )

        assert response.status_code == 200
        assert response.body == data
        assert response.transferred_bytes == len(data)
        assert response.client_crc64 == crc64_of(data)
        assert response.request_id == "RID"

    def test_download_without_crc(self):
        transport = make_transport(lambda request: httpx.Response(200, content=b"abc"))

        response = transport.send(HttpRequest(method="GET", url="http://h/k"))

        assert response.client_crc64 is None
        assert response.transferred_bytes == 3

    def test_download_into_response_stream(self):
        transport = make_transport(lambda request: httpx.Response(200, content=b"abc"))
        sink = io.BytesIO()

        response = transport.send(
            HttpRequest(method="GET", url="http://h/k", response_stream=sink)
        )

        assert sink.getvalue() == b"abc"
        assert response.stream is sink
        assert response.body == b""

    def test_error_body_not_written_to_stream(self):
        """A failed response is buffered, never written to the caller's stream."""
        transport = make_transport(
            lambda request: httpx.Response(404, content=b"<Error/>")
        )
        sink = io.BytesIO()

        response = transport.send(
            HttpRequest(method="GET", url="http://h/k", response_stream=sink)
        )

        assert response.status_code == 404
        assert response.body == b"<Error/>"
        assert sink.getvalue() == b""

    def test_upload_streams_body(self):
        received = {}

        def handler(request):
            received["body"] = request.content
            received["length"] = request.headers.get("Content-Length")
            received["chunked"] = request.headers.get("Transfer-Encoding")
            return httpx.Response(200)

        data = b"x" * 200000
        request = HttpRequest(
            method="PUT",
            url="http://h/k",
            headers=httpx.Headers({"Content-Length": str(len(data))}),
            body=io.BytesIO(data),
            check_crc64=True,
        )

        response = make_transport(handler).send(request)

        assert received["body"] == data
        assert received["length"] == "200000"
        assert received["chunked"] is None
        assert response.transferred_bytes == len(data)
        assert response.client_crc64 == crc64_of(data)

    def test_upload_progress(self):
        calls = []
        data = b"y" * 150000
        request = HttpRequest(
            method="PUT",
            url="http://h/k",
            headers=httpx.Headers({"Content-Length": str(len(data))}),
            body=io.BytesIO(data),
            progress_callback=lambda consumed, total: calls.append((consumed, total)),
        )

        make_transport(lambda r: httpx.Response(200)).send(request)

        assert calls[-1] == (150000, 150000)
        assert [c[0] for c in calls] == sorted(c[0] for c in calls)
        assert len(calls) == 3

    def test_download_progress(self):
        calls = []
        transport = make_transport(lambda request: httpx.Response(200, content=b"z" * 10))

        transport.send(
            HttpRequest(
                method="GET",
                url="http://h/k",
                progress_callback=lambda consumed, total: calls.append((consumed, total)),
            )
        )

        assert calls[-1] == (10, 10)

    def test_connect_error_raises_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        with pytest.raises(TransportError) as exc_info:
            make_transport(handler).send(HttpRequest(method="GET", url="http://h/k"))

        assert exc_info.value.code == TransportErrorCode.CONNECTION_REFUSED
        assert "refused" in exc_info.value.message

    def test_timeout_raises_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(TransportError) as exc_info:
            make_transport(handler).send(HttpRequest(method="GET", url="http://h/k"))

        assert exc_info.value.code == TransportErrorCode.TIMEOUT
