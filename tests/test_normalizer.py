"""Tests for response and error normalization."""

import httpx
import pytest

from ossclient.models import (
    ERROR_CRC_INCONSISTENT,
    ErrorKind,
    HttpError,
    HttpRequest,
    HttpResponse,
    TransportErrorCode,
)
from ossclient.normalizer import (
    build_error,
    build_result,
    check_crc64,
    has_response_error,
)

NO_SUCH_KEY = (
    b'<?xml version="1.0" encoding="UTF-8"?>\n'
    b"<Error>"
    b"<Code>NoSuchKey</Code>"
    b"<Message>The specified key does not exist.</Message>"
    b"<RequestId>ABC</RequestId>"
    b"<HostId>bucket.oss.example.com</HostId>"
    b"</Error>"
)


def response(status=200, body=b"", headers=None, check_crc64=False, client_crc64=None):
    return HttpResponse(
        status_code=status,
        headers=httpx.Headers(headers or {}),
        body=body,
        request=HttpRequest(method="GET", url="http://h/k", check_crc64=check_crc64),
        transferred_bytes=len(body),
        client_crc64=client_crc64,
    )


class TestCheckCrc64:
    """Tests for end-to-end CRC verification."""

    def test_match(self):
        r = response(headers={"x-oss-hash-crc64ecma": "42"}, check_crc64=True, client_crc64=42)
        assert check_crc64(r) is None

    def test_mismatch(self):
        r = response(
            body=b"abc",
            headers={"x-oss-hash-crc64ecma": "42", "x-oss-request-id": "RID"},
            check_crc64=True,
            client_crc64=41,
        )

        error = check_crc64(r)

        assert error.status == ERROR_CRC_INCONSISTENT
        assert error.message == (
            "Crc64 validation failed. Expected hash:42 not equal to calculated "
            "hash:41. Transferred bytes:3. RequestId:RID"
        )

    def test_not_requested(self):
        r = response(headers={"x-oss-hash-crc64ecma": "42"}, client_crc64=41)
        assert check_crc64(r) is None

    def test_server_did_not_send_header(self):
        r = response(check_crc64=True, client_crc64=41)
        assert check_crc64(r) is None

    @pytest.mark.parametrize("declared", ["abc", "", "-"])
    def test_unparsable_header_is_mismatch(self, declared):
        """A CRC value the client cannot read never verifies the transfer."""
        r = response(
            headers={"x-oss-hash-crc64ecma": declared},
            check_crc64=True,
            client_crc64=0,
        )

        error = check_crc64(r)

        assert error.status == ERROR_CRC_INCONSISTENT
        assert error.code == "CrcCheckError"
        assert f"Expected hash:{declared} " in error.message


class TestHasResponseError:
    """Tests for classifying raw responses."""

    def test_success(self):
        assert has_response_error(response()) is None

    def test_non_2xx_carries_body(self):
        error = has_response_error(response(status=404, body=NO_SUCH_KEY))
        assert error.status == 404
        assert error.message == NO_SUCH_KEY.decode()

    def test_crc_mismatch_on_200(self):
        """A 200 with a mismatched CRC is still an error."""
        r = response(headers={"x-oss-hash-crc64ecma": "1"}, check_crc64=True, client_crc64=2)
        error = has_response_error(r)
        assert error.status == ERROR_CRC_INCONSISTENT


class TestBuildError:
    """Tests for error normalization."""

    def test_service_error_document(self):
        error = build_error(HttpError(status=404, message=NO_SUCH_KEY.decode()))

        assert error.code == "NoSuchKey"
        assert error.message == "The specified key does not exist."
        assert error.request_id == "ABC"
        assert error.host_id == "bucket.oss.example.com"
        assert error.status == 404
        assert error.kind == ErrorKind.PROTOCOL

    def test_malformed_xml(self):
        """Unparseable bodies become ParseXMLError with the header request id."""
        error = build_error(
            HttpError(
                status=500,
                message="<Error><Code>",
                headers=httpx.Headers({"x-oss-request-id": "FROM-HEADER"}),
            )
        )

        assert error.code == "ParseXMLError"
        assert error.message
        assert error.request_id == "FROM-HEADER"
        assert error.status == 500

    def test_wrong_root(self):
        body = "<Oops><Code>X</Code></Oops>"
        error = build_error(HttpError(status=403, message=body))

        assert error.code == "ParseXMLError"
        assert error.message == (
            "Xml format invalid, root node name is not Error. the content is:\n" + body
        )

    def test_body_request_id_wins_over_header(self):
        error = build_error(
            HttpError(
                status=404,
                message=NO_SUCH_KEY.decode(),
                headers=httpx.Headers({"x-oss-request-id": "OTHER"}),
            )
        )
        assert error.request_id == "ABC"

    def test_empty_body_keeps_code(self):
        error = build_error(HttpError(status=404, code="ServerError:404", message=""))
        assert error.code == "ServerError:404"
        assert error.status == 404

    def test_transport_error_passthrough(self):
        error = build_error(
            HttpError(
                status=TransportErrorCode.CONNECTION_REFUSED,
                code="ClientError:100007",
                message="Connection refused",
            )
        )

        assert error.code == "ClientError:100007"
        assert error.message == "Connection refused"
        assert error.kind == ErrorKind.TRANSPORT

    def test_crc_error_passthrough(self):
        error = build_error(
            HttpError(status=ERROR_CRC_INCONSISTENT, code="CrcCheckError", message="mismatch")
        )
        assert error.code == "CrcCheckError"
        assert error.kind == ErrorKind.INTEGRITY


class TestBuildResult:
    """Tests for successful results."""

    def test_fields(self):
        result = build_result(response(body=b"payload", headers={"x-oss-request-id": "RID"}))

        assert result.request_id == "RID"
        assert result.status_code == 200
        assert result.payload == b"payload"
        assert result.stream is None
