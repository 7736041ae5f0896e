"""Response and error normalization.

Turns raw attempt results into what callers see:

- successful responses are checked against the server's CRC64 when the
  request asked for end-to-end verification
- failed attempts become ``OssError`` values, parsed from the XML error
  document the service returns, or carried through from the transport
"""

import logging
import xml.etree.ElementTree as ET
from typing import Optional

from ossclient.models import (
    ERROR_CRC_INCONSISTENT,
    HttpError,
    HttpResponse,
    OssError,
    ServiceResult,
)

logger = logging.getLogger(__name__)

CRC64_HEADER = "x-oss-hash-crc64ecma"
REQUEST_ID_HEADER = "x-oss-request-id"


def _parse_crc64(value: str) -> Optional[int]:
    """Parse a declared CRC64; an unparsable value never matches."""
    try:
        return int(value.strip())
    except ValueError:
        return None


def check_crc64(response: HttpResponse) -> Optional[HttpError]:
    """Compare the client-computed CRC64 with the one the server declared.

    Args:
        response: A successful response.

    Returns:
        An HttpError with status ERROR_CRC_INCONSISTENT on mismatch,
        None when the check passes or does not apply.
    """
    request = response.request
    if request is None or not request.check_crc64:
        return None
    if CRC64_HEADER not in response.headers or response.client_crc64 is None:
        return None

    declared = response.headers[CRC64_HEADER]
    client_crc64 = response.client_crc64
    if client_crc64 == _parse_crc64(declared):
        return None

    message = (
        f"Crc64 validation failed. Expected hash:{declared} "
        f"not equal to calculated hash:{client_crc64}. "
        f"Transferred bytes:{response.transferred_bytes}. "
        f"RequestId:{response.headers.get(REQUEST_ID_HEADER, '')}"
    )
    logger.error(message)
    return HttpError(
        status=ERROR_CRC_INCONSISTENT,
        code="CrcCheckError",
        message=message,
        headers=response.headers,
    )


def has_response_error(response: HttpResponse) -> Optional[HttpError]:
    """Return the error carried by ``response``, or None if it succeeded."""
    if not 200 <= response.status_code < 300:
        return HttpError(
            status=response.status_code,
            code=f"ServerError:{response.status_code}",
            message=response.body.decode("utf-8", errors="replace"),
            headers=response.headers,
        )
    return check_crc64(response)


def _child_text(root: ET.Element, tag: str) -> str:
    node = root.find(tag)
    if node is None or node.text is None:
        return ""
    return node.text


def build_error(error: HttpError) -> OssError:
    """Normalize a failed attempt into an OssError.

    Server errors (status 300-599 with a body) are parsed as the service's
    XML error document. Anything else keeps its code and message.

    Args:
        error: The failed attempt.

    Returns:
        The structured error, with the request id taken from the
        response headers when the body did not carry one.
    """
    if 299 < error.status < 600 and error.message:
        try:
            root = ET.fromstring(error.message)
        except ET.ParseError as e:
            oss_error = OssError(code="ParseXMLError", message=str(e))
        else:
            if root.tag == "Error":
                oss_error = OssError(
                    code=_child_text(root, "Code"),
                    message=_child_text(root, "Message"),
                    request_id=_child_text(root, "RequestId"),
                    host_id=_child_text(root, "HostId"),
                )
            else:
                oss_error = OssError(
                    code="ParseXMLError",
                    message="Xml format invalid, root node name is not Error. "
                    "the content is:\n" + error.message,
                )
    else:
        oss_error = OssError(code=error.code, message=error.message)

    oss_error.status = error.status

    if not oss_error.request_id:
        oss_error.request_id = error.headers.get(REQUEST_ID_HEADER, "")

    return oss_error


def build_result(response: HttpResponse) -> ServiceResult:
    """Wrap a successful response in the generic service result."""
    return ServiceResult(
        request_id=response.headers.get(REQUEST_ID_HEADER, ""),
        status_code=response.status_code,
        headers=response.headers,
        payload=response.body,
        stream=response.stream,
    )
