"""Turns typed operation requests into signed transport requests."""

import base64
import hashlib
import ipaddress
import logging
from email.utils import formatdate
from typing import BinaryIO, Mapping, Optional
from urllib.parse import quote, urlsplit

import httpx

from ossclient.auth import (
    CredentialsProvider,
    HmacSha1Signer,
    build_canonical_string,
    canonical_resource,
)
from ossclient.config import ClientConfiguration
from ossclient.models import HttpRequest, RequestFlags
from ossclient.requests import OssRequest

logger = logging.getLogger(__name__)

# Read size used when hashing request bodies
MD5_CHUNK_SIZE = 64 * 1024


def gmt_now() -> str:
    """Current time in RFC 1123 format, e.g. ``Sun, 18 Oct 2026 08:00:00 GMT``."""
    return formatdate(usegmt=True)


def stream_length(body: BinaryIO) -> int:
    """Bytes remaining from the current position, leaving the position intact."""
    position = body.tell()
    end = body.seek(0, 2)
    body.seek(position)
    return end - position


def compute_content_md5(body: BinaryIO) -> str:
    """Base64 MD5 of the bytes from the current position to the end.

    The stream is returned to its starting position so the transfer that
    follows reads the same bytes.
    """
    position = body.tell()
    md5 = hashlib.md5()
    try:
        for chunk in iter(lambda: body.read(MD5_CHUNK_SIZE), b""):
            md5.update(chunk)
    finally:
        body.seek(position)
    return base64.b64encode(md5.digest()).decode("ascii")


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def _split_endpoint(endpoint: str, default_scheme: str) -> tuple[str, str]:
    if "://" not in endpoint:
        endpoint = f"{default_scheme}://{endpoint}"
    parts = urlsplit(endpoint)
    return parts.scheme, parts.netloc


def combine_host(
    endpoint: str,
    bucket: str,
    is_cname: bool = False,
    path_style: bool = False,
    default_scheme: str = "http",
) -> str:
    """Build ``scheme://host`` for a request against ``bucket``.

    The bucket becomes a sub-domain of the endpoint unless the endpoint is
    a custom domain already bound to the bucket, an IP address, or path
    style is requested.
    """
    scheme, netloc = _split_endpoint(endpoint, default_scheme)
    hostname = urlsplit(f"{scheme}://{netloc}").hostname or ""
    if bucket and not is_cname and not path_style and not _is_ip(hostname):
        netloc = f"{bucket}.{netloc}"
    return f"{scheme}://{netloc}"


def combine_path(
    endpoint: str,
    bucket: str,
    key: str,
    is_cname: bool = False,
    path_style: bool = False,
    default_scheme: str = "http",
) -> str:
    """Build the URL path; the bucket appears in it only for path-style access."""
    scheme, netloc = _split_endpoint(endpoint, default_scheme)
    hostname = urlsplit(f"{scheme}://{netloc}").hostname or ""
    path = "/"
    if bucket and not is_cname and (path_style or _is_ip(hostname)):
        path += bucket + "/"
    if key:
        path += quote(key, safe="/")
    return path


def combine_query(parameters: Mapping[str, str]) -> str:
    """URL-encode parameters in order; empty values serialize as bare names."""
    pairs = []
    for name, value in parameters.items():
        if value:
            pairs.append(f"{quote(name, safe='')}={quote(value, safe='')}")
        else:
            pairs.append(quote(name, safe=""))
    return "&".join(pairs)


class RequestBuilder:
    """Assembles signed ``HttpRequest`` objects.

    Args:
        configuration: Client configuration (user agent, addressing, CRC).
        credentials_provider: Source of signing credentials.
        signer: Signature algorithm.
    """

    def __init__(
        self,
        configuration: ClientConfiguration,
        credentials_provider: CredentialsProvider,
        signer: Optional[HmacSha1Signer] = None,
    ):
        self.configuration = configuration
        self.credentials_provider = credentials_provider
        self.signer = signer or HmacSha1Signer()

    def build(self, endpoint: str, request: OssRequest, method: str) -> HttpRequest:
        """Build the transport request for one attempt.

        Args:
            endpoint: Service endpoint, with or without scheme.
            request: A validated operation request.
            method: HTTP method.

        Returns:
            The signed request, ready to send.

        Raises:
            CredentialsError: If the credentials provider fails.
        """
        flags = request.request_flags()
        http_request = HttpRequest(method=method.upper())
        http_request.response_stream = request.response_stream
        if request.response_stream is not None and request.response_stream.seekable():
            http_request.response_offset = request.response_stream.tell()

        self._add_headers(http_request, request.all_headers())
        self._add_body(
            http_request,
            request.body(),
            bool(flags & RequestFlags.CONTENT_MD5),
        )

        if flags & RequestFlags.PARAM_IN_PATH:
            http_request.url = request.path()
        else:
            self._add_sign_info(http_request, request)
            self._add_url(http_request, endpoint, request)

        self._add_other(http_request, request, flags)
        return http_request

    def _add_headers(self, http_request: HttpRequest, headers: Mapping[str, str]) -> None:
        for name, value in headers.items():
            http_request.headers[name] = value

        http_request.headers["User-Agent"] = self.configuration.user_agent

        if "Date" not in http_request.headers:
            http_request.headers["Date"] = gmt_now()

    def _add_body(self, http_request: HttpRequest, body: BinaryIO, content_md5: bool) -> None:
        headers = http_request.headers

        if body is None:
            if http_request.method in ("GET", "POST"):
                headers["Content-Length"] = "0"
            elif "Content-Length" in headers:
                del headers["Content-Length"]
            return

        if "Content-Length" not in headers:
            headers["Content-Length"] = str(stream_length(body))

        if content_md5 and "Content-MD5" not in headers:
            headers["Content-MD5"] = compute_content_md5(body)

        http_request.body = body
        http_request.body_offset = body.tell()

    def _add_sign_info(self, http_request: HttpRequest, request: OssRequest) -> None:
        credentials = self.credentials_provider.get_credentials()
        if credentials.session_token:
            http_request.headers["x-oss-security-token"] = credentials.session_token

        parameters = dict(sorted(request.all_parameters().items()))
        resource = canonical_resource(request.bucket, request.key)
        canonical = build_canonical_string(
            http_request.method,
            resource,
            http_request.headers["Date"],
            http_request.headers,
            parameters,
        )
        signature = self.signer.generate(canonical, credentials.access_key_secret)
        http_request.headers["Authorization"] = f"OSS {credentials.access_key_id}:{signature}"

        logger.debug("request(%s) canonical string: %r", id(http_request), canonical)

    def _add_url(self, http_request: HttpRequest, endpoint: str, request: OssRequest) -> None:
        config = self.configuration
        host = combine_host(
            endpoint, request.bucket, config.is_cname, config.path_style, config.scheme
        )
        path = combine_path(
            endpoint, request.bucket, request.key, config.is_cname, config.path_style, config.scheme
        )
        url = host + path
        query = combine_query(request.all_parameters())
        if query:
            url += "?" + query
        http_request.url = url

    def _add_other(self, http_request: HttpRequest, request: OssRequest, flags: RequestFlags) -> None:
        http_request.progress_callback = request.progress_callback

        if (
            self.configuration.enable_crc64
            and flags & RequestFlags.CHECK_CRC64
            and "Range" not in http_request.headers
        ):
            http_request.check_crc64 = True
