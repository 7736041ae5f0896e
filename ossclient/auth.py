"""Credentials and request signing.

Requests are authenticated with an HMAC-SHA1 signature computed over a
canonical string:

    VERB\\n
    Content-MD5\\n
    Content-Type\\n
    Date\\n
    CanonicalizedOSSHeaders
    CanonicalizedResource

Only the query parameters listed in ``SIGNED_PARAMETERS`` take part in the
canonical resource, so cosmetic parameters can be added to a URL without
invalidating its signature.
"""

import base64
import hashlib
import hmac
import os
from abc import ABC, abstractmethod
from typing import Mapping

from ossclient.models import Credentials

OSS_HEADER_PREFIX = "x-oss-"

# Sub-resources and overrides that change request semantics
SIGNED_PARAMETERS = frozenset({
    "acl",
    "append",
    "bucketInfo",
    "callback",
    "callback-var",
    "comp",
    "continuation-token",
    "cors",
    "delete",
    "encryption",
    "endTime",
    "inventory",
    "inventoryId",
    "lifecycle",
    "live",
    "location",
    "logging",
    "objectMeta",
    "partNumber",
    "policy",
    "position",
    "qos",
    "referer",
    "requestPayment",
    "response-cache-control",
    "response-content-disposition",
    "response-content-encoding",
    "response-content-language",
    "response-content-type",
    "response-expires",
    "restore",
    "security-token",
    "startTime",
    "stat",
    "status",
    "storageCapacity",
    "symlink",
    "tagging",
    "uploadId",
    "uploads",
    "versionId",
    "versioning",
    "versions",
    "vod",
    "website",
    "worm",
    "wormExtend",
    "wormId",
    "x-oss-process",
    "x-oss-request-payer",
    "x-oss-traffic-limit",
})


class CredentialsError(Exception):
    """Raised when a provider cannot supply credentials."""

    pass


class CredentialsProvider(ABC):
    """Source of credentials, consulted once per signing pass.

    Implementations must tolerate concurrent calls; any refresh policy is
    theirs to own.
    """

    @abstractmethod
    def get_credentials(self) -> Credentials:
        """Return the credentials to sign the current request with."""
        pass


class StaticCredentialsProvider(CredentialsProvider):
    """Provider returning a fixed set of credentials."""

    def __init__(self, access_key_id: str, access_key_secret: str, session_token: str = ""):
        self._credentials = Credentials(
            access_key_id=access_key_id,
            access_key_secret=access_key_secret,
            session_token=session_token,
        )

    def get_credentials(self) -> Credentials:
        return self._credentials


class EnvironmentCredentialsProvider(CredentialsProvider):
    """Provider reading ``OSS_ACCESS_KEY_ID`` and friends on every call."""

    def get_credentials(self) -> Credentials:
        access_key_id = os.environ.get("OSS_ACCESS_KEY_ID")
        access_key_secret = os.environ.get("OSS_ACCESS_KEY_SECRET")
        if not access_key_id or not access_key_secret:
            raise CredentialsError(
                "OSS_ACCESS_KEY_ID and OSS_ACCESS_KEY_SECRET must be set"
            )
        return Credentials(
            access_key_id=access_key_id,
            access_key_secret=access_key_secret,
            session_token=os.environ.get("OSS_SECURITY_TOKEN", ""),
        )


class HmacSha1Signer:
    """Signs canonical strings with HMAC-SHA1."""

    name = "HmacSHA1"
    version = "1.0"

    def generate(self, canonical_string: str, secret: str) -> str:
        """Compute the base64-encoded signature of ``canonical_string``.

        Args:
            canonical_string: Output of ``build_canonical_string``.
            secret: The access key secret.

        Returns:
            The signature as an ASCII string.
        """
        digest = hmac.new(
            secret.encode("utf-8"),
            canonical_string.encode("utf-8"),
            hashlib.sha1,
        ).digest()
        return base64.b64encode(digest).decode("ascii")


def canonical_resource(bucket: str = "", key: str = "") -> str:
    """Build ``/bucket/key`` the way it enters the canonical string."""
    resource = "/"
    if bucket:
        resource += bucket + "/"
    if key:
        resource += key
    return resource


def _header(headers: Mapping[str, str], name: str) -> str:
    lowered = name.lower()
    for header_name, value in headers.items():
        if header_name.lower() == lowered:
            return value
    return ""


def build_canonical_string(
    method: str,
    resource: str,
    date: str,
    headers: Mapping[str, str],
    parameters: Mapping[str, str],
) -> str:
    """Build the exact string a request signature is computed over.

    Args:
        method: HTTP method, e.g. ``"PUT"``.
        resource: Canonical resource from ``canonical_resource``.
        date: Value of the Date header (or Expires for pre-signed URLs).
        headers: Request headers; lookups are case-insensitive.
        parameters: Query parameters; only ``SIGNED_PARAMETERS`` are used.

    Returns:
        The canonical string.
    """
    parts = [
        method.upper() + "\n",
        _header(headers, "Content-MD5") + "\n",
        _header(headers, "Content-Type") + "\n",
        date + "\n",
    ]

    oss_headers = sorted(
        (name.lower(), value.strip())
        for name, value in headers.items()
        if name.lower().startswith(OSS_HEADER_PREFIX)
    )
    for name, value in oss_headers:
        parts.append(f"{name}:{value}\n")

    parts.append(resource)

    signed = sorted(
        (name, value)
        for name, value in parameters.items()
        if name in SIGNED_PARAMETERS
    )
    if signed:
        query = "&".join(
            f"{name}={value}" if value else name for name, value in signed
        )
        parts.append("?" + query)

    return "".join(parts)
