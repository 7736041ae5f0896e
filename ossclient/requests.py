"""Typed operation requests.

Every request is a dataclass carrying the common capabilities (bucket, key,
extra headers, extra parameters, flags, progress sink). Operations add their
own fields and override the hooks they need:

- ``special_headers`` / ``special_parameters``: operation-specific headers
  and query parameters
- ``payload`` / ``body``: request body
- ``validate``: pre-flight checks, run before any network I/O

``requires_bucket`` and ``requires_key`` select the common bucket/key name
checks.
"""

import io
import mimetypes
import re
from dataclasses import dataclass, field
from typing import BinaryIO, ClassVar, Optional, Union
from urllib.parse import quote
from xml.sax.saxutils import escape

from ossclient.models import PartInfo, ProgressCallback, RequestFlags

# Validation codes returned by OssRequest.validate (0 means valid)
ARG_ERROR_BUCKET_NAME = 1001
ARG_ERROR_OBJECT_NAME = 1002
ARG_ERROR_ACL_INVALID = 1003
ARG_ERROR_UPLOAD_ID_EMPTY = 1004
ARG_ERROR_MULTIPARTUPLOAD_PARTLIST_EMPTY = 1005
ARG_ERROR_MULTIPARTUPLOAD_PARTNUMBER_RANGE = 1006
ARG_ERROR_DELETE_OBJECTS_KEYS_EMPTY = 1007
ARG_ERROR_URL_EMPTY = 1008
ARG_ERROR_SYMLINK_TARGET_EMPTY = 1009
ARG_ERROR_COPY_SOURCE_INVALID = 1010
ARG_ERROR_COPY_RANGE_INVALID = 1011

VALIDATION_MESSAGES = {
    ARG_ERROR_BUCKET_NAME: "The bucket name is invalid. A bucket name must be "
    "comprised of lower-case characters, numbers or dash(-) with 3-63 characters long.",
    ARG_ERROR_OBJECT_NAME: "The object key is invalid. An object key must be "
    "1-1023 bytes long and must not start with '/' or '\\'.",
    ARG_ERROR_ACL_INVALID: "The ACL is invalid.",
    ARG_ERROR_UPLOAD_ID_EMPTY: "The upload id is empty.",
    ARG_ERROR_MULTIPARTUPLOAD_PARTLIST_EMPTY: "The part list is empty.",
    ARG_ERROR_MULTIPARTUPLOAD_PARTNUMBER_RANGE: "The part number must be between 1 and 10000.",
    ARG_ERROR_DELETE_OBJECTS_KEYS_EMPTY: "The key list is empty.",
    ARG_ERROR_URL_EMPTY: "The url is empty.",
    ARG_ERROR_SYMLINK_TARGET_EMPTY: "The symlink target is empty.",
    ARG_ERROR_COPY_SOURCE_INVALID: "The copy source bucket or key is invalid.",
    ARG_ERROR_COPY_RANGE_INVALID: "The copy source range is invalid.",
}

CANNED_ACLS = ("private", "public-read", "public-read-write", "default")

MAX_PART_NUMBER = 10000

_BUCKET_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9-]{1,61}[a-z0-9]$")

Content = Union[bytes, str, BinaryIO, None]


def is_valid_bucket_name(bucket: str) -> bool:
    """Check bucket naming rules: 3-63 chars of [a-z0-9-], no leading/trailing dash."""
    return bool(bucket) and _BUCKET_NAME_RE.match(bucket) is not None


def is_valid_object_key(key: str) -> bool:
    """Check object key rules: 1-1023 UTF-8 bytes, no leading slash or backslash."""
    if not key:
        return False
    if len(key.encode("utf-8")) > 1023:
        return False
    return not key.startswith(("/", "\\"))


def to_stream(content: Content) -> BinaryIO:
    """Wrap bytes or text in a seekable stream; pass file objects through."""
    if content is None:
        return io.BytesIO(b"")
    if isinstance(content, str):
        return io.BytesIO(content.encode("utf-8"))
    if isinstance(content, (bytes, bytearray)):
        return io.BytesIO(bytes(content))
    return content


def guess_content_type(key: str) -> str:
    content_type, _ = mimetypes.guess_type(key)
    return content_type or "application/octet-stream"


def _quoted(etag: str) -> str:
    return etag if etag.startswith('"') else f'"{etag}"'


def meta_headers(metadata: dict[str, str]) -> dict[str, str]:
    """Prefix user metadata names with ``x-oss-meta-``."""
    return {f"x-oss-meta-{name}": value for name, value in metadata.items()}


@dataclass
class OssRequest:
    """Common capabilities shared by all operation requests."""

    bucket: str = ""
    key: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    parameters: dict[str, str] = field(default_factory=dict)
    flags: RequestFlags = RequestFlags.NONE
    progress_callback: Optional[ProgressCallback] = None
    response_stream: Optional[BinaryIO] = None

    requires_bucket: ClassVar[bool] = False
    requires_key: ClassVar[bool] = False
    default_flags: ClassVar[RequestFlags] = RequestFlags.NONE
    default_content_type: ClassVar[str] = "application/xml"

    def validate(self) -> int:
        """Return 0 if the request may be sent, else an ARG_ERROR_* code."""
        if self.requires_bucket and not is_valid_bucket_name(self.bucket):
            return ARG_ERROR_BUCKET_NAME
        if self.requires_key and not is_valid_object_key(self.key):
            return ARG_ERROR_OBJECT_NAME
        return 0

    def validate_message(self, code: int) -> str:
        return VALIDATION_MESSAGES.get(code, f"Unknown validation error {code}.")

    def special_headers(self) -> dict[str, str]:
        return {}

    def special_parameters(self) -> dict[str, str]:
        return {}

    def payload(self) -> str:
        return ""

    def body(self) -> Optional[BinaryIO]:
        data = self.payload()
        if not data:
            return None
        return io.BytesIO(data.encode("utf-8"))

    def all_headers(self) -> dict[str, str]:
        headers = self.special_headers()
        headers.update(self.headers)
        if not any(name.lower() == "content-type" for name in headers):
            headers["Content-Type"] = self.default_content_type
        return headers

    def all_parameters(self) -> dict[str, str]:
        parameters = self.special_parameters()
        parameters.update(self.parameters)
        return parameters

    def request_flags(self) -> RequestFlags:
        return self.flags | self.default_flags

    def path(self) -> str:
        """Full URL for requests that carry their own (pre-signed) address."""
        return ""


# Service


@dataclass
class ListBucketsRequest(OssRequest):
    prefix: str = ""
    marker: str = ""
    max_keys: Optional[int] = None

    def special_parameters(self) -> dict[str, str]:
        parameters = {}
        if self.prefix:
            parameters["prefix"] = self.prefix
        if self.marker:
            parameters["marker"] = self.marker
        if self.max_keys is not None:
            parameters["max-keys"] = str(self.max_keys)
        return parameters


# Bucket


@dataclass
class CreateBucketRequest(OssRequest):
    acl: str = ""
    storage_class: str = ""

    requires_bucket: ClassVar[bool] = True

    def validate(self) -> int:
        ret = super().validate()
        if ret == 0 and self.acl and self.acl not in CANNED_ACLS:
            return ARG_ERROR_ACL_INVALID
        return ret

    def special_headers(self) -> dict[str, str]:
        if self.acl:
            return {"x-oss-acl": self.acl}
        return {}

    def payload(self) -> str:
        if not self.storage_class:
            return ""
        return (
            "<CreateBucketConfiguration>"
            f"<StorageClass>{escape(self.storage_class)}</StorageClass>"
            "</CreateBucketConfiguration>"
        )


@dataclass
class DeleteBucketRequest(OssRequest):
    requires_bucket: ClassVar[bool] = True


@dataclass
class SetBucketAclRequest(OssRequest):
    acl: str = "private"

    requires_bucket: ClassVar[bool] = True

    def validate(self) -> int:
        ret = super().validate()
        if ret == 0 and self.acl not in CANNED_ACLS:
            return ARG_ERROR_ACL_INVALID
        return ret

    def special_headers(self) -> dict[str, str]:
        return {"x-oss-acl": self.acl}

    def special_parameters(self) -> dict[str, str]:
        return {"acl": ""}


@dataclass
class GetBucketAclRequest(OssRequest):
    requires_bucket: ClassVar[bool] = True

    def special_parameters(self) -> dict[str, str]:
        return {"acl": ""}


@dataclass
class GetBucketLocationRequest(OssRequest):
    requires_bucket: ClassVar[bool] = True

    def special_parameters(self) -> dict[str, str]:
        return {"location": ""}


@dataclass
class ListObjectsRequest(OssRequest):
    prefix: str = ""
    marker: str = ""
    delimiter: str = ""
    max_keys: Optional[int] = None
    encoding_type: str = ""

    requires_bucket: ClassVar[bool] = True

    def special_parameters(self) -> dict[str, str]:
        parameters = {}
        if self.prefix:
            parameters["prefix"] = self.prefix
        if self.marker:
            parameters["marker"] = self.marker
        if self.delimiter:
            parameters["delimiter"] = self.delimiter
        if self.max_keys is not None:
            parameters["max-keys"] = str(self.max_keys)
        if self.encoding_type:
            parameters["encoding-type"] = self.encoding_type
        return parameters


# Object


@dataclass
class PutObjectRequest(OssRequest):
    """Upload ``content`` as a whole object.

    ``content`` may be bytes, text, or a seekable binary file object. Set
    ``content_md5`` to have the builder compute and send Content-MD5.
    """

    content: Content = None
    content_type: str = ""
    metadata: dict[str, str] = field(default_factory=dict)
    content_md5: bool = False

    requires_bucket: ClassVar[bool] = True
    requires_key: ClassVar[bool] = True
    default_flags: ClassVar[RequestFlags] = RequestFlags.CHECK_CRC64

    def special_headers(self) -> dict[str, str]:
        headers = meta_headers(self.metadata)
        headers["Content-Type"] = self.content_type or guess_content_type(self.key)
        return headers

    def body(self) -> Optional[BinaryIO]:
        return to_stream(self.content)

    def request_flags(self) -> RequestFlags:
        flags = super().request_flags()
        if self.content_md5:
            flags |= RequestFlags.CONTENT_MD5
        return flags


@dataclass
class GetObjectRequest(OssRequest):
    """Download an object, optionally a byte range of it (inclusive)."""

    range: Optional[tuple[int, int]] = None

    requires_bucket: ClassVar[bool] = True
    requires_key: ClassVar[bool] = True
    default_flags: ClassVar[RequestFlags] = RequestFlags.CHECK_CRC64

    def special_headers(self) -> dict[str, str]:
        if self.range is None:
            return {}
        start, end = self.range
        return {"Range": f"bytes={start}-{end}"}


@dataclass
class HeadObjectRequest(OssRequest):
    requires_bucket: ClassVar[bool] = True
    requires_key: ClassVar[bool] = True


@dataclass
class GetObjectMetaRequest(OssRequest):
    requires_bucket: ClassVar[bool] = True
    requires_key: ClassVar[bool] = True

    def special_parameters(self) -> dict[str, str]:
        return {"objectMeta": ""}


@dataclass
class DeleteObjectRequest(OssRequest):
    requires_bucket: ClassVar[bool] = True
    requires_key: ClassVar[bool] = True


@dataclass
class DeleteObjectsRequest(OssRequest):
    keys: list[str] = field(default_factory=list)
    quiet: bool = False

    requires_bucket: ClassVar[bool] = True
    default_flags: ClassVar[RequestFlags] = RequestFlags.CONTENT_MD5

    def validate(self) -> int:
        ret = super().validate()
        if ret != 0:
            return ret
        if not self.keys:
            return ARG_ERROR_DELETE_OBJECTS_KEYS_EMPTY
        return 0

    def special_parameters(self) -> dict[str, str]:
        return {"delete": ""}

    def payload(self) -> str:
        objects = "".join(
            f"<Object><Key>{escape(key)}</Key></Object>" for key in self.keys
        )
        quiet = "true" if self.quiet else "false"
        return f"<Delete><Quiet>{quiet}</Quiet>{objects}</Delete>"


@dataclass
class CopyObjectRequest(OssRequest):
    source_bucket: str = ""
    source_key: str = ""
    metadata: dict[str, str] = field(default_factory=dict)

    requires_bucket: ClassVar[bool] = True
    requires_key: ClassVar[bool] = True

    def validate(self) -> int:
        ret = super().validate()
        if ret != 0:
            return ret
        if not is_valid_bucket_name(self.source_bucket) or not is_valid_object_key(self.source_key):
            return ARG_ERROR_COPY_SOURCE_INVALID
        return 0

    def special_headers(self) -> dict[str, str]:
        headers = meta_headers(self.metadata)
        headers["x-oss-copy-source"] = f"/{self.source_bucket}/{quote(self.source_key)}"
        if self.metadata:
            headers["x-oss-metadata-directive"] = "REPLACE"
        return headers


@dataclass
class AppendObjectRequest(OssRequest):
    position: int = 0
    content: Content = None
    content_type: str = ""

    requires_bucket: ClassVar[bool] = True
    requires_key: ClassVar[bool] = True

    def special_headers(self) -> dict[str, str]:
        return {"Content-Type": self.content_type or guess_content_type(self.key)}

    def special_parameters(self) -> dict[str, str]:
        return {"append": "", "position": str(self.position)}

    def body(self) -> Optional[BinaryIO]:
        return to_stream(self.content)


@dataclass
class GetObjectAclRequest(OssRequest):
    requires_bucket: ClassVar[bool] = True
    requires_key: ClassVar[bool] = True

    def special_parameters(self) -> dict[str, str]:
        return {"acl": ""}


@dataclass
class SetObjectAclRequest(OssRequest):
    acl: str = "default"

    requires_bucket: ClassVar[bool] = True
    requires_key: ClassVar[bool] = True

    def validate(self) -> int:
        ret = super().validate()
        if ret == 0 and self.acl not in CANNED_ACLS:
            return ARG_ERROR_ACL_INVALID
        return ret

    def special_headers(self) -> dict[str, str]:
        return {"x-oss-object-acl": self.acl}

    def special_parameters(self) -> dict[str, str]:
        return {"acl": ""}


@dataclass
class CreateSymlinkRequest(OssRequest):
    target: str = ""

    requires_bucket: ClassVar[bool] = True
    requires_key: ClassVar[bool] = True

    def validate(self) -> int:
        ret = super().validate()
        if ret == 0 and not self.target:
            return ARG_ERROR_SYMLINK_TARGET_EMPTY
        return ret

    def special_headers(self) -> dict[str, str]:
        return {"x-oss-symlink-target": quote(self.target)}

    def special_parameters(self) -> dict[str, str]:
        return {"symlink": ""}


@dataclass
class GetSymlinkRequest(OssRequest):
    requires_bucket: ClassVar[bool] = True
    requires_key: ClassVar[bool] = True

    def special_parameters(self) -> dict[str, str]:
        return {"symlink": ""}


@dataclass
class RestoreObjectRequest(OssRequest):
    """Restore an Archive or ColdArchive object so it can be read."""

    requires_bucket: ClassVar[bool] = True
    requires_key: ClassVar[bool] = True

    def special_parameters(self) -> dict[str, str]:
        return {"restore": ""}


# Multipart


@dataclass
class InitiateMultipartUploadRequest(OssRequest):
    content_type: str = ""
    metadata: dict[str, str] = field(default_factory=dict)

    requires_bucket: ClassVar[bool] = True
    requires_key: ClassVar[bool] = True

    def special_headers(self) -> dict[str, str]:
        headers = meta_headers(self.metadata)
        headers["Content-Type"] = self.content_type or guess_content_type(self.key)
        return headers

    def special_parameters(self) -> dict[str, str]:
        return {"uploads": ""}


@dataclass
class UploadPartRequest(OssRequest):
    upload_id: str = ""
    part_number: int = 1
    content: Content = None
    content_md5: bool = False

    requires_bucket: ClassVar[bool] = True
    requires_key: ClassVar[bool] = True
    default_flags: ClassVar[RequestFlags] = RequestFlags.CHECK_CRC64

    def validate(self) -> int:
        ret = super().validate()
        if ret != 0:
            return ret
        if not self.upload_id:
            return ARG_ERROR_UPLOAD_ID_EMPTY
        if not 1 <= self.part_number <= MAX_PART_NUMBER:
            return ARG_ERROR_MULTIPARTUPLOAD_PARTNUMBER_RANGE
        return 0

    def special_parameters(self) -> dict[str, str]:
        return {"partNumber": str(self.part_number), "uploadId": self.upload_id}

    def body(self) -> Optional[BinaryIO]:
        return to_stream(self.content)

    def request_flags(self) -> RequestFlags:
        flags = super().request_flags()
        if self.content_md5:
            flags |= RequestFlags.CONTENT_MD5
        return flags


@dataclass
class UploadPartCopyRequest(OssRequest):
    """Copy a byte range of an existing object into one part of an upload.

    ``source_range`` is an inclusive ``(first, last)`` byte pair; None
    copies the whole source object.
    """

    upload_id: str = ""
    part_number: int = 1
    source_bucket: str = ""
    source_key: str = ""
    source_range: Optional[tuple[int, int]] = None

    requires_bucket: ClassVar[bool] = True
    requires_key: ClassVar[bool] = True

    def validate(self) -> int:
        ret = super().validate()
        if ret != 0:
            return ret
        if not self.upload_id:
            return ARG_ERROR_UPLOAD_ID_EMPTY
        if not 1 <= self.part_number <= MAX_PART_NUMBER:
            return ARG_ERROR_MULTIPARTUPLOAD_PARTNUMBER_RANGE
        if not is_valid_bucket_name(self.source_bucket) or not is_valid_object_key(self.source_key):
            return ARG_ERROR_COPY_SOURCE_INVALID
        if self.source_range is not None:
            first, last = self.source_range
            if first < 0 or last < first:
                return ARG_ERROR_COPY_RANGE_INVALID
        return 0

    def special_headers(self) -> dict[str, str]:
        headers = {"x-oss-copy-source": f"/{self.source_bucket}/{quote(self.source_key)}"}
        if self.source_range is not None:
            first, last = self.source_range
            headers["x-oss-copy-source-range"] = f"bytes={first}-{last}"
        return headers

    def special_parameters(self) -> dict[str, str]:
        return {"partNumber": str(self.part_number), "uploadId": self.upload_id}


@dataclass
class CompleteMultipartUploadRequest(OssRequest):
    upload_id: str = ""
    parts: list[PartInfo] = field(default_factory=list)
    encoding_type: str = ""

    requires_bucket: ClassVar[bool] = True
    requires_key: ClassVar[bool] = True

    def validate(self) -> int:
        ret = super().validate()
        if ret != 0:
            return ret
        if not self.upload_id:
            return ARG_ERROR_UPLOAD_ID_EMPTY
        if not self.parts:
            return ARG_ERROR_MULTIPARTUPLOAD_PARTLIST_EMPTY
        return 0

    def special_parameters(self) -> dict[str, str]:
        parameters = {"uploadId": self.upload_id}
        if self.encoding_type:
            parameters["encoding-type"] = self.encoding_type
        return parameters

    def payload(self) -> str:
        parts = "".join(
            "<Part>"
            f"<PartNumber>{part.part_number}</PartNumber>"
            f"<ETag>{escape(_quoted(part.etag))}</ETag>"
            "</Part>"
            for part in sorted(self.parts, key=lambda p: p.part_number)
        )
        return f"<CompleteMultipartUpload>{parts}</CompleteMultipartUpload>"


@dataclass
class AbortMultipartUploadRequest(OssRequest):
    upload_id: str = ""

    requires_bucket: ClassVar[bool] = True
    requires_key: ClassVar[bool] = True

    def validate(self) -> int:
        ret = super().validate()
        if ret == 0 and not self.upload_id:
            return ARG_ERROR_UPLOAD_ID_EMPTY
        return ret

    def special_parameters(self) -> dict[str, str]:
        return {"uploadId": self.upload_id}


@dataclass
class ListPartsRequest(OssRequest):
    upload_id: str = ""
    max_parts: Optional[int] = None
    part_number_marker: Optional[int] = None

    requires_bucket: ClassVar[bool] = True
    requires_key: ClassVar[bool] = True

    def validate(self) -> int:
        ret = super().validate()
        if ret == 0 and not self.upload_id:
            return ARG_ERROR_UPLOAD_ID_EMPTY
        return ret

    def special_parameters(self) -> dict[str, str]:
        parameters = {"uploadId": self.upload_id}
        if self.max_parts is not None:
            parameters["max-parts"] = str(self.max_parts)
        if self.part_number_marker is not None:
            parameters["part-number-marker"] = str(self.part_number_marker)
        return parameters


@dataclass
class ListMultipartUploadsRequest(OssRequest):
    prefix: str = ""
    delimiter: str = ""
    key_marker: str = ""
    upload_id_marker: str = ""
    max_uploads: Optional[int] = None
    encoding_type: str = ""

    requires_bucket: ClassVar[bool] = True

    def special_parameters(self) -> dict[str, str]:
        parameters = {"uploads": ""}
        if self.prefix:
            parameters["prefix"] = self.prefix
        if self.delimiter:
            parameters["delimiter"] = self.delimiter
        if self.key_marker:
            parameters["key-marker"] = self.key_marker
        if self.upload_id_marker:
            parameters["upload-id-marker"] = self.upload_id_marker
        if self.encoding_type:
            parameters["encoding-type"] = self.encoding_type
        if self.max_uploads is not None:
            parameters["max-uploads"] = str(self.max_uploads)
        return parameters


# Pre-signed URLs


@dataclass
class GeneratePresignedUrlRequest:
    """Parameters of a URL that grants one operation until ``expires``.

    Args:
        bucket: Bucket name.
        key: Object key.
        method: HTTP method the URL is valid for.
        expires: Expiry as Unix epoch seconds.
        content_type: Content-Type the uploader must send (PUT).
        content_md5: Content-MD5 the uploader must send (PUT).
        metadata: User metadata the uploader must send.
        parameters: Extra query parameters (e.g. response overrides).
    """

    bucket: str
    key: str
    method: str = "GET"
    expires: int = 0
    content_type: str = ""
    content_md5: str = ""
    metadata: dict[str, str] = field(default_factory=dict)
    parameters: dict[str, str] = field(default_factory=dict)


@dataclass
class GetObjectByUrlRequest(OssRequest):
    url: str = ""
    range: Optional[tuple[int, int]] = None

    default_flags: ClassVar[RequestFlags] = RequestFlags.PARAM_IN_PATH | RequestFlags.CHECK_CRC64

    def validate(self) -> int:
        return 0 if self.url else ARG_ERROR_URL_EMPTY

    def all_headers(self) -> dict[str, str]:
        headers = dict(self.headers)
        if self.range is not None:
            start, end = self.range
            headers["Range"] = f"bytes={start}-{end}"
        return headers

    def path(self) -> str:
        return self.url


@dataclass
class PutObjectByUrlRequest(OssRequest):
    url: str = ""
    content: Content = None

    default_flags: ClassVar[RequestFlags] = RequestFlags.PARAM_IN_PATH | RequestFlags.CHECK_CRC64

    def validate(self) -> int:
        return 0 if self.url else ARG_ERROR_URL_EMPTY

    def all_headers(self) -> dict[str, str]:
        return dict(self.headers)

    def body(self) -> Optional[BinaryIO]:
        return to_stream(self.content)

    def path(self) -> str:
        return self.url
