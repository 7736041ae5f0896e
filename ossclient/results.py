"""Typed operation results.

Results are decoded from the generic ``ServiceResult`` either by parsing
its XML payload or by reading response headers. Decoding problems raise
``ResultParseError``; the client turns them into a failed outcome so a
half-populated result never reaches the caller.
"""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import BinaryIO, Optional
from urllib.parse import unquote_plus

import httpx

from ossclient.models import PartInfo, ServiceResult


class ResultParseError(Exception):
    """Raised when a payload does not match the expected result document."""

    pass


def parse_xml(payload: bytes, root_tag: str) -> ET.Element:
    """Parse ``payload`` and check its root element.

    Raises:
        ResultParseError: If the payload is not XML or has another root.
    """
    try:
        root = ET.fromstring(payload)
    except ET.ParseError as e:
        raise ResultParseError(str(e)) from e
    if root.tag != root_tag:
        raise ResultParseError(f"Unexpected root element {root.tag}, expected {root_tag}")
    return root


def findtext(element: ET.Element, path: str, default: str = "") -> str:
    text = element.findtext(path)
    return default if text is None else text


def _to_int(value: str, default: Optional[int] = None) -> Optional[int]:
    if value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ResultParseError(f"Invalid integer value: {value!r}") from e


def _to_bool(value: str) -> bool:
    return value.lower() == "true"


def _crc64(headers: httpx.Headers) -> Optional[int]:
    value = headers.get("x-oss-hash-crc64ecma")
    return int(value) if value and value.isdigit() else None


@dataclass
class VoidResult:
    request_id: str = ""

    @classmethod
    def from_service_result(cls, result: ServiceResult) -> "VoidResult":
        return cls(request_id=result.request_id)


@dataclass
class Bucket:
    name: str
    location: str = ""
    creation_date: str = ""
    extranet_endpoint: str = ""
    intranet_endpoint: str = ""
    storage_class: str = ""


@dataclass
class ListBucketsResult:
    request_id: str = ""
    prefix: str = ""
    marker: str = ""
    max_keys: Optional[int] = None
    is_truncated: bool = False
    next_marker: str = ""
    owner_id: str = ""
    owner_display_name: str = ""
    buckets: list[Bucket] = field(default_factory=list)

    @classmethod
    def from_service_result(cls, result: ServiceResult) -> "ListBucketsResult":
        root = parse_xml(result.payload, "ListAllMyBucketsResult")
        buckets = [
            Bucket(
                name=findtext(node, "Name"),
                location=findtext(node, "Location"),
                creation_date=findtext(node, "CreationDate"),
                extranet_endpoint=findtext(node, "ExtranetEndpoint"),
                intranet_endpoint=findtext(node, "IntranetEndpoint"),
                storage_class=findtext(node, "StorageClass"),
            )
            for node in root.iterfind("Buckets/Bucket")
        ]
        return cls(
            request_id=result.request_id,
            prefix=findtext(root, "Prefix"),
            marker=findtext(root, "Marker"),
            max_keys=_to_int(findtext(root, "MaxKeys")),
            is_truncated=_to_bool(findtext(root, "IsTruncated")),
            next_marker=findtext(root, "NextMarker"),
            owner_id=findtext(root, "Owner/ID"),
            owner_display_name=findtext(root, "Owner/DisplayName"),
            buckets=buckets,
        )


@dataclass
class AclResult:
    """ACL of a bucket or an object."""

    request_id: str = ""
    owner_id: str = ""
    owner_display_name: str = ""
    acl: str = ""

    @classmethod
    def from_service_result(cls, result: ServiceResult) -> "AclResult":
        root = parse_xml(result.payload, "AccessControlPolicy")
        acl = root.findtext("AccessControlList/Grant")
        if acl is None:
            raise ResultParseError("AccessControlList/Grant is missing")
        return cls(
            request_id=result.request_id,
            owner_id=findtext(root, "Owner/ID"),
            owner_display_name=findtext(root, "Owner/DisplayName"),
            acl=acl,
        )


@dataclass
class BucketLocationResult:
    request_id: str = ""
    location: str = ""

    @classmethod
    def from_service_result(cls, result: ServiceResult) -> "BucketLocationResult":
        root = parse_xml(result.payload, "LocationConstraint")
        return cls(request_id=result.request_id, location=root.text or "")


@dataclass
class ObjectSummary:
    key: str
    etag: str = ""
    size: int = 0
    last_modified: str = ""
    storage_class: str = ""
    type: str = ""


@dataclass
class ListObjectsResult:
    request_id: str = ""
    name: str = ""
    prefix: str = ""
    marker: str = ""
    delimiter: str = ""
    max_keys: Optional[int] = None
    is_truncated: bool = False
    next_marker: str = ""
    encoding_type: str = ""
    objects: list[ObjectSummary] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)

    @classmethod
    def from_service_result(cls, result: ServiceResult) -> "ListObjectsResult":
        root = parse_xml(result.payload, "ListBucketResult")
        encoding_type = findtext(root, "EncodingType")

        def decode(value: str) -> str:
            return unquote_plus(value) if encoding_type == "url" else value

        objects = [
            ObjectSummary(
                key=decode(findtext(node, "Key")),
                etag=findtext(node, "ETag").strip('"'),
                size=_to_int(findtext(node, "Size"), 0),
                last_modified=findtext(node, "LastModified"),
                storage_class=findtext(node, "StorageClass"),
                type=findtext(node, "Type"),
            )
            for node in root.iterfind("Contents")
        ]
        prefixes = [
            decode(findtext(node, "Prefix"))
            for node in root.iterfind("CommonPrefixes")
        ]
        return cls(
            request_id=result.request_id,
            name=findtext(root, "Name"),
            prefix=decode(findtext(root, "Prefix")),
            marker=decode(findtext(root, "Marker")),
            delimiter=decode(findtext(root, "Delimiter")),
            max_keys=_to_int(findtext(root, "MaxKeys")),
            is_truncated=_to_bool(findtext(root, "IsTruncated")),
            next_marker=decode(findtext(root, "NextMarker")),
            encoding_type=encoding_type,
            objects=objects,
            common_prefixes=prefixes,
        )


@dataclass
class ObjectMetadata:
    """Headers describing an object, as returned by HEAD and GET."""

    request_id: str = ""
    headers: httpx.Headers = field(default_factory=httpx.Headers)

    @property
    def etag(self) -> str:
        return self.headers.get("ETag", "").strip('"')

    @property
    def content_length(self) -> Optional[int]:
        value = self.headers.get("Content-Length")
        return int(value) if value and value.isdigit() else None

    @property
    def content_type(self) -> str:
        return self.headers.get("Content-Type", "")

    @property
    def last_modified(self) -> str:
        return self.headers.get("Last-Modified", "")

    @property
    def crc64(self) -> Optional[int]:
        return _crc64(self.headers)

    @property
    def user_metadata(self) -> dict[str, str]:
        prefix = "x-oss-meta-"
        return {
            name[len(prefix):]: value
            for name, value in self.headers.items()
            if name.lower().startswith(prefix)
        }

    @classmethod
    def from_service_result(cls, result: ServiceResult) -> "ObjectMetadata":
        return cls(request_id=result.request_id, headers=result.headers)


@dataclass
class GetObjectResult:
    """Downloaded object.

    ``content`` holds the body unless the request supplied its own
    ``response_stream``, in which case ``stream`` is that stream.
    """

    request_id: str = ""
    bucket: str = ""
    key: str = ""
    metadata: ObjectMetadata = field(default_factory=ObjectMetadata)
    content: bytes = b""
    stream: Optional[BinaryIO] = None

    @classmethod
    def from_service_result(
        cls, result: ServiceResult, bucket: str = "", key: str = ""
    ) -> "GetObjectResult":
        return cls(
            request_id=result.request_id,
            bucket=bucket,
            key=key,
            metadata=ObjectMetadata.from_service_result(result),
            content=result.payload,
            stream=result.stream,
        )


@dataclass
class PutObjectResult:
    request_id: str = ""
    etag: str = ""
    crc64: Optional[int] = None
    version_id: str = ""

    @classmethod
    def from_service_result(cls, result: ServiceResult) -> "PutObjectResult":
        return cls(
            request_id=result.request_id,
            etag=result.headers.get("ETag", "").strip('"'),
            crc64=_crc64(result.headers),
            version_id=result.headers.get("x-oss-version-id", ""),
        )


@dataclass
class AppendObjectResult:
    request_id: str = ""
    next_position: int = 0
    crc64: int = 0

    @classmethod
    def from_service_result(cls, result: ServiceResult) -> "AppendObjectResult":
        position = result.headers.get("x-oss-next-append-position")
        crc64 = _crc64(result.headers)
        if position is None or not position.isdigit() or crc64 is None:
            raise ResultParseError("no position or no crc64")
        return cls(
            request_id=result.request_id,
            next_position=int(position),
            crc64=crc64,
        )


@dataclass
class CopyObjectResult:
    request_id: str = ""
    etag: str = ""
    last_modified: str = ""

    @classmethod
    def from_service_result(cls, result: ServiceResult) -> "CopyObjectResult":
        root = parse_xml(result.payload, "CopyObjectResult")
        return cls(
            request_id=result.request_id,
            etag=findtext(root, "ETag").strip('"'),
            last_modified=findtext(root, "LastModified"),
        )


@dataclass
class DeleteObjectsResult:
    request_id: str = ""
    deleted_keys: list[str] = field(default_factory=list)

    @classmethod
    def from_service_result(cls, result: ServiceResult) -> "DeleteObjectsResult":
        # Quiet mode answers with an empty body
        if not result.payload.strip():
            return cls(request_id=result.request_id)
        root = parse_xml(result.payload, "DeleteResult")
        encoding_type = findtext(root, "EncodingType")
        keys = [findtext(node, "Key") for node in root.iterfind("Deleted")]
        if encoding_type == "url":
            keys = [unquote_plus(key) for key in keys]
        return cls(request_id=result.request_id, deleted_keys=keys)


@dataclass
class SymlinkResult:
    request_id: str = ""
    target: str = ""
    etag: str = ""

    @classmethod
    def from_service_result(cls, result: ServiceResult) -> "SymlinkResult":
        etag = result.headers.get("ETag")
        if etag is None:
            raise ResultParseError("ETag header is missing")
        return cls(
            request_id=result.request_id,
            target=unquote_plus(result.headers.get("x-oss-symlink-target", "")),
            etag=etag.strip('"'),
        )


@dataclass
class InitiateMultipartUploadResult:
    request_id: str = ""
    bucket: str = ""
    key: str = ""
    upload_id: str = ""

    @classmethod
    def from_service_result(cls, result: ServiceResult) -> "InitiateMultipartUploadResult":
        root = parse_xml(result.payload, "InitiateMultipartUploadResult")
        upload_id = findtext(root, "UploadId")
        if not upload_id:
            raise ResultParseError("UploadId is missing")
        return cls(
            request_id=result.request_id,
            bucket=findtext(root, "Bucket"),
            key=findtext(root, "Key"),
            upload_id=upload_id,
        )


@dataclass
class CompleteMultipartUploadResult:
    request_id: str = ""
    bucket: str = ""
    key: str = ""
    location: str = ""
    etag: str = ""
    crc64: Optional[int] = None

    @classmethod
    def from_service_result(cls, result: ServiceResult) -> "CompleteMultipartUploadResult":
        root = parse_xml(result.payload, "CompleteMultipartUploadResult")
        return cls(
            request_id=result.request_id,
            bucket=findtext(root, "Bucket"),
            key=findtext(root, "Key"),
            location=findtext(root, "Location"),
            etag=findtext(root, "ETag").strip('"'),
            crc64=_crc64(result.headers),
        )


@dataclass
class ListPartsResult:
    request_id: str = ""
    bucket: str = ""
    key: str = ""
    upload_id: str = ""
    max_parts: Optional[int] = None
    next_part_number_marker: Optional[int] = None
    is_truncated: bool = False
    parts: list[PartInfo] = field(default_factory=list)

    @classmethod
    def from_service_result(cls, result: ServiceResult) -> "ListPartsResult":
        root = parse_xml(result.payload, "ListPartsResult")
        parts = [
            PartInfo(
                part_number=_to_int(findtext(node, "PartNumber")),
                etag=findtext(node, "ETag").strip('"'),
                size=_to_int(findtext(node, "Size")),
                last_modified=findtext(node, "LastModified") or None,
                crc64=_to_int(findtext(node, "HashCrc64ecma")),
            )
            for node in root.iterfind("Part")
        ]
        return cls(
            request_id=result.request_id,
            bucket=findtext(root, "Bucket"),
            key=findtext(root, "Key"),
            upload_id=findtext(root, "UploadId"),
            max_parts=_to_int(findtext(root, "MaxParts")),
            next_part_number_marker=_to_int(findtext(root, "NextPartNumberMarker")),
            is_truncated=_to_bool(findtext(root, "IsTruncated")),
            parts=parts,
        )


@dataclass
class CopyPartResult:
    request_id: str = ""
    etag: str = ""
    last_modified: str = ""

    @classmethod
    def from_service_result(cls, result: ServiceResult) -> "CopyPartResult":
        root = parse_xml(result.payload, "CopyPartResult")
        etag = findtext(root, "ETag")
        if not etag:
            raise ResultParseError("ETag is missing")
        return cls(
            request_id=result.request_id,
            etag=etag.strip('"'),
            last_modified=findtext(root, "LastModified"),
        )


@dataclass
class MultipartUploadSummary:
    key: str
    upload_id: str
    initiated: str = ""


@dataclass
class ListMultipartUploadsResult:
    request_id: str = ""
    bucket: str = ""
    prefix: str = ""
    delimiter: str = ""
    key_marker: str = ""
    upload_id_marker: str = ""
    next_key_marker: str = ""
    next_upload_id_marker: str = ""
    max_uploads: Optional[int] = None
    is_truncated: bool = False
    encoding_type: str = ""
    uploads: list[MultipartUploadSummary] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)

    @classmethod
    def from_service_result(cls, result: ServiceResult) -> "ListMultipartUploadsResult":
        root = parse_xml(result.payload, "ListMultipartUploadsResult")
        encoding_type = findtext(root, "EncodingType")

        def decode(value: str) -> str:
            return unquote_plus(value) if encoding_type == "url" else value

        uploads = [
            MultipartUploadSummary(
                key=decode(findtext(node, "Key")),
                upload_id=findtext(node, "UploadId"),
                initiated=findtext(node, "Initiated"),
            )
            for node in root.iterfind("Upload")
        ]
        prefixes = [
            decode(findtext(node, "Prefix"))
            for node in root.iterfind("CommonPrefixes")
        ]
        return cls(
            request_id=result.request_id,
            bucket=findtext(root, "Bucket"),
            prefix=decode(findtext(root, "Prefix")),
            delimiter=decode(findtext(root, "Delimiter")),
            key_marker=decode(findtext(root, "KeyMarker")),
            upload_id_marker=findtext(root, "UploadIdMarker"),
            next_key_marker=decode(findtext(root, "NextKeyMarker")),
            next_upload_id_marker=findtext(root, "NextUploadIdMarker"),
            max_uploads=_to_int(findtext(root, "MaxUploads")),
            is_truncated=_to_bool(findtext(root, "IsTruncated")),
            encoding_type=encoding_type,
            uploads=uploads,
            common_prefixes=prefixes,
        )
