"""Tests for typed result decoding."""

import httpx
import pytest

from ossclient.models import ServiceResult
from ossclient.results import (
    AclResult,
    AppendObjectResult,
    BucketLocationResult,
    CompleteMultipartUploadResult,
    CopyPartResult,
    DeleteObjectsResult,
    InitiateMultipartUploadResult,
    ListBucketsResult,
    ListMultipartUploadsResult,
    ListObjectsResult,
    ListPartsResult,
    ObjectMetadata,
    PutObjectResult,
    ResultParseError,
    SymlinkResult,
    parse_xml,
)


def result(payload=b"", headers=None):
    return ServiceResult(
        request_id="RID",
        status_code=200,
        headers=httpx.Headers(headers or {}),
        payload=payload,
    )


class TestParseXml:
    """Tests for the XML helper."""

    def test_wrong_root(self):
        with pytest.raises(ResultParseError):
            parse_xml(b"<Other/>", "Expected")

    def test_not_xml(self):
        with pytest.raises(ResultParseError):
            parse_xml(b"not xml", "Expected")


class TestListBucketsResult:
    """Tests for bucket listings."""

    def test_decode(self):
        payload = b"""<?xml version="1.0" encoding="UTF-8"?>
<ListAllMyBucketsResult>
  <Owner><ID>1234</ID><DisplayName>owner</DisplayName></Owner>
  <Buckets>
    <Bucket>
      <Name>alpha</Name><Location>oss-cn-hangzhou</Location>
      <CreationDate>2026-01-01T00:00:00.000Z</CreationDate>
      <StorageClass>Standard</StorageClass>
    </Bucket>
    <Bucket><Name>beta</Name></Bucket>
  </Buckets>
</ListAllMyBucketsResult>"""

        decoded = ListBucketsResult.from_service_result(result(payload))

        assert decoded.request_id == "RID"
        assert decoded.owner_id == "1234"
        assert [b.name for b in decoded.buckets] == ["alpha", "beta"]
        assert decoded.buckets[0].location == "oss-cn-hangzhou"
        assert decoded.is_truncated is False

    def test_wrong_document(self):
        with pytest.raises(ResultParseError):
            ListBucketsResult.from_service_result(result(b"<ListBucketResult/>"))


class TestListObjectsResult:
    """Tests for object listings."""

    def test_decode(self):
        payload = b"""<ListBucketResult>
  <Name>bucket</Name><Prefix>logs/</Prefix><MaxKeys>2</MaxKeys>
  <IsTruncated>true</IsTruncated><NextMarker>logs/b</NextMarker>
  <Contents><Key>logs/a</Key><ETag>"E1"</ETag><Size>10</Size></Contents>
  <Contents><Key>logs/b</Key><ETag>"E2"</ETag><Size>20</Size></Contents>
  <CommonPrefixes><Prefix>logs/sub/</Prefix></CommonPrefixes>
</ListBucketResult>"""

        decoded = ListObjectsResult.from_service_result(result(payload))

        assert decoded.name == "bucket"
        assert decoded.max_keys == 2
        assert decoded.is_truncated is True
        assert decoded.next_marker == "logs/b"
        assert [(o.key, o.size, o.etag) for o in decoded.objects] == [
            ("logs/a", 10, "E1"),
            ("logs/b", 20, "E2"),
        ]
        assert decoded.common_prefixes == ["logs/sub/"]

    def test_url_encoded_keys(self):
        payload = b"""<ListBucketResult>
  <EncodingType>url</EncodingType>
  <Contents><Key>a%20b%2Fc</Key><Size>1</Size></Contents>
</ListBucketResult>"""

        decoded = ListObjectsResult.from_service_result(result(payload))

        assert decoded.objects[0].key == "a b/c"

    def test_bad_size(self):
        payload = b"<ListBucketResult><Contents><Key>k</Key><Size>x</Size></Contents></ListBucketResult>"
        with pytest.raises(ResultParseError):
            ListObjectsResult.from_service_result(result(payload))


class TestAclAndLocation:
    """Tests for ACL and location documents."""

    def test_acl(self):
        payload = b"""<AccessControlPolicy>
  <Owner><ID>1</ID></Owner>
  <AccessControlList><Grant>public-read</Grant></AccessControlList>
</AccessControlPolicy>"""
        assert AclResult.from_service_result(result(payload)).acl == "public-read"

    def test_acl_missing_grant(self):
        with pytest.raises(ResultParseError):
            AclResult.from_service_result(result(b"<AccessControlPolicy/>"))

    def test_location(self):
        decoded = BucketLocationResult.from_service_result(
            result(b"<LocationConstraint>oss-cn-beijing</LocationConstraint>")
        )
        assert decoded.location == "oss-cn-beijing"


class TestHeaderResults:
    """Tests for results decoded from headers."""

    def test_object_metadata(self):
        decoded = ObjectMetadata.from_service_result(
            result(headers={
                "ETag": '"ABC"',
                "Content-Length": "42",
                "Content-Type": "text/plain",
                "x-oss-hash-crc64ecma": "123",
                "x-oss-meta-author": "me",
            })
        )

        assert decoded.etag == "ABC"
        assert decoded.content_length == 42
        assert decoded.content_type == "text/plain"
        assert decoded.crc64 == 123
        assert decoded.user_metadata == {"author": "me"}

    def test_put_object(self):
        decoded = PutObjectResult.from_service_result(
            result(headers={"ETag": '"E"', "x-oss-hash-crc64ecma": "9"})
        )
        assert decoded.etag == "E"
        assert decoded.crc64 == 9

    def test_append_object(self):
        decoded = AppendObjectResult.from_service_result(
            result(headers={"x-oss-next-append-position": "100", "x-oss-hash-crc64ecma": "5"})
        )
        assert decoded.next_position == 100
        assert decoded.crc64 == 5

    def test_append_object_missing_headers(self):
        with pytest.raises(ResultParseError, match="no position or no crc64"):
            AppendObjectResult.from_service_result(result())

    def test_symlink(self):
        decoded = SymlinkResult.from_service_result(
            result(headers={"ETag": '"S"', "x-oss-symlink-target": "dir%2Ftarget"})
        )
        assert decoded.target == "dir/target"
        assert decoded.etag == "S"

    def test_symlink_missing_etag(self):
        with pytest.raises(ResultParseError):
            SymlinkResult.from_service_result(result())


class TestDeleteObjectsResult:
    """Tests for batch delete results."""

    def test_quiet_empty_body(self):
        assert DeleteObjectsResult.from_service_result(result(b"")).deleted_keys == []

    def test_deleted_keys(self):
        payload = b"<DeleteResult><Deleted><Key>a</Key></Deleted><Deleted><Key>b</Key></Deleted></DeleteResult>"
        assert DeleteObjectsResult.from_service_result(result(payload)).deleted_keys == ["a", "b"]


class TestMultipartResults:
    """Tests for multipart documents."""

    def test_initiate(self):
        payload = b"""<InitiateMultipartUploadResult>
  <Bucket>bucket</Bucket><Key>key</Key><UploadId>UPLOAD</UploadId>
</InitiateMultipartUploadResult>"""
        assert InitiateMultipartUploadResult.from_service_result(result(payload)).upload_id == "UPLOAD"

    def test_initiate_missing_upload_id(self):
        with pytest.raises(ResultParseError):
            InitiateMultipartUploadResult.from_service_result(
                result(b"<InitiateMultipartUploadResult/>")
            )

    def test_complete(self):
        payload = b"""<CompleteMultipartUploadResult>
  <Location>http://bucket.oss.example.com/key</Location>
  <Bucket>bucket</Bucket><Key>key</Key><ETag>"FINAL-2"</ETag>
</CompleteMultipartUploadResult>"""
        decoded = CompleteMultipartUploadResult.from_service_result(
            result(payload, {"x-oss-hash-crc64ecma": "77"})
        )
        assert decoded.etag == "FINAL-2"
        assert decoded.crc64 == 77

    def test_list_parts(self):
        payload = b"""<ListPartsResult>
  <Bucket>bucket</Bucket><Key>key</Key><UploadId>U</UploadId>
  <MaxParts>1000</MaxParts><IsTruncated>false</IsTruncated>
  <Part><PartNumber>1</PartNumber><ETag>"P1"</ETag><Size>102400</Size>
    <HashCrc64ecma>11</HashCrc64ecma></Part>
  <Part><PartNumber>2</PartNumber><ETag>"P2"</ETag><Size>5</Size></Part>
</ListPartsResult>"""

        decoded = ListPartsResult.from_service_result(result(payload))

        assert decoded.upload_id == "U"
        assert decoded.max_parts == 1000
        assert [(p.part_number, p.etag, p.size) for p in decoded.parts] == [
            (1, "P1", 102400),
            (2, "P2", 5),
        ]
        assert decoded.parts[0].crc64 == 11
        assert decoded.parts[1].crc64 is None

    def test_copy_part(self):
        payload = b"""<CopyPartResult>
  <LastModified>2024-05-01T08:00:00.000Z</LastModified><ETag>"COPY-1"</ETag>
</CopyPartResult>"""

        decoded = CopyPartResult.from_service_result(result(payload))

        assert decoded.etag == "COPY-1"
        assert decoded.last_modified == "2024-05-01T08:00:00.000Z"
        assert decoded.request_id == "RID"

    def test_copy_part_missing_etag(self):
        with pytest.raises(ResultParseError):
            CopyPartResult.from_service_result(result(b"<CopyPartResult/>"))

    def test_list_multipart_uploads(self):
        payload = b"""<ListMultipartUploadsResult>
  <Bucket>bucket</Bucket><KeyMarker></KeyMarker><UploadIdMarker></UploadIdMarker>
  <NextKeyMarker>b.bin</NextKeyMarker><NextUploadIdMarker>U2</NextUploadIdMarker>
  <MaxUploads>2</MaxUploads><IsTruncated>true</IsTruncated>
  <Upload><Key>a.bin</Key><UploadId>U1</UploadId>
    <Initiated>2024-05-01T08:00:00.000Z</Initiated></Upload>
  <Upload><Key>b.bin</Key><UploadId>U2</UploadId>
    <Initiated>2024-05-01T09:00:00.000Z</Initiated></Upload>
</ListMultipartUploadsResult>"""

        decoded = ListMultipartUploadsResult.from_service_result(result(payload))

        assert decoded.bucket == "bucket"
        assert decoded.is_truncated is True
        assert decoded.max_uploads == 2
        assert (decoded.next_key_marker, decoded.next_upload_id_marker) == ("b.bin", "U2")
        assert [(u.key, u.upload_id) for u in decoded.uploads] == [("a.bin", "U1"), ("b.bin", "U2")]
        assert decoded.uploads[1].initiated == "2024-05-01T09:00:00.000Z"

    def test_list_multipart_uploads_url_encoded(self):
        payload = b"""<ListMultipartUploadsResult>
  <EncodingType>url</EncodingType><Prefix>dir%2F</Prefix>
  <Upload><Key>dir%2Fa+b.bin</Key><UploadId>U1</UploadId></Upload>
  <CommonPrefixes><Prefix>dir%2Fsub%2F</Prefix></CommonPrefixes>
</ListMultipartUploadsResult>"""

        decoded = ListMultipartUploadsResult.from_service_result(result(payload))

        assert decoded.prefix == "dir/"
        assert decoded.uploads[0].key == "dir/a b.bin"
        assert decoded.common_prefixes == ["dir/sub/"]

    def test_list_multipart_uploads_empty(self):
        decoded = ListMultipartUploadsResult.from_service_result(
            result(b"<ListMultipartUploadsResult><Bucket>bucket</Bucket></ListMultipartUploadsResult>")
        )
        assert decoded.uploads == []
        assert decoded.is_truncated is False
