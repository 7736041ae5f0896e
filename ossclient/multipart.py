"""Multipart upload lifecycle management.

Handles the complete lifecycle of a multipart upload on top of OssClient:
- Initiate upload
- Upload and track parts
- Complete or abort upload
"""

import os
from typing import BinaryIO, Generator, Optional

from ossclient.models import PartInfo, ProgressCallback
from ossclient.requests import (
    AbortMultipartUploadRequest,
    CompleteMultipartUploadRequest,
    InitiateMultipartUploadRequest,
    UploadPartRequest,
)
from ossclient.results import CompleteMultipartUploadResult

# Default part size: 5 MiB
DEFAULT_PART_SIZE = 5 * 1024 * 1024

# Smallest part size the service accepts (except for the last part)
MIN_PART_SIZE = 100 * 1024


class MultipartUpload:
    """Manages the lifecycle of one multipart upload.

    This class handles:
    - Initiating a multipart upload
    - Uploading parts and tracking their ETags
    - Completing or aborting the upload

    Can be used as a context manager: the upload is initiated on entry
    and aborted if the block raises.

    Failed operations raise ``OssException`` carrying the structured error.
    """

    def __init__(self, client, bucket: str, key: str):
        """Initialize the multipart upload manager.

        Args:
            client: OssClient used for all calls
            bucket: Target bucket
            key: Target object key
        """
        self.client = client
        self.bucket = bucket
        self.key = key
        self.upload_id: Optional[str] = None
        self.uploaded_parts: list[PartInfo] = []

    def initiate(self) -> str:
        """Initiate a new multipart upload.

        Returns:
            The upload ID for the new multipart upload.

        Raises:
            OssException: If the call fails.
        """
        outcome = self.client.initiate_multipart_upload(
            InitiateMultipartUploadRequest(self.bucket, self.key)
        )
        self.upload_id = outcome.unwrap().upload_id
        return self.upload_id

    def upload_part(
        self,
        part_number: int,
        data: bytes,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> PartInfo:
        """Upload one part and record it.

        Args:
            part_number: The 1-indexed part number.
            data: The part's bytes.
            progress_callback: Optional transfer progress sink.

        Returns:
            The recorded part.

        Raises:
            RuntimeError: If upload was not initiated.
            OssException: If the call fails.
        """
        if self.upload_id is None:
            raise RuntimeError("Upload not initiated")

        outcome = self.client.upload_part(
            UploadPartRequest(
                self.bucket,
                self.key,
                upload_id=self.upload_id,
                part_number=part_number,
                content=data,
                progress_callback=progress_callback,
            )
        )
        result = outcome.unwrap()
        return self.add_part(part_number, result.etag, size=len(data), crc64=result.crc64)

    def complete(self) -> CompleteMultipartUploadResult:
        """Complete the multipart upload.

        Returns:
            The completion result with the final ETag.

        Raises:
            RuntimeError: If upload was not initiated.
            OssException: If the call fails.
        """
        if self.upload_id is None:
            raise RuntimeError("Upload not initiated")

        outcome = self.client.complete_multipart_upload(
            CompleteMultipartUploadRequest(
                self.bucket,
                self.key,
                upload_id=self.upload_id,
                parts=self.get_uploaded_parts(),
            )
        )
        return outcome.unwrap()

    def abort(self) -> None:
        """Abort the multipart upload.

        Cleans up any uploaded parts on the service side.
        Safe to call even if upload was not initiated or already aborted.
        """
        if self.upload_id is None:
            return

        # Abort errors are non-fatal - upload may already be aborted
        self.client.abort_multipart_upload(
            AbortMultipartUploadRequest(self.bucket, self.key, upload_id=self.upload_id)
        )

    def add_part(
        self,
        part_number: int,
        etag: str,
        size: Optional[int] = None,
        crc64: Optional[int] = None,
    ) -> PartInfo:
        """Record a successfully uploaded part.

        Args:
            part_number: The 1-indexed part number.
            etag: The ETag returned by the service.
            size: Part size in bytes, if known.
            crc64: Server CRC64 of the part, if known.

        Returns:
            The recorded part.
        """
        part = PartInfo(part_number=part_number, etag=etag, size=size, crc64=crc64)
        self.uploaded_parts.append(part)
        return part

    def get_uploaded_parts(self) -> list[PartInfo]:
        """Get a copy of the uploaded parts list."""
        return list(self.uploaded_parts)

    def iterate_parts(
        self,
        file_path: str,
        part_size: int = DEFAULT_PART_SIZE,
    ) -> Generator[tuple[int, bytes], None, None]:
        """Iterate over file parts.

        Args:
            file_path: Path to the file to read.
            part_size: Size of each part in bytes.

        Yields:
            Tuples of (part_number, part_data).
        """
        with open(file_path, "rb") as f:
            yield from iterate_stream_parts(f, part_size)

    def __enter__(self) -> "MultipartUpload":
        """Enter context manager - initiates upload."""
        self.initiate()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        """Exit context manager - aborts on exception."""
        if exc_type is not None:
            self.abort()
        return False  # Don't suppress exceptions


def iterate_stream_parts(
    stream: BinaryIO,
    part_size: int = DEFAULT_PART_SIZE,
) -> Generator[tuple[int, bytes], None, None]:
    """Yield ``(part_number, data)`` chunks of ``stream``, numbered from 1."""
    part_number = 1
    while True:
        chunk = stream.read(part_size)
        if not chunk:
            break
        yield part_number, chunk
        part_number += 1


def upload_file(
    client,
    bucket: str,
    key: str,
    file_path: str,
    part_size: int = DEFAULT_PART_SIZE,
    progress_callback: Optional[ProgressCallback] = None,
) -> CompleteMultipartUploadResult:
    """Upload a local file as a multipart object.

    Args:
        client: OssClient to use.
        bucket: Target bucket.
        key: Target object key.
        file_path: Local file to upload.
        part_size: Size of each part, at least MIN_PART_SIZE.
        progress_callback: Called with (uploaded_bytes, total_bytes) after
                           each part.

    Returns:
        The completion result.

    Raises:
        ValueError: If part_size is too small.
        OssException: If any call fails; the upload is aborted.
    """
    if part_size < MIN_PART_SIZE:
        raise ValueError(f"part_size must be at least {MIN_PART_SIZE} bytes")

    total = os.path.getsize(file_path)
    uploaded = 0

    with MultipartUpload(client, bucket, key) as upload:
        for part_number, data in upload.iterate_parts(file_path, part_size):
            upload.upload_part(part_number, data)
            uploaded += len(data)
            if progress_callback is not None:
                progress_callback(uploaded, total)
        # An empty file is still one (empty) part
        if not upload.uploaded_parts:
            upload.upload_part(1, b"")
        return upload.complete()

