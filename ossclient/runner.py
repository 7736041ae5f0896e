"""Command runner used by the CLI.

Runs one client operation per command and turns its outcome into an
``OperationRecord``, managing:
- Timing
- Local file handling for uploads and downloads
- Reporter callbacks
"""

import logging
import os
import time
from typing import Any, Callable, Optional

from ossclient.client import OssClient
from ossclient.models import (
    Failure,
    OperationRecord,
    OperationStatus,
    OssException,
    Outcome,
    Success,
)
from ossclient.multipart import DEFAULT_PART_SIZE, upload_file
from ossclient.reporters.base import Reporter
from ossclient.requests import (
    DeleteObjectRequest,
    GeneratePresignedUrlRequest,
    GetObjectRequest,
    HeadObjectRequest,
    ListBucketsRequest,
    ListObjectsRequest,
    PutObjectRequest,
)

logger = logging.getLogger(__name__)

# Default lifetime of signed URLs, in seconds
DEFAULT_SIGN_EXPIRES = 3600


class CommandRunner:
    """Runs CLI commands against one client.

    Args:
        client: The client to issue calls with
        reporter: Optional reporter for progress output
    """

    def __init__(self, client: OssClient, reporter: Optional[Reporter] = None):
        self.client = client
        self.reporter = reporter
        self.records: list[OperationRecord] = []

    def ls(
        self,
        bucket: str = "",
        prefix: str = "",
        delimiter: str = "",
        marker: str = "",
        max_keys: Optional[int] = None,
    ) -> OperationRecord:
        """List buckets, or the objects of ``bucket`` when one is given."""
        if not bucket:
            return self._execute(
                "list-buckets",
                "*",
                lambda: self.client.list_buckets(ListBucketsRequest()),
                lambda result: {
                    "buckets": [
                        {
                            "name": b.name,
                            "location": b.location,
                            "creation_date": b.creation_date,
                        }
                        for b in result.buckets
                    ]
                },
            )

        request = ListObjectsRequest(
            bucket,
            prefix=prefix,
            delimiter=delimiter,
            marker=marker,
            max_keys=max_keys,
        )
        return self._execute(
            "list-objects",
            f"{bucket}/{prefix}",
            lambda: self.client.list_objects(request),
            lambda result: {
                "objects": [
                    {
                        "key": o.key,
                        "size": o.size,
                        "last_modified": o.last_modified,
                        "etag": o.etag,
                    }
                    for o in result.objects
                ],
                "prefixes": result.common_prefixes,
                "truncated": result.is_truncated,
                "next_marker": result.next_marker,
            },
        )

    def put(
        self,
        bucket: str,
        key: str,
        file_path: str,
        content_type: str = "",
        multipart: bool = False,
        part_size: int = DEFAULT_PART_SIZE,
    ) -> OperationRecord:
        """Upload a local file, in parts when ``multipart`` is set."""
        operation = "put"
        target = f"{bucket}/{key}"
        size = os.path.getsize(file_path)
        progress = self._progress(operation)

        if multipart:

            def call_multipart() -> Outcome:
                try:
                    return Success(
                        upload_file(
                            self.client, bucket, key, file_path,
                            part_size=part_size, progress_callback=progress,
                        )
                    )
                except OssException as e:
                    return Failure(e.error)

            return self._execute(
                operation, target, call_multipart,
                lambda result: {"etag": result.etag, "size": size, "parts": True},
            )

        def call() -> Outcome:
            with open(file_path, "rb") as f:
                return self.client.put_object(
                    PutObjectRequest(
                        bucket,
                        key,
                        content=f,
                        content_type=content_type,
                        progress_callback=progress,
                    )
                )

        return self._execute(
            operation, target, call,
            lambda result: {"etag": result.etag, "size": size, "crc64": result.crc64},
        )

    def get(self, bucket: str, key: str, file_path: str) -> OperationRecord:
        """Download an object into a local file.

        The file is removed again if the download fails.
        """
        operation = "get"

        def call() -> Outcome:
            with open(file_path, "wb") as f:
                outcome = self.client.get_object(
                    GetObjectRequest(
                        bucket,
                        key,
                        progress_callback=self._progress(operation),
                        response_stream=f,
                    )
                )
            if not outcome.is_success:
                os.remove(file_path)
            return outcome

        return self._execute(
            operation,
            f"{bucket}/{key}",
            call,
            lambda result: {
                "path": file_path,
                "size": os.path.getsize(file_path),
                "etag": result.metadata.etag,
            },
        )

    def rm(self, bucket: str, key: str) -> OperationRecord:
        return self._execute(
            "rm",
            f"{bucket}/{key}",
            lambda: self.client.delete_object(DeleteObjectRequest(bucket, key)),
            lambda result: {},
        )

    def head(self, bucket: str, key: str) -> OperationRecord:
        return self._execute(
            "head",
            f"{bucket}/{key}",
            lambda: self.client.head_object(HeadObjectRequest(bucket, key)),
            lambda result: {
                "metadata": {
                    "ETag": result.etag,
                    "Content-Length": result.content_length,
                    "Content-Type": result.content_type,
                    "Last-Modified": result.last_modified,
                    "CRC64": result.crc64,
                    **{f"meta:{k}": v for k, v in result.user_metadata.items()},
                }
            },
        )

    def sign(
        self,
        bucket: str,
        key: str,
        method: str = "GET",
        expires_in: int = DEFAULT_SIGN_EXPIRES,
    ) -> OperationRecord:
        """Create a pre-signed URL valid for ``expires_in`` seconds."""
        request = GeneratePresignedUrlRequest(
            bucket,
            key,
            method=method.upper(),
            expires=int(time.time()) + expires_in,
        )
        return self._execute(
            "sign",
            f"{bucket}/{key}",
            lambda: self.client.generate_presigned_url(request),
            lambda url: {"url": url, "method": request.method, "expires": request.expires},
        )

    def finish(self) -> list[OperationRecord]:
        """Notify the reporter that the run is over."""
        if self.reporter:
            self.reporter.on_run_complete(self.records)
        return self.records

    def _progress(self, operation: str) -> Optional[Callable[[int, Optional[int]], None]]:
        if self.reporter is None:
            return None
        reporter = self.reporter

        def progress(consumed: int, total: Optional[int]) -> None:
            reporter.on_progress(operation, consumed, total)

        return progress

    def _execute(
        self,
        operation: str,
        target: str,
        call: Callable[[], Outcome],
        details: Callable[[Any], dict[str, Any]],
    ) -> OperationRecord:
        if self.reporter:
            self.reporter.on_operation_start(operation, target)

        start_time = time.time()
        outcome = call()
        duration = time.time() - start_time

        if outcome.is_success:
            result = outcome.result
            record = OperationRecord(
                operation=operation,
                target=target,
                status=OperationStatus.OK,
                request_id=getattr(result, "request_id", ""),
                duration_seconds=duration,
                details=details(result),
            )
        else:
            error = outcome.error
            logger.debug("%s %s failed: %s", operation, target, error)
            record = OperationRecord(
                operation=operation,
                target=target,
                status=OperationStatus.FAILED,
                request_id=error.request_id,
                error_code=error.code,
                error_message=error.message,
                duration_seconds=duration,
            )

        self.records.append(record)
        if self.reporter:
            self.reporter.on_operation_complete(record)
        return record
