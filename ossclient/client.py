"""Object storage client.

``OssClient`` is the explicit context object of the library: it owns the
configuration, the credentials provider, the transport and the worker pool
used for asynchronous calls. Create one per endpoint and close it (or use
it as a context manager) when done.

Every operation returns an outcome, ``Success(result)`` or
``Failure(error)``, never both::

    with OssClient("oss-cn-hangzhou.aliyuncs.com", "id", "secret") as client:
        outcome = client.get_object(GetObjectRequest("bucket", "key"))
        if outcome.is_success:
            data = outcome.result.content
        else:
            print(outcome.error.code, outcome.error.request_id)
"""

import dataclasses
import logging
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any, Callable, Optional, TypeVar

from ossclient.auth import (
    CredentialsError,
    CredentialsProvider,
    HmacSha1Signer,
    StaticCredentialsProvider,
    build_canonical_string,
    canonical_resource,
)
from ossclient.builder import RequestBuilder, combine_host, combine_path, combine_query
from ossclient.config import ClientConfiguration
from ossclient.executor import RequestExecutor
from ossclient.models import (
    ClientProfile,
    Failure,
    HttpResponse,
    OssError,
    Outcome,
    ServiceResult,
    Success,
)
from ossclient.normalizer import build_error, build_result
from ossclient.requests import (
    AbortMultipartUploadRequest,
    AppendObjectRequest,
    CompleteMultipartUploadRequest,
    CopyObjectRequest,
    CreateBucketRequest,
    CreateSymlinkRequest,
    DeleteBucketRequest,
    DeleteObjectRequest,
    DeleteObjectsRequest,
    GeneratePresignedUrlRequest,
    GetBucketAclRequest,
    GetBucketLocationRequest,
    GetObjectAclRequest,
    GetObjectByUrlRequest,
    GetObjectMetaRequest,
    GetObjectRequest,
    GetSymlinkRequest,
    HeadObjectRequest,
    InitiateMultipartUploadRequest,
    ListBucketsRequest,
    ListMultipartUploadsRequest,
    ListObjectsRequest,
    ListPartsRequest,
    OssRequest,
    PutObjectByUrlRequest,
    PutObjectRequest,
    RestoreObjectRequest,
    SetBucketAclRequest,
    SetObjectAclRequest,
    UploadPartCopyRequest,
    UploadPartRequest,
    is_valid_bucket_name,
    is_valid_object_key,
    meta_headers,
)
from ossclient.results import (
    AclResult,
    AppendObjectResult,
    BucketLocationResult,
    CompleteMultipartUploadResult,
    CopyObjectResult,
    CopyPartResult,
    DeleteObjectsResult,
    GetObjectResult,
    InitiateMultipartUploadResult,
    ListBucketsResult,
    ListMultipartUploadsResult,
    ListObjectsResult,
    ListPartsResult,
    ObjectMetadata,
    PutObjectResult,
    ResultParseError,
    SymlinkResult,
    VoidResult,
)
from ossclient.transport import HttpxTransport, Transport

logger = logging.getLogger(__name__)

R = TypeVar("R")

# Callback for submit_async: (client, request, outcome, context)
AsyncHandler = Callable[["OssClient", Any, Outcome, Any], None]


class OssClient:
    """Client for bucket and object operations against one endpoint.

    Args:
        endpoint: Service endpoint, e.g. ``oss-cn-hangzhou.aliyuncs.com``
                  or ``https://oss-cn-hangzhou.aliyuncs.com``.
        access_key_id: Access key id (ignored when a provider is given).
        access_key_secret: Access key secret.
        session_token: STS session token, if any.
        configuration: Client configuration; defaults are used if omitted.
        credentials_provider: Source of credentials, overriding the keys.
        transport: Transport to send requests with; an httpx-based one is
                   built from the configuration if omitted.
        executor: Worker pool for asynchronous calls; a thread pool is
                  created lazily (and owned by the client) if omitted.
    """

    def __init__(
        self,
        endpoint: str,
        access_key_id: str = "",
        access_key_secret: str = "",
        session_token: str = "",
        configuration: Optional[ClientConfiguration] = None,
        credentials_provider: Optional[CredentialsProvider] = None,
        transport: Optional[Transport] = None,
        executor: Optional[Executor] = None,
    ):
        self.endpoint = endpoint
        self.configuration = configuration or ClientConfiguration()
        self.credentials_provider = credentials_provider or StaticCredentialsProvider(
            access_key_id, access_key_secret, session_token
        )
        self.signer = HmacSha1Signer()
        self.transport = transport or HttpxTransport(self.configuration)
        self.builder = RequestBuilder(self.configuration, self.credentials_provider, self.signer)
        self.executor = RequestExecutor(
            self.builder, self.transport, self.configuration.retry_strategy
        )
        self._pool = executor
        self._owns_pool = executor is None
        self._pool_lock = threading.Lock()

    @classmethod
    def from_profile(
        cls,
        profile: ClientProfile,
        configuration: Optional[ClientConfiguration] = None,
        **kwargs: Any,
    ) -> "OssClient":
        """Build a client from a loaded profile."""
        configuration = dataclasses.replace(
            configuration or ClientConfiguration(),
            is_cname=profile.is_cname,
            path_style=profile.path_style,
        )
        return cls(
            profile.endpoint,
            profile.access_key_id,
            profile.access_key_secret,
            profile.session_token,
            configuration=configuration,
            **kwargs,
        )

    # Lifetime

    def close(self) -> None:
        """Shut down the owned worker pool and release the transport."""
        pool = None
        with self._pool_lock:
            if self._owns_pool:
                pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=True)
        self.transport.close()

    def __enter__(self) -> "OssClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    # Request control

    def disable_request(self) -> None:
        """Fail every new call fast, without network activity."""
        self.executor.disable_request()

    def enable_request(self) -> None:
        """Resume dispatching new calls."""
        self.executor.enable_request()

    # Pipeline

    def make_request(self, request: OssRequest, method: str) -> Outcome[ServiceResult]:
        """Validate, send and normalize one request.

        Args:
            request: The operation request.
            method: HTTP method.

        Returns:
            Success with the generic ServiceResult, or Failure with the
            normalized error.
        """
        ret = request.validate()
        if ret != 0:
            return Failure(
                OssError(code="ValidateError", message=request.validate_message(ret))
            )

        result = self.executor.attempt(self.endpoint, request, method)
        if isinstance(result, HttpResponse):
            return Success(build_result(result))
        return Failure(build_error(result))

    def _decode(
        self,
        request: OssRequest,
        method: str,
        decoder: Callable[[ServiceResult], R],
        parse_message: str,
        parse_code: str = "ParseXMLError",
    ) -> Outcome[R]:
        outcome = self.make_request(request, method)
        if not outcome.is_success:
            return outcome
        service_result = outcome.result
        try:
            return Success(decoder(service_result))
        except ResultParseError as e:
            logger.debug("%s: %s", parse_message, e)
            return Failure(
                OssError(
                    code=parse_code,
                    message=parse_message,
                    request_id=service_result.request_id,
                    status=service_result.status_code,
                )
            )

    def _void(self, request: OssRequest, method: str) -> Outcome[VoidResult]:
        outcome = self.make_request(request, method)
        if not outcome.is_success:
            return outcome
        return Success(VoidResult.from_service_result(outcome.result))

    # Service

    def list_buckets(self, request: Optional[ListBucketsRequest] = None) -> Outcome[ListBucketsResult]:
        return self._decode(
            request or ListBucketsRequest(),
            "GET",
            ListBucketsResult.from_service_result,
            "Parsing ListBuckets result fail.",
        )

    # Bucket

    def create_bucket(self, request: CreateBucketRequest) -> Outcome[VoidResult]:
        return self._void(request, "PUT")

    def delete_bucket(self, request: DeleteBucketRequest) -> Outcome[VoidResult]:
        return self._void(request, "DELETE")

    def set_bucket_acl(self, request: SetBucketAclRequest) -> Outcome[VoidResult]:
        return self._void(request, "PUT")

    def get_bucket_acl(self, request: GetBucketAclRequest) -> Outcome[AclResult]:
        return self._decode(
            request, "GET", AclResult.from_service_result, "Parsing GetBucketAcl result fail."
        )

    def get_bucket_location(self, request: GetBucketLocationRequest) -> Outcome[BucketLocationResult]:
        return self._decode(
            request,
            "GET",
            BucketLocationResult.from_service_result,
            "Parsing GetBucketLocation result fail.",
        )

    def list_objects(self, request: ListObjectsRequest) -> Outcome[ListObjectsResult]:
        return self._decode(
            request, "GET", ListObjectsResult.from_service_result, "Parsing ListObjects result fail."
        )

    # Object

    def put_object(self, request: PutObjectRequest) -> Outcome[PutObjectResult]:
        return self._decode(
            request, "PUT", PutObjectResult.from_service_result, "Parsing PutObject result fail."
        )

    def get_object(self, request: GetObjectRequest) -> Outcome[GetObjectResult]:
        return self._decode(
            request,
            "GET",
            lambda result: GetObjectResult.from_service_result(result, request.bucket, request.key),
            "Parsing GetObject result fail.",
        )

    def head_object(self, request: HeadObjectRequest) -> Outcome[ObjectMetadata]:
        return self._decode(
            request, "HEAD", ObjectMetadata.from_service_result, "Parsing HeadObject result fail."
        )

    def get_object_meta(self, request: GetObjectMetaRequest) -> Outcome[ObjectMetadata]:
        return self._decode(
            request, "HEAD", ObjectMetadata.from_service_result, "Parsing GetObjectMeta result fail."
        )

    def delete_object(self, request: DeleteObjectRequest) -> Outcome[VoidResult]:
        return self._void(request, "DELETE")

    def delete_objects(self, request: DeleteObjectsRequest) -> Outcome[DeleteObjectsResult]:
        return self._decode(
            request,
            "POST",
            DeleteObjectsResult.from_service_result,
            "Parsing DeleteObjects result fail.",
        )

    def copy_object(self, request: CopyObjectRequest) -> Outcome[CopyObjectResult]:
        return self._decode(
            request, "PUT", CopyObjectResult.from_service_result, "Parsing CopyObject result fail."
        )

    def append_object(self, request: AppendObjectRequest) -> Outcome[AppendObjectResult]:
        return self._decode(
            request, "POST", AppendObjectResult.from_service_result, "no position or no crc64"
        )

    def get_object_acl(self, request: GetObjectAclRequest) -> Outcome[AclResult]:
        return self._decode(
            request, "GET", AclResult.from_service_result, "Parsing GetObjectAcl result fail."
        )

    def set_object_acl(self, request: SetObjectAclRequest) -> Outcome[VoidResult]:
        return self._void(request, "PUT")

    def create_symlink(self, request: CreateSymlinkRequest) -> Outcome[SymlinkResult]:
        return self._decode(
            request,
            "PUT",
            SymlinkResult.from_service_result,
            "Parsing CreateSymlink result fail.",
        )

    def get_symlink(self, request: GetSymlinkRequest) -> Outcome[SymlinkResult]:
        return self._decode(
            request, "GET", SymlinkResult.from_service_result, "Parsing GetSymlink result fail."
        )

    def restore_object(self, request: RestoreObjectRequest) -> Outcome[VoidResult]:
        return self._void(request, "POST")

    # Multipart

    def initiate_multipart_upload(
        self, request: InitiateMultipartUploadRequest
    ) -> Outcome[InitiateMultipartUploadResult]:
        return self._decode(
            request,
            "POST",
            InitiateMultipartUploadResult.from_service_result,
            "Parsing InitiateMultipartUploadResult fail",
            parse_code="InitiateMultipartUploadError",
        )

    def upload_part(self, request: UploadPartRequest) -> Outcome[PutObjectResult]:
        return self._decode(
            request, "PUT", PutObjectResult.from_service_result, "Parsing UploadPart result fail."
        )

    def upload_part_copy(self, request: UploadPartCopyRequest) -> Outcome[CopyPartResult]:
        return self._decode(
            request, "PUT", CopyPartResult.from_service_result, "Parsing UploadPartCopy result fail."
        )

    def complete_multipart_upload(
        self, request: CompleteMultipartUploadRequest
    ) -> Outcome[CompleteMultipartUploadResult]:
        return self._decode(
            request,
            "POST",
            CompleteMultipartUploadResult.from_service_result,
            "Parsing CompleteMultipartUpload result fail.",
            parse_code="CompleteMultipartUpload",
        )

    def abort_multipart_upload(self, request: AbortMultipartUploadRequest) -> Outcome[VoidResult]:
        return self._void(request, "DELETE")

    def list_parts(self, request: ListPartsRequest) -> Outcome[ListPartsResult]:
        return self._decode(
            request,
            "GET",
            ListPartsResult.from_service_result,
            "Parse Error",
            parse_code="ListParts",
        )

    def list_multipart_uploads(
        self, request: ListMultipartUploadsRequest
    ) -> Outcome[ListMultipartUploadsResult]:
        return self._decode(
            request,
            "GET",
            ListMultipartUploadsResult.from_service_result,
            "Parsing ListMultipartUploads result fail.",
        )

    # Pre-signed URLs

    def generate_presigned_url(self, request: GeneratePresignedUrlRequest) -> Outcome[str]:
        """Sign a URL that allows ``request.method`` on one object until expiry.

        Args:
            request: Bucket, key, method and expiry of the URL. An expiry of
                     0 means one hour from now.

        Returns:
            Success with the URL, or Failure when the bucket/key is invalid
            or credentials are unavailable.
        """
        if not is_valid_bucket_name(request.bucket) or not is_valid_object_key(request.key):
            return Failure(OssError(code="ValidateError", message="The Bucket or Key is invalid."))

        try:
            credentials = self.credentials_provider.get_credentials()
        except CredentialsError as e:
            return Failure(OssError(code="CredentialsError", message=str(e)))

        expires = str(request.expires or int(time.time()) + 3600)

        headers = meta_headers(request.metadata)
        if request.content_type:
            headers["Content-Type"] = request.content_type
        if request.content_md5:
            headers["Content-MD5"] = request.content_md5

        parameters = {}
        if credentials.session_token:
            parameters["security-token"] = credentials.session_token
        parameters.update(request.parameters)

        canonical = build_canonical_string(
            request.method,
            canonical_resource(request.bucket, request.key),
            expires,
            headers,
            parameters,
        )
        signature = self.signer.generate(canonical, credentials.access_key_secret)

        parameters["Expires"] = expires
        parameters["OSSAccessKeyId"] = credentials.access_key_id
        parameters["Signature"] = signature

        config = self.configuration
        url = combine_host(
            self.endpoint, request.bucket, config.is_cname, config.path_style, config.scheme
        )
        url += combine_path(
            self.endpoint, request.bucket, request.key, config.is_cname, config.path_style, config.scheme
        )
        url += "?" + combine_query(dict(sorted(parameters.items())))
        return Success(url)

    def get_object_by_url(self, request: GetObjectByUrlRequest) -> Outcome[GetObjectResult]:
        return self._by_url(request, "GET", GetObjectResult.from_service_result)

    def put_object_by_url(self, request: PutObjectByUrlRequest) -> Outcome[PutObjectResult]:
        return self._by_url(request, "PUT", PutObjectResult.from_service_result)

    def _by_url(self, request: OssRequest, method: str, decoder: Callable[[ServiceResult], R]) -> Outcome[R]:
        # Signature is already embedded in the URL; no credentials involved
        ret = request.validate()
        if ret != 0:
            return Failure(
                OssError(code="ValidateError", message=request.validate_message(ret))
            )
        result = self.executor.attempt(self.endpoint, request, method)
        if not isinstance(result, HttpResponse):
            return Failure(build_error(result))
        return Success(decoder(build_result(result)))

    # Asynchronous forms

    def _get_pool(self) -> Executor:
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self.configuration.max_connections,
                    thread_name_prefix="ossclient",
                )
            return self._pool

    def submit(self, operation: Callable[[Any], Outcome], request: Any) -> "Future[Outcome]":
        """Run ``operation(request)`` on the worker pool.

        Args:
            operation: A bound operation of this client, e.g. ``client.get_object``.
            request: Its request.

        Returns:
            A Future resolving to the operation's outcome.
        """
        return self._get_pool().submit(operation, request)

    def submit_async(
        self,
        operation: Callable[[Any], Outcome],
        request: Any,
        handler: AsyncHandler,
        context: Any = None,
    ) -> "Future[Outcome]":
        """Run an operation on the worker pool and call ``handler`` when done.

        The handler receives ``(client, request, outcome, context)`` on the
        worker thread.
        """
        future = self.submit(operation, request)

        def _done(done: "Future[Outcome]") -> None:
            handler(self, request, done.result(), context)

        future.add_done_callback(_done)
        return future

    def put_object_callable(self, request: PutObjectRequest) -> "Future[Outcome[PutObjectResult]]":
        return self.submit(self.put_object, request)

    def get_object_callable(self, request: GetObjectRequest) -> "Future[Outcome[GetObjectResult]]":
        return self.submit(self.get_object, request)
