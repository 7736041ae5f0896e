"""Data models for the object storage client."""

from dataclasses import dataclass, field
from enum import Enum, IntEnum, IntFlag
from typing import Any, BinaryIO, Callable, Generic, Optional, TypeVar, Union

import httpx

T = TypeVar("T")

# Signature of transfer progress sinks: (consumed_bytes, total_bytes)
ProgressCallback = Callable[[int, Optional[int]], None]

# Status used when the client computed CRC64 differs from the server's
ERROR_CRC_INCONSISTENT = 100001


class RequestFlags(IntFlag):
    """Per-request switches consulted by the request builder."""

    NONE = 0
    CONTENT_MD5 = 1
    PARAM_IN_PATH = 2
    CHECK_CRC64 = 4


class TransportErrorCode(IntEnum):
    """Client-side failure codes reported in place of an HTTP status.

    Values sit above the HTTP status range so they never collide with a
    status code the server might send.
    """

    CONNECTION_REFUSED = 100007
    PARTIAL_TRANSFER = 100018
    WRITE_ERROR = 100023
    TIMEOUT = 100028
    EMPTY_RESPONSE = 100052
    SEND_ERROR = 100055
    RECEIVE_ERROR = 100056
    INVALID_URL = 100003
    UNKNOWN = 100099
    REQUEST_DISABLED = 100100
    CREDENTIALS_ERROR = 100101


class ErrorKind(Enum):
    """Classification of a structured error."""

    VALIDATION = "validation"
    TRANSPORT = "transport"
    PROTOCOL = "protocol"
    INTEGRITY = "integrity"
    DECODE = "decode"
    CLIENT = "client"


@dataclass(frozen=True)
class Credentials:
    """Snapshot of the secrets used to sign one request."""

    access_key_id: str
    access_key_secret: str
    session_token: str = ""


@dataclass
class PartInfo:
    """One uploaded part of a multipart upload."""

    part_number: int
    etag: str
    size: Optional[int] = None
    last_modified: Optional[str] = None
    crc64: Optional[int] = None


@dataclass
class ClientProfile:
    """Endpoint and credentials for one configured account."""

    key: str
    endpoint: str
    access_key_id: str
    access_key_secret: str
    session_token: str = ""
    addressing_style: str = "virtual"
    enabled: bool = True

    @property
    def is_cname(self) -> bool:
        return self.addressing_style == "cname"

    @property
    def path_style(self) -> bool:
        return self.addressing_style == "path"


@dataclass
class HttpRequest:
    """Transport-level request produced by the request builder."""

    method: str
    url: str = ""
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: Optional[BinaryIO] = None
    body_offset: int = 0
    check_crc64: bool = False
    progress_callback: Optional[ProgressCallback] = None
    response_stream: Optional[BinaryIO] = None
    response_offset: Optional[int] = None

    def rewind(self) -> None:
        """Undo what a failed attempt did to the body and the download stream.

        The body goes back to where the first attempt started reading. Bytes
        a failed attempt wrote into ``response_stream`` are cut off so the
        next attempt starts from the same place.
        """
        if self.body is not None:
            self.body.seek(self.body_offset)
        if self.response_stream is not None and self.response_offset is not None:
            self.response_stream.seek(self.response_offset)
            self.response_stream.truncate()


@dataclass
class HttpResponse:
    """Raw response plus the per-attempt transfer statistics."""

    status_code: int
    headers: httpx.Headers
    body: bytes = b""
    request: Optional[HttpRequest] = None
    transferred_bytes: int = 0
    client_crc64: Optional[int] = None
    stream: Optional[BinaryIO] = None

    @property
    def request_id(self) -> str:
        return self.headers.get("x-oss-request-id", "")


@dataclass
class HttpError:
    """A failed attempt: HTTP status or transport code, before normalization."""

    status: int
    code: str = ""
    message: str = ""
    headers: httpx.Headers = field(default_factory=httpx.Headers)


@dataclass
class OssError:
    """Structured error handed back to callers."""

    code: str
    message: str = ""
    request_id: str = ""
    host_id: str = ""
    status: int = 0

    @property
    def kind(self) -> ErrorKind:
        if self.code == "ValidateError":
            return ErrorKind.VALIDATION
        if self.status == ERROR_CRC_INCONSISTENT:
            return ErrorKind.INTEGRITY
        if self.status in (
            TransportErrorCode.REQUEST_DISABLED,
            TransportErrorCode.CREDENTIALS_ERROR,
        ):
            return ErrorKind.CLIENT
        if self.status >= 100000:
            return ErrorKind.TRANSPORT
        if self.status > 299:
            return ErrorKind.PROTOCOL
        if self.status == 0:
            return ErrorKind.CLIENT
        return ErrorKind.DECODE

    def __str__(self) -> str:
        text = f"{self.code}: {self.message}"
        if self.request_id:
            text += f" (RequestId: {self.request_id})"
        return text


class OssException(Exception):
    """Raised by ``Outcome.unwrap`` when the outcome holds an error."""

    def __init__(self, error: OssError):
        super().__init__(str(error))
        self.error = error


@dataclass(frozen=True)
class Success(Generic[T]):
    """Successful outcome carrying a typed result."""

    result: T

    @property
    def is_success(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.result


@dataclass(frozen=True)
class Failure:
    """Failed outcome carrying a structured error."""

    error: OssError

    @property
    def is_success(self) -> bool:
        return False

    def unwrap(self) -> Any:
        raise OssException(self.error)


Outcome = Union[Success[T], Failure]


@dataclass
class ServiceResult:
    """Generic payload of a successful call, before typed decoding."""

    request_id: str
    status_code: int
    headers: httpx.Headers
    payload: bytes = b""
    stream: Optional[BinaryIO] = None


class OperationStatus(Enum):
    """Status of an operation run from the command line."""

    OK = "ok"
    FAILED = "failed"


@dataclass
class OperationRecord:
    """What one command did, for reporters."""

    operation: str
    target: str
    status: OperationStatus
    request_id: str = ""
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    duration_seconds: float = 0.0
    details: dict[str, Any] = field(default_factory=dict)
