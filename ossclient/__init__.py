"""
ossclient - client library for OSS-style object storage.

Signs requests with the HMAC-SHA1 ``OSS`` scheme, retries transient
failures, verifies CRC64 end to end and returns every call as a
``Success`` or ``Failure`` outcome.
"""

__version__ = "1.0.0"

from ossclient.client import OssClient
from ossclient.config import ClientConfiguration
from ossclient.models import Failure, OssError, OssException, Success

__all__ = [
    "ClientConfiguration",
    "Failure",
    "OssClient",
    "OssError",
    "OssException",
    "Success",
    "__version__",
]
