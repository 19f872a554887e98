"""discordrest 公開API。"""

from discordrest.bucket import GlobalRateState, SequentialBucket
from discordrest.client import AsyncRestClient
from discordrest.config import API_VERSION, DEFAULT_BASE_URL, VERSION, RestConfig
from discordrest.error_fields import build_error_message, flatten_errors
from discordrest.errors import (
    RestApiError,
    RestClientError,
    RestConfigurationError,
    RestError,
    RestErrorContext,
    RestNetworkError,
    RestRateLimitError,
    RestRateLimitExceeded,
    RestRetryLimitExceeded,
    RestServerError,
    RestTimeoutError,
    RestTransportError,
)
from discordrest.hashes import BucketHashTable
from discordrest.request import Request
from discordrest.routing import RouteInfo, classify
from discordrest.types import FileContent, HashData, RawRequest, RequestOptions

__version__ = VERSION

__all__ = [
    "API_VERSION",
    "AsyncRestClient",
    "BucketHashTable",
    "DEFAULT_BASE_URL",
    "FileContent",
    "GlobalRateState",
    "HashData",
    "RawRequest",
    "Request",
    "RequestOptions",
    "RestApiError",
    "RestClientError",
    "RestConfig",
    "RestConfigurationError",
    "RestError",
    "RestErrorContext",
    "RestNetworkError",
    "RestRateLimitError",
    "RestRateLimitExceeded",
    "RestRetryLimitExceeded",
    "RestServerError",
    "RestTimeoutError",
    "RestTransportError",
    "RouteInfo",
    "SequentialBucket",
    "VERSION",
    "build_error_message",
    "classify",
    "flatten_errors",
]
