from .cache import ResponseCache, cache_key
from .errors import (
    AuthenticationRequired,
    Cancelled,
    ExecutorError,
    NetworkError,
    RequestError,
    ResponseFormatError,
)
from .executor import (
    RequestExecutor,
    RequestState,
    Result,
    delete_executor,
    post_executor,
    put_executor,
)

__all__ = [
    "AuthenticationRequired",
    "Cancelled",
    "ExecutorError",
    "NetworkError",
    "RequestError",
    "RequestExecutor",
    "RequestState",
    "ResponseCache",
    "ResponseFormatError",
    "Result",
    "cache_key",
    "delete_executor",
    "post_executor",
    "put_executor",
]
