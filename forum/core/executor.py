from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional, Tuple

import httpx

from config.settings import get_settings
from forum.core.cache import ResponseCache, cache_key
from forum.core.errors import (
    Cancelled,
    ExecutorError,
    NetworkError,
    RequestError,
    ResponseFormatError,
)


logger = logging.getLogger("notorix.executor")

DEFAULT_HEADERS = {"Content-Type": "application/json"}


@dataclass(frozen=True)
class RequestState:
    data: Any = None
    loading: bool = False
    error: Optional[str] = None


@dataclass(frozen=True)
class Result:
    success: bool
    data: Any = None
    error: Optional[str] = None
    exception: Optional[ExecutorError] = None

    @property
    def cancelled(self) -> bool:
        return isinstance(self.exception, Cancelled)

    @classmethod
    def ok(cls, data: Any) -> "Result":
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, exc: ExecutorError) -> "Result":
        return cls(success=False, error=exc.message, exception=exc)


class CancelToken:
    """Cancellation signal bound to one ``execute`` invocation."""

    def __init__(self) -> None:
        self.cancelled = False
        self._task: Optional[asyncio.Future] = None

    def bind(self, task: asyncio.Future) -> None:
        self._task = task

    def cancel(self) -> None:
        self.cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()


def _request_arguments(options: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
    method = str(options.get("method") or "GET").upper()
    headers = {**DEFAULT_HEADERS, **(options.get("headers") or {})}
    kwargs: Dict[str, Any] = {"headers": headers}
    if options.get("params"):
        kwargs["params"] = options["params"]
    if "json" in options:
        kwargs["json"] = options["json"]
    elif "body" in options:
        body = options["body"]
        if isinstance(body, (str, bytes)):
            kwargs["content"] = body
        else:
            kwargs["json"] = body
    return method, kwargs


class RequestExecutor:
    """Fetch-and-cache session bound to one data need.

    Holds at most one in-flight request. Starting a new ``execute`` cancels the
    previous one through its ``CancelToken``, so the last call to start is the
    one reflected in ``state``. Failures are captured into ``state`` and the
    returned ``Result``; nothing is retried.
    """

    def __init__(
        self,
        endpoint: str,
        options: Optional[Dict[str, Any]] = None,
        *,
        immediate: bool = True,
        cache_ttl: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        settings = get_settings()
        self.endpoint = endpoint
        self.options: Dict[str, Any] = dict(options or {})
        self.immediate = immediate
        ttl = settings.cache_ttl_seconds if cache_ttl is None else cache_ttl
        self._cache = ResponseCache(ttl, clock=clock)
        self._client = client or httpx.AsyncClient(
            base_url=settings.api_base_url,
            timeout=settings.request_timeout_seconds,
        )
        self._owns_client = client is None
        self._state = RequestState()
        self._token: Optional[CancelToken] = None
        self._closed = False

    @property
    def state(self) -> RequestState:
        return self._state

    @property
    def data(self) -> Any:
        return self._state.data

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def error(self) -> Optional[str]:
        return self._state.error

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> "RequestExecutor":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def start(self) -> Optional[Result]:
        if not self.immediate:
            return None
        return await self.execute()

    async def execute(
        self,
        endpoint: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Result:
        endpoint = self.endpoint if endpoint is None else endpoint
        options = self.options if options is None else options
        if self._closed:
            logger.debug("Executor closed, ignoring request to %s", endpoint)
            return Result.failure(Cancelled())

        self._cancel_inflight()

        key = cache_key(endpoint, options)
        entry = self._cache.get(key)
        if entry is not None:
            logger.debug("Cache hit: %s", key)
            self._state = RequestState(data=entry.payload, loading=False, error=None)
            return Result.ok(entry.payload)

        token = CancelToken()
        self._token = token
        self._state = replace(self._state, loading=True, error=None)
        task = asyncio.ensure_future(self._send(endpoint, options))
        token.bind(task)
        try:
            payload = await task
        except asyncio.CancelledError:
            if not token.cancelled:
                # The caller's own task is being cancelled.
                self._state = replace(self._state, loading=False)
                task.cancel()
                raise
            return self._superseded(endpoint)
        except ExecutorError as exc:
            if token.cancelled:
                return self._superseded(endpoint)
            logger.warning("Request to %s failed: %s", endpoint, exc.message)
            self._state = replace(self._state, loading=False, error=exc.message)
            return Result.failure(exc)
        finally:
            if self._token is token:
                self._token = None

        if token.cancelled:
            return self._superseded(endpoint)
        self._cache.set(key, payload)
        self._state = RequestState(data=payload, loading=False, error=None)
        return Result.ok(payload)

    async def refetch(self) -> Result:
        """Drop the cached default response and hit the network again."""
        self._cache.invalidate(cache_key(self.endpoint, self.options))
        return await self.execute()

    async def send(self, body: Any, **options: Any) -> Result:
        """Execute the default endpoint with ``body`` as the JSON payload."""
        return await self.execute(self.endpoint, {**self.options, **options, "json": body})

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._cancel_inflight()
        if self._owns_client:
            await self._client.aclose()

    def _cancel_inflight(self) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None

    def _superseded(self, endpoint: str) -> Result:
        logger.debug("Request to %s cancelled", endpoint)
        return Result.failure(Cancelled())

    async def _send(self, endpoint: str, options: Dict[str, Any]) -> Any:
        method, kwargs = _request_arguments(options)
        try:
            response = await self._client.request(method, endpoint, **kwargs)
        except httpx.HTTPError as exc:
            raise NetworkError(str(exc) or exc.__class__.__name__) from exc

        if not response.is_success:
            raise RequestError(response.status_code)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ResponseFormatError(f"Invalid JSON response: {exc}") from exc


def _write_executor(method: str, endpoint: str, options: Optional[Dict[str, Any]], **kwargs: Any) -> RequestExecutor:
    kwargs.setdefault("immediate", False)
    kwargs.setdefault("cache_ttl", 0)
    return RequestExecutor(endpoint, {**(options or {}), "method": method}, **kwargs)


def post_executor(endpoint: str, options: Optional[Dict[str, Any]] = None, **kwargs: Any) -> RequestExecutor:
    return _write_executor("POST", endpoint, options, **kwargs)


def put_executor(endpoint: str, options: Optional[Dict[str, Any]] = None, **kwargs: Any) -> RequestExecutor:
    return _write_executor("PUT", endpoint, options, **kwargs)


def delete_executor(endpoint: str, options: Optional[Dict[str, Any]] = None, **kwargs: Any) -> RequestExecutor:
    return _write_executor("DELETE", endpoint, options, **kwargs)
