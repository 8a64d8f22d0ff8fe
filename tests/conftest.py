from __future__ import annotations

from typing import Any, Callable, Dict, List, Tuple, Union

import httpx
import pytest


Handler = Union[httpx.Response, Callable[[httpx.Request], Any]]


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class Router:
    """Routes (method, path) to canned responses and records every request."""

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Handler] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, handler: Handler) -> None:
        self.routes[(method.upper(), path)] = handler

    def calls(self, path: str, method: str = "GET") -> int:
        return sum(
            1 for r in self.requests if r.url.path == path and r.method == method.upper()
        )

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if isinstance(handler, httpx.Response):
            return handler
        result = handler(request)
        if hasattr(result, "__await__"):
            result = await result
        return result

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self), base_url="http://forum.test")


@pytest.fixture
def router() -> Router:
    return Router()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
