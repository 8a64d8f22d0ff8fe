from __future__ import annotations

import json

import httpx
import pytest

from forum.auth import AuthService
from forum.core.errors import NetworkError, RequestError
from forum.core.session import (
    Anonymous,
    Authenticated,
    Failed,
    FileSessionStore,
    InMemorySessionStore,
    StoredSession,
)


USER = {"id": 3, "username": "ada", "email": "ada@example.com"}


def _auth_ok(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(200, json={"token": f"token-for-{body['email']}", "user": USER})


@pytest.mark.asyncio
async def test_login_success_persists_session(router) -> None:
    router.add("POST", "/api/auth/login", _auth_ok)
    store = InMemorySessionStore()
    auth = AuthService(store, client=router.client())

    result = await auth.login({"email": "ada@example.com", "password": "Secret123"})

    assert result.success
    assert auth.state == Authenticated(user=USER, token="token-for-ada@example.com")
    assert auth.auth_headers() == {"Authorization": "Bearer token-for-ada@example.com"}
    assert store.load() == StoredSession(token="token-for-ada@example.com", user=USER)


@pytest.mark.asyncio
async def test_login_rejected_uses_generic_message(router) -> None:
    router.add("POST", "/api/auth/login", httpx.Response(401, json={"message": "bad password"}))
    store = InMemorySessionStore()
    auth = AuthService(store, client=router.client())

    result = await auth.login({"email": "ada@example.com", "password": "wrong"})

    assert not result.success
    assert result.error == "Login failed"
    assert isinstance(result.exception, RequestError)
    assert result.exception.status_code == 401
    assert auth.state == Failed("Login failed")
    assert store.load() is None


@pytest.mark.asyncio
async def test_register_network_failure_keeps_transport_message(router) -> None:
    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    router.add("POST", "/api/auth/register", unreachable)
    auth = AuthService(InMemorySessionStore(), client=router.client())

    result = await auth.register({"username": "ada", "email": "ada@example.com", "password": "Secret123"})

    assert isinstance(result.exception, NetworkError)
    assert auth.state == Failed("connection refused")


@pytest.mark.asyncio
async def test_register_success(router) -> None:
    router.add("POST", "/api/auth/register", _auth_ok)
    auth = AuthService(InMemorySessionStore(), client=router.client())

    result = await auth.register({"username": "ada", "email": "ada@example.com", "password": "Secret123"})

    assert result.success
    assert auth.is_authenticated
    assert auth.user == USER


@pytest.mark.asyncio
async def test_malformed_auth_payload_is_a_failure(router) -> None:
    router.add("POST", "/api/auth/login", httpx.Response(200, json={"user": USER}))
    auth = AuthService(InMemorySessionStore(), client=router.client())

    result = await auth.login({"email": "ada@example.com", "password": "x"})

    assert not result.success
    assert auth.state == Failed("Login failed")


@pytest.mark.asyncio
async def test_invalid_credentials_are_rejected_before_request(router) -> None:
    auth = AuthService(InMemorySessionStore(), client=router.client())

    with pytest.raises(ValueError):
        await auth.login({"email": "ada@example.com"})
    assert router.requests == []
    assert auth.state == Anonymous()


def test_restore_from_store(router) -> None:
    store = InMemorySessionStore(StoredSession(token="abc", user=USER))
    auth = AuthService(store, client=router.client())

    assert auth.restore() == Authenticated(user=USER, token="abc")


def test_restore_clears_corrupt_file(tmp_path, router) -> None:
    path = tmp_path / "session.json"
    path.write_text('{"token": ""}', encoding="utf-8")
    auth = AuthService(FileSessionStore(path), client=router.client())

    assert auth.restore() == Anonymous()
    assert not path.exists()


def test_logout_and_clear_error(router) -> None:
    store = InMemorySessionStore(StoredSession(token="abc", user=USER))
    auth = AuthService(store, client=router.client())
    auth.restore()

    auth.logout()

    assert auth.state == Anonymous()
    assert store.load() is None
    assert auth.auth_headers() == {}
    auth.clear_error()
    assert auth.state == Anonymous()


@pytest.mark.asyncio
async def test_failed_relogin_drops_stored_session(router) -> None:
    router.add("POST", "/api/auth/login", httpx.Response(401))
    store = InMemorySessionStore(StoredSession(token="abc", user=USER))
    auth = AuthService(store, client=router.client())
    auth.restore()

    result = await auth.login({"email": "ada@example.com", "password": "wrong"})

    assert not result.success
    assert auth.auth_headers() == {}
    assert store.load() is None
    assert AuthService(store, client=router.client()).restore() == Anonymous()


@pytest.mark.asyncio
async def test_failed_relogin_clears_session_file(tmp_path, router) -> None:
    router.add("POST", "/api/auth/login", httpx.Response(500))
    path = tmp_path / "session.json"
    store = FileSessionStore(path)
    store.save(StoredSession(token="abc", user=USER))
    auth = AuthService(store, client=router.client())
    auth.restore()

    await auth.login({"email": "ada@example.com", "password": "Secret123"})

    assert not path.exists()
