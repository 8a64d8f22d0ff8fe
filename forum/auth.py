from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Type, Union

import httpx
from pydantic import BaseModel, Field, ValidationError

from config.settings import get_settings
from forum.core.errors import ExecutorError, RequestError
from forum.core.executor import Result, post_executor
from forum.core.session import (
    Anonymous,
    Authenticated,
    ErrorCleared,
    LoggedOut,
    LoginFailed,
    LoginStarted,
    LoginSucceeded,
    RegisterFailed,
    RegisterStarted,
    RegisterSucceeded,
    SessionEvent,
    SessionState,
    SessionStore,
    StoredSession,
    transition,
)


logger = logging.getLogger("notorix.auth")

LOGIN_PATH = "/api/auth/login"
REGISTER_PATH = "/api/auth/register"


class Credentials(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class Registration(BaseModel):
    username: str = Field(..., min_length=3, max_length=20)
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8)


def _coerce(model: Type[BaseModel], data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(data, model):
        return data.model_dump()
    try:
        return model.model_validate(data).model_dump()
    except ValidationError as exc:
        raise ValueError(f"Invalid input for {model.__name__}: {exc}") from exc


class AuthService:
    """Owns the session state machine and its store."""

    def __init__(
        self,
        store: SessionStore,
        *,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
    ) -> None:
        settings = get_settings()
        self._store = store
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=settings.request_timeout_seconds,
        )
        self._owns_client = client is None
        self._state: SessionState = Anonymous()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_authenticated(self) -> bool:
        return isinstance(self._state, Authenticated)

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self._state.user if isinstance(self._state, Authenticated) else None

    @property
    def token(self) -> Optional[str]:
        return self._state.token if isinstance(self._state, Authenticated) else None

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    def auth_headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def restore(self) -> SessionState:
        """Pick up a previously persisted session, if any."""
        try:
            stored = self._store.load()
        except ValueError as exc:
            logger.warning("Discarding stored session: %s", exc)
            self._store.clear()
            return self._state
        if stored is not None:
            self._dispatch(LoginSucceeded(user=stored.user, token=stored.token))
        return self._state

    async def login(self, credentials: Union[Credentials, Dict[str, Any]]) -> Result:
        payload = _coerce(Credentials, credentials)
        self._dispatch(LoginStarted())
        return await self._authenticate(LOGIN_PATH, payload, "Login failed", LoginSucceeded, LoginFailed)

    async def register(self, user_data: Union[Registration, Dict[str, Any]]) -> Result:
        payload = _coerce(Registration, user_data)
        self._dispatch(RegisterStarted())
        return await self._authenticate(
            REGISTER_PATH, payload, "Registration failed", RegisterSucceeded, RegisterFailed
        )

    def logout(self) -> None:
        self._store.clear()
        self._dispatch(LoggedOut())

    def clear_error(self) -> None:
        self._dispatch(ErrorCleared())

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _authenticate(self, path, payload, failure_message, succeeded, failed) -> Result:
        # A new attempt ends the previous session on disk as well as in memory.
        self._store.clear()
        executor = post_executor(path, client=self._client)
        try:
            result = await executor.send(payload)
        finally:
            await executor.aclose()

        if not result.success:
            error = result.exception
            if isinstance(error, RequestError):
                error = RequestError(error.status_code, failure_message)
            logger.warning("%s: %s", failure_message, result.error)
            self._dispatch(failed(error=error.message))
            return Result.failure(error)

        try:
            stored = StoredSession.model_validate(result.data or {})
        except ValidationError as exc:
            logger.warning("%s: unexpected auth payload: %s", failure_message, exc)
            self._dispatch(failed(error=failure_message))
            return Result.failure(ExecutorError(failure_message))

        self._store.save(stored)
        self._dispatch(succeeded(user=stored.user, token=stored.token))
        logger.info("Authenticated as %s", stored.user.get("username") or stored.user.get("email"))
        return Result.ok(result.data)

    def _dispatch(self, event: SessionEvent) -> None:
        self._state = transition(self._state, event)
