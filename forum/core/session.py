"""Authentication session state.

The session is a tagged state machine driven by pure ``transition`` calls.
Persistence goes through an explicit ``SessionStore`` handed to whoever
needs it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Union

from pydantic import BaseModel, Field, ValidationError


@dataclass(frozen=True)
class Anonymous:
    pass


@dataclass(frozen=True)
class Authenticating:
    pass


@dataclass(frozen=True)
class Authenticated:
    user: Dict[str, Any]
    token: str


@dataclass(frozen=True)
class Failed:
    error: str


SessionState = Union[Anonymous, Authenticating, Authenticated, Failed]


@dataclass(frozen=True)
class LoginStarted:
    pass


@dataclass(frozen=True)
class RegisterStarted:
    pass


@dataclass(frozen=True)
class LoginSucceeded:
    user: Dict[str, Any] = field(default_factory=dict)
    token: str = ""


@dataclass(frozen=True)
class RegisterSucceeded:
    user: Dict[str, Any] = field(default_factory=dict)
    token: str = ""


@dataclass(frozen=True)
class LoginFailed:
    error: str


@dataclass(frozen=True)
class RegisterFailed:
    error: str


@dataclass(frozen=True)
class LoggedOut:
    pass


@dataclass(frozen=True)
class ErrorCleared:
    pass


SessionEvent = Union[
    LoginStarted,
    RegisterStarted,
    LoginSucceeded,
    RegisterSucceeded,
    LoginFailed,
    RegisterFailed,
    LoggedOut,
    ErrorCleared,
]


def transition(state: SessionState, event: SessionEvent) -> SessionState:
    if isinstance(event, (LoginStarted, RegisterStarted)):
        return Authenticating()
    if isinstance(event, (LoginSucceeded, RegisterSucceeded)):
        return Authenticated(user=event.user, token=event.token)
    if isinstance(event, (LoginFailed, RegisterFailed)):
        return Failed(error=event.error)
    if isinstance(event, LoggedOut):
        return Anonymous()
    if isinstance(event, ErrorCleared):
        return Anonymous() if isinstance(state, Failed) else state
    return state


class StoredSession(BaseModel):
    token: str = Field(..., min_length=1)
    user: Dict[str, Any]


class SessionStore(Protocol):
    def load(self) -> Optional[StoredSession]: ...

    def save(self, session: StoredSession) -> None: ...

    def clear(self) -> None: ...


class InMemorySessionStore:
    def __init__(self, session: Optional[StoredSession] = None) -> None:
        self._session = session

    def load(self) -> Optional[StoredSession]:
        return self._session

    def save(self, session: StoredSession) -> None:
        self._session = session

    def clear(self) -> None:
        self._session = None


class FileSessionStore:
    """Persists the session as JSON on disk. Corrupt files raise ``ValueError``."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def load(self) -> Optional[StoredSession]:
        if not self.path.exists():
            return None
        raw = self.path.read_text(encoding="utf-8")
        try:
            return StoredSession.model_validate_json(raw)
        except ValidationError as exc:
            raise ValueError(f"Unreadable session file {self.path}: {exc}") from exc

    def save(self, session: StoredSession) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(session.model_dump_json(), encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
