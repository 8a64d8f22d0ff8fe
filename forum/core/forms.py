from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union


logger = logging.getLogger("notorix.forms")

Validator = Callable[[Any, Mapping[str, Any]], Optional[str]]

_UNSET = object()


@dataclass(frozen=True)
class FieldRules:
    """Rules for one field, checked in declaration order; first failure wins.

    ``required`` may be ``True`` for the default message or a custom message.
    ``messages`` overrides the defaults for ``min_length``, ``max_length`` and
    ``pattern``.
    """

    required: Union[bool, str] = False
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[Union[str, re.Pattern]] = None
    validate: Optional[Validator] = None
    messages: Dict[str, str] = field(default_factory=dict)

    def check(self, name: str, value: Any, values: Mapping[str, Any]) -> str:
        text = "" if value is None else value
        if self.required and (not text or (isinstance(text, str) and not text.strip())):
            return self.required if isinstance(self.required, str) else f"{name} is required"

        if isinstance(text, str) and text:
            if self.min_length is not None and len(text) < self.min_length:
                return self.messages.get(
                    "min_length", f"{name} must be at least {self.min_length} characters"
                )
            if self.max_length is not None and len(text) > self.max_length:
                return self.messages.get(
                    "max_length", f"{name} must be no more than {self.max_length} characters"
                )
            if self.pattern is not None and not re.search(self.pattern, text):
                return self.messages.get("pattern", f"{name} format is invalid")

        if self.validate is not None:
            custom = self.validate(value, values)
            if custom:
                return custom
        return ""


Schema = Mapping[str, FieldRules]


class Form:
    """Field values, validation errors and touched flags for one form."""

    def __init__(
        self,
        initial: Optional[Mapping[str, Any]] = None,
        schema: Optional[Schema] = None,
        on_submit: Optional[Callable[[Dict[str, Any]], Awaitable[Any]]] = None,
    ) -> None:
        self.initial: Dict[str, Any] = dict(initial or {})
        self.schema: Dict[str, FieldRules] = dict(schema or {})
        self.on_submit = on_submit
        self.values: Dict[str, Any] = dict(self.initial)
        self.errors: Dict[str, str] = {}
        self.touched: Dict[str, bool] = {}
        self.is_submitting = False

    @property
    def is_valid(self) -> bool:
        return not any(self.errors.values())

    @property
    def is_dirty(self) -> bool:
        return self.values != self.initial

    def validate_field(self, name: str, value: Any = _UNSET) -> str:
        rules = self.schema.get(name)
        if rules is None:
            return ""
        if value is _UNSET:
            value = self.values.get(name)
        return rules.check(name, value, self.values)

    def validate_form(self) -> bool:
        errors = {}
        for name in self.schema:
            error = self.validate_field(name, self.values.get(name))
            if error:
                errors[name] = error
        self.errors = errors
        return not errors

    def handle_change(self, name: str, value: Any) -> None:
        self.values[name] = value
        if self.errors.get(name):
            self.errors[name] = ""

    def handle_blur(self, name: str) -> None:
        self.touched[name] = True
        self.errors[name] = self.validate_field(name, self.values.get(name))

    async def submit(self) -> bool:
        self.touched = {name: True for name in self.schema}
        if not self.validate_form():
            return False

        if self.on_submit is not None:
            self.is_submitting = True
            try:
                await self.on_submit(dict(self.values))
            except Exception:
                logger.exception("Form submission failed")
            finally:
                self.is_submitting = False
        return True

    def reset(self) -> None:
        self.values = dict(self.initial)
        self.errors = {}
        self.touched = {}
        self.is_submitting = False

    def set_values(self, values: Mapping[str, Any]) -> None:
        self.values = dict(values)

    def field_props(self, name: str) -> Dict[str, Any]:
        error = self.errors.get(name) if self.touched.get(name) else None
        return {
            "value": self.values.get(name) or "",
            "error": error or None,
            "has_error": bool(error),
        }


EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
USERNAME_PATTERN = r"^[a-zA-Z0-9_]+$"


def _password_strength(value: Any, values: Mapping[str, Any]) -> str:
    if value and not re.search(r"(?=.*[a-z])(?=.*[A-Z])(?=.*\d)", value):
        return (
            "Password must contain at least one uppercase letter, "
            "one lowercase letter, and one number"
        )
    return ""


def matches_field(other: str, message: str) -> Validator:
    def _check(value: Any, values: Mapping[str, Any]) -> str:
        return message if value != values.get(other) else ""

    return _check


SCHEMAS: Dict[str, FieldRules] = {
    "email": FieldRules(
        required="Email is required",
        pattern=EMAIL_PATTERN,
        messages={"pattern": "Please enter a valid email address"},
    ),
    "password": FieldRules(
        required="Password is required",
        min_length=8,
        validate=_password_strength,
        messages={"min_length": "Password must be at least 8 characters long"},
    ),
    "username": FieldRules(
        required="Username is required",
        min_length=3,
        max_length=20,
        pattern=USERNAME_PATTERN,
        messages={"pattern": "Username can only contain letters, numbers, and underscores"},
    ),
    "required": FieldRules(required=True),
}
