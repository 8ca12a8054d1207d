"""API response helpers and request parsing utilities."""

from __future__ import annotations

from typing import Any, TypeVar

import pydantic
from flask import current_app, g, jsonify, request

from mdstore.repositories import DataStore

from ..errors import AuthError, ValidationError

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


def api_error(error: str, status: int = 400, **extra) -> tuple[Any, int]:
    """Return a standardized JSON error response."""
    resp = {"success": False, "error": error}
    resp.update(extra)
    return jsonify(resp), status


def api_success(**data) -> Any:
    """Return a standardized JSON success response."""
    resp = {"success": True}
    resp.update(data)
    return jsonify(resp)


def get_store() -> DataStore:
    """The DataStore injected into the running app."""
    return current_app.extensions["meddigest.store"]


def get_mailer():
    return current_app.extensions["meddigest.mailer"]


def current_user() -> dict | None:
    return getattr(g, "user", None)


def require_user() -> dict:
    user = current_user()
    if user is None:
        raise AuthError("Unauthorized")
    return user


def first_error_message(exc: pydantic.ValidationError) -> str:
    """Human-readable message of the first pydantic error."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    err = errors[0]
    msg = str(err.get("msg") or "Invalid value")
    # Custom validators raise ValueError("..."); pydantic prefixes it
    if msg.startswith("Value error, "):
        return msg[len("Value error, ") :]
    loc = ".".join(str(p) for p in err.get("loc", ()) if p != "__root__")
    return f"{loc}: {msg}" if loc else msg


def parse_json_body(schema: type[ModelT]) -> ModelT:
    """Validate the JSON body against a pydantic schema.

    A missing or non-object body is validated as {} so that required fields
    report their own messages.

    Raises:
        ValidationError: body failed validation
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    try:
        return schema.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(first_error_message(exc)) from exc


def bearer_token() -> str:
    header = (request.headers.get("Authorization") or "").strip()
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return ""
