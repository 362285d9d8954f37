# minimarket/identity.py
"""Who owns a cart: an authenticated user or an anonymous guest session.

Exactly one of the two is active per request. Requests that carry both a
bearer token and a guest session header, or neither, are rejected.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import Union

from flask import current_app, g, request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from .errors import ValidationError


@dataclass(frozen=True)
class User:
    user_id: str

    @property
    def key(self) -> str:
        return f"user:{self.user_id}"


@dataclass(frozen=True)
class Guest:
    session_id: str

    @property
    def key(self) -> str:
        return f"guest:{self.session_id}"


Identity = Union[User, Guest]


def _clean(value) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def resolve_identity(user_id=None, session_id=None) -> Identity:
    user_id, session_id = _clean(user_id), _clean(session_id)
    if user_id and session_id:
        raise ValidationError("send either a user token or a guest session id, not both", field="identity")
    if user_id:
        return User(user_id)
    if session_id:
        return Guest(session_id)
    raise ValidationError("a user token or a guest session id is required", field="identity")


def identity_from_request() -> Identity:
    verify_jwt_in_request(optional=True)
    header = current_app.config.get("SESSION_HEADER", "X-Session-Id")
    return resolve_identity(get_jwt_identity(), request.headers.get(header))


def identity_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        g.identity = identity_from_request()
        return fn(*args, **kwargs)
    return wrapper


def user_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        g.identity = User(str(get_jwt_identity()))
        return fn(*args, **kwargs)
    return wrapper
