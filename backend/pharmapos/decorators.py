# Overview: Request identity for API routes.

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps

from flask import current_app, g, jsonify, request


@dataclass(frozen=True)
class CurrentUser:
    id: str
    display_name: str


def header_user_loader() -> CurrentUser | None:
    """
    Default identity source: X-User-Id / X-User-Name headers set by the
    authenticating gateway in front of this service.
    """
    user_id = (request.headers.get("X-User-Id") or "").strip()
    if not user_id:
        return None
    display_name = (request.headers.get("X-User-Name") or "").strip() or user_id
    return CurrentUser(id=user_id, display_name=display_name)


def load_current_user() -> CurrentUser | None:
    loader = current_app.config.get("CURRENT_USER_LOADER") or header_user_loader
    return loader()


def require_auth(f):
    """
    Require an identified caller.

    Sets g.current_user to the CurrentUser used for processed_by
    attribution. Returns 401 when no identity is available.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = load_current_user()
        if user is None:
            return jsonify({"error": "Authentication required"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function
