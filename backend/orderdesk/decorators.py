# Overview: Request decorators for API routes (acting user resolution).

from functools import wraps
from flask import current_app, g, jsonify, request


def load_current_user() -> None:
    """
    Resolve the acting user id from the configured header.

    Authentication happens upstream; this service only records who acted.
    A missing or malformed header leaves g.current_user_id as None.
    """
    raw = request.headers.get(current_app.config["USER_ID_HEADER"])
    g.current_user_id = None
    if raw is None:
        return
    raw = raw.strip()
    if raw.isdigit() and int(raw) > 0:
        g.current_user_id = int(raw)
    else:
        current_app.logger.warning("Ignoring malformed user header %r on %s", raw, request.path)


def current_user_id() -> int | None:
    return g.get("current_user_id")


def require_user(f):
    """Return 401 unless the request names an acting user."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if current_user_id() is None:
            return jsonify({"error": "Authentication required"}), 401
        return f(*args, **kwargs)

    return decorated_function
