# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g
from werkzeug.routing import IntegerConverter

from .extensions import db
from .models import User
from .validation import MAX_ID


USER_HEADER = "X-User-Id"


def require_user(f):
    """
    Resolve the acting user and establish ownership context.

    Sets g.current_user to the active User named by the X-User-Id header.
    Token issuance and verification happen upstream; by the time a request
    reaches this service the header is trusted.

    Returns 401 if the header is missing or malformed, or the user is
    unknown or deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = (request.headers.get(USER_HEADER) or "").strip()
        if not raw.isdigit() or int(raw) > MAX_ID:
            return jsonify({"error": "Authentication required", "code": "unauthenticated"}), 401

        user = db.session.get(User, int(raw))
        if not user or not user.is_active:
            return jsonify({"error": "Unknown or inactive user", "code": "unauthenticated"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def pagination_args(default_limit: int = 100, max_limit: int = 500) -> tuple[int, int]:
    """Read limit/offset query parameters, clamped to sane bounds."""
    limit = request.args.get("limit", default_limit, type=int)
    offset = request.args.get("offset", 0, type=int)
    return max(1, min(limit, max_limit)), max(0, min(offset, MAX_ID))


def id_query_arg(name: str) -> int | None:
    """Optional integer id from the query string; out-of-range values are ignored."""
    value = request.args.get(name, type=int)
    if value is None or not 0 < value <= MAX_ID:
        return None
    return value


class IdConverter(IntegerConverter):
    """`<int:...>` URL segments that fit the primary key column; larger ones 404."""

    def __init__(self, map, *args, **kwargs):
        kwargs.setdefault("max", MAX_ID)
        super().__init__(map, *args, **kwargs)
