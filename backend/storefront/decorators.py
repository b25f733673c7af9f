# Overview: Authentication and policy decorators for API routes.

from datetime import timedelta
from functools import wraps

from flask import current_app, g, request

from .extensions import db
from .policy import require
from .responses import fail
from .services.session_service import SessionService


def build_session_service() -> SessionService:
    cfg = current_app.config
    return SessionService(
        db.session,
        absolute_timeout=timedelta(hours=cfg.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24)),
        idle_timeout=timedelta(hours=cfg.get("SESSION_IDLE_TIMEOUT_HOURS", 2)),
    )


def get_bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization") or ""
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def load_current_user():
    """
    Resolve the bearer token, if any, into g.current_user.

    Returns the user or None; never rejects the request. Public routes use
    this to widen what staff can see.
    """
    g.current_user = None
    g.session_context = None
    token = get_bearer_token()
    if token is None:
        return None
    context = build_session_service().validate_session(token)
    if context is None:
        return None
    g.current_user = context.user
    g.session_context = context
    return context.user


def current_role() -> str | None:
    user = getattr(g, "current_user", None)
    return user.role if user is not None else None


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.current_user and g.session_context. 401 when the header is
    missing, or the token is unknown, revoked, expired or idle.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if get_bearer_token() is None:
            return fail("Authentication required", 401)
        if load_current_user() is None:
            return fail("Invalid or expired token", 401)
        return f(*args, **kwargs)

    return decorated_function


def require_policy(resource: str, action: str):
    """
    Require that the authenticated user's role may perform action on resource.

    Must sit below @require_auth. A denial raises PolicyDeniedError, which
    the app error handler logs and answers with 403.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return fail("Authentication required", 401)

            require(user.role, resource, action)
            return f(*args, **kwargs)

        return decorated_function
    return decorator
