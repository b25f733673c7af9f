# backend/storefront/routes/auth.py
"""
Authentication routes.

- register: customers sign themselves up (role=customer only); staff
  accounts are created from the CLI
- login: email + password -> bearer token
- logout: revokes the presented token
- me: the current user and what the policy lets their role do
"""
from flask import Blueprint, current_app, g, request

from ..decorators import get_bearer_token, build_session_service, require_auth
from ..extensions import db
from ..policy import allowed_actions
from ..responses import fail, ok
from ..services.auth_service import AuthService
from ..time_utils import to_utc_z
from ..validation import ConflictError, ValidationError

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    payload = request.get_json(silent=True) or {}
    email = payload.get("email")
    password = payload.get("password")
    if not isinstance(email, str) or not isinstance(password, str):
        return fail("email and password required", 400)

    try:
        user = AuthService(db.session).create_user(
            email=email,
            password=password,
            name=payload.get("name") if isinstance(payload.get("name"), str) else None,
            role="customer",
        )
    except ConflictError as e:
        return fail(str(e), 409)
    except ValidationError as e:
        return fail(str(e), 400)

    return ok(user.to_dict(), 201)


@auth_bp.post("/login")
def login_route():
    payload = request.get_json(silent=True) or {}
    email = payload.get("email")
    password = payload.get("password")
    if not isinstance(email, str) or not isinstance(password, str) or not email or not password:
        return fail("email and password required", 400)

    user = AuthService(db.session).authenticate(email, password)
    if user is None:
        current_app.logger.info("Rejected login from %s", request.remote_addr)
        return fail("Invalid credentials", 401)

    record, token = build_session_service().create_session(
        user,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return ok({
        "token": token,
        "expires_at": to_utc_z(record.expires_at),
        "user": user.to_dict(),
    })


@auth_bp.post("/logout")
@require_auth
def logout_route():
    build_session_service().revoke_session(get_bearer_token())
    return ok(None)


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    return ok({"user": user.to_dict(), "permissions": allowed_actions(user.role)})
