# Overview: Account creation and password authentication.

"""
Accounts and passwords.

Passwords are hashed with bcrypt (cost 12) and must be at least 8
characters with an upper-case letter, a lower-case letter, a digit and a
special character. E-mail addresses are the login identifier and are
stored lower-cased.
"""

from __future__ import annotations

import logging
import re

import bcrypt

from ..models import User
from ..models.auth import ROLES
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(ValidationError):
    """Password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")
    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then bcrypt-hash. Returns the hash as str for the DB."""
    validate_password_strength(password)
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


class AuthService:
    def __init__(self, session):
        self.session = session

    def create_user(self, *, email: str, password: str, name: str | None = None, role: str = "customer") -> User:
        email = normalize_email(email)
        if not EMAIL_RE.match(email):
            raise ValidationError("A valid email address is required")
        if role not in ROLES:
            raise ValidationError(f"role must be one of: {', '.join(ROLES)}")
        if self.session.query(User).filter(User.email == email).first() is not None:
            raise ConflictError("An account with this email already exists")

        user = User(
            email=email,
            name=(name or "").strip() or None,
            password_hash=hash_password(password),
            role=role,
        )
        self.session.add(user)
        self.session.commit()
        logger.info("Created %s account %s", role, email)
        return user

    def authenticate(self, email: str, password: str) -> User | None:
        """Returns the user on valid credentials, None otherwise. Stamps last_login_at."""
        user = (
            self.session.query(User)
            .filter(User.email == normalize_email(email), User.is_active.is_(True))
            .first()
        )
        if user is None or not verify_password(password or "", user.password_hash):
            logger.info("Failed login for %s", normalize_email(email))
            return None

        user.last_login_at = utcnow()
        self.session.commit()
        return user
