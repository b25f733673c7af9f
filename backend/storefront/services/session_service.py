# Overview: Bearer-token sessions with absolute and idle timeouts.

"""
Session tokens.

- 32 random bytes, hex encoded, handed to the client once
- only the SHA-256 of the token is stored
- absolute timeout (default 24h) and idle timeout (default 2h)
- revoked on logout, on idle expiry, and when the user is deactivated
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import func

from ..models import SessionToken, User
from ..time_utils import as_utc_naive, utcnow

SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)
SESSION_RETENTION = timedelta(days=30)


@dataclass
class SessionContext:
    user: User
    session: SessionToken


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    # tokens are high-entropy, so a fast hash is sufficient
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class SessionService:
    def __init__(
        self,
        session,
        *,
        absolute_timeout: timedelta = SESSION_ABSOLUTE_TIMEOUT,
        idle_timeout: timedelta = SESSION_IDLE_TIMEOUT,
    ):
        self.session = session
        self.absolute_timeout = absolute_timeout
        self.idle_timeout = idle_timeout

    def create_session(
        self,
        user: User,
        *,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> tuple[SessionToken, str]:
        """Returns (record, plaintext_token); only the hash is persisted."""
        plaintext = generate_token()
        now = utcnow()
        record = SessionToken(
            user_id=user.id,
            token_hash=hash_token(plaintext),
            created_at=now,
            last_used_at=now,
            expires_at=now + self.absolute_timeout,
            user_agent=(user_agent or "")[:255] or None,
            ip_address=ip_address,
        )
        self.session.add(record)
        self.session.commit()
        return record, plaintext

    def _revoke(self, record: SessionToken, reason: str) -> None:
        record.revoked_at = utcnow()
        record.revoked_reason = reason
        self.session.commit()

    def validate_session(self, token: str) -> SessionContext | None:
        """
        Resolve a bearer token to its user.

        None for unknown, revoked, expired or idle tokens and for
        deactivated users. Touches last_used_at on success.
        """
        record = (
            self.session.query(SessionToken)
            .filter(SessionToken.token_hash == hash_token(token), SessionToken.revoked_at.is_(None))
            .first()
        )
        if record is None:
            return None

        now = utcnow()
        if as_utc_naive(record.expires_at) < now:
            return None
        if now - as_utc_naive(record.last_used_at) > self.idle_timeout:
            self._revoke(record, "Idle timeout")
            return None

        user = record.user
        if user is None or not user.is_active:
            self._revoke(record, "User account deactivated")
            return None

        record.last_used_at = now
        self.session.commit()
        return SessionContext(user=user, session=record)

    def revoke_session(self, token: str, reason: str = "User logout") -> bool:
        record = (
            self.session.query(SessionToken)
            .filter(SessionToken.token_hash == hash_token(token), SessionToken.revoked_at.is_(None))
            .first()
        )
        if record is None:
            return False
        self._revoke(record, reason)
        return True

    def cleanup_expired_sessions(self) -> int:
        """Delete sessions that ended (expired or revoked) more than 30 days ago."""
        cutoff = utcnow() - SESSION_RETENTION
        # a session ends at revocation if revoked, else at expiry
        ended_at = func.coalesce(SessionToken.revoked_at, SessionToken.expires_at)
        deleted = (
            self.session.query(SessionToken)
            .filter(ended_at < cutoff)
            .delete(synchronize_session=False)
        )
        self.session.commit()
        return deleted
