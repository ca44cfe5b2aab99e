# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

WHY: Secure session management with automatic timeout and revocation.
Tokens are cryptographically secure, hashed in database, and time-limited.

Every authenticated request resolves its token to a Caller: the explicit
identity (user, roles, assigned store) that services receive as an
argument. Services never read request-global state.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute timeout (Config.SESSION_ABSOLUTE_TIMEOUT_HOURS)
- Idle timeout (Config.SESSION_IDLE_TIMEOUT_HOURS)
- Revocable on logout or when the user is deactivated
"""

import secrets
import hashlib
from dataclasses import dataclass, field
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User, ROLE_ADMIN
from .permission_service import get_user_roles
from kirana.time_utils import utcnow


@dataclass(frozen=True)
class Caller:
    """
    Explicit caller identity passed into service operations.

    Built from a validated session; roles are read once per request.
    """
    user_id: int
    email: str
    roles: frozenset = field(default_factory=frozenset)
    store_id: int | None = None  # Store a cashier is assigned to

    def has_role(self, role: str) -> bool:
        return role in self.roles

    @property
    def is_admin(self) -> bool:
        return ROLE_ADMIN in self.roles

    @classmethod
    def for_user(cls, user: User) -> "Caller":
        return cls(
            user_id=user.id,
            email=user.email,
            roles=frozenset(get_user_roles(user.id)),
            store_id=user.store_id,
        )


@dataclass
class SessionContext:
    """Session record plus the caller it authenticates."""
    user: User
    session: SessionToken
    caller: Caller


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24))


def _idle_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_IDLE_TIMEOUT_HOURS", 2))


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy, so a fast hash is sufficient.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")
    if not user.is_active:
        raise ValueError("User account is deactivated")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _absolute_timeout(),
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if:
    - Token is invalid, expired, or revoked
    - Session has been idle too long (it is revoked)
    - User account is deactivated (the session is revoked)

    Updates last_used_at on successful validation (activity tracking).
    """
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > _idle_timeout():
        _revoke(session, "Idle timeout")
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(user=user, session=session, caller=Caller.for_user(user))


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke an active session. Returns False if the token is unknown or already revoked."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()
    if not session:
        return False

    _revoke(session, reason)
    return True


def revoke_user_sessions(user_id: int, reason: str) -> int:
    """Revoke every active session of a user. Returns the number revoked."""
    sessions = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).all()
    now = utcnow()
    for session in sessions:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason
    db.session.commit()
    return len(sessions)
