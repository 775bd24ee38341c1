"""Password hashing, JWT issuing and the authenticated-user dependency."""
import hashlib
import hmac
import logging
import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session, select

from shared.db import get_session
from shared.models import PendingRegistration, User
from shared.types import AdminType, Role

logger = logging.getLogger(__name__)


def load_jwt_secret() -> str:
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        logger.warning("JWT_SECRET not set - using a random secret, tokens will not survive a restart")
        secret = secrets.token_hex(32)
    return secret


JWT_SECRET = load_jwt_secret()
JWT_ALGORITHM = "HS256"
JWT_EXPIRES_HOURS = int(os.getenv("JWT_EXPIRES_HOURS", "24"))

_ALGO = "pbkdf2_sha256"
_ITERATIONS = int(os.getenv("PASSWORD_HASH_ITERATIONS", "210000"))

MIN_PASSWORD_LENGTH = 6

bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(raw_password: str, salt: bytes | None = None) -> str:
    salt = salt or secrets.token_bytes(16)
    dk = hashlib.pbkdf2_hmac(
        "sha256",
        (raw_password or "").encode("utf-8"),
        salt,
        _ITERATIONS,
    )
    return f"{_ALGO}${_ITERATIONS}${salt.hex()}${dk.hex()}"


def verify_password(raw_password: str, stored: str) -> bool:
    try:
        algo, iters, salt_hex, hash_hex = (stored or "").split("$", 3)
        if algo != _ALGO:
            return False
        iterations = int(iters)
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(hash_hex)
    except ValueError:
        return False
    actual = hashlib.pbkdf2_hmac(
        "sha256",
        (raw_password or "").encode("utf-8"),
        salt,
        iterations,
    )
    return hmac.compare_digest(actual, expected)


def create_access_token(user: User) -> str:
    """Create JWT token for user session"""
    payload = {
        "userId": user.id,
        "email": user.email,
        "role": user.role,
        "full_name": user.full_name,
        "exp": datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    """Verify JWT token and return payload if valid"""
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired access token")
        return None
    except jwt.InvalidTokenError:
        logger.info("Rejected invalid access token")
        return None


def public_user(user: User) -> dict:
    """User fields safe to return to clients."""
    return user.model_dump(exclude={"password_hash"})


def resolve_token_user(session: Session, token: Optional[str]) -> User:
    """
    Resolve an access token to a live account.

    The role always comes from the database, never from the token, so a
    demoted or suspended account loses access immediately.
    """
    if not token:
        raise HTTPException(status_code=401, detail="Access token required")

    payload = decode_access_token(token)
    if payload is None:
        raise HTTPException(status_code=403, detail="Invalid or expired token")

    user = session.exec(select(User).where(User.email == payload.get("email"))).first()
    if user is None:
        raise HTTPException(status_code=401, detail="User account no longer exists")
    if user.status == "suspended":
        raise HTTPException(
            status_code=403,
            detail="Your account has been suspended. Please contact support.",
        )
    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User:
    return resolve_token_user(session, credentials.credentials if credentials else None)


def require_role(user: User, roles: tuple[str, ...], message: str) -> None:
    if user.role not in roles:
        raise HTTPException(status_code=403, detail=message)


def is_system_admin(user: User) -> bool:
    """Admins created before admin types existed count as system admins."""
    return user.role == Role.ADMIN.value and user.admin_type in (AdminType.SYSTEM.value, None)


def username_taken(session: Session, username: str) -> bool:
    """Usernames are unique across live accounts and signups awaiting approval."""
    if session.exec(select(User).where(User.username == username)).first():
        return True
    return session.exec(
        select(PendingRegistration).where(PendingRegistration.username == username)
    ).first() is not None


def unique_username(session: Session, email: str) -> str:
    """Username derived from the email's local part, suffixed until free."""
    base = email.split("@")[0] or "user"
    username, n = base, 1
    while username_taken(session, username):
        n += 1
        username = f"{base}{n}"
    return username
