from __future__ import annotations

import hashlib
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi.security import HTTPBearer
from jose import JWTError, jwt

from fellowship.core.config import settings

PBKDF2_ITERATIONS = 310_000

_UPPER_RE = re.compile(r"[A-Z]")
_LOWER_RE = re.compile(r"[a-z]")
_DIGIT_RE = re.compile(r"\d")
_SYMBOL_RE = re.compile(r"[^A-Za-z0-9]")


def _normalize_token(token: str) -> str:
    """
    Make token decoding resilient to common Swagger / copy-paste issues:
    - Leading/trailing whitespace/newlines
    - Surrounding quotes
    - Accidentally including the 'Bearer ' prefix in the token field
    """
    if token is None:
        return ""

    t = token.strip()

    if (t.startswith('"') and t.endswith('"')) or (t.startswith("'") and t.endswith("'")):
        t = t[1:-1].strip()

    if t.lower().startswith("bearer "):
        t = t[7:].strip()

    return t


def create_access_token(subject: str, expires_minutes: Optional[int] = None) -> str:
    expire_dt = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )

    to_encode: dict[str, Any] = {
        "sub": str(subject),
        "exp": int(expire_dt.timestamp()),
        "iat": int(datetime.now(timezone.utc).timestamp()),
    }

    return jwt.encode(
        to_encode,
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_access_token(token: str) -> Optional[str]:
    """
    Returns the token subject (user id), or None for anything unusable:
    expired signature, bad format, bad signature, wrong algorithm, missing sub.
    """
    token = _normalize_token(token)
    if not token:
        return None

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require_sub": True, "require_exp": True},
        )
    except JWTError:
        return None

    sub = payload.get("sub")
    return str(sub) if sub else None


# -----------------------------
# Passwords
# -----------------------------
def hash_password(password: str) -> str:
    """Returns `salt:hash` using PBKDF2-SHA256."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt.encode("utf-8"),
        PBKDF2_ITERATIONS,
    )
    return f"{salt}:{digest.hex()}"


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash or ":" not in password_hash:
        return False
    salt, stored = password_hash.split(":", 1)
    digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt.encode("utf-8"),
        PBKDF2_ITERATIONS,
    )
    return secrets.compare_digest(digest.hex(), stored)


def burn_password_check(password: str) -> None:
    # Same cost as a real verification so unknown accounts are not faster to reject.
    verify_password(password, "0" * 32 + ":" + "0" * 64)


def password_strength_problems(password: str) -> list[str]:
    problems: list[str] = []
    if len(password) < 8:
        problems.append("at least 8 characters")
    if not _UPPER_RE.search(password):
        problems.append("an uppercase letter")
    if not _LOWER_RE.search(password):
        problems.append("a lowercase letter")
    if not _DIGIT_RE.search(password):
        problems.append("a number")
    if not _SYMBOL_RE.search(password):
        problems.append("a special character")
    return problems


def generate_reset_token() -> str:
    return secrets.token_hex(32)


# Swagger "Authorize" button; missing header is handled by the session gateway
bearer_scheme = HTTPBearer(auto_error=False)
