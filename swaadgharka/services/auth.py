from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from swaadgharka.core.config import JWT_ALGORITHM, JWT_EXPIRE_MINUTES, JWT_SECRET_KEY
from swaadgharka.core.errors import TokenExpired, TokenInvalid

logger = logging.getLogger(__name__)

# Startup refuses an empty secret in production
_DEV_FALLBACK_SECRET = "dev-only-change-me"


def _secret() -> str:
    return JWT_SECRET_KEY or _DEV_FALLBACK_SECRET


# =========================
# PASSWORD (bcrypt directly, passlib breaks on bcrypt 5.x)
# =========================
def _normalize_password_for_bcrypt(password: str) -> bytes:
    """bcrypt only looks at the first 72 bytes; longer input is truncated."""
    pw = (password or "").encode("utf-8")
    if len(pw) <= 72:
        return pw
    return pw[:72]


def hash_password(password: str) -> str:
    pw = _normalize_password_for_bcrypt(password)
    hashed = bcrypt.hashpw(pw, bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        pw = _normalize_password_for_bcrypt(plain_password)
        ph = (password_hash or "").encode("utf-8")
        return bcrypt.checkpw(pw, ph)
    except ValueError:
        # malformed stored hash
        return False


def password_looks_hashed(password: str) -> bool:
    return password.startswith(("$2a$", "$2b$", "$2y$"))


# =========================
# JWT HELPERS
# =========================
def create_access_token(
    user_id: int | str,
    extra: Optional[Dict[str, Any]] = None,
    expires_minutes: int = JWT_EXPIRE_MINUTES,
) -> str:
    """Issue a signed credential. ``sub`` must be a string for python-jose."""
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=expires_minutes)

    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    if extra:
        payload.update(extra)

    return jwt.encode(payload, _secret(), algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, _secret(), algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpired() from exc
    except JWTError as exc:
        raise TokenInvalid() from exc


def verify_access_token(token: str) -> int:
    """Recover the user id from a credential or raise TokenExpired/TokenInvalid."""
    payload = decode_access_token(token)
    raw = payload.get("sub")
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    logger.info("Rejected token without a numeric subject")
    raise TokenInvalid("Token has no user id")
