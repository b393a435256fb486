"""Server-side password hashing and bearer token issuance."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import bcrypt
import jwt

logger = logging.getLogger(__name__)

TOKEN_ALGORITHM = "HS256"

# Cost factor of the hashes already in poetry_users.
BCRYPT_ROUNDS = 10
# bcrypt only reads the first 72 bytes of a password.
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    hashed = bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    return hashed.decode("ascii")


def verify_password(password: str, stored_hash: str | None) -> bool:
    """Check a password against its stored bcrypt hash ($2a$, $2b$ or $2y$).

    A stored value that is not a bcrypt hash counts as a mismatch.
    """
    if not password or not stored_hash:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(password), stored_hash.encode("ascii"))
    except (ValueError, TypeError, UnicodeEncodeError) as e:
        logger.warning(f"Unverifiable password hash format: {e}")
        return False


def issue_token(user_id: str, email: str, secret: str, *, issued_at: datetime | None = None) -> str:
    """Mint the opaque bearer token handed to signed-in users."""
    now = issued_at or datetime.now(timezone.utc)
    payload = {
        "userId": user_id,
        "email": email,
        "iat": int(now.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=TOKEN_ALGORITHM)
