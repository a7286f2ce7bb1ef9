"""
Security Module

Password hashing (passlib with bcrypt), session tokens (python-jose JWT)
and API key material.

The session token is a signed JWT carried in an HttpOnly cookie; API
clients may send the same token as a Bearer header.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Tuple
import hashlib
import secrets
from jose import JWTError, jwt
from passlib.context import CryptContext
from backoffice.config import get_settings

settings = get_settings()

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

API_KEY_PREFIX = "sk_"
API_KEY_PREVIEW_LENGTH = 12
API_KEY_PREVIEW_MASK = "*" * 20


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its bcrypt hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt.

    NOTE: This is intentionally slow. Don't call it in tight loops.
    """
    return pwd_context.hash(password)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed session token.

    Payload carries ``sub`` (user id) plus ``exp``/``iat``.
    """
    to_encode = data.copy()

    now = datetime.now(timezone.utc)
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({
        "exp": expire,
        "iat": now
    })

    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and verify a session token.

    Returns the payload if valid, None if invalid or expired.
    """
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        return None


def hash_api_key(key_value: str) -> str:
    """One-way sha256 digest used to store and look up API keys."""
    return hashlib.sha256(key_value.encode("utf-8")).hexdigest()


def generate_api_key() -> Tuple[str, str, str]:
    """
    Generate a new API key.

    Returns (plaintext, hash, preview). The preview keeps only the prefix and
    the first few random characters, padded with a fixed mask, so the secret
    can't be rebuilt from it.
    """
    key_value = f"{API_KEY_PREFIX}{secrets.token_hex(24)}"
    key_preview = f"{key_value[:API_KEY_PREVIEW_LENGTH]}{API_KEY_PREVIEW_MASK}"
    return key_value, hash_api_key(key_value), key_preview
