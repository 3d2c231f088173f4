"""
Password hashing and access tokens.

Passwords are hashed with argon2id. Account rows created before hashing
was introduced still hold plaintext; those are compared in constant time
and flagged for rehash so the next successful login upgrades them.
"""

import hmac
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from jose import JWTError, jwt

from thesisvault.errors import NotAuthenticatedError

SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

_hasher = PasswordHasher()
_dummy_hash: Optional[str] = None


def is_password_hash(stored: str) -> bool:
    return bool(stored) and stored.startswith("$argon2")


def get_password_hash(password: str) -> str:
    return _hasher.hash(password)


def verify_password(plain_password: str, stored: Optional[str]) -> bool:
    """Check a password against a stored argon2 hash or legacy plaintext."""
    if not stored or plain_password is None:
        return False

    if is_password_hash(stored):
        try:
            return _hasher.verify(stored, plain_password)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False

    return hmac.compare_digest(plain_password.encode("utf-8"), stored.encode("utf-8"))


def needs_rehash(stored: str) -> bool:
    if not is_password_hash(stored):
        return True
    try:
        return _hasher.check_needs_rehash(stored)
    except InvalidHashError:
        return True


def burn_verification(plain_password: str) -> None:
    """Spend one hash verification so unknown usernames cost the same as known ones."""
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = _hasher.hash("thesisvault-dummy-password")
    verify_password(plain_password or "", _dummy_hash)


def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None,
    secret_key: str = SECRET_KEY,
) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode["exp"] = expire
    return jwt.encode(to_encode, secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str, secret_key: str = SECRET_KEY) -> dict:
    """
    Raises:
        NotAuthenticatedError: bad signature, expired, or malformed token
    """
    try:
        return jwt.decode(token, secret_key, algorithms=[ALGORITHM])
    except JWTError:
        raise NotAuthenticatedError("Could not validate credentials")
