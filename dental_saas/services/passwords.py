from __future__ import annotations

import hashlib
import hmac
import logging
import os

from passlib.context import CryptContext

logger = logging.getLogger(__name__)

PBKDF2_PREFIX = "pbkdf2$"
PBKDF2_ITERATIONS = 120_000
PBKDF2_SALT_BYTES = 16
MIN_PASSWORD_LENGTH = 6

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def _pbkdf2_hash(password: str, salt: bytes, iterations: int = PBKDF2_ITERATIONS) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)


def _pbkdf2_encode(password: str) -> str:
    salt = os.urandom(PBKDF2_SALT_BYTES)
    digest = _pbkdf2_hash(password, salt)
    return f"{PBKDF2_PREFIX}{PBKDF2_ITERATIONS}${salt.hex()}${digest.hex()}"


def hash_password(password: str) -> str:
    try:
        return _pwd_context.hash(password)
    except (ValueError, AttributeError):
        # Backend bcrypt incompatível com o passlib instalado.
        logger.warning("bcrypt backend unavailable; falling back to pbkdf2")
        return _pbkdf2_encode(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False

    if password_hash.startswith(PBKDF2_PREFIX):
        try:
            _, iter_str, salt_hex, digest_hex = password_hash.split("$", 3)
            iterations = int(iter_str)
            salt = bytes.fromhex(salt_hex)
            expected = bytes.fromhex(digest_hex)
        except ValueError:
            return False
        computed = _pbkdf2_hash(password, salt, iterations=iterations)
        return hmac.compare_digest(computed, expected)

    try:
        return _pwd_context.verify(password, password_hash)
    except (ValueError, AttributeError):
        logger.warning("password hash could not be verified with bcrypt")
        return False
