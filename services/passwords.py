"""
Password hashing using scrypt from the cryptography package.
"""

import base64
import os

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt


SCHEME = "scrypt"
SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1
KEY_LENGTH = 32
SALT_BYTES = 16


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _kdf(salt: bytes, n: int, r: int, p: int) -> Scrypt:
    return Scrypt(salt=salt, length=KEY_LENGTH, n=n, r=r, p=p)


def hash_password(password: str) -> str:
    """
    Hash a password for storage.

    Args:
        password: Plain text password

    Returns:
        Encoded hash ``scrypt$n$r$p$salt$key``
    """
    salt = os.urandom(SALT_BYTES)
    key = _kdf(salt, SCRYPT_N, SCRYPT_R, SCRYPT_P).derive(password.encode())
    return "$".join([SCHEME, str(SCRYPT_N), str(SCRYPT_R), str(SCRYPT_P), _b64encode(salt), _b64encode(key)])


def verify_password(password: str, encoded: str) -> bool:
    """Check ``password`` against a stored hash in constant time."""
    try:
        scheme, n, r, p, salt, key = (encoded or "").split("$")
    except ValueError:
        return False
    if scheme != SCHEME:
        return False

    try:
        _kdf(_b64decode(salt), int(n), int(r), int(p)).verify(password.encode(), _b64decode(key))
    except InvalidKey:
        return False
    return True
