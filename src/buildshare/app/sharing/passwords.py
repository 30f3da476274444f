"""Salted scrypt hashing for share passwords.

Only the encoded hash is persisted (``project_shares.password_hash``).
Encoding: ``scrypt$<n>$<r>$<p>$<salt_b64>$<hash_b64>`` so parameters can be
raised later without invalidating existing shares.
"""

from __future__ import annotations

import asyncio
import base64
import os

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

SCHEME = 'scrypt'
SALT_BYTES = 16
KEY_LENGTH = 32
SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode('ascii').rstrip('=')


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + '=' * (-len(text) % 4))


def _kdf(salt: bytes, n: int, r: int, p: int) -> Scrypt:
    return Scrypt(salt=salt, length=KEY_LENGTH, n=n, r=r, p=p)


def hash_share_password(password: str) -> str:
    """Derive an encoded scrypt hash for ``password`` with a fresh salt."""
    if not password:
        raise ValueError('password must be non-empty')
    salt = os.urandom(SALT_BYTES)
    derived = _kdf(salt, SCRYPT_N, SCRYPT_R, SCRYPT_P).derive(password.encode('utf-8'))
    return '$'.join((
        SCHEME,
        str(SCRYPT_N),
        str(SCRYPT_R),
        str(SCRYPT_P),
        _b64encode(salt),
        _b64encode(derived),
    ))


def verify_share_password(password: str, encoded: str | None) -> bool:
    """Check ``password`` against an encoded hash. Malformed hashes never match."""
    if not password or not encoded:
        return False
    parts = encoded.split('$')
    if len(parts) != 6 or parts[0] != SCHEME:
        return False
    try:
        n, r, p = int(parts[1]), int(parts[2]), int(parts[3])
        salt = _b64decode(parts[4])
        expected = _b64decode(parts[5])
    except ValueError:
        return False
    if len(expected) != KEY_LENGTH:
        return False
    try:
        _kdf(salt, n, r, p).verify(password.encode('utf-8'), expected)
    except InvalidKey:
        return False
    except ValueError:
        # Out-of-range scrypt parameters.
        return False
    return True


# Async variants run the CPU-bound KDF on the default executor.


async def hash_share_password_async(password: str) -> str:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, hash_share_password, password)


async def verify_share_password_async(password: str, encoded: str | None) -> bool:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, verify_share_password, password, encoded)
