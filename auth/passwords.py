"""
auth/passwords.py -- Salted one-way password hashing.

Security design decisions:
  Salt: bcrypt.gensalt() with the configured cost factor. The salt string
       carries the algorithm id and cost ("$2b$12$..."), so every stored hash
       remembers the cost it was created with even if BCRYPT_ROUNDS changes.

  Hash: bcrypt.hashpw(digest, salt) with a caller-supplied salt is a pure
       function of (password, salt). The salt lives in its own column and
       hash_password() is called both to create and to verify credentials.

  Pre-digest: bcrypt rejects inputs longer than 72 bytes. The plaintext is
       reduced to base64(SHA-256(plaintext)) -- 44 ASCII bytes -- before it
       reaches bcrypt, so any password length (including empty) is accepted
       and no two long passwords collide through truncation.

  Comparison: hmac.compare_digest so verification time does not depend on
       how many leading characters match.

Layer rule: no imports from api/ or catalog/. Import from core/ is allowed.
"""

from __future__ import annotations

import base64
import hashlib
import hmac

import bcrypt

from core.config import get_settings

_settings = get_settings()


def _digest(plain: str) -> bytes:
    return base64.b64encode(hashlib.sha256(plain.encode("utf-8")).digest())


def create_salt() -> str:
    """Return a fresh random per-user salt."""
    return bcrypt.gensalt(rounds=_settings.bcrypt_rounds).decode("ascii")


def hash_password(plain: str, salt: str) -> str:
    """Derive the stored hash for plain under salt.

    Deterministic: the same (plain, salt) always yields the same string.
    """
    return bcrypt.hashpw(_digest(plain), salt.encode("ascii")).decode("ascii")


def passwords_match(plain: str, salt: str, hashed: str) -> bool:
    """Return True if plain re-hashes under salt to exactly hashed."""
    return hmac.compare_digest(hash_password(plain, salt).encode("ascii"), hashed.encode("ascii"))


# Timing equalization salt.
# Computed once at module load. validate_user() hashes the supplied password
# with it when the username does not exist, so an unknown username costs the
# same bcrypt work as a wrong password.
DUMMY_SALT: str = create_salt()
