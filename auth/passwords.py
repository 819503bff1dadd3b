"""
auth/passwords.py -- bcrypt password hashing.

Security design decisions:
  bcrypt is used directly rather than through passlib. passlib's wrap-bug
  detection feeds bcrypt a password longer than 72 bytes, which bcrypt 4.x+
  rejects with an explicit error.

  bcrypt only reads the first 72 bytes of its input. _encode() truncates
  explicitly so hash and verify always see the same bytes, on releases that
  truncate silently and on releases that raise.

  BCRYPT_ROUNDS is fixed at 12 (bcrypt's own default, 2^12 iterations).

  _DUMMY_HASH enables timing equalization in auth.service.authenticate_user()
  so response time does not reveal whether an email is registered [C1].

Layer rule: no imports from api/ or admission/.
"""

from __future__ import annotations

import logging

import bcrypt

from auth.errors import HashingError

logger = logging.getLogger("acquisitions.auth")

BCRYPT_ROUNDS = 12
_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Raises HashingError if bcrypt cannot produce a hash. Never returns the
    plaintext or a weaker fallback.
    """
    try:
        hashed = bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    except (AttributeError, TypeError, ValueError) as exc:
        logger.error("Error hashing password: %s", type(exc).__name__)
        raise HashingError() from exc
    return hashed.decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash is treated as a mismatch rather than an error.
    """
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except (AttributeError, TypeError, ValueError):
        return False


# Computed once at module load so the first signin attempt is not measurably
# slower than subsequent ones [C1].
_DUMMY_HASH: str = hash_password("acquisitions_timing_dummy")
