"""
campus_gateway.auth.password

Password hashing helpers (bcrypt).

Cost factor 10 matches the hashes already stored by the seeding scripts.
bcrypt only considers the first 72 bytes of a password.
"""

from __future__ import annotations

import bcrypt

_ROUNDS = 10


def hash_password(password: str) -> str:
    pw_bytes = password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:72], password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        # Malformed stored hash: treat as a mismatch.
        return False
