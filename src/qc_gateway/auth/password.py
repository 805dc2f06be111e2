"""bcrypt password hashing (the `bcrypt` package, no passlib).

bcrypt only looks at the first 72 bytes of a password and current releases
refuse longer input, so registration caps passwords at MAX_PASSWORD_BYTES
and verification treats anything longer as a mismatch.
"""

import bcrypt

MAX_PASSWORD_BYTES = 72
_ROUNDS = 10


def hash_password(plain: str) -> str:
    secret = plain.encode("utf-8")
    if len(secret) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password longer than {MAX_PASSWORD_BYTES} bytes")
    return bcrypt.hashpw(secret, bcrypt.gensalt(rounds=_ROUNDS)).decode("ascii")


def verify_password(plain: str, hashed: str) -> bool:
    secret = plain.encode("utf-8")
    if len(secret) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(secret, hashed.encode("ascii"))
