"""Hashing helpers for identifiers and staff passwords."""

import hashlib

import bcrypt


def simple_hash(data: str) -> str:
    """Unsalted SHA-256 hex digest, used to reference emails in logs and errors."""
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False
