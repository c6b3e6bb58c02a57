"""
Auth security helpers.
"""

from __future__ import annotations

import os
import secrets

import bcrypt


class AuthSecurityError(RuntimeError):
    pass


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def bcrypt_rounds() -> int:
    # bcrypt accepts 4..31.
    return min(max(_env_int("BCRYPT_ROUNDS", 12), 4), 31)


def _password_bytes(plain_password: str) -> bytes:
    # bcrypt only uses the first 72 bytes; newer releases reject longer input.
    return (plain_password or "").encode("utf-8")[:72]


def hash_password(plain_password: str) -> str:
    password = _password_bytes(plain_password)
    if not password:
        raise AuthSecurityError("Password is empty.")
    return bcrypt.hashpw(password, bcrypt.gensalt(rounds=bcrypt_rounds())).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    password = _password_bytes(plain_password)
    hashed = (password_hash or "").encode("utf-8")
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password, hashed)
    except ValueError:
        return False


_dummy_hash: str | None = None


def burn_verify(plain_password: str) -> bool:
    """
    Run a full bcrypt check against a throwaway hash and return False.

    Used when the username is unknown so both login failures cost the same.
    """
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = hash_password(secrets.token_hex(16))
    verify_password(plain_password or "x", _dummy_hash)
    return False


def build_session_token() -> str:
    # URL-safe random string, opaque to the client.
    return secrets.token_urlsafe(32)
