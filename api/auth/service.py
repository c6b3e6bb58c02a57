"""
Session Authority business logic.

- register: create a Principal (unique username, bcrypt verifier)
- login: verify credentials, open a server-side session
- check_session: non-failing status probe for the UI
- auth_gate: precondition for protected operations, fails closed
"""

from __future__ import annotations

import asyncio
import logging

from core.errors import AuthError, ConflictError, ValidationError
from core.tracing import Tracing

from . import security
from .repository import UserRepository
from .schemas import CheckSessionResponse, Session
from .sessions import SessionStore

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid username or password"
LOGIN_REQUIRED = "Please login to continue"


def _missing(*values: str | None) -> bool:
    return any(not (value or "").strip() for value in values)


async def register(
    users: UserRepository,
    tracing: Tracing,
    *,
    first_name: str,
    last_name: str,
    username: str,
    password: str,
) -> None:
    first_name = (first_name or "").strip()
    last_name = (last_name or "").strip()
    username = (username or "").strip()

    with tracing.span(
        "auth.register",
        {
            "user.username": username,
            "user.first_name": first_name,
            "user.last_name": last_name,
        },
    ) as span:
        logger.info("registration_attempt username=%s", username)

        if _missing(first_name, last_name, username, password):
            span.error("Missing required fields")
            logger.warning("registration_rejected reason=missing_fields username=%s", username)
            raise ValidationError("All fields are required")

        if await users.get_by_username(username) is not None:
            span.error("Username already exists")
            logger.warning("registration_rejected reason=duplicate username=%s", username)
            raise ConflictError("Username already exists")

        # bcrypt is CPU bound; keep it off the event loop.
        verifier = await asyncio.to_thread(security.hash_password, password)
        principal = await users.create_if_absent(
            first_name=first_name,
            last_name=last_name,
            username=username,
            password_verifier=verifier,
        )
        if principal is None:
            # Lost a race against a concurrent registration.
            span.error("Username already exists")
            logger.warning("registration_rejected reason=duplicate username=%s", username)
            raise ConflictError("Username already exists")

        span.set_attribute("user.id", principal.id)
        span.ok()
        logger.info("registration_complete username=%s user_id=%s", username, principal.id)


async def login(
    users: UserRepository,
    sessions: SessionStore,
    tracing: Tracing,
    *,
    username: str,
    password: str,
    previous_token: str | None = None,
) -> tuple[str, Session]:
    """
    Returns (session token, session).

    Unknown username and wrong password fail identically.
    """
    username = (username or "").strip()

    with tracing.span("auth.login", {"user.username": username}) as span:
        logger.info("login_attempt username=%s", username)

        if _missing(username, password):
            span.error("Missing credentials")
            logger.warning("login_rejected reason=missing_credentials username=%s", username)
            raise ValidationError("Username and password are required")

        principal = await users.get_by_username(username)
        if principal is None:
            await asyncio.to_thread(security.burn_verify, password)
            span.error("Invalid credentials")
            logger.warning("login_rejected reason=unknown_user username=%s", username)
            raise AuthError(INVALID_CREDENTIALS)

        if not await asyncio.to_thread(security.verify_password, password, principal.password_verifier):
            span.error("Invalid credentials")
            logger.warning("login_rejected reason=bad_password username=%s", username)
            raise AuthError(INVALID_CREDENTIALS)

        # Never carry a pre-login token over into the new session.
        await sessions.delete(previous_token)
        token, session = await sessions.create(principal)

        span.set_attribute("user.id", principal.id)
        span.ok()
        logger.info("login_complete username=%s user_id=%s", username, principal.id)
        return token, session


async def logout(sessions: SessionStore, token: str | None) -> bool:
    removed = await sessions.delete(token)
    if removed:
        logger.info("logout_complete")
    return removed


async def check_session(sessions: SessionStore, token: str | None) -> CheckSessionResponse:
    session = await sessions.get(token)
    if session is None:
        return CheckSessionResponse(logged_in=False)
    return CheckSessionResponse(logged_in=True, username=session.display_name)


async def auth_gate(sessions: SessionStore, token: str | None) -> Session:
    """
    Resolve `token` to a live Session or raise AuthError.
    """
    session = await sessions.get(token)
    if session is None:
        logger.info("auth_gate_rejected has_token=%s", bool(token))
        raise AuthError(LOGIN_REQUIRED)
    return session
