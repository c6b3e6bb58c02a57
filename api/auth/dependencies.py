"""
Auth dependencies for protected FastAPI routes.

The user repository and session store are created once per app (see
`main.py`) and read from `app.state`; tests swap them through
`app.dependency_overrides`.
"""

from __future__ import annotations

from fastapi import Depends, Request

from core import config

from . import service
from .repository import UserRepository
from .schemas import Session
from .sessions import SessionStore


def get_user_repository(request: Request) -> UserRepository:
    return request.app.state.users


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.sessions


def get_session_token(request: Request) -> str | None:
    raw = (request.cookies.get(config.session_cookie_name()) or "").strip()
    return raw or None


async def require_session(
    token: str | None = Depends(get_session_token),
    sessions: SessionStore = Depends(get_session_store),
) -> Session:
    return await service.auth_gate(sessions, token)
