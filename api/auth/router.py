"""
Session Authority endpoints.

Inputs are form-encoded; register/login/logout answer with HTML fragments,
check-session with JSON.
"""

from __future__ import annotations

import html

from fastapi import APIRouter, Depends, Form
from fastapi.responses import HTMLResponse

from core import config
from core.tracing import Tracing, get_tracing

from . import dependencies, service
from .repository import UserRepository
from .schemas import CheckSessionResponse
from .sessions import SessionStore

router = APIRouter(prefix="/auth")


@router.post("/register", response_class=HTMLResponse)
async def register(
    first_name: str = Form(default=""),
    last_name: str = Form(default=""),
    username: str = Form(default=""),
    password: str = Form(default=""),
    users: UserRepository = Depends(dependencies.get_user_repository),
    tracing: Tracing = Depends(get_tracing),
) -> HTMLResponse:
    await service.register(
        users,
        tracing,
        first_name=first_name,
        last_name=last_name,
        username=username,
        password=password,
    )
    return HTMLResponse('<div class="success">Registration successful! Please login.</div>')


@router.post("/login", response_class=HTMLResponse)
async def login(
    username: str = Form(default=""),
    password: str = Form(default=""),
    previous_token: str | None = Depends(dependencies.get_session_token),
    users: UserRepository = Depends(dependencies.get_user_repository),
    sessions: SessionStore = Depends(dependencies.get_session_store),
    tracing: Tracing = Depends(get_tracing),
) -> HTMLResponse:
    token, session = await service.login(
        users,
        sessions,
        tracing,
        username=username,
        password=password,
        previous_token=previous_token,
    )

    full_name = html.escape(session.display_name)
    response = HTMLResponse(
        f'<div class="success" data-username="{full_name}">Login successful! Welcome {full_name}</div>'
    )
    response.set_cookie(
        key=config.session_cookie_name(),
        value=token,
        max_age=int(sessions.ttl.total_seconds()),
        path="/",
        httponly=True,
        samesite="lax",
        secure=config.session_cookie_secure(),
    )
    return response


@router.post("/logout", response_class=HTMLResponse)
async def logout(
    token: str | None = Depends(dependencies.get_session_token),
    sessions: SessionStore = Depends(dependencies.get_session_store),
) -> HTMLResponse:
    await service.logout(sessions, token)
    response = HTMLResponse('<div class="success">You have been logged out.</div>')
    response.delete_cookie(key=config.session_cookie_name(), path="/")
    return response


@router.get("/check-session", response_model_exclude_none=True)
async def check_session(
    token: str | None = Depends(dependencies.get_session_token),
    sessions: SessionStore = Depends(dependencies.get_session_store),
) -> CheckSessionResponse:
    return await service.check_session(sessions, token)
