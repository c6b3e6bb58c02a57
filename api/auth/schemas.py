"""
Auth data model and response schemas.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel


@dataclass(frozen=True)
class Principal:
    id: int
    first_name: str
    last_name: str
    username: str
    password_verifier: str


@dataclass(frozen=True)
class Session:
    """
    Identity snapshot taken at login. Not refreshed if the Principal changes.
    """

    principal_id: int
    username: str
    first_name: str | None
    last_name: str | None
    created_at: datetime
    expires_at: datetime

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class CheckSessionResponse(BaseModel):
    logged_in: bool
    username: str | None = None
