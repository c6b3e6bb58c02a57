"""
Principal persistence.

`PostgresUserRepository` relies on the UNIQUE constraint on `users.username`
for insert-if-absent; `MemoryUserRepository` gets the same guarantee from
`KeyValueStore.insert_if_absent`.
"""

from __future__ import annotations

import itertools
from abc import ABC, abstractmethod

from core import db
from core.kv import KeyValueStore

from .schemas import Principal


def _to_principal(row: dict) -> Principal:
    return Principal(
        id=int(row["id"]),
        first_name=str(row["first_name"]),
        last_name=str(row["last_name"]),
        username=str(row["username"]),
        password_verifier=str(row["password"]),
    )


class UserRepository(ABC):
    @abstractmethod
    async def get_by_username(self, username: str) -> Principal | None:
        """Exact, case-sensitive lookup."""

    @abstractmethod
    async def create_if_absent(
        self,
        *,
        first_name: str,
        last_name: str,
        username: str,
        password_verifier: str,
    ) -> Principal | None:
        """Insert a Principal; None when the username is already taken."""


class PostgresUserRepository(UserRepository):
    async def get_by_username(self, username: str) -> Principal | None:
        row = await db.fetch_one(
            """
            SELECT id, first_name, last_name, username, password
            FROM users
            WHERE username = $1
            """,
            username,
        )
        return _to_principal(row) if row is not None else None

    async def create_if_absent(
        self,
        *,
        first_name: str,
        last_name: str,
        username: str,
        password_verifier: str,
    ) -> Principal | None:
        row = await db.fetch_one(
            """
            INSERT INTO users (first_name, last_name, username, password)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT (username) DO NOTHING
            RETURNING id, first_name, last_name, username, password
            """,
            first_name,
            last_name,
            username,
            password_verifier,
        )
        return _to_principal(row) if row is not None else None


class MemoryUserRepository(UserRepository):
    def __init__(self) -> None:
        self._users: KeyValueStore[Principal] = KeyValueStore()
        self._ids = itertools.count(1)

    async def get_by_username(self, username: str) -> Principal | None:
        return await self._users.get(username)

    async def create_if_absent(
        self,
        *,
        first_name: str,
        last_name: str,
        username: str,
        password_verifier: str,
    ) -> Principal | None:
        principal = Principal(
            id=next(self._ids),
            first_name=first_name,
            last_name=last_name,
            username=username,
            password_verifier=password_verifier,
        )
        if not await self._users.insert_if_absent(username, principal):
            return None
        return principal
