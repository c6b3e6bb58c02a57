"""
Server-side session store.

Sessions live in a `KeyValueStore` keyed by an opaque token; the client only
ever holds the token (cookie). Each session has a fixed lifetime counted
from login. Expired sessions are dropped when read and swept on every
new login.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from core.kv import KeyValueStore

from . import security
from .schemas import Principal, Session

logger = logging.getLogger(__name__)

# Token collisions are astronomically unlikely; bound the loop anyway.
_MAX_TOKEN_ATTEMPTS = 5


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    def __init__(
        self,
        *,
        ttl: timedelta,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._sessions: KeyValueStore[Session] = KeyValueStore()

    async def create(self, principal: Principal) -> tuple[str, Session]:
        now = self._clock()
        session = Session(
            principal_id=principal.id,
            username=principal.username,
            first_name=principal.first_name,
            last_name=principal.last_name,
            created_at=now,
            expires_at=now + self.ttl,
        )
        await self.purge_expired()

        for _ in range(_MAX_TOKEN_ATTEMPTS):
            token = security.build_session_token()
            if await self._sessions.insert_if_absent(token, session):
                return token, session
        raise RuntimeError("Could not allocate a unique session token.")

    async def put(self, token: str, session: Session) -> bool:
        """
        Store a prepared session under `token` unless the token is taken.
        """
        return await self._sessions.insert_if_absent(token, session)

    async def get(self, token: str | None) -> Session | None:
        if not token:
            return None
        session = await self._sessions.get(token)
        if session is None:
            return None
        if session.is_expired(self._clock()):
            # Only drop it if nobody replaced it in the meantime.
            await self._sessions.compare_and_swap(token, session, None)
            logger.info("session_expired principal_id=%s", session.principal_id)
            return None
        return session

    async def delete(self, token: str | None) -> bool:
        if not token:
            return False
        return await self._sessions.delete(token) is not None

    async def purge_expired(self) -> int:
        now = self._clock()
        return await self._sessions.delete_where(lambda s: s.is_expired(now))

    def __len__(self) -> int:
        return len(self._sessions)
