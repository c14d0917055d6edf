"""Session bookkeeping for the HTTP-based transports."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol
from uuid import uuid4

import structlog

from qase_mcp.mcp.server import JSONObject, MCPServer

type Clock = Callable[[], datetime]

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionTransport(Protocol):
    """Transport object owned by one session."""

    async def send(self, message: JSONObject) -> None:
        """Deliver one server-initiated message."""

    def close(self) -> None:
        """Release the transport and its server."""


@dataclass
class Session[T: SessionTransport]:
    """One logical client connection and its dedicated server instance."""

    session_id: str
    server: MCPServer
    transport: T
    created_at: datetime
    last_activity_at: datetime


class SessionStore[T: SessionTransport]:
    """Map of session id to transport/server pair.

    Each mutation completes without suspending, so interleaved requests
    never observe a half-inserted or half-removed session.
    """

    def __init__(
        self,
        transport_factory: Callable[[str, MCPServer], T],
        *,
        ttl_seconds: float | None = None,
        clock: Clock = _utcnow,
    ) -> None:
        self._transport_factory = transport_factory
        self._ttl = timedelta(seconds=ttl_seconds) if ttl_seconds else None
        self._clock = clock
        self._sessions: dict[str, Session[T]] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def create(self, server: MCPServer) -> Session[T]:
        """Open a session with a fresh id, binding ``server`` to a new transport."""
        session_id = str(uuid4())
        transport = self._transport_factory(session_id, server)
        now = self._clock()
        session = Session(
            session_id=session_id,
            server=server,
            transport=transport,
            created_at=now,
            last_activity_at=now,
        )
        self._sessions[session_id] = session
        logger.info("session_created", session_id=session_id, active_sessions=len(self))
        return session

    def get(self, session_id: str | None) -> Session[T] | None:
        """Return the live session for ``session_id`` and mark it active."""
        if not session_id:
            return None
        session = self._sessions.get(session_id)
        if session is not None:
            session.last_activity_at = self._clock()
        return session

    def close(self, session_id: str) -> bool:
        """Close and evict one session. Returns False for unknown ids."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.transport.close()
        logger.info("session_closed", session_id=session_id, active_sessions=len(self))
        return True

    def evict_idle(self) -> list[str]:
        """Close sessions idle for longer than the configured TTL."""
        if self._ttl is None:
            return []
        cutoff = self._clock() - self._ttl
        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if session.last_activity_at < cutoff
        ]
        for session_id in expired:
            self.close(session_id)
            logger.info("session_expired", session_id=session_id)
        return expired

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.close(session_id)
