"""Portal session store — one aggregator per authenticated user session.

A session is opened for a user whose identity and access token were issued
elsewhere.  It owns the user's :class:`SchoolDataAggregator`, the
:class:`MutationExecutor` writing through the user's token, and the pending
notifications.  Closing a session (logout or expiry) closes the aggregator
so that any fetch still in flight is ignored when it lands.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field

from models.session import CurrentUser
from services.enrollment import EnrollmentService
from services.mutations import MutationExecutor, ResourceCommands
from services.notifications import NotificationCenter
from services.school_api_client import BoundApiClient
from services.school_data import SchoolDataAggregator

logger = logging.getLogger(__name__)


@dataclass
class PortalSession:
    """Server-side state of one logged-in user."""

    session_id: str
    user: CurrentUser
    client: BoundApiClient
    aggregator: SchoolDataAggregator
    notifications: NotificationCenter
    executor: MutationExecutor
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    @classmethod
    def open(cls, user: CurrentUser, client: BoundApiClient) -> PortalSession:
        aggregator = SchoolDataAggregator(client)
        notifications = NotificationCenter()
        return cls(
            session_id=generate_session_id(),
            user=user,
            client=client,
            aggregator=aggregator,
            notifications=notifications,
            executor=MutationExecutor(client, aggregator, notifications),
        )

    def touch(self) -> None:
        self.updated_at = time.time()

    def commands(self, resource: str, noun: str) -> ResourceCommands:
        return ResourceCommands(self.executor, resource, noun)

    def enrollment(self) -> EnrollmentService:
        return EnrollmentService(self.executor, self.aggregator.school_id)

    def close(self) -> None:
        self.aggregator.close()


class InMemorySessionStore:
    """In-memory session store with TTL expiration.

    Suitable for single-instance deployments; a session is bound to the
    process holding its aggregator.
    """

    def __init__(self, ttl_seconds: int = 1800):
        self._store: dict[str, PortalSession] = {}
        self._ttl = ttl_seconds

    def _is_expired(self, session: PortalSession) -> bool:
        return (time.time() - session.updated_at) > self._ttl

    def get(self, session_id: str) -> PortalSession | None:
        session = self._store.get(session_id)
        if session is None:
            return None
        if self._is_expired(session):
            self.delete(session_id)
            logger.debug("Session expired: %s", session_id)
            return None
        session.touch()
        return session

    def save(self, session: PortalSession) -> None:
        self._store[session.session_id] = session

    def delete(self, session_id: str) -> PortalSession | None:
        session = self._store.pop(session_id, None)
        if session is not None:
            session.close()
        return session

    def cleanup_expired(self) -> int:
        now = time.time()
        expired = [
            sid for sid, s in self._store.items()
            if (now - s.updated_at) > self._ttl
        ]
        for sid in expired:
            self.delete(sid)
        if expired:
            logger.info("Cleaned up %d expired portal sessions", len(expired))
        return len(expired)

    def close_all(self) -> None:
        for sid in list(self._store):
            self.delete(sid)

    @property
    def size(self) -> int:
        return len(self._store)


# ── Module-level Singleton ───────────────────────────────────

_store: InMemorySessionStore | None = None


def get_session_store() -> InMemorySessionStore:
    """Get the singleton session store instance."""
    global _store
    if _store is None:
        from config.settings import get_settings

        ttl = get_settings().session_ttl
        _store = InMemorySessionStore(ttl_seconds=ttl)
        logger.info("Initialized InMemorySessionStore (TTL=%ds)", ttl)
    return _store


def generate_session_id() -> str:
    return f"sess-{uuid.uuid4().hex[:16]}"


# ── Background Cleanup Task ──────────────────────────────────


async def periodic_cleanup(interval_seconds: int = 300) -> None:
    """Background task closing expired sessions; started in the lifespan."""
    store = get_session_store()
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            store.cleanup_expired()
        except Exception:
            logger.exception("Session store cleanup failed")
