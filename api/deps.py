"""Shared FastAPI dependencies — session lookup and page gating.

Page gating runs as a dependency, so a denied viewer is redirected before
the page handler (and any data access) runs:

1. look up the session from the ``X-Session-ID`` header;
2. ``authorize(role, resource)``;
3. on ``Deny``: record an "Access Denied" notification and raise
   :class:`AccessDenied`, which ``main`` turns into a ``303`` to the
   landing route.
"""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Depends, Header, HTTPException
from starlette.responses import JSONResponse

from config.settings import get_settings
from errors.exceptions import AccessDenied
from models.errors import ErrorCode, failure
from models.views import PlaceholderPage
from services.access_control import (
    Action,
    Deny,
    Resource,
    ViewerScope,
    authorize,
    authorize_action,
)
from services.school_data import AggregatorState, SchoolSnapshot
from services.session_store import PortalSession, get_session_store

logger = logging.getLogger(__name__)

SESSION_HEADER = "X-Session-ID"


def get_session(x_session_id: str = Header(default="", alias=SESSION_HEADER)) -> PortalSession:
    session = get_session_store().get(x_session_id) if x_session_id else None
    if session is None:
        raise HTTPException(
            status_code=401,
            detail={"code": ErrorCode.SESSION_NOT_FOUND.value, "message": "Session not found or expired"},
        )
    return session


def deny(session: PortalSession, reason: str) -> AccessDenied:
    """Record the notification of a denial and build the redirect error."""
    session.notifications.push(failure(reason, title=AccessDenied.title))
    return AccessDenied(reason, redirect_to=get_settings().landing_route)


def check_resource(session: PortalSession, resource: Resource) -> None:
    """Raise :class:`AccessDenied` unless the session's current role may view *resource*."""
    decision = authorize(session.user.role, resource)
    if isinstance(decision, Deny):
        raise deny(session, decision.reason)


def check_action(session: PortalSession, action: Action) -> None:
    decision = authorize_action(session.user.role, action)
    if isinstance(decision, Deny):
        raise deny(session, decision.reason)


def require_resource(resource: Resource) -> Callable[..., PortalSession]:
    """Dependency factory gating a page on *resource*."""

    def dependency(session: PortalSession = Depends(get_session)) -> PortalSession:
        check_resource(session, resource)
        return session

    return dependency


def require_action(action: Action) -> Callable[..., PortalSession]:
    """Dependency factory gating a mutation on *action*."""

    def dependency(session: PortalSession = Depends(get_session)) -> PortalSession:
        check_action(session, action)
        return session

    return dependency


# ---------------------------------------------------------------------------
# Aggregator readiness
# ---------------------------------------------------------------------------

class PageUnavailable(Exception):
    """The aggregator is not ready; a placeholder replaces the page."""

    def __init__(self, status_code: int, placeholder: PlaceholderPage) -> None:
        self.status_code = status_code
        self.placeholder = placeholder
        super().__init__(placeholder.message)

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code,
            content=self.placeholder.model_dump(mode="json", by_alias=True),
        )


def ready_snapshot(session: PortalSession) -> SchoolSnapshot:
    """The committed snapshot, or :class:`PageUnavailable` while loading / failed."""
    aggregator = session.aggregator
    state = aggregator.state
    if state is AggregatorState.READY:
        return aggregator.snapshot
    if state is AggregatorState.ERROR:
        error = aggregator.error
        raise PageUnavailable(503, PlaceholderPage(
            state=state.value,
            message=error.message if error else "School data could not be loaded",
            notifications=session.notifications.drain(),
        ))
    raise PageUnavailable(202, PlaceholderPage(
        state=state.value,
        message="School data is loading",
        notifications=session.notifications.drain(),
    ))


def viewer_scope(session: PortalSession, snapshot: SchoolSnapshot) -> ViewerScope:
    return ViewerScope.for_user(session.user, snapshot)
