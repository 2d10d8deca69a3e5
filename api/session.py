"""Session API — open / close a portal session and drive its aggregator.

Endpoints:
- ``POST   /api/session``                — open a session for an access token
- ``GET    /api/session``                — aggregator state + pending notifications
- ``POST   /api/session/refetch``        — re-pull all five collections
- ``GET    /api/session/notifications``  — drain pending notifications
- ``DELETE /api/session``                — logout; in-flight results are ignored
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from adapters.collection_adapter import fetch_current_user, resolve_school_id
from api.deps import get_session
from config.settings import get_settings
from errors.exceptions import FetchError
from models.errors import ErrorCode, Notification
from models.session import OpenSessionRequest, OpenSessionResponse, SessionStateResponse
from services.school_api_client import get_school_api_client
from services.session_store import PortalSession, get_session_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/session", tags=["session"])


def _state_response(session: PortalSession) -> SessionStateResponse:
    aggregator = session.aggregator
    return SessionStateResponse(
        session_id=session.session_id,
        school_id=aggregator.school_id,
        state=aggregator.state.value,
        error=aggregator.error.message if aggregator.error else None,
        notifications=session.notifications.drain(),
    )


@router.post("", response_model=OpenSessionResponse)
async def open_session(req: OpenSessionRequest):
    """Open a session and run the first aggregate load.

    The access token was issued by the auth service.  The user and their role
    are looked up with it, so every later access decision rests on what the
    school API reports rather than on anything the caller claims.
    """
    settings = get_settings()
    client = get_school_api_client().bind(req.access_token or settings.school_api_access_token)

    try:
        user = await fetch_current_user(client)
    except FetchError as exc:
        if exc.status in (401, 403):
            raise HTTPException(
                status_code=401,
                detail={"code": ErrorCode.NOT_AUTHENTICATED.value, "message": exc.message},
            ) from exc
        logger.warning("Could not look up the current user: %s", exc)
        raise HTTPException(
            status_code=503,
            detail={"code": ErrorCode.DATA_UNAVAILABLE.value, "message": exc.message},
        ) from exc

    try:
        school_id = await resolve_school_id(client, user)
    except FetchError as exc:
        logger.warning("Could not resolve school for user %s: %s", user.id, exc)
        raise HTTPException(
            status_code=503,
            detail={"code": ErrorCode.DATA_UNAVAILABLE.value, "message": exc.message},
        ) from exc

    session = PortalSession.open(user, client)
    get_session_store().save(session)
    logger.info(
        "Session opened: %s (user=%s role=%s school=%s)",
        session.session_id, user.id, user.role.value, school_id,
    )

    state = await session.aggregator.initialize(school_id)
    return OpenSessionResponse(
        session_id=session.session_id,
        user=user,
        school_id=school_id,
        state=state.value,
        landing_route=settings.landing_route,
    )


@router.get("", response_model=SessionStateResponse)
async def session_state(session: PortalSession = Depends(get_session)):
    return _state_response(session)


@router.post("/refetch", response_model=SessionStateResponse)
async def refetch(session: PortalSession = Depends(get_session)):
    """Re-pull all collections; concurrent calls share one follow-up round."""
    await session.aggregator.refetch()
    return _state_response(session)


@router.get("/notifications", response_model=list[Notification])
async def notifications(session: PortalSession = Depends(get_session)):
    return session.notifications.drain()


@router.delete("", status_code=204)
async def close_session(session: PortalSession = Depends(get_session)):
    get_session_store().delete(session.session_id)
    logger.info("Session closed: %s", session.session_id)
    return Response(status_code=204)
