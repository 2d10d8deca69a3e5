"""Session models — the authenticated viewer and their role."""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from models.base import CamelModel
from models.data import EntityId, OptionalRef
from models.errors import Notification


class Role(str, Enum):
    """Closed set of portal roles."""

    SUPER_ADMIN = "super_admin"
    SCHOOL_ADMIN = "school_admin"
    STAFF = "staff"
    STUDENT = "student"
    PARENT = "parent"


class CurrentUser(CamelModel):
    """Identity of the logged-in user, as reported by the school API."""

    id: EntityId
    name: str = ""
    email: str = ""
    role: Role
    school_id: OptionalRef = None


class OpenSessionRequest(CamelModel):
    """Body of ``POST /api/session``.

    Only the access token is taken from the caller; the user and their role
    are looked up with it.
    """

    access_token: str = ""


class OpenSessionResponse(CamelModel):
    session_id: str
    user: CurrentUser | None = None
    school_id: str | None = None
    state: str
    landing_route: str = Field(default="/")


class SessionStateResponse(CamelModel):
    """Aggregator state of a session plus any pending notifications."""

    session_id: str
    school_id: str | None = None
    state: str
    error: str | None = None
    notifications: list[Notification] = Field(default_factory=list)
