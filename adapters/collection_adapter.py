"""Adapter for the school API collection endpoints → internal models.

Endpoints handled (relative to the API prefix):
- GET /schools/{schoolId}                → School
- GET /schools/{schoolId}/classes        → list[ClassItem]
- GET /classes/{classId}/subjects        → list[ClassSubjectMapping]
- GET /schools/{schoolId}/students       → list[StudentItem]
- GET /schools/{schoolId}/teachers       → list[StaffItem]
- GET /schools/{schoolId}/subjects       → list[SubjectItem]
- GET /user                               → CurrentUser

Every failure is normalized into :class:`FetchError`.  A single failed
collection fails the whole load; nothing here retries.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Protocol

from pydantic import ValidationError

from errors.exceptions import (
    ApiHttpError,
    FetchError,
    NetworkFailure,
    ResponseParseError,
)
from models.base import SchoolRecord
from models.data import (
    ClassItem,
    ClassSubjectMapping,
    School,
    StaffItem,
    StudentItem,
    SubjectItem,
)
from models.session import CurrentUser, Role

logger = logging.getLogger(__name__)

PARSE_ERROR = "parse error"
CURRENT_USER_PATH = "/user"


class ApiReader(Protocol):
    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any: ...


class Collection(str, Enum):
    """The five collections held by the aggregator, in load order."""

    SCHOOL = "school"
    CLASSES = "classes"
    STUDENTS = "students"
    TEACHERS = "teachers"
    SUBJECTS = "subjects"

    def endpoint(self, school_id: str) -> str:
        if self is Collection.SCHOOL:
            return f"/schools/{school_id}"
        return f"/schools/{school_id}/{self.value}"


_ROW_MODELS: dict[Collection, type[SchoolRecord]] = {
    Collection.CLASSES: ClassItem,
    Collection.STUDENTS: StudentItem,
    Collection.TEACHERS: StaffItem,
    Collection.SUBJECTS: SubjectItem,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def fetch_collection(
    client: ApiReader, collection: Collection, school_id: str
) -> School | list[Any]:
    """Load one collection for *school_id*.

    Returns a :class:`School` for ``Collection.SCHOOL`` and a list of records
    otherwise.

    Raises:
        FetchError: non-2xx status (``status`` = HTTP status), network
            failure or malformed body (``status`` = 0).
    """
    raw = await _get(client, collection, collection.endpoint(school_id))
    raw = unwrap_data(raw)

    if collection is Collection.SCHOOL:
        if not isinstance(raw, dict):
            raise FetchError(collection.value, 0, PARSE_ERROR)
        return _validate(collection, School, raw)

    if not isinstance(raw, list):
        logger.warning("fetch_collection(%s): expected list, got %s", collection.value, type(raw).__name__)
        raise FetchError(collection.value, 0, PARSE_ERROR)

    if collection is Collection.CLASSES:
        raw = await _attach_class_subjects(client, raw)

    model = _ROW_MODELS[collection]
    return [_validate(collection, model, row) for row in raw]


async def fetch_class_subjects(client: ApiReader, class_id: str) -> list[ClassSubjectMapping]:
    """GET /classes/{classId}/subjects — mapping rows of one class."""
    raw = unwrap_data(
        await _get(client, Collection.CLASSES, f"/classes/{class_id}/subjects")
    )
    if not isinstance(raw, list):
        raise FetchError(Collection.CLASSES.value, 0, PARSE_ERROR)
    rows = [
        {**row, "class_id": row.get("class_id", row.get("classId", class_id))}
        for row in raw
        if isinstance(row, dict)
    ]
    return [_validate(Collection.CLASSES, ClassSubjectMapping, row) for row in rows]


async def fetch_current_user(client: ApiReader) -> CurrentUser:
    """The user behind the client's access token, as the school API knows them.

    The role always comes from here, never from the caller.  The API calls
    staff accounts ``teacher``.
    """
    try:
        raw = unwrap_data(await client.get(CURRENT_USER_PATH))
    except ApiHttpError as exc:
        raise FetchError("user", exc.status_code, exc.message) from exc
    except ResponseParseError as exc:
        raise FetchError("user", 0, PARSE_ERROR) from exc
    except NetworkFailure as exc:
        raise FetchError("user", 0, exc.reason) from exc

    if not isinstance(raw, dict):
        raise FetchError("user", 0, PARSE_ERROR)
    if raw.get("role") == "teacher":
        raw = {**raw, "role": Role.STAFF.value}
    try:
        return CurrentUser.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Current user record failed validation: %s", exc.errors()[:1])
        raise FetchError("user", 0, PARSE_ERROR) from exc


async def resolve_school_id(client: ApiReader, user: CurrentUser) -> str | None:
    """Work out which school a freshly authenticated user belongs to.

    ``staff`` accounts do not always carry a school id; their staff record
    does.  ``super_admin`` is not bound to a school and gets the first one.
    """
    if user.school_id:
        return user.school_id

    if user.role is Role.STAFF:
        raw = unwrap_data(await _get(client, Collection.TEACHERS, f"/Teachers/{user.email}/staff"))
        record = raw[0] if isinstance(raw, list) and raw else raw
        school_id = record.get("school_id") if isinstance(record, dict) else None
        if not school_id:
            raise FetchError(Collection.SCHOOL.value, 0, "School ID not found in staff data")
        return str(school_id)

    if user.role is Role.SUPER_ADMIN:
        raw = unwrap_data(await _get(client, Collection.SCHOOL, "/schools"))
        if isinstance(raw, list) and raw and isinstance(raw[0], dict) and raw[0].get("id") is not None:
            return str(raw[0]["id"])
        logger.info("resolve_school_id: super admin with no schools")
        return None

    raise FetchError(Collection.SCHOOL.value, 0, f"No school assigned to {user.email or user.id}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _get(client: ApiReader, collection: Collection, path: str) -> Any:
    try:
        return await client.get(path)
    except ApiHttpError as exc:
        raise FetchError(collection.value, exc.status_code, exc.message) from exc
    except ResponseParseError as exc:
        raise FetchError(collection.value, 0, PARSE_ERROR) from exc
    except NetworkFailure as exc:
        raise FetchError(collection.value, 0, exc.reason) from exc


async def _attach_class_subjects(client: ApiReader, classes: list[Any]) -> list[Any]:
    """Fill in ``subjects`` for classes whose payload does not embed them."""
    missing = [
        c for c in classes
        if isinstance(c, dict) and "subjects" not in c and c.get("id") is not None
    ]
    if not missing:
        return classes

    results = await asyncio.gather(
        *(fetch_class_subjects(client, str(c["id"])) for c in missing),
        return_exceptions=True,
    )
    by_id: dict[str, list[ClassSubjectMapping]] = {}
    for cls, result in zip(missing, results):
        if isinstance(result, BaseException):
            raise result
        by_id[str(cls["id"])] = result

    return [
        {**c, "subjects": by_id[str(c["id"])]}
        if isinstance(c, dict) and str(c.get("id")) in by_id
        else c
        for c in classes
    ]


def _validate(collection: Collection, model: type[SchoolRecord], raw: Any) -> Any:
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        logger.warning(
            "fetch_collection(%s): row rejected by %s: %s",
            collection.value, model.__name__, exc.errors()[:3],
        )
        raise FetchError(collection.value, 0, PARSE_ERROR) from exc


def unwrap_data(response: Any) -> Any:
    """Extract the ``data`` field from a ``{data: ...}`` envelope.

    If the response is already raw data (no wrapper), return as-is.
    """
    if isinstance(response, dict) and "data" in response:
        return response["data"]
    return response
