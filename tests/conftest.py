"""Shared pytest fixtures for the school data portal tests.

Provides:
- ``school_api``: in-memory fake of the school REST API seeded with one school
- ``aggregator``: a ``SchoolDataAggregator`` over ``school_api`` (not loaded)
- ``loaded_aggregator``: the same aggregator after a successful first load
- ``notifications`` / ``executor``: mutation executor wired to the aggregator
- ``admin_user`` / ``staff_user`` / ``parent_user`` / ``student_user``
"""

from __future__ import annotations

import asyncio
import copy
from typing import Any, Callable

import pytest

from errors.exceptions import ApiHttpError
from models.session import CurrentUser, Role
from services.mutations import MutationExecutor
from services.notifications import NotificationCenter
from services.school_data import SchoolDataAggregator


SCHOOL = {"id": 1, "name": "Green Valley School", "address": "1 Hill Road"}

CLASSES = [
    {
        "id": 10,
        "grade": 5,
        "section": "A",
        "class_teacher_id": 100,
        "studentCount": 1,
        "subjects": [{"id": 1000, "subject_id": 200, "teacher_id": 101}],
    },
    {"id": 11, "grade": "6", "section": "B", "class_teacher_id": None, "studentCount": 2},
]

CLASS_11_SUBJECTS = [
    {"id": 1001, "subject_id": 201, "teacher_id": 100},
    {"id": 1002, "subject_id": 999, "teacher_id": None},
]

STUDENTS = [
    {
        "id": 300, "user_id": 7001, "full_name": "Alice Ng", "student_email": "alice@school.test",
        "gender": "female", "class_id": 10, "parent_name": "Paul Ng",
        "parent_contact": "parent@example.com", "admissionDate": "2024-09-01", "status": "Active",
    },
    {
        "id": 301, "user_id": 7002, "full_name": "Bob Lee", "student_email": "bob@school.test",
        "gender": "male", "class_id": 11, "parent_contact": "0123456789", "status": "Active",
    },
    {
        "id": 302, "user_id": 7003, "full_name": "Cara Wu", "student_email": "cara@school.test",
        "gender": "female", "class_id": 11, "parent_contact": "0123456780", "status": "Inactive",
    },
]

TEACHERS = [
    {
        "id": 100, "user_id": 9001, "full_name": "Tom Tan", "email": "tom@school.test",
        "status": "Active", "phone_number": "0987654321",
        "subject_specialization": '{"Math","Science"}',
    },
    {
        "id": 101, "user_id": 9002, "full_name": "Rita Roy", "email": "rita@school.test",
        "status": "Active", "subject_specialization": ["Math"],
    },
    {
        "id": 102, "user_id": 9003, "full_name": "Nora Ng", "email": "nora@school.test",
        "status": "Inactive",
    },
]

SUBJECTS = [
    {"id": 200, "subject_name": "Mathematics", "subject_description": "Numbers"},
    {"id": 201, "subject_name": "Science"},
]


class FakeSchoolApi:
    """In-memory stand-in for ``SchoolApiClient`` / ``BoundApiClient``.

    Routes map ``(method, path)`` to a JSON value, an exception instance, or
    a callable taking the request body.  Unknown routes answer 404.  A path
    can be held back with :meth:`hold` until :meth:`release` is called.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Any] = {}
        self.calls: list[tuple[str, str, Any]] = []
        self._gates: dict[str, asyncio.Event] = {}

    def on(self, method: str, path: str, response: Any) -> FakeSchoolApi:
        self.routes[(method, path)] = response
        return self

    def hold(self, path: str) -> None:
        self._gates[path] = asyncio.Event()

    def release(self, path: str) -> None:
        self._gates.pop(path).set()

    def count(self, method: str, path: str) -> int:
        return sum(1 for m, p, _ in self.calls if m == method and p == path)

    def bodies(self, method: str, path: str) -> list[Any]:
        return [body for m, p, body in self.calls if m == method and p == path]

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path)

    async def request(self, method: str, path: str, json_body: Any = None) -> Any:
        self.calls.append((method, path, copy.deepcopy(json_body)))
        gate = self._gates.get(path)
        if gate is not None:
            await gate.wait()
        await asyncio.sleep(0)
        handler = self.routes.get((method, path))
        if handler is None:
            raise ApiHttpError(404, "Not found", url=path, server_message="Not found")
        if callable(handler) and not isinstance(handler, BaseException):
            handler = handler(json_body)
        if isinstance(handler, BaseException):
            raise handler
        return copy.deepcopy(handler)


def seed_school(api: FakeSchoolApi) -> FakeSchoolApi:
    api.on("GET", "/schools/1", SCHOOL)
    api.on("GET", "/schools/1/classes", CLASSES)
    api.on("GET", "/classes/11/subjects", CLASS_11_SUBJECTS)
    api.on("GET", "/schools/1/students", STUDENTS)
    api.on("GET", "/schools/1/teachers", TEACHERS)
    api.on("GET", "/schools/1/subjects", SUBJECTS)
    return api


@pytest.fixture
def school_api() -> FakeSchoolApi:
    """Fake school API with school 1 fully seeded."""
    return seed_school(FakeSchoolApi())


@pytest.fixture
def make_school_api() -> Callable[[], FakeSchoolApi]:
    """Factory for additional independent fake APIs."""
    return lambda: seed_school(FakeSchoolApi())


@pytest.fixture
def aggregator(school_api) -> SchoolDataAggregator:
    return SchoolDataAggregator(school_api)


@pytest.fixture
async def loaded_aggregator(aggregator) -> SchoolDataAggregator:
    await aggregator.initialize("1")
    return aggregator


@pytest.fixture
def notifications() -> NotificationCenter:
    return NotificationCenter()


@pytest.fixture
def executor(school_api, aggregator, notifications) -> MutationExecutor:
    return MutationExecutor(school_api, aggregator, notifications)


# ── Users ────────────────────────────────────────────────────


@pytest.fixture
def admin_user() -> CurrentUser:
    return CurrentUser(id=1, name="Ada Admin", email="admin@school.test",
                       role=Role.SCHOOL_ADMIN, school_id=1)


@pytest.fixture
def staff_user() -> CurrentUser:
    """Rita (teacher 101): teaches Mathematics in class 10 only."""
    return CurrentUser(id=9002, name="Rita Roy", email="rita@school.test",
                       role=Role.STAFF, school_id=1)


@pytest.fixture
def class_teacher_user() -> CurrentUser:
    """Tom (teacher 100): class teacher of 10, teaches Science in 11."""
    return CurrentUser(id=9001, name="Tom Tan", email="tom@school.test",
                       role=Role.STAFF, school_id=1)


@pytest.fixture
def parent_user() -> CurrentUser:
    return CurrentUser(id=5001, name="Paul Ng", email="parent@example.com",
                       role=Role.PARENT, school_id=1)


@pytest.fixture
def student_user() -> CurrentUser:
    return CurrentUser(id=7002, name="Bob Lee", email="bob@school.test",
                       role=Role.STUDENT, school_id=1)
