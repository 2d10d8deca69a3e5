"""Tests for adapters/ — school API responses → internal models."""

import pytest

from adapters.collection_adapter import (
    Collection,
    fetch_collection,
    fetch_current_user,
    resolve_school_id,
    unwrap_data,
)
from adapters.exam_adapter import get_exam_with_subjects
from errors.exceptions import ApiHttpError, FetchError, NetworkFailure, ResponseParseError
from models.data import ClassItem, School, StaffItem
from models.session import CurrentUser, Role


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

def test_each_collection_has_one_endpoint():
    assert Collection.SCHOOL.endpoint("7") == "/schools/7"
    assert Collection.CLASSES.endpoint("7") == "/schools/7/classes"
    assert Collection.STUDENTS.endpoint("7") == "/schools/7/students"
    assert Collection.TEACHERS.endpoint("7") == "/schools/7/teachers"
    assert Collection.SUBJECTS.endpoint("7") == "/schools/7/subjects"


def test_unwrap_data():
    assert unwrap_data({"data": [1, 2]}) == [1, 2]
    assert unwrap_data([1, 2]) == [1, 2]
    assert unwrap_data({"id": 1}) == {"id": 1}


# ---------------------------------------------------------------------------
# fetch_collection
# ---------------------------------------------------------------------------

async def test_fetch_school(school_api):
    school = await fetch_collection(school_api, Collection.SCHOOL, "1")
    assert isinstance(school, School)
    assert school.id == "1"
    assert school.name == "Green Valley School"


async def test_fetch_classes_attaches_mappings(school_api):
    classes = await fetch_collection(school_api, Collection.CLASSES, "1")
    assert all(isinstance(c, ClassItem) for c in classes)
    by_id = {c.id: c for c in classes}

    # Class 10 embeds its mappings; class 11 needs a per-class fetch.
    assert [m.subject_id for m in by_id["10"].subjects] == ["200"]
    assert [m.subject_id for m in by_id["11"].subjects] == ["201", "999"]
    assert by_id["11"].subjects[1].teacher_id is None
    assert school_api.count("GET", "/classes/11/subjects") == 1
    assert school_api.count("GET", "/classes/10/subjects") == 0


async def test_fetch_classes_normalizes_grade_and_ids(school_api):
    classes = await fetch_collection(school_api, Collection.CLASSES, "1")
    assert classes[0].grade == "5"
    assert classes[0].class_teacher_id == "100"
    assert classes[0].label == "Grade 5 Section A"
    assert classes[1].class_teacher_id is None


async def test_failed_mapping_fetch_fails_classes(school_api):
    school_api.on("GET", "/classes/11/subjects", ApiHttpError(500, "HTTP 500"))
    with pytest.raises(FetchError) as exc_info:
        await fetch_collection(school_api, Collection.CLASSES, "1")
    assert exc_info.value.collection == "classes"
    assert exc_info.value.status == 500


async def test_fetch_teachers_parses_postgres_array(school_api):
    teachers = await fetch_collection(school_api, Collection.TEACHERS, "1")
    assert all(isinstance(t, StaffItem) for t in teachers)
    assert teachers[0].subject_specialization == ("Math", "Science")
    assert teachers[1].subject_specialization == ("Math",)
    assert teachers[2].subject_specialization == ()


async def test_enveloped_list_is_unwrapped(school_api):
    school_api.on("GET", "/schools/1/subjects", {"data": [{"id": 5, "subject_name": "Art"}]})
    subjects = await fetch_collection(school_api, Collection.SUBJECTS, "1")
    assert [(s.id, s.subject_name) for s in subjects] == [("5", "Art")]


async def test_http_error_maps_to_fetch_error(school_api):
    school_api.on("GET", "/schools/1/students", ApiHttpError(403, "Forbidden"))
    with pytest.raises(FetchError) as exc_info:
        await fetch_collection(school_api, Collection.STUDENTS, "1")
    assert exc_info.value.status == 403
    assert exc_info.value.message == "Forbidden"
    assert exc_info.value.collection == "students"


async def test_network_failure_maps_to_status_zero(school_api):
    school_api.on("GET", "/schools/1/students", NetworkFailure("GET", "/schools/1/students", "timeout"))
    with pytest.raises(FetchError) as exc_info:
        await fetch_collection(school_api, Collection.STUDENTS, "1")
    assert exc_info.value.status == 0


async def test_undecodable_body_is_parse_error(school_api):
    school_api.on("GET", "/schools/1/teachers", ResponseParseError())
    with pytest.raises(FetchError) as exc_info:
        await fetch_collection(school_api, Collection.TEACHERS, "1")
    assert exc_info.value.status == 0
    assert exc_info.value.message == "parse error"


async def test_wrong_shape_is_parse_error(school_api):
    school_api.on("GET", "/schools/1/students", {"unexpected": True})
    with pytest.raises(FetchError) as exc_info:
        await fetch_collection(school_api, Collection.STUDENTS, "1")
    assert exc_info.value.message == "parse error"


async def test_invalid_row_is_parse_error(school_api):
    school_api.on("GET", "/schools/1/students", [{"full_name": "No Id"}])
    with pytest.raises(FetchError) as exc_info:
        await fetch_collection(school_api, Collection.STUDENTS, "1")
    assert exc_info.value.status == 0
    assert exc_info.value.message == "parse error"


async def test_unknown_fields_are_ignored(school_api):
    school_api.on("GET", "/schools/1/subjects", [{"id": 1, "subject_name": "Art", "color": "red"}])
    subjects = await fetch_collection(school_api, Collection.SUBJECTS, "1")
    assert subjects[0].subject_name == "Art"


# ---------------------------------------------------------------------------
# fetch_current_user
# ---------------------------------------------------------------------------

async def test_fetch_current_user_maps_teacher_to_staff(school_api):
    school_api.on("GET", "/user", {"data": {
        "id": 9002, "name": "Rita Roy", "email": "rita@school.test",
        "role": "teacher", "school_id": 1, "password": "never-shown",
    }})

    user = await fetch_current_user(school_api)

    assert user.id == "9002"
    assert user.role is Role.STAFF
    assert user.school_id == "1"


async def test_fetch_current_user_unauthenticated(school_api):
    school_api.on("GET", "/user", ApiHttpError(401, "Not authenticated"))
    with pytest.raises(FetchError) as exc_info:
        await fetch_current_user(school_api)
    assert exc_info.value.status == 401


async def test_fetch_current_user_unknown_role(school_api):
    school_api.on("GET", "/user", {"id": 1, "role": "janitor"})
    with pytest.raises(FetchError) as exc_info:
        await fetch_current_user(school_api)
    assert exc_info.value.message == "parse error"


# ---------------------------------------------------------------------------
# resolve_school_id
# ---------------------------------------------------------------------------

async def test_resolve_school_id_from_user(school_api, admin_user):
    assert await resolve_school_id(school_api, admin_user) == "1"
    assert school_api.calls == []


async def test_resolve_school_id_for_staff_without_school(school_api):
    user = CurrentUser(id=9001, email="tom@school.test", role=Role.STAFF)
    school_api.on("GET", "/Teachers/tom@school.test/staff", [{"id": 100, "school_id": 1}])
    assert await resolve_school_id(school_api, user) == "1"


async def test_resolve_school_id_staff_record_missing(school_api):
    user = CurrentUser(id=9001, email="tom@school.test", role=Role.STAFF)
    school_api.on("GET", "/Teachers/tom@school.test/staff", [])
    with pytest.raises(FetchError, match="School ID not found"):
        await resolve_school_id(school_api, user)


async def test_resolve_school_id_super_admin_takes_first(school_api):
    user = CurrentUser(id=1, role=Role.SUPER_ADMIN)
    school_api.on("GET", "/schools", [{"id": 4}, {"id": 5}])
    assert await resolve_school_id(school_api, user) == "4"


async def test_resolve_school_id_super_admin_no_schools(school_api):
    user = CurrentUser(id=1, role=Role.SUPER_ADMIN)
    school_api.on("GET", "/schools", [])
    assert await resolve_school_id(school_api, user) is None


# ---------------------------------------------------------------------------
# Exams
# ---------------------------------------------------------------------------

async def test_get_exam_with_subjects(school_api):
    school_api.on("GET", "/exams/3", {"id": 3, "title": "Midterm", "term": "Term 1", "classId": 10})
    school_api.on("GET", "/exams/3/subjects", [
        {"subjectId": 200, "examDate": "2025-03-02", "startTime": "09:00", "maxMarks": "100"},
    ])
    exam, subjects = await get_exam_with_subjects(school_api, "3")
    assert exam.id == "3"
    assert exam.class_id == "10"
    assert subjects[0].subject_id == "200"
    assert subjects[0].max_marks == 100.0


async def test_exam_not_found(school_api):
    with pytest.raises(FetchError) as exc_info:
        await get_exam_with_subjects(school_api, "404")
    assert exc_info.value.collection == "exams"
    assert exc_info.value.status == 404
