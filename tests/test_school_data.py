"""Tests for services/school_data.py — aggregate load, coalescing, joins."""

import asyncio

import pytest

from errors.exceptions import ApiHttpError
from models.data import ClassItem, ClassSubjectMapping, StaffItem, SubjectItem
from models.views import UNASSIGNED, UNKNOWN_SUBJECT
from services.school_data import (
    EMPTY_SNAPSHOT,
    AggregatorState,
    SchoolDataAggregator,
    SchoolSnapshot,
    resolve_reference,
    subjects_for_class,
    teacher_for_class,
)


# ---------------------------------------------------------------------------
# Initial load
# ---------------------------------------------------------------------------

async def test_initialize_loads_all_collections(aggregator):
    assert aggregator.state is AggregatorState.IDLE

    state = await aggregator.initialize("1")

    assert state is AggregatorState.READY
    assert aggregator.school.name == "Green Valley School"
    assert [c.id for c in aggregator.classes] == ["10", "11"]
    assert len(aggregator.students) == 3
    assert len(aggregator.teachers) == 3
    assert len(aggregator.subjects) == 2
    assert aggregator.error is None


async def test_collections_are_immutable(loaded_aggregator):
    assert isinstance(loaded_aggregator.classes, tuple)
    with pytest.raises(Exception):
        loaded_aggregator.students[0].full_name = "Changed"


async def test_state_passes_through_loading(aggregator):
    seen = []
    aggregator.subscribe(lambda agg: seen.append(agg.state))
    await aggregator.initialize("1")
    assert seen == [AggregatorState.LOADING, AggregatorState.READY]


async def test_no_school_commits_empty_snapshot(aggregator, school_api):
    state = await aggregator.initialize(None)
    assert state is AggregatorState.READY
    assert aggregator.snapshot == EMPTY_SNAPSHOT
    assert school_api.calls == []


# ---------------------------------------------------------------------------
# Atomic aggregate load
# ---------------------------------------------------------------------------

async def test_failed_load_keeps_previous_snapshot(loaded_aggregator, school_api):
    before = loaded_aggregator.snapshot
    school_api.on("GET", "/schools/1/students", [{"id": 999, "full_name": "New Kid"}])
    school_api.on("GET", "/schools/1/teachers", ApiHttpError(500, "HTTP 500"))

    state = await loaded_aggregator.refetch()

    assert state is AggregatorState.ERROR
    assert loaded_aggregator.snapshot is before
    assert [s.id for s in loaded_aggregator.students] == ["300", "301", "302"]
    assert loaded_aggregator.error.collection == "teachers"
    assert loaded_aggregator.error.status == 500


async def test_first_error_in_collection_order(aggregator, school_api):
    school_api.on("GET", "/schools/1/subjects", ApiHttpError(502, "bad gateway"))
    school_api.on("GET", "/schools/1/students", ApiHttpError(503, "unavailable"))

    await aggregator.initialize("1")

    assert aggregator.state is AggregatorState.ERROR
    assert aggregator.error.collection == "students"
    assert aggregator.snapshot == EMPTY_SNAPSHOT


async def test_error_then_refetch_recovers(aggregator, school_api):
    school_api.on("GET", "/schools/1/teachers", ApiHttpError(500, "HTTP 500"))
    await aggregator.initialize("1")
    assert aggregator.state is AggregatorState.ERROR

    school_api.on("GET", "/schools/1/teachers", [{"id": 100, "full_name": "Tom Tan"}])
    state = await aggregator.refetch()

    assert state is AggregatorState.READY
    assert aggregator.error is None
    assert [t.id for t in aggregator.teachers] == ["100"]


# ---------------------------------------------------------------------------
# Refetch coalescing
# ---------------------------------------------------------------------------

async def _until_called(api, method, path, times):
    while api.count(method, path) < times:
        await asyncio.sleep(0)


async def test_rapid_refetches_run_at_most_two_rounds(loaded_aggregator, school_api):
    rounds_before = loaded_aggregator.rounds_started
    school_api.hold("/schools/1/students")

    first = asyncio.create_task(loaded_aggregator.refetch())
    await _until_called(school_api, "GET", "/schools/1/students", 2)
    second = asyncio.create_task(loaded_aggregator.refetch())
    third = asyncio.create_task(loaded_aggregator.refetch())
    await asyncio.sleep(0)

    school_api.on("GET", "/schools/1/students", [{"id": 400, "full_name": "Late Student"}])
    school_api.release("/schools/1/students")
    results = await asyncio.gather(first, second, third)

    assert loaded_aggregator.rounds_started - rounds_before == 2
    assert results == [AggregatorState.READY] * 3
    # Every caller observes the state committed by the follow-up round.
    assert [s.id for s in loaded_aggregator.students] == ["400"]


async def test_sequential_refetches_each_run(loaded_aggregator, school_api):
    rounds_before = loaded_aggregator.rounds_started
    await loaded_aggregator.refetch()
    await loaded_aggregator.refetch()
    assert loaded_aggregator.rounds_started - rounds_before == 2
    assert school_api.count("GET", "/schools/1") == 3


# ---------------------------------------------------------------------------
# Session close
# ---------------------------------------------------------------------------

async def test_close_discards_late_results(aggregator, school_api):
    school_api.hold("/schools/1/subjects")
    load = asyncio.create_task(aggregator.initialize("1"))
    await _until_called(school_api, "GET", "/schools/1/subjects", 1)

    aggregator.close()
    school_api.release("/schools/1/subjects")
    await load

    assert aggregator.state is AggregatorState.IDLE
    assert aggregator.snapshot == EMPTY_SNAPSHOT
    assert aggregator.is_closed


async def test_unsubscribed_listener_gets_nothing(loaded_aggregator):
    seen = []
    unsubscribe = loaded_aggregator.subscribe(lambda agg: seen.append(agg.state))
    unsubscribe()
    await loaded_aggregator.refetch()
    assert seen == []


async def test_failing_listener_does_not_break_load(aggregator):
    def broken(_agg):
        raise ValueError("listener bug")

    aggregator.subscribe(broken)
    assert await aggregator.initialize("1") is AggregatorState.READY


# ---------------------------------------------------------------------------
# Derived joins / referential gaps
# ---------------------------------------------------------------------------

def test_resolve_reference_placeholders():
    subjects = (SubjectItem(id="1", subject_name="Art"),)
    assert resolve_reference(subjects, "1", lambda s: s.subject_name, UNKNOWN_SUBJECT) == "Art"
    assert resolve_reference(subjects, "2", lambda s: s.subject_name, UNKNOWN_SUBJECT) == UNKNOWN_SUBJECT
    assert resolve_reference(subjects, None, lambda s: s.subject_name, UNKNOWN_SUBJECT) == UNKNOWN_SUBJECT


def test_subjects_for_class_tolerates_gaps():
    snapshot = SchoolSnapshot(
        classes=(ClassItem(id="1", grade="1", section="A", subjects=(
            ClassSubjectMapping(id="m1", subject_id="s-missing", teacher_id="t-missing"),
            ClassSubjectMapping(id="m2", subject_id="s1", teacher_id=None),
            ClassSubjectMapping(id="m3", subject_id="s1", teacher_id="t1"),
        )),),
        teachers=(StaffItem(id="t1", full_name="Tom"),),
        subjects=(SubjectItem(id="s1", subject_name="Math"),),
    )

    views = subjects_for_class(snapshot, "1")

    assert [(v.subject_name, v.teacher_name) for v in views] == [
        (UNKNOWN_SUBJECT, UNASSIGNED),
        ("Math", UNASSIGNED),
        ("Math", "Tom"),
    ]


def test_teacher_for_class_missing_teacher():
    snapshot = SchoolSnapshot(
        classes=(ClassItem(id="1", class_teacher_id="gone"),),
    )
    assert teacher_for_class(snapshot, "1") is None
    assert teacher_for_class(snapshot, "unknown-class") is None


async def test_aggregator_joins(loaded_aggregator):
    assert loaded_aggregator.teacher_for_class("10").full_name == "Tom Tan"
    assert loaded_aggregator.teacher_for_class("11") is None
    assert [s.id for s in loaded_aggregator.students_in_class("11")] == ["301", "302"]
    views = loaded_aggregator.subjects_for_class("11")
    assert [(v.subject_name, v.teacher_name) for v in views] == [
        ("Science", "Tom Tan"),
        (UNKNOWN_SUBJECT, UNASSIGNED),
    ]


async def test_separate_aggregators_are_independent(make_school_api):
    a = SchoolDataAggregator(make_school_api())
    b = SchoolDataAggregator(make_school_api())
    await a.initialize("1")
    assert b.state is AggregatorState.IDLE
    assert b.snapshot == EMPTY_SNAPSHOT
