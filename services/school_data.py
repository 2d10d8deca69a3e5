"""School data aggregator — the in-memory copy of one school's collections.

Holds the five core collections (school, classes, students, teachers,
subjects) for one authenticated session and exposes them to every page.

State machine::

    IDLE ──initialize()──▶ LOADING ──all five ok──▶ READY
                              │                      │
                              └──any failure──▶ ERROR ──refetch()──▶ LOADING

Guarantees:
- **Atomic commit**: the five collections live in one immutable
  :class:`SchoolSnapshot` that is swapped in a single assignment.  If any
  fetch of a round fails, the whole round is discarded and the previously
  committed snapshot stays in place.
- **Coalesced refetch**: a ``refetch()`` issued while a round is in flight
  does not start a parallel round; it queues one follow-up round that runs
  right after.  Every caller of the same drain sees the same final state.
- **Late results are dropped**: after :meth:`SchoolDataAggregator.close`
  (logout) the results of a round that was already in flight are ignored.

Derived joins (``teacher_for_class``, ``students_in_class``,
``subjects_for_class``) are pure functions over a snapshot, computed on
demand and never cached.  Referential gaps degrade to placeholder text.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, TypeVar

from adapters.collection_adapter import ApiReader, Collection, fetch_collection
from errors.exceptions import FetchError
from models.data import ClassItem, School, StaffItem, StudentItem, SubjectItem
from models.views import UNASSIGNED, UNKNOWN_CLASS, UNKNOWN_SUBJECT, ClassSubjectView

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[["SchoolDataAggregator"], None]


class AggregatorState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class SchoolSnapshot:
    """The five committed collections, replaced only as a whole."""

    school: School | None = None
    classes: tuple[ClassItem, ...] = ()
    students: tuple[StudentItem, ...] = ()
    teachers: tuple[StaffItem, ...] = ()
    subjects: tuple[SubjectItem, ...] = ()


EMPTY_SNAPSHOT = SchoolSnapshot()


# ---------------------------------------------------------------------------
# Reference resolution
# ---------------------------------------------------------------------------

def find_by_id(items: Iterable[T], ref_id: str | None) -> T | None:
    """Return the item whose ``id`` equals *ref_id*, or ``None``."""
    if ref_id is None:
        return None
    for item in items:
        if getattr(item, "id", None) == ref_id:
            return item
    return None


def resolve_reference(
    items: Iterable[T],
    ref_id: str | None,
    label: Callable[[T], str],
    placeholder: str,
) -> str:
    """Resolve an optional foreign key to display text.

    Missing references (``None`` id, or an id that matches nothing) resolve
    to *placeholder*; this never raises.
    """
    item = find_by_id(items, ref_id)
    if item is None:
        return placeholder
    return label(item) or placeholder


def subject_name(snapshot: SchoolSnapshot, subject_id: str | None) -> str:
    return resolve_reference(
        snapshot.subjects, subject_id, lambda s: s.subject_name, UNKNOWN_SUBJECT
    )


def teacher_name(snapshot: SchoolSnapshot, teacher_id: str | None) -> str:
    return resolve_reference(
        snapshot.teachers, teacher_id, lambda t: t.full_name, UNASSIGNED
    )


def class_label(snapshot: SchoolSnapshot, class_id: str | None) -> str:
    return resolve_reference(snapshot.classes, class_id, lambda c: c.label, UNKNOWN_CLASS)


# ---------------------------------------------------------------------------
# Derived joins
# ---------------------------------------------------------------------------

def teacher_for_class(snapshot: SchoolSnapshot, class_id: str) -> StaffItem | None:
    """The class teacher of *class_id*, if assigned and still present."""
    cls = find_by_id(snapshot.classes, class_id)
    if cls is None:
        return None
    return find_by_id(snapshot.teachers, cls.class_teacher_id)


def students_in_class(snapshot: SchoolSnapshot, class_id: str) -> list[StudentItem]:
    return [s for s in snapshot.students if s.class_id == class_id]


def subjects_for_class(snapshot: SchoolSnapshot, class_id: str) -> list[ClassSubjectView]:
    """Mapping rows of *class_id* resolved to subject and teacher names."""
    cls = find_by_id(snapshot.classes, class_id)
    if cls is None:
        return []
    return [
        ClassSubjectView(
            mapping_id=row.id,
            subject_id=row.subject_id,
            subject_name=subject_name(snapshot, row.subject_id),
            teacher_id=row.teacher_id,
            teacher_name=teacher_name(snapshot, row.teacher_id),
        )
        for row in cls.subjects
    ]


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------

class SchoolDataAggregator:
    """Stateful holder of one school's collections for one session."""

    def __init__(self, client: ApiReader, school_id: str | None = None) -> None:
        self._client = client
        self._school_id = school_id
        self._snapshot: SchoolSnapshot = EMPTY_SNAPSHOT
        self._state = AggregatorState.IDLE
        self._error: FetchError | None = None
        self._listeners: list[Listener] = []

        # Refetch coalescing
        self._inflight: asyncio.Task[AggregatorState] | None = None
        self._rerun_requested = False
        self._generation = 0
        self._rounds_started = 0

    # -- read side -----------------------------------------------------------

    @property
    def snapshot(self) -> SchoolSnapshot:
        return self._snapshot

    @property
    def school(self) -> School | None:
        return self._snapshot.school

    @property
    def classes(self) -> tuple[ClassItem, ...]:
        return self._snapshot.classes

    @property
    def students(self) -> tuple[StudentItem, ...]:
        return self._snapshot.students

    @property
    def teachers(self) -> tuple[StaffItem, ...]:
        return self._snapshot.teachers

    @property
    def subjects(self) -> tuple[SubjectItem, ...]:
        return self._snapshot.subjects

    @property
    def state(self) -> AggregatorState:
        return self._state

    @property
    def error(self) -> FetchError | None:
        return self._error

    @property
    def school_id(self) -> str | None:
        return self._school_id

    @property
    def is_closed(self) -> bool:
        """True after logout, until the next :meth:`initialize`."""
        return self._state is AggregatorState.IDLE and self._generation > 0

    @property
    def rounds_started(self) -> int:
        """Number of fetch rounds issued so far."""
        return self._rounds_started

    def teacher_for_class(self, class_id: str) -> StaffItem | None:
        return teacher_for_class(self._snapshot, class_id)

    def students_in_class(self, class_id: str) -> list[StudentItem]:
        return students_in_class(self._snapshot, class_id)

    def subjects_for_class(self, class_id: str) -> list[ClassSubjectView]:
        return subjects_for_class(self._snapshot, class_id)

    # -- subscriptions -------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call *listener* on every state change; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -- lifecycle -----------------------------------------------------------

    async def initialize(self, school_id: str | None) -> AggregatorState:
        """Bind to *school_id* and run the first load (``IDLE → LOADING``)."""
        if self._state is not AggregatorState.IDLE and school_id != self._school_id:
            self.close()
        self._school_id = school_id
        return await self.refetch()

    async def refetch(self) -> AggregatorState:
        """Re-pull all five collections and atomically swap them in.

        Coalesced with any round already in flight.  Returns the state after
        the drain completes.
        """
        self._rerun_requested = True
        if self._inflight is None:
            self._inflight = asyncio.create_task(self._drain(self._generation))
        return await asyncio.shield(self._inflight)

    def close(self) -> None:
        """Discard all collections (logout).  In-flight results are ignored."""
        self._generation += 1
        self._rerun_requested = False
        self._inflight = None
        self._snapshot = EMPTY_SNAPSHOT
        self._error = None
        logger.info("SchoolDataAggregator closed — school_id=%s", self._school_id)
        self._set_state(AggregatorState.IDLE)

    # -- internals -----------------------------------------------------------

    async def _drain(self, generation: int) -> AggregatorState:
        task = asyncio.current_task()
        try:
            while self._rerun_requested and generation == self._generation:
                self._rerun_requested = False
                await self._load_round(generation)
            return self._state
        finally:
            if self._inflight is task:
                self._inflight = None

    async def _load_round(self, generation: int) -> None:
        school_id = self._school_id
        self._rounds_started += 1
        self._set_state(AggregatorState.LOADING)

        if school_id is None:
            self._commit(EMPTY_SNAPSHOT)
            return

        collections = list(Collection)
        results = await asyncio.gather(
            *(fetch_collection(self._client, c, school_id) for c in collections),
            return_exceptions=True,
        )

        if generation != self._generation:
            logger.info("Dropping fetch results for closed session — school_id=%s", school_id)
            return

        for collection, result in zip(collections, results):
            if isinstance(result, FetchError):
                logger.warning("Aggregate load failed — %s", result)
                self._error = result
                self._set_state(AggregatorState.ERROR)
                return
            if isinstance(result, BaseException):
                logger.error(
                    "Unexpected failure fetching %s", collection.value,
                    exc_info=result,
                )
                self._error = FetchError(collection.value, 0, str(result) or type(result).__name__)
                self._set_state(AggregatorState.ERROR)
                raise result

        school, classes, students, teachers, subjects = results
        self._commit(SchoolSnapshot(
            school=school,
            classes=tuple(classes),
            students=tuple(students),
            teachers=tuple(teachers),
            subjects=tuple(subjects),
        ))

    def _commit(self, snapshot: SchoolSnapshot) -> None:
        self._snapshot = snapshot
        self._error = None
        logger.info(
            "School data committed — school_id=%s classes=%d students=%d teachers=%d subjects=%d",
            self._school_id,
            len(snapshot.classes),
            len(snapshot.students),
            len(snapshot.teachers),
            len(snapshot.subjects),
        )
        self._set_state(AggregatorState.READY)

    def _set_state(self, state: AggregatorState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.warning("State listener failed", exc_info=True)
