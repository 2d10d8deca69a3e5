"""Role-gated view controller — who may see which page, and which records.

Two layers:

1. **Page gating** — :func:`authorize` maps ``(role, resource)`` to
   :class:`Allow` or :class:`Deny`.  The table is total over
   :class:`Resource`; a resource without an entry fails at import time.
   :func:`authorize_action` gates individual actions inside a page (only
   ``school_admin`` may create or delete staff, assign class teachers...).
2. **Record scoping** — :class:`ViewerScope` narrows the aggregator's
   school-wide collections to what one viewer may list.  A staff member sees
   classes where they are the class teacher or teach at least one subject,
   and the students and subjects of those classes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Union

from models.data import ClassItem, StaffItem, StudentItem, SubjectItem
from models.session import CurrentUser, Role
from services.school_data import SchoolSnapshot

logger = logging.getLogger(__name__)

ACCESS_DENIED_REASON = "You do not have permission to view this page."


class Resource(str, Enum):
    """Every page of the portal."""

    DASHBOARD = "dashboard"
    PROFILE = "profile"
    # Platform
    SCHOOLS = "schools"
    SCHOOL_ADMINS = "school_admins"
    # School management
    STAFF = "staff"
    STUDENTS = "students"
    CLASSES = "classes"
    CLASS_DETAIL = "class_detail"
    CLASS_SUBJECTS = "class_subjects"
    SUBJECTS = "subjects"
    ATTENDANCE = "attendance"
    FEES = "fees"
    BILLS = "bills"
    MESSAGES = "messages"
    # Academic
    EXAMS = "exams"
    EXAM_SCHEDULE = "exam_schedule"
    EXAM_RESULTS = "exam_results"
    HOMEWORK = "homework"
    MATERIALS = "materials"
    TESTS = "tests"
    CLASS_LOGS = "class_logs"
    TIMETABLE_UPLOAD = "timetable_upload"
    # Teacher
    TEACHER_CLASSES = "teacher_classes"
    TEACHER_SUBJECTS = "teacher_subjects"
    TEACHER_SUBJECT_DETAIL = "teacher_subject_detail"
    TEACHER_MESSAGES = "teacher_messages"
    # Student
    STUDENT_CLASSES = "student_classes"
    STUDENT_FEES = "student_fees"
    STUDENT_MESSAGES = "student_messages"
    STUDENT_ATTENDANCE = "student_attendance"


class Action(str, Enum):
    """Actions gated separately from page visibility."""

    CREATE_STAFF = "create_staff"
    UPDATE_STAFF = "update_staff"
    DELETE_STAFF = "delete_staff"
    TOGGLE_STAFF_STATUS = "toggle_staff_status"
    CREATE_STUDENT = "create_student"
    UPDATE_STUDENT = "update_student"
    DELETE_STUDENT = "delete_student"
    TOGGLE_STUDENT_STATUS = "toggle_student_status"
    CREATE_CLASS = "create_class"
    UPDATE_CLASS = "update_class"
    DELETE_CLASS = "delete_class"
    ASSIGN_CLASS_TEACHER = "assign_class_teacher"
    MANAGE_CLASS_SUBJECTS = "manage_class_subjects"
    CREATE_SUBJECT = "create_subject"
    UPDATE_SUBJECT = "update_subject"
    DELETE_SUBJECT = "delete_subject"


@dataclass(frozen=True)
class Allow:
    allowed: bool = True


@dataclass(frozen=True)
class Deny:
    reason: str
    allowed: bool = False


Decision = Union[Allow, Deny]

# ---------------------------------------------------------------------------
# Authorization tables
# ---------------------------------------------------------------------------

_ADMINS = frozenset({Role.SUPER_ADMIN, Role.SCHOOL_ADMIN})
_SCHOOL_ADMIN = frozenset({Role.SCHOOL_ADMIN})
_MANAGEMENT = frozenset({Role.SCHOOL_ADMIN, Role.STAFF})
_EVERYONE = frozenset(Role)

_RESOURCE_ROLES: dict[Resource, frozenset[Role]] = {
    Resource.DASHBOARD: _EVERYONE,
    Resource.PROFILE: _EVERYONE,
    Resource.SCHOOLS: frozenset({Role.SUPER_ADMIN}),
    Resource.SCHOOL_ADMINS: frozenset({Role.SUPER_ADMIN}),
    Resource.STAFF: _SCHOOL_ADMIN,
    Resource.STUDENTS: frozenset({Role.SCHOOL_ADMIN, Role.STAFF, Role.PARENT}),
    Resource.CLASSES: _MANAGEMENT,
    Resource.CLASS_DETAIL: _MANAGEMENT,
    Resource.CLASS_SUBJECTS: _MANAGEMENT,
    Resource.SUBJECTS: _MANAGEMENT,
    Resource.ATTENDANCE: frozenset({Role.SCHOOL_ADMIN, Role.STAFF, Role.PARENT}),
    Resource.FEES: frozenset({Role.SCHOOL_ADMIN, Role.PARENT}),
    Resource.BILLS: _SCHOOL_ADMIN,
    Resource.MESSAGES: frozenset({Role.SCHOOL_ADMIN, Role.PARENT}),
    Resource.EXAMS: _MANAGEMENT,
    Resource.EXAM_SCHEDULE: frozenset({Role.SCHOOL_ADMIN, Role.STAFF, Role.STUDENT}),
    Resource.EXAM_RESULTS: _MANAGEMENT,
    Resource.HOMEWORK: _MANAGEMENT,
    Resource.MATERIALS: _MANAGEMENT,
    Resource.TESTS: _MANAGEMENT,
    Resource.CLASS_LOGS: _MANAGEMENT,
    Resource.TIMETABLE_UPLOAD: _MANAGEMENT,
    Resource.TEACHER_CLASSES: frozenset({Role.STAFF}),
    Resource.TEACHER_SUBJECTS: frozenset({Role.STAFF}),
    Resource.TEACHER_SUBJECT_DETAIL: frozenset({Role.STAFF}),
    Resource.TEACHER_MESSAGES: frozenset({Role.STAFF}),
    Resource.STUDENT_CLASSES: frozenset({Role.STUDENT}),
    Resource.STUDENT_FEES: frozenset({Role.STUDENT}),
    Resource.STUDENT_MESSAGES: frozenset({Role.STUDENT}),
    Resource.STUDENT_ATTENDANCE: frozenset({Role.STUDENT}),
}

_ACTION_ROLES: dict[Action, frozenset[Role]] = {
    Action.CREATE_STAFF: _SCHOOL_ADMIN,
    Action.UPDATE_STAFF: _SCHOOL_ADMIN,
    Action.DELETE_STAFF: _SCHOOL_ADMIN,
    Action.TOGGLE_STAFF_STATUS: _SCHOOL_ADMIN,
    Action.CREATE_STUDENT: _SCHOOL_ADMIN,
    Action.UPDATE_STUDENT: _MANAGEMENT,
    Action.DELETE_STUDENT: _SCHOOL_ADMIN,
    Action.TOGGLE_STUDENT_STATUS: _MANAGEMENT,
    Action.CREATE_CLASS: _SCHOOL_ADMIN,
    Action.UPDATE_CLASS: _MANAGEMENT,
    Action.DELETE_CLASS: _SCHOOL_ADMIN,
    Action.ASSIGN_CLASS_TEACHER: _SCHOOL_ADMIN,
    Action.MANAGE_CLASS_SUBJECTS: _SCHOOL_ADMIN,
    Action.CREATE_SUBJECT: _SCHOOL_ADMIN,
    Action.UPDATE_SUBJECT: _SCHOOL_ADMIN,
    Action.DELETE_SUBJECT: _SCHOOL_ADMIN,
}


def _check_total() -> None:
    missing = [r.value for r in Resource if r not in _RESOURCE_ROLES]
    missing += [a.value for a in Action if a not in _ACTION_ROLES]
    if missing:
        raise RuntimeError(f"Authorization table has no entry for: {', '.join(missing)}")


_check_total()


def authorize(role: Role, resource: Resource) -> Decision:
    """Decide whether *role* may view *resource*."""
    if role in _RESOURCE_ROLES[resource]:
        return Allow()
    logger.info("Access denied — role=%s resource=%s", role.value, resource.value)
    return Deny(reason=ACCESS_DENIED_REASON)


def authorize_action(role: Role, action: Action) -> Decision:
    """Decide whether *role* may perform *action*."""
    if role in _ACTION_ROLES[action]:
        return Allow()
    logger.info("Action denied — role=%s action=%s", role.value, action.value)
    return Deny(reason="You do not have permission to perform this action.")


# ---------------------------------------------------------------------------
# Record scoping
# ---------------------------------------------------------------------------

def find_teacher_record(user: CurrentUser, teachers: tuple[StaffItem, ...]) -> StaffItem | None:
    """The staff record of *user*: matched by ``user_id``, then by email."""
    for teacher in teachers:
        if teacher.user_id is not None and teacher.user_id == user.id:
            return teacher
    if user.email:
        email = user.email.lower()
        for teacher in teachers:
            if teacher.email and teacher.email.lower() == email:
                return teacher
    return None


def find_student_record(user: CurrentUser, students: tuple[StudentItem, ...]) -> StudentItem | None:
    for student in students:
        if student.user_id is not None and student.user_id == user.id:
            return student
    if user.email:
        email = user.email.lower()
        for student in students:
            if student.student_email and student.student_email.lower() == email:
                return student
    return None


def class_visible_to_teacher(cls: ClassItem, teacher_id: str) -> bool:
    """True if *teacher_id* is the class teacher or teaches a subject there."""
    if cls.class_teacher_id == teacher_id:
        return True
    return any(row.teacher_id == teacher_id for row in cls.subjects)


@dataclass(frozen=True)
class ViewerScope:
    """The subset of a snapshot one viewer may list.

    ``None`` for a set of ids means "no restriction".
    """

    role: Role
    class_ids: frozenset[str] | None = None
    student_ids: frozenset[str] | None = None
    subject_ids: frozenset[str] | None = None
    teacher_id: str | None = None

    @classmethod
    def for_user(cls, user: CurrentUser, snapshot: SchoolSnapshot) -> ViewerScope:
        if user.role in _ADMINS:
            return cls(role=user.role)

        if user.role is Role.STAFF:
            teacher = find_teacher_record(user, snapshot.teachers)
            if teacher is None:
                logger.warning("No staff record for user %s — empty scope", user.id)
                return cls(role=user.role, class_ids=frozenset(),
                           student_ids=frozenset(), subject_ids=frozenset())
            classes = [c for c in snapshot.classes if class_visible_to_teacher(c, teacher.id)]
            return cls._from_classes(user.role, classes, snapshot, teacher_id=teacher.id)

        if user.role is Role.STUDENT:
            student = find_student_record(user, snapshot.students)
            if student is None:
                return cls(role=user.role, class_ids=frozenset(),
                           student_ids=frozenset(), subject_ids=frozenset())
            classes = [c for c in snapshot.classes if c.id == student.class_id]
            scope = cls._from_classes(user.role, classes, snapshot)
            return cls(
                role=user.role,
                class_ids=scope.class_ids,
                student_ids=frozenset({student.id}),
                subject_ids=scope.subject_ids,
            )

        # Parent: children are the students whose parent contact is the parent's email.
        email = (user.email or "").lower()
        children = [
            s for s in snapshot.students
            if email and s.parent_contact.lower() == email
        ]
        child_class_ids = {s.class_id for s in children if s.class_id}
        classes = [c for c in snapshot.classes if c.id in child_class_ids]
        scope = cls._from_classes(user.role, classes, snapshot)
        return cls(
            role=user.role,
            class_ids=scope.class_ids,
            student_ids=frozenset(s.id for s in children),
            subject_ids=scope.subject_ids,
        )

    @classmethod
    def _from_classes(
        cls,
        role: Role,
        classes: list[ClassItem],
        snapshot: SchoolSnapshot,
        teacher_id: str | None = None,
    ) -> ViewerScope:
        class_ids = frozenset(c.id for c in classes)
        subject_ids = frozenset(
            row.subject_id for c in classes for row in c.subjects if row.subject_id
        )
        student_ids = frozenset(
            s.id for s in snapshot.students if s.class_id in class_ids
        )
        return cls(
            role=role,
            class_ids=class_ids,
            student_ids=student_ids,
            subject_ids=subject_ids,
            teacher_id=teacher_id,
        )

    def classes(self, snapshot: SchoolSnapshot) -> list[ClassItem]:
        if self.class_ids is None:
            return list(snapshot.classes)
        return [c for c in snapshot.classes if c.id in self.class_ids]

    def students(self, snapshot: SchoolSnapshot) -> list[StudentItem]:
        if self.student_ids is None:
            return list(snapshot.students)
        return [s for s in snapshot.students if s.id in self.student_ids]

    def subjects(self, snapshot: SchoolSnapshot) -> list[SubjectItem]:
        if self.subject_ids is None:
            return list(snapshot.subjects)
        return [s for s in snapshot.subjects if s.id in self.subject_ids]

    def can_see_class(self, class_id: str) -> bool:
        return self.class_ids is None or class_id in self.class_ids

    def can_see_student(self, student_id: str) -> bool:
        return self.student_ids is None or student_id in self.student_ids
