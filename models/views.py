"""View models — read-only projections of aggregator state, one per page.

A view model is derived on every request and never mutated afterwards; all
writes go through the mutation executor and come back through a refetch.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from models.base import CamelModel
from models.data import EntityStatus
from models.errors import ErrorCode, Notification

UNKNOWN_SUBJECT = "Unknown Subject"
UNASSIGNED = "Unassigned"
UNKNOWN_CLASS = "Unknown Class"


class ClassSubjectView(CamelModel):
    """A mapping row resolved to display names."""
    mapping_id: str | None = None
    subject_id: str | None = None
    subject_name: str = UNKNOWN_SUBJECT
    teacher_id: str | None = None
    teacher_name: str = UNASSIGNED


class ClassRow(CamelModel):
    id: str
    grade: str
    section: str
    label: str
    class_teacher_id: str | None = None
    class_teacher_name: str = UNASSIGNED
    student_count: int = 0
    subjects: list[ClassSubjectView] = Field(default_factory=list)


class StudentRow(CamelModel):
    id: str
    full_name: str
    student_email: str = ""
    gender: str = ""
    class_id: str | None = None
    class_label: str = UNKNOWN_CLASS
    parent_name: str = ""
    parent_contact: str = ""
    admission_date: str | None = None
    status: EntityStatus


class StaffRow(CamelModel):
    id: str
    full_name: str
    email: str = ""
    phone_number: str = ""
    status: EntityStatus
    subject_specialization: list[str] = Field(default_factory=list)
    class_teacher_of: list[str] = Field(default_factory=list)


class SubjectRow(CamelModel):
    id: str
    subject_name: str
    subject_description: str | None = None
    class_count: int = 0


class TeacherClassRow(CamelModel):
    """One class on the staff "My Classes" page."""
    class_id: str
    class_label: str
    student_count: int = 0
    is_class_teacher: bool = False
    subjects: list[ClassSubjectView] = Field(default_factory=list)


class TeacherSubjectCard(CamelModel):
    """One class on the staff "My Subjects" page with the subjects they teach there."""
    class_id: str
    class_label: str
    subjects: list[ClassSubjectView] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Page payloads
# ---------------------------------------------------------------------------

class PageBase(CamelModel):
    notifications: list[Notification] = Field(default_factory=list)


class DashboardPage(PageBase):
    """Headline totals over what the viewer may see.

    Staff totals are only reported to viewers with an unscoped view of the
    school (the admins).
    """
    role: str
    school_name: str = ""
    total_students: int = 0
    active_students: int = 0
    total_classes: int = 0
    total_subjects: int = 0
    total_staff: int | None = None
    active_staff: int | None = None


class StudentsPage(PageBase):
    total_students: int
    class_count: int
    students: list[StudentRow]


class StaffPage(PageBase):
    total_staff: int
    active_staff: int
    staff: list[StaffRow]


class ClassesPage(PageBase):
    classes: list[ClassRow]
    can_manage: bool = False


class ClassDetailPage(PageBase):
    class_: ClassRow = Field(alias="class")
    students: list[StudentRow]


class SubjectsPage(PageBase):
    subjects: list[SubjectRow]
    can_manage: bool = False


class TeacherSubjectsPage(PageBase):
    classes: list[TeacherSubjectCard]


class TeacherClassesPage(PageBase):
    classes: list[TeacherClassRow]


class StudentClassesPage(PageBase):
    """A student's own class; ``None`` when no class is assigned."""
    class_: ClassRow | None = Field(None, alias="class")
    classmate_count: int = 0


class ExamSubjectRow(CamelModel):
    subject_id: str | None = None
    subject_name: str = UNKNOWN_SUBJECT
    exam_date: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    max_marks: float | None = None


class ExamSchedulePage(PageBase):
    exam_id: str
    title: str
    term: str = ""
    class_name: str = ""
    start_date: str | None = None
    end_date: str | None = None
    subjects: list[ExamSubjectRow]


class PlaceholderPage(PageBase):
    """Blocking placeholder shown instead of page content."""
    state: str
    message: str


# ---------------------------------------------------------------------------
# Mutation responses
# ---------------------------------------------------------------------------

class DialogState(CamelModel):
    """The form dialog after the request: still open with its values on failure."""
    open: bool
    submitting: bool = False
    values: dict[str, Any] = Field(default_factory=dict)


class MutationResponse(PageBase):
    """Outcome of one create/update/delete/status request."""
    ok: bool
    data: Any = None
    error_code: ErrorCode | None = None
    field_errors: dict[str, str] = Field(default_factory=dict)
    dialog: DialogState | None = None
