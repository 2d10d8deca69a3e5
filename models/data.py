"""Internal data models — the canonical representation of school API records.

These models decouple the portal from the exact JSON the school API returns:
the API mixes ``snake_case`` and ``camelCase`` keys and numeric and string ids,
so every id is normalized to ``str`` and every field accepts both spellings.

Optional foreign keys are typed :data:`OptionalRef`; resolving them against a
collection is done by :func:`services.school_data.resolve_reference`, which
substitutes a placeholder instead of raising.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any

from pydantic import AliasChoices, BeforeValidator, Field, field_validator

from models.base import SchoolRecord


def _coerce_id(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(int(value))
    return value


def _coerce_ref(value: Any) -> Any:
    if value is None or value == "":
        return None
    return _coerce_id(value)


EntityId = Annotated[str, BeforeValidator(_coerce_id)]
OptionalRef = Annotated[str | None, BeforeValidator(_coerce_ref)]


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class EntityStatus(str, Enum):
    """Lifecycle status of students and staff."""

    ACTIVE = "Active"
    INACTIVE = "Inactive"

    def toggled(self) -> EntityStatus:
        return EntityStatus.INACTIVE if self is EntityStatus.ACTIVE else EntityStatus.ACTIVE


# ---------------------------------------------------------------------------
# School
# ---------------------------------------------------------------------------

class School(SchoolRecord):
    """The tenant.  One per session."""
    id: EntityId
    name: str = ""
    address: str = ""
    contact_email: str = Field("", validation_alias=_alias("contact_email", "contactEmail"))
    contact_phone: str = Field("", validation_alias=_alias("contact_phone", "contactPhone"))


# ---------------------------------------------------------------------------
# Classes and class-subject-teacher mapping rows
# ---------------------------------------------------------------------------

class ClassSubjectMapping(SchoolRecord):
    """A class-subject-teacher assignment row.

    At most one row exists per ``(class_id, subject_id)``; ``teacher_id`` is
    optional.
    """
    id: OptionalRef = None
    class_id: OptionalRef = Field(None, validation_alias=_alias("class_id", "classId"))
    subject_id: OptionalRef = Field(None, validation_alias=_alias("subject_id", "subjectId"))
    teacher_id: OptionalRef = Field(None, validation_alias=_alias("teacher_id", "teacherId"))


class ClassItem(SchoolRecord):
    """A class (grade + section).  ``(grade, section)`` is unique per school."""
    id: EntityId
    grade: str = ""
    section: str = ""
    class_teacher_id: OptionalRef = Field(
        None, validation_alias=_alias("class_teacher_id", "classTeacherId")
    )
    student_count: int = Field(
        0, validation_alias=_alias("studentCount", "student_count")
    )
    subjects: tuple[ClassSubjectMapping, ...] = ()

    @field_validator("grade", mode="before")
    @classmethod
    def grade_as_text(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(int(value))
        return value

    @field_validator("student_count", mode="before")
    @classmethod
    def count_or_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @property
    def label(self) -> str:
        return f"Grade {self.grade} Section {self.section}"


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------

class StudentItem(SchoolRecord):
    """A student.  ``class_id`` references a class of the same school."""
    id: EntityId
    user_id: OptionalRef = Field(None, validation_alias=_alias("user_id", "userId"))
    full_name: str = Field("", validation_alias=_alias("full_name", "fullName"))
    student_email: str = Field(
        "", validation_alias=_alias("student_email", "email", "studentEmail")
    )
    gender: str = ""
    dob: str | None = Field(None, validation_alias=_alias("dob", "dateOfBirth"))
    class_id: OptionalRef = Field(None, validation_alias=_alias("class_id", "classId"))
    parent_name: str = Field("", validation_alias=_alias("parent_name", "parentName"))
    parent_contact: str = Field(
        "", validation_alias=_alias("parent_contact", "parentContact")
    )
    admission_date: str | None = Field(
        None, validation_alias=_alias("admissionDate", "admission_date")
    )
    status: EntityStatus = EntityStatus.ACTIVE
    address: str = ""


class StaffItem(SchoolRecord):
    """A teacher / staff member."""
    id: EntityId
    user_id: OptionalRef = Field(None, validation_alias=_alias("user_id", "userId"))
    full_name: str = Field("", validation_alias=_alias("full_name", "fullName"))
    email: str = ""
    gender: str = ""
    joining_date: str | None = Field(
        None, validation_alias=_alias("joining_date", "joiningDate")
    )
    status: EntityStatus = EntityStatus.ACTIVE
    phone_number: str = Field("", validation_alias=_alias("phone_number", "phoneNumber"))
    subject_specialization: tuple[str, ...] = Field(
        (), validation_alias=_alias("subject_specialization", "subjectSpecialization")
    )

    @field_validator("subject_specialization", mode="before")
    @classmethod
    def parse_pg_array(cls, value: Any) -> Any:
        """Accept a Postgres array literal such as ``{"Math","Science"}``."""
        if value is None:
            return ()
        if isinstance(value, str):
            cleaned = value.strip().removeprefix("{").removesuffix("}").replace('"', "")
            return tuple(s.strip() for s in cleaned.split(",") if s.strip())
        return value


# ---------------------------------------------------------------------------
# Subjects
# ---------------------------------------------------------------------------

class SubjectItem(SchoolRecord):
    """A subject.  Classes reference it only through mapping rows."""
    id: EntityId
    subject_name: str = Field("", validation_alias=_alias("subject_name", "subjectName"))
    subject_description: str | None = Field(
        None, validation_alias=_alias("subject_description", "subjectDescription")
    )


# ---------------------------------------------------------------------------
# Exams (read-only)
# ---------------------------------------------------------------------------

class Exam(SchoolRecord):
    id: EntityId
    title: str = ""
    term: str = ""
    class_id: OptionalRef = Field(None, validation_alias=_alias("class_id", "classId"))
    class_name: str = Field("", validation_alias=_alias("class_name", "className"))
    start_date: str | None = Field(None, validation_alias=_alias("start_date", "startDate"))
    end_date: str | None = Field(None, validation_alias=_alias("end_date", "endDate"))


class ExamSubject(SchoolRecord):
    id: OptionalRef = None
    subject_id: OptionalRef = Field(None, validation_alias=_alias("subject_id", "subjectId"))
    subject_name: str = Field("", validation_alias=_alias("subject_name", "subjectName"))
    exam_date: str | None = Field(None, validation_alias=_alias("exam_date", "examDate"))
    start_time: str | None = Field(None, validation_alias=_alias("start_time", "startTime"))
    end_time: str | None = Field(None, validation_alias=_alias("end_time", "endTime"))
    max_marks: float | None = Field(None, validation_alias=_alias("max_marks", "maxMarks"))
