"""Form models — client-side validation before any request is sent.

A form that fails validation raises :class:`FormValidationError` carrying a
``field → message`` map; the network is never touched.  Forms serialize to
the JSON payload the school API expects via :meth:`FormModel.payload`.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Literal, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from errors.exceptions import FormValidationError
from models.data import EntityStatus, OptionalRef

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_MIN_PASSWORD = 6

F = TypeVar("F", bound="FormModel")


class FormModel(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    def payload(self) -> dict[str, Any]:
        """JSON body for the school API (passwords are never included)."""
        return self.model_dump(
            mode="json",
            exclude={"password", "confirm_password"},
            exclude_none=True,
        )


def _check_email(value: str) -> str:
    if not _EMAIL_RE.match(value):
        raise ValueError("Please enter a valid email address")
    return value


class PasswordFields(FormModel):
    """Password + confirmation, required only when an account is created.

    Validated with ``context={"creating": True}`` on create; on edit both may
    be left empty to keep the current password.
    """

    password: str | None = Field(None, validate_default=True)
    confirm_password: str | None = Field(None, validate_default=True)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str | None, info: ValidationInfo) -> str | None:
        creating = bool(info.context and info.context.get("creating"))
        if creating and not value:
            raise ValueError("Password is required")
        if value and len(value) < _MIN_PASSWORD:
            raise ValueError(f"Password must be at least {_MIN_PASSWORD} characters")
        return value

    @field_validator("confirm_password")
    @classmethod
    def validate_confirm_password(cls, value: str | None, info: ValidationInfo) -> str | None:
        password = info.data.get("password")
        if (password or value) and password != value:
            raise ValueError("Passwords do not match")
        return value


class StudentForm(PasswordFields):
    full_name: str = Field(min_length=2)
    student_email: str
    status: EntityStatus = EntityStatus.ACTIVE
    dob: date
    gender: Literal["male", "female", "other"]
    class_id: OptionalRef = Field(None, validate_default=True)
    parent_name: str = ""
    parent_contact: str = Field(min_length=10)
    admission_date: date
    address: str = ""

    @field_validator("student_email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("class_id")
    @classmethod
    def validate_class_selected(cls, value: str | None) -> str:
        if not value:
            raise ValueError("Please select a class")
        return value


class StaffForm(PasswordFields):
    full_name: str = Field(min_length=2)
    email: str
    status: EntityStatus = EntityStatus.ACTIVE
    phone_number: str = Field(min_length=10)
    subject_specialization: list[str] = Field(default_factory=list)
    gender: str = Field(min_length=1)
    joining_date: date = Field(default_factory=date.today)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("subject_specialization")
    @classmethod
    def validate_subjects(cls, value: list[str]) -> list[str]:
        if any(not s.strip() for s in value):
            raise ValueError("Each subject must be at least 1 character")
        return value


class ClassForm(FormModel):
    grade: str = Field(min_length=1)
    section: str = Field(min_length=1)
    class_teacher_id: OptionalRef = None

    @field_validator("grade", mode="before")
    @classmethod
    def grade_as_text(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class SubjectForm(FormModel):
    subject_name: str = Field(min_length=2)
    subject_description: str | None = None


class ClassSubjectForm(FormModel):
    class_id: OptionalRef = None
    subject_id: OptionalRef = None
    teacher_id: OptionalRef = None

    @model_validator(mode="after")
    def validate_references(self) -> ClassSubjectForm:
        if not self.class_id:
            raise ValueError("Please select a class")
        if not self.subject_id:
            raise ValueError("Please select a subject")
        return self


# ---------------------------------------------------------------------------
# Validation entry point
# ---------------------------------------------------------------------------

def _field_errors(exc: ValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "__form__"
        message = str(err.get("msg", "Invalid value")).removeprefix("Value error, ")
        errors.setdefault(loc, message)
    return errors


def validate_form(model: type[F], values: dict[str, Any], *, creating: bool = False) -> F:
    """Validate raw form *values* into *model*.

    Raises:
        FormValidationError: with one message per offending field.
    """
    try:
        return model.model_validate(values, context={"creating": creating})
    except ValidationError as exc:
        raise FormValidationError(model.__name__, _field_errors(exc)) from exc
