"""Tests for models/forms.py — client-side form validation."""

from datetime import date

import pytest

from errors.exceptions import FormValidationError
from models.forms import (
    ClassForm,
    ClassSubjectForm,
    StaffForm,
    StudentForm,
    SubjectForm,
    validate_form,
)


def _student(**overrides):
    values = {
        "full_name": "Dan Ho",
        "student_email": "dan@school.test",
        "password": "secret1",
        "confirm_password": "secret1",
        "dob": "2015-04-02",
        "gender": "male",
        "class_id": 10,
        "parent_contact": "0123456789",
        "admission_date": "2024-09-01",
    }
    values.update(overrides)
    return values


def test_valid_student_form():
    form = validate_form(StudentForm, _student(), creating=True)
    assert form.class_id == "10"
    assert form.dob == date(2015, 4, 2)
    payload = form.payload()
    assert "password" not in payload
    assert "confirm_password" not in payload
    assert payload["dob"] == "2015-04-02"
    assert payload["status"] == "Active"


def test_password_mismatch_is_reported():
    with pytest.raises(FormValidationError) as exc_info:
        validate_form(StudentForm, _student(confirm_password="other1"), creating=True)
    assert exc_info.value.field_errors["confirm_password"] == "Passwords do not match"


def test_password_required_when_creating():
    values = _student(password=None, confirm_password=None)
    with pytest.raises(FormValidationError):
        validate_form(StudentForm, values, creating=True)
    # Editing keeps the existing password.
    assert validate_form(StudentForm, values).password is None


def test_short_password_rejected():
    with pytest.raises(FormValidationError):
        validate_form(StudentForm, _student(password="abc", confirm_password="abc"), creating=True)


@pytest.mark.parametrize("field,value", [
    ("full_name", "D"),
    ("student_email", "not-an-email"),
    ("gender", "unknown"),
    ("parent_contact", "12345"),
])
def test_student_field_errors(field, value):
    with pytest.raises(FormValidationError) as exc_info:
        validate_form(StudentForm, _student(**{field: value}), creating=True)
    assert field in exc_info.value.field_errors


def test_missing_class_is_field_error():
    values = _student()
    del values["class_id"]
    with pytest.raises(FormValidationError) as exc_info:
        validate_form(StudentForm, values, creating=True)
    assert exc_info.value.field_errors["class_id"] == "Please select a class"


def test_staff_form():
    form = validate_form(StaffForm, {
        "full_name": "Rita Roy",
        "email": "rita@school.test",
        "phone_number": "0987654321",
        "gender": "female",
        "subject_specialization": ["Math"],
        "password": "secret1",
        "confirm_password": "secret1",
    }, creating=True)
    assert form.joining_date == date.today()
    assert form.payload()["subject_specialization"] == ["Math"]


def test_staff_phone_too_short():
    with pytest.raises(FormValidationError) as exc_info:
        validate_form(StaffForm, {
            "full_name": "Rita Roy", "email": "rita@school.test",
            "phone_number": "123", "gender": "female",
        })
    assert "phone_number" in exc_info.value.field_errors


def test_class_form_grade_number():
    form = validate_form(ClassForm, {"grade": 7, "section": "C"})
    assert form.grade == "7"
    assert form.payload() == {"grade": "7", "section": "C"}


def test_class_form_requires_section():
    with pytest.raises(FormValidationError) as exc_info:
        validate_form(ClassForm, {"grade": "7", "section": " "})
    assert "section" in exc_info.value.field_errors


def test_subject_name_min_length():
    with pytest.raises(FormValidationError):
        validate_form(SubjectForm, {"subject_name": "A"})
    assert validate_form(SubjectForm, {"subject_name": "Art"}).subject_name == "Art"


def test_class_subject_form_unassigned_teacher():
    form = validate_form(ClassSubjectForm, {"class_id": 10, "subject_id": 200, "teacher_id": ""})
    assert form.teacher_id is None
    assert form.payload() == {"class_id": "10", "subject_id": "200"}


def test_class_subject_form_requires_subject():
    with pytest.raises(FormValidationError, match="Please select a subject"):
        validate_form(ClassSubjectForm, {"class_id": 10})
