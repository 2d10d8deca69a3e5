"""Mutation API — create / update / delete / toggle-status.

Endpoints:
- ``POST /api/students``               ``PUT /api/students/{id}``
- ``DELETE /api/students/{id}``        ``PUT /api/students/{id}/status``
- ``POST /api/teachers``               ``PUT /api/teachers/{id}``
- ``DELETE /api/teachers/{id}``        ``PUT /api/teachers/{id}/status``
- ``POST /api/classes``                ``PUT /api/classes/{id}``
- ``DELETE /api/classes/{id}``
- ``POST /api/subjects``               ``PUT /api/subjects/{id}``
- ``DELETE /api/subjects/{id}``
- ``POST /api/class-subjects``         ``PUT /api/class-subjects/{id}``
- ``DELETE /api/class-subjects/{id}``

Request bodies are the raw form values.  Forms are validated before any
request reaches the school API; a rejected form answers ``422`` with one
message per field.  Every other outcome carries the session's pending
notifications, so the client can show the success or failure toast.
Form endpoints also return the dialog: closed after a success, still open
with the submitted values after a rejection.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from starlette.responses import JSONResponse

from api.deps import check_action, deny, ready_snapshot, require_action, viewer_scope
from errors.exceptions import FormValidationError, MutationError
from models.errors import error_code_for
from models.forms import (
    ClassForm,
    ClassSubjectForm,
    StaffForm,
    StudentForm,
    SubjectForm,
    validate_form,
)
from models.views import DialogState, MutationResponse
from services.access_control import ACCESS_DENIED_REASON, Action
from services.mutations import FormDialog, MutationResult
from services.school_data import find_by_id
from services.session_store import PortalSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["mutations"])


# ── Response helpers ────────────────────────────────────────


def _status_for(result: MutationResult) -> int:
    if result.ok:
        return 200
    if result.dropped:
        return 410
    error = result.error
    if isinstance(error, MutationError) and 400 <= error.status < 500:
        return error.status
    return 502


def _dialog_state(dialog: FormDialog | None) -> DialogState | None:
    if dialog is None:
        return None
    return DialogState(open=dialog.is_open, submitting=dialog.submitting, values=dialog.values)


def _respond(
    session: PortalSession, result: MutationResult, dialog: FormDialog | None = None
) -> JSONResponse:
    body = MutationResponse(
        ok=result.ok,
        data=result.data,
        error_code=error_code_for(result.error) if result.error else None,
        dialog=_dialog_state(dialog),
        notifications=session.notifications.drain(),
    )
    return JSONResponse(
        status_code=_status_for(result),
        content=body.model_dump(mode="json", by_alias=True),
    )


def _invalid_form(
    session: PortalSession, exc: FormValidationError, dialog: FormDialog
) -> JSONResponse:
    body = MutationResponse(
        ok=False,
        error_code=error_code_for(exc),
        field_errors=exc.field_errors,
        dialog=_dialog_state(dialog),
        notifications=session.notifications.drain(),
    )
    return JSONResponse(status_code=422, content=body.model_dump(mode="json", by_alias=True))


def _dialog(values: dict[str, Any]) -> FormDialog:
    return FormDialog(values=dict(values))


def _require_visible_student(session: PortalSession, student_id: str):
    snapshot = ready_snapshot(session)
    student = find_by_id(snapshot.students, student_id)
    if student is None:
        raise HTTPException(status_code=404, detail=f"Student {student_id} not found")
    if not viewer_scope(session, snapshot).can_see_student(student.id):
        raise deny(session, ACCESS_DENIED_REASON)
    return student


def _require_visible_class(session: PortalSession, class_id: str):
    snapshot = ready_snapshot(session)
    cls = find_by_id(snapshot.classes, class_id)
    if cls is None:
        raise HTTPException(status_code=404, detail=f"Class {class_id} not found")
    if not viewer_scope(session, snapshot).can_see_class(cls.id):
        raise deny(session, ACCESS_DENIED_REASON)
    return cls


# ── Students ────────────────────────────────────────────────


@router.post("/students")
async def create_student(
    values: dict[str, Any] = Body(...),
    session: PortalSession = Depends(require_action(Action.CREATE_STUDENT)),
):
    dialog = _dialog(values)
    try:
        result = await session.enrollment().enroll_student(values, dialog=dialog)
    except FormValidationError as exc:
        return _invalid_form(session, exc, dialog)
    return _respond(session, result, dialog)


@router.put("/students/{student_id}")
async def update_student(
    student_id: str,
    values: dict[str, Any] = Body(...),
    session: PortalSession = Depends(require_action(Action.UPDATE_STUDENT)),
):
    _require_visible_student(session, student_id)
    dialog = _dialog(values)
    try:
        form = validate_form(StudentForm, values)
    except FormValidationError as exc:
        return _invalid_form(session, exc, dialog)
    if not viewer_scope(session, ready_snapshot(session)).can_see_class(form.class_id):
        # Staff may not move a student into a class they cannot see.
        raise deny(session, ACCESS_DENIED_REASON)
    result = await session.commands("/students", "Student").update(
        student_id, form.payload(), dialog=dialog
    )
    return _respond(session, result, dialog)


@router.delete("/students/{student_id}")
async def delete_student(
    student_id: str,
    session: PortalSession = Depends(require_action(Action.DELETE_STUDENT)),
):
    result = await session.commands("/students", "Student").delete(student_id)
    return _respond(session, result)


@router.put("/students/{student_id}/status")
async def toggle_student_status(
    student_id: str,
    session: PortalSession = Depends(require_action(Action.TOGGLE_STUDENT_STATUS)),
):
    student = _require_visible_student(session, student_id)
    result = await session.commands("/students", "Student").toggle_status(student.id, student.status)
    return _respond(session, result)


# ── Staff ───────────────────────────────────────────────────


@router.post("/teachers")
async def create_teacher(
    values: dict[str, Any] = Body(...),
    session: PortalSession = Depends(require_action(Action.CREATE_STAFF)),
):
    dialog = _dialog(values)
    try:
        result = await session.enrollment().enroll_staff(values, dialog=dialog)
    except FormValidationError as exc:
        return _invalid_form(session, exc, dialog)
    return _respond(session, result, dialog)


@router.put("/teachers/{teacher_id}")
async def update_teacher(
    teacher_id: str,
    values: dict[str, Any] = Body(...),
    session: PortalSession = Depends(require_action(Action.UPDATE_STAFF)),
):
    dialog = _dialog(values)
    try:
        form = validate_form(StaffForm, values)
    except FormValidationError as exc:
        return _invalid_form(session, exc, dialog)
    result = await session.commands("/teachers", "Staff").update(
        teacher_id, form.payload(), dialog=dialog
    )
    return _respond(session, result, dialog)


@router.delete("/teachers/{teacher_id}")
async def delete_teacher(
    teacher_id: str,
    session: PortalSession = Depends(require_action(Action.DELETE_STAFF)),
):
    result = await session.commands("/teachers", "Staff").delete(teacher_id)
    return _respond(session, result)


@router.put("/teachers/{teacher_id}/status")
async def toggle_teacher_status(
    teacher_id: str,
    session: PortalSession = Depends(require_action(Action.TOGGLE_STAFF_STATUS)),
):
    snapshot = ready_snapshot(session)
    teacher = find_by_id(snapshot.teachers, teacher_id)
    if teacher is None:
        raise HTTPException(status_code=404, detail=f"Staff member {teacher_id} not found")
    result = await session.commands("/teachers", "Staff").toggle_status(teacher.id, teacher.status)
    return _respond(session, result)


# ── Classes ─────────────────────────────────────────────────


@router.post("/classes")
async def create_class(
    values: dict[str, Any] = Body(...),
    session: PortalSession = Depends(require_action(Action.CREATE_CLASS)),
):
    dialog = _dialog(values)
    try:
        form = validate_form(ClassForm, values)
    except FormValidationError as exc:
        return _invalid_form(session, exc, dialog)
    body = {**form.payload(), "school_id": session.aggregator.school_id}
    result = await session.commands("/classes", "Class").create(body, dialog=dialog)
    return _respond(session, result, dialog)


@router.put("/classes/{class_id}")
async def update_class(
    class_id: str,
    values: dict[str, Any] = Body(...),
    session: PortalSession = Depends(require_action(Action.UPDATE_CLASS)),
):
    cls = _require_visible_class(session, class_id)
    dialog = _dialog(values)
    try:
        form = validate_form(ClassForm, values)
    except FormValidationError as exc:
        return _invalid_form(session, exc, dialog)
    if form.class_teacher_id != cls.class_teacher_id:
        check_action(session, Action.ASSIGN_CLASS_TEACHER)
    body = {**form.payload(), "class_teacher_id": form.class_teacher_id}
    result = await session.commands("/classes", "Class").update(
        cls.id, body, dialog=dialog
    )
    return _respond(session, result, dialog)


@router.delete("/classes/{class_id}")
async def delete_class(
    class_id: str,
    session: PortalSession = Depends(require_action(Action.DELETE_CLASS)),
):
    result = await session.commands("/classes", "Class").delete(class_id)
    return _respond(session, result)


# ── Subjects ────────────────────────────────────────────────


@router.post("/subjects")
async def create_subject(
    values: dict[str, Any] = Body(...),
    session: PortalSession = Depends(require_action(Action.CREATE_SUBJECT)),
):
    dialog = _dialog(values)
    try:
        form = validate_form(SubjectForm, values)
    except FormValidationError as exc:
        return _invalid_form(session, exc, dialog)
    body = {**form.payload(), "school_id": session.aggregator.school_id}
    result = await session.commands("/subjects", "Subject").create(body, dialog=dialog)
    return _respond(session, result, dialog)


@router.put("/subjects/{subject_id}")
async def update_subject(
    subject_id: str,
    values: dict[str, Any] = Body(...),
    session: PortalSession = Depends(require_action(Action.UPDATE_SUBJECT)),
):
    dialog = _dialog(values)
    try:
        form = validate_form(SubjectForm, values)
    except FormValidationError as exc:
        return _invalid_form(session, exc, dialog)
    result = await session.commands("/subjects", "Subject").update(
        subject_id, form.payload(), dialog=dialog
    )
    return _respond(session, result, dialog)


@router.delete("/subjects/{subject_id}")
async def delete_subject(
    subject_id: str,
    session: PortalSession = Depends(require_action(Action.DELETE_SUBJECT)),
):
    result = await session.commands("/subjects", "Subject").delete(subject_id)
    return _respond(session, result)


# ── Class-subject assignments ───────────────────────────────


@router.post("/class-subjects")
async def assign_class_subject(
    values: dict[str, Any] = Body(...),
    session: PortalSession = Depends(require_action(Action.MANAGE_CLASS_SUBJECTS)),
):
    dialog = _dialog(values)
    try:
        form = validate_form(ClassSubjectForm, values)
    except FormValidationError as exc:
        return _invalid_form(session, exc, dialog)
    result = await session.commands("/class-subjects", "Assignment").create(
        form.payload(), dialog=dialog
    )
    return _respond(session, result, dialog)


@router.put("/class-subjects/{mapping_id}")
async def update_class_subject(
    mapping_id: str,
    values: dict[str, Any] = Body(...),
    session: PortalSession = Depends(require_action(Action.MANAGE_CLASS_SUBJECTS)),
):
    dialog = _dialog(values)
    try:
        form = validate_form(ClassSubjectForm, values)
    except FormValidationError as exc:
        return _invalid_form(session, exc, dialog)
    # An unassigned teacher is sent as an explicit null.
    body = {**form.payload(), "teacher_id": form.teacher_id}
    result = await session.commands("/class-subjects", "Assignment").update(
        mapping_id, body, dialog=dialog
    )
    return _respond(session, result, dialog)


@router.delete("/class-subjects/{mapping_id}")
async def remove_class_subject(
    mapping_id: str,
    session: PortalSession = Depends(require_action(Action.MANAGE_CLASS_SUBJECTS)),
):
    result = await session.commands("/class-subjects", "Assignment").delete(mapping_id)
    return _respond(session, result)
