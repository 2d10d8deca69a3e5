"""Page API — role-gated view models built from the session's aggregator.

Endpoints (all ``GET``, all gated before the handler runs):
- ``/api/pages/dashboard``                — headline totals for every role
- ``/api/pages/students``                 — students (scoped per viewer)
- ``/api/pages/staff``                    — staff directory (school admins only)
- ``/api/pages/classes``                  — classes with teacher + subjects
- ``/api/pages/classes/{classId}``        — one class and its students
- ``/api/pages/subjects``                 — subjects with class counts
- ``/api/pages/teacher/subjects``         — a teacher's "My Subjects"
- ``/api/pages/teacher/classes``          — a teacher's "My Classes"
- ``/api/pages/student/classes``          — a student's own class
- ``/api/pages/exams/{examId}/schedule``  — exam schedule

While the aggregator is loading a ``202`` placeholder is returned; after a
failed load a ``503`` placeholder carrying the error.  A viewer denied the
page gets a ``303`` redirect to the landing route instead.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from adapters.exam_adapter import get_exam_with_subjects
from api.deps import (
    PageUnavailable,
    check_resource,
    deny,
    ready_snapshot,
    require_resource,
    viewer_scope,
)
from errors.exceptions import FetchError
from models.errors import to_notification
from models.views import (
    ClassDetailPage,
    ClassesPage,
    DashboardPage,
    ExamSchedulePage,
    PlaceholderPage,
    StaffPage,
    StudentClassesPage,
    StudentsPage,
    SubjectsPage,
    TeacherClassesPage,
    TeacherSubjectsPage,
)
from services.access_control import ACCESS_DENIED_REASON, Action, Allow, Resource, authorize_action
from services.page_views import (
    build_class_detail_page,
    build_classes_page,
    build_dashboard_page,
    build_exam_schedule_page,
    build_staff_page,
    build_student_classes_page,
    build_students_page,
    build_subjects_page,
    build_teacher_classes_page,
    build_teacher_subjects_page,
)
from services.session_store import PortalSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/pages", tags=["pages"])


@router.get("/dashboard", response_model=DashboardPage)
async def dashboard_page(session: PortalSession = Depends(require_resource(Resource.DASHBOARD))):
    snapshot = ready_snapshot(session)
    page = build_dashboard_page(snapshot, viewer_scope(session, snapshot))
    page.notifications = session.notifications.drain()
    return page


@router.get("/students", response_model=StudentsPage)
async def students_page(session: PortalSession = Depends(require_resource(Resource.STUDENTS))):
    snapshot = ready_snapshot(session)
    page = build_students_page(snapshot, viewer_scope(session, snapshot))
    page.notifications = session.notifications.drain()
    return page


@router.get("/staff", response_model=StaffPage)
async def staff_page(session: PortalSession = Depends(require_resource(Resource.STAFF))):
    snapshot = ready_snapshot(session)
    page = build_staff_page(snapshot)
    page.notifications = session.notifications.drain()
    return page


@router.get("/classes", response_model=ClassesPage)
async def classes_page(session: PortalSession = Depends(require_resource(Resource.CLASSES))):
    snapshot = ready_snapshot(session)
    can_manage = isinstance(authorize_action(session.user.role, Action.CREATE_CLASS), Allow)
    page = build_classes_page(snapshot, viewer_scope(session, snapshot), can_manage)
    page.notifications = session.notifications.drain()
    return page


@router.get("/classes/{class_id}", response_model=ClassDetailPage)
async def class_detail_page(
    class_id: str,
    session: PortalSession = Depends(require_resource(Resource.CLASS_DETAIL)),
):
    snapshot = ready_snapshot(session)
    page = build_class_detail_page(snapshot, viewer_scope(session, snapshot), class_id)
    if page is None:
        raise HTTPException(status_code=404, detail=f"Class {class_id} not found")
    page.notifications = session.notifications.drain()
    return page


@router.get("/subjects", response_model=SubjectsPage)
async def subjects_page(session: PortalSession = Depends(require_resource(Resource.SUBJECTS))):
    snapshot = ready_snapshot(session)
    can_manage = isinstance(authorize_action(session.user.role, Action.CREATE_SUBJECT), Allow)
    page = build_subjects_page(snapshot, viewer_scope(session, snapshot), can_manage)
    page.notifications = session.notifications.drain()
    return page


@router.get("/teacher/subjects", response_model=TeacherSubjectsPage)
async def teacher_subjects_page(
    session: PortalSession = Depends(require_resource(Resource.TEACHER_SUBJECTS)),
):
    snapshot = ready_snapshot(session)
    page = build_teacher_subjects_page(snapshot, viewer_scope(session, snapshot))
    page.notifications = session.notifications.drain()
    return page


@router.get("/teacher/classes", response_model=TeacherClassesPage)
async def teacher_classes_page(
    session: PortalSession = Depends(require_resource(Resource.TEACHER_CLASSES)),
):
    snapshot = ready_snapshot(session)
    page = build_teacher_classes_page(snapshot, viewer_scope(session, snapshot))
    page.notifications = session.notifications.drain()
    return page


@router.get("/student/classes", response_model=StudentClassesPage)
async def student_classes_page(
    session: PortalSession = Depends(require_resource(Resource.STUDENT_CLASSES)),
):
    snapshot = ready_snapshot(session)
    page = build_student_classes_page(snapshot, viewer_scope(session, snapshot))
    page.notifications = session.notifications.drain()
    return page


@router.get("/exams/{exam_id}/schedule", response_model=ExamSchedulePage)
async def exam_schedule_page(
    exam_id: str,
    session: PortalSession = Depends(require_resource(Resource.EXAM_SCHEDULE)),
):
    snapshot = ready_snapshot(session)
    try:
        exam, subjects = await get_exam_with_subjects(session.client, exam_id)
    except FetchError as exc:
        session.notifications.push(to_notification(exc))
        raise PageUnavailable(503, PlaceholderPage(
            state="error",
            message=exc.message,
            notifications=session.notifications.drain(),
        )) from exc

    # The session may have changed while the exam was loading.
    check_resource(session, Resource.EXAM_SCHEDULE)
    if session.aggregator.is_closed:
        raise HTTPException(status_code=410, detail="Session closed")
    if exam.class_id and not viewer_scope(session, snapshot).can_see_class(exam.class_id):
        raise deny(session, ACCESS_DENIED_REASON)

    page = build_exam_schedule_page(snapshot, exam, subjects)
    page.notifications = session.notifications.drain()
    return page
