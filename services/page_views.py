"""Page view builders — pure functions of (snapshot, viewer scope).

Each builder narrows the snapshot through the viewer's scope and resolves
foreign keys to display names.  Nothing here performs I/O or mutates the
snapshot; a view is rebuilt on every request.
"""

from __future__ import annotations

from models.data import ClassItem, EntityStatus, Exam, ExamSubject, StaffItem, StudentItem
from models.views import (
    ClassDetailPage,
    ClassesPage,
    ClassRow,
    DashboardPage,
    ExamSchedulePage,
    ExamSubjectRow,
    StaffPage,
    StaffRow,
    StudentClassesPage,
    StudentRow,
    StudentsPage,
    SubjectRow,
    SubjectsPage,
    TeacherClassesPage,
    TeacherClassRow,
    TeacherSubjectCard,
    TeacherSubjectsPage,
)
from services.access_control import ViewerScope
from services.school_data import (
    SchoolSnapshot,
    class_label,
    find_by_id,
    resolve_reference,
    students_in_class,
    subject_name,
    subjects_for_class,
    teacher_name,
)


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------

def class_row(snapshot: SchoolSnapshot, cls: ClassItem) -> ClassRow:
    return ClassRow(
        id=cls.id,
        grade=cls.grade,
        section=cls.section,
        label=cls.label,
        class_teacher_id=cls.class_teacher_id,
        class_teacher_name=teacher_name(snapshot, cls.class_teacher_id),
        student_count=cls.student_count or len(students_in_class(snapshot, cls.id)),
        subjects=subjects_for_class(snapshot, cls.id),
    )


def student_row(snapshot: SchoolSnapshot, student: StudentItem) -> StudentRow:
    return StudentRow(
        id=student.id,
        full_name=student.full_name,
        student_email=student.student_email,
        gender=student.gender,
        class_id=student.class_id,
        class_label=class_label(snapshot, student.class_id),
        parent_name=student.parent_name,
        parent_contact=student.parent_contact,
        admission_date=student.admission_date,
        status=student.status,
    )


def staff_row(snapshot: SchoolSnapshot, teacher: StaffItem) -> StaffRow:
    return StaffRow(
        id=teacher.id,
        full_name=teacher.full_name,
        email=teacher.email,
        phone_number=teacher.phone_number,
        status=teacher.status,
        subject_specialization=list(teacher.subject_specialization),
        class_teacher_of=[c.label for c in snapshot.classes if c.class_teacher_id == teacher.id],
    )


# Numeric grades order numerically and before named ones ("Nursery", "KG").
def class_sort_key(cls: ClassItem) -> tuple[int, int, str, str]:
    grade = cls.grade.strip()
    if grade.isdigit():
        return (0, int(grade), "", cls.section)
    return (1, 0, grade, cls.section)


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------

def build_dashboard_page(snapshot: SchoolSnapshot, scope: ViewerScope) -> DashboardPage:
    """Totals for the landing dashboard, counted over the viewer's scope."""
    students = scope.students(snapshot)
    page = DashboardPage(
        role=scope.role.value,
        school_name=snapshot.school.name if snapshot.school else "",
        total_students=len(students),
        active_students=sum(1 for s in students if s.status is EntityStatus.ACTIVE),
        total_classes=len(scope.classes(snapshot)),
        total_subjects=len(scope.subjects(snapshot)),
    )
    if scope.class_ids is None:
        page.total_staff = len(snapshot.teachers)
        page.active_staff = sum(1 for t in snapshot.teachers if t.status is EntityStatus.ACTIVE)
    return page


def build_students_page(snapshot: SchoolSnapshot, scope: ViewerScope) -> StudentsPage:
    students = scope.students(snapshot)
    return StudentsPage(
        total_students=len(students),
        class_count=len(scope.classes(snapshot)),
        students=[student_row(snapshot, s) for s in students],
    )


def build_staff_page(snapshot: SchoolSnapshot) -> StaffPage:
    """Staff directory; only school admins reach it, so it is never scoped."""
    return StaffPage(
        total_staff=len(snapshot.teachers),
        active_staff=sum(1 for t in snapshot.teachers if t.status is EntityStatus.ACTIVE),
        staff=[staff_row(snapshot, t) for t in snapshot.teachers],
    )


def build_classes_page(
    snapshot: SchoolSnapshot, scope: ViewerScope, can_manage: bool
) -> ClassesPage:
    classes = sorted(scope.classes(snapshot), key=class_sort_key)
    return ClassesPage(
        classes=[class_row(snapshot, c) for c in classes],
        can_manage=can_manage,
    )


def build_class_detail_page(
    snapshot: SchoolSnapshot, scope: ViewerScope, class_id: str
) -> ClassDetailPage | None:
    """``None`` when the class does not exist or is outside the viewer's scope."""
    cls = find_by_id(snapshot.classes, class_id)
    if cls is None or not scope.can_see_class(cls.id):
        return None
    return ClassDetailPage(
        class_=class_row(snapshot, cls),
        students=[student_row(snapshot, s) for s in students_in_class(snapshot, cls.id)],
    )


def build_subjects_page(
    snapshot: SchoolSnapshot, scope: ViewerScope, can_manage: bool
) -> SubjectsPage:
    visible_classes = scope.classes(snapshot)
    rows = []
    for subject in scope.subjects(snapshot):
        class_count = sum(
            1 for c in visible_classes
            if any(row.subject_id == subject.id for row in c.subjects)
        )
        rows.append(SubjectRow(
            id=subject.id,
            subject_name=subject.subject_name,
            subject_description=subject.subject_description,
            class_count=class_count,
        ))
    return SubjectsPage(subjects=rows, can_manage=can_manage)


def build_teacher_subjects_page(
    snapshot: SchoolSnapshot, scope: ViewerScope
) -> TeacherSubjectsPage:
    """"My Subjects": per visible class, the subjects this teacher teaches there."""
    cards = []
    for cls in scope.classes(snapshot):
        taught = [
            view for view in subjects_for_class(snapshot, cls.id)
            if scope.teacher_id is None or view.teacher_id == scope.teacher_id
        ]
        if taught:
            cards.append(TeacherSubjectCard(
                class_id=cls.id,
                class_label=cls.label,
                subjects=taught,
            ))
    return TeacherSubjectsPage(classes=cards)


def build_teacher_classes_page(
    snapshot: SchoolSnapshot, scope: ViewerScope
) -> TeacherClassesPage:
    rows = []
    for cls in sorted(scope.classes(snapshot), key=class_sort_key):
        is_class_teacher = scope.teacher_id is not None and cls.class_teacher_id == scope.teacher_id
        rows.append(TeacherClassRow(
            class_id=cls.id,
            class_label=cls.label,
            student_count=cls.student_count or len(students_in_class(snapshot, cls.id)),
            is_class_teacher=is_class_teacher,
            subjects=[
                view for view in subjects_for_class(snapshot, cls.id)
                if view.teacher_id is not None and view.teacher_id == scope.teacher_id
            ],
        ))
    return TeacherClassesPage(classes=rows)


def build_student_classes_page(
    snapshot: SchoolSnapshot, scope: ViewerScope
) -> StudentClassesPage:
    """The student's own class with its subjects and teachers."""
    classes = scope.classes(snapshot)
    if not classes:
        return StudentClassesPage()
    cls = classes[0]
    return StudentClassesPage(
        class_=class_row(snapshot, cls),
        classmate_count=max(len(students_in_class(snapshot, cls.id)) - 1, 0),
    )


def build_exam_schedule_page(
    snapshot: SchoolSnapshot, exam: Exam, subjects: list[ExamSubject]
) -> ExamSchedulePage:
    """Exam header plus its subjects ordered by exam date, then start time."""
    ordered = sorted(
        subjects,
        key=lambda s: (s.exam_date or "9999-12-31", s.start_time or "99:99"),
    )
    rows = [
        ExamSubjectRow(
            subject_id=s.subject_id,
            subject_name=s.subject_name or subject_name(snapshot, s.subject_id),
            exam_date=s.exam_date,
            start_time=s.start_time,
            end_time=s.end_time,
            max_marks=s.max_marks,
        )
        for s in ordered
    ]
    class_name = exam.class_name or resolve_reference(
        snapshot.classes, exam.class_id, lambda c: c.label, ""
    )
    return ExamSchedulePage(
        exam_id=exam.id,
        title=exam.title,
        term=exam.term,
        class_name=class_name,
        start_date=exam.start_date,
        end_date=exam.end_date,
        subjects=rows,
    )
