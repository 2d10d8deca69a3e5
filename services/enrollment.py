"""Two-step account + profile creation for students and staff.

Creating a student or staff member needs two writes:

1. ``POST /register/user`` creates the login account and returns its id;
2. ``POST /students`` (or ``/teachers``) creates the profile referencing it.

There is no transaction spanning both.  If step 2 fails the account from
step 1 is orphaned: when ``account_compensation_path`` is configured a
compensating ``DELETE`` is attempted, and either way the caller receives a
:class:`PartialCreationFailure` carrying the orphaned user id.
"""

from __future__ import annotations

import logging
from typing import Any

from adapters.collection_adapter import unwrap_data
from config.settings import get_settings
from errors.exceptions import MutationError, PartialCreationFailure
from models.forms import StaffForm, StudentForm, validate_form
from models.session import Role
from services.mutations import FormDialog, MutationExecutor, MutationResult

logger = logging.getLogger(__name__)

REGISTER_PATH = "/register/user"


class EnrollmentService:
    """Creates students and staff members for one school."""

    def __init__(
        self,
        executor: MutationExecutor,
        school_id: str | None,
        compensation_path: str | None = None,
    ) -> None:
        self._executor = executor
        self._school_id = school_id
        if compensation_path is None:
            compensation_path = get_settings().account_compensation_path
        self._compensation_path = compensation_path

    # -- saga ----------------------------------------------------------------

    async def create_account_with_profile(
        self,
        account: dict[str, Any],
        profile_path: str,
        profile: dict[str, Any],
        step_label: str,
    ) -> Any:
        """Run both steps; returns the created profile.

        Raises:
            MutationError: step 1 failed (nothing was created).
            PartialCreationFailure: step 1 succeeded, step 2 failed.
        """
        created = unwrap_data(await self._executor.send("POST", REGISTER_PATH, account))
        user_id = created.get("id") if isinstance(created, dict) else None
        if user_id is None:
            raise MutationError("POST", REGISTER_PATH, 0, "Failed to create user")
        user_id = str(user_id)
        logger.info("Login account created — user_id=%s role=%s", user_id, account.get("role"))

        body = {**profile, "user_id": user_id, "school_id": self._school_id}
        try:
            return await self._executor.send("POST", profile_path, body)
        except MutationError as exc:
            logger.warning(
                "%s failed after account %s was created: %s",
                step_label, user_id, exc.message or exc.status,
            )
            compensated = await self._compensate(user_id)
            raise PartialCreationFailure(
                step=step_label,
                orphan_id=user_id,
                cause=exc,
                compensated=compensated,
            ) from exc

    async def _compensate(self, user_id: str) -> bool:
        if not self._compensation_path:
            return False
        path = self._compensation_path.format(user_id=user_id)
        try:
            await self._executor.send("DELETE", path)
        except MutationError as exc:
            logger.error("Compensating delete of user %s failed (%s)", user_id, exc.status)
            return False
        logger.info("Orphaned account %s removed", user_id)
        return True

    # -- form entry points ---------------------------------------------------

    async def enroll_student(
        self, values: dict[str, Any], *, dialog: FormDialog | None = None
    ) -> MutationResult:
        """Validate a student form and create account + student profile.

        Raises:
            FormValidationError: before any request is sent.
        """
        form = validate_form(StudentForm, values, creating=True)
        account = _account_body(form.full_name, form.student_email, form.password, Role.STUDENT)
        return await self._executor.run(
            lambda: self.create_account_with_profile(
                account, "/students", form.payload(), "Creating student profile"
            ),
            dialog=dialog,
            success_message="Student added",
            failure_message="Failed to create student",
        )

    async def enroll_staff(
        self, values: dict[str, Any], *, dialog: FormDialog | None = None
    ) -> MutationResult:
        """Validate a staff form and create account + teacher profile."""
        form = validate_form(StaffForm, values, creating=True)
        account = _account_body(form.full_name, form.email, form.password, Role.STAFF)
        return await self._executor.run(
            lambda: self.create_account_with_profile(
                account, "/teachers", form.payload(), "Creating staff profile"
            ),
            dialog=dialog,
            success_message="New staff member added successfully",
            failure_message="Failed to create staff",
        )


def _account_body(name: str, email: str, password: str | None, role: Role) -> dict[str, Any]:
    return {
        "name": name,
        "email": email,
        "password": password,
        "confirmPassword": password,
        "role": role.value,
    }
