"""Domain-specific exceptions for the school data portal.

These exceptions let the aggregator, the mutation executor and the API layer
distinguish between failure modes.  Every one of them is surfaced to the end
user the same way: a dismissible notification with a short title and a
descriptive message (see :func:`models.errors.to_notification`).
"""

from __future__ import annotations

from typing import Any


class PortalError(Exception):
    """Base class for all portal errors."""

    title = "Error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Transport-level failures (raised by SchoolApiClient)
# ---------------------------------------------------------------------------


class NetworkFailure(PortalError):
    """The request never completed (connection refused, DNS, timeout...)."""

    title = "Network error"

    def __init__(self, method: str, url: str, reason: str) -> None:
        self.method = method
        self.url = url
        self.reason = reason
        super().__init__(f"{method} {url} failed: {reason}")


class ApiHttpError(PortalError):
    """The school API answered with a non-2xx status.

    ``message`` is the ``message`` field of the JSON error body when one is
    present, otherwise a generic ``HTTP <status>`` text.
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        url: str = "",
        server_message: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.url = url
        self.server_message = server_message
        super().__init__(message)

    def __str__(self) -> str:
        return f"School API {self.status_code}: {self.message} ({self.url})"


class ResponseParseError(PortalError):
    """A 2xx response whose body could not be decoded."""

    status_code = 0

    def __init__(self, url: str = "") -> None:
        self.url = url
        super().__init__("parse error")


# ---------------------------------------------------------------------------
# Aggregate load / mutation failures
# ---------------------------------------------------------------------------


class FetchError(PortalError):
    """Loading one named collection failed.

    ``status`` is the HTTP status, or ``0`` for network failures and
    malformed bodies.
    """

    title = "Failed to load school data"

    def __init__(self, collection: str, status: int, message: str) -> None:
        self.collection = collection
        self.status = status
        super().__init__(message)

    def __str__(self) -> str:
        return f"Fetching {self.collection} failed ({self.status}): {self.message}"


class MutationError(PortalError):
    """A create/update/delete/status request was rejected or never completed."""

    def __init__(self, method: str, url: str, status: int, message: str) -> None:
        self.method = method
        self.url = url
        self.status = status
        super().__init__(message)


class FormValidationError(PortalError):
    """Client-side form rejection; never reaches the network."""

    title = "Invalid form"

    def __init__(self, form: str, field_errors: dict[str, str]) -> None:
        self.form = form
        self.field_errors = field_errors
        summary = "; ".join(f"{k}: {v}" for k, v in field_errors.items())
        super().__init__(summary or f"{form} is invalid")


class PartialCreationFailure(PortalError):
    """A two-step creation where step 1 succeeded and step 2 failed.

    ``orphan_id`` is the id of the record created by step 1.  ``compensated``
    tells whether a compensating delete removed it again.
    """

    title = "Partially created"

    def __init__(
        self,
        step: str,
        orphan_id: Any,
        cause: PortalError,
        compensated: bool = False,
    ) -> None:
        self.step = step
        self.orphan_id = orphan_id
        self.cause = cause
        self.compensated = compensated
        reason = cause.message or "request rejected"
        if compensated:
            detail = f"{step} failed: {reason}. The login account was removed again."
        else:
            detail = (
                f"{step} failed: {reason}. "
                f"Login account {orphan_id} was created and needs manual cleanup."
            )
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Access control
# ---------------------------------------------------------------------------


class AccessDenied(PortalError):
    """The viewer's role may not see a page or perform an action."""

    title = "Access Denied"

    def __init__(self, reason: str, redirect_to: str = "/") -> None:
        self.reason = reason
        self.redirect_to = redirect_to
        super().__init__(reason)
