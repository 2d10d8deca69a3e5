"""User-facing notifications and the mapping from portal errors to them.

Every failure class — network, HTTP, client-side validation, partial
creation — is shown the same way: a dismissible notification with a short
title and a descriptive message.
"""

from __future__ import annotations

import time
from enum import Enum

from pydantic import Field

from errors.exceptions import (
    AccessDenied,
    ApiHttpError,
    FetchError,
    FormValidationError,
    MutationError,
    NetworkFailure,
    PartialCreationFailure,
    PortalError,
)
from models.base import CamelModel

GENERIC_FAILURE_MESSAGE = "Something went wrong. Please try again."


class NotificationVariant(str, Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


class Notification(CamelModel):
    """A toast shown to the user."""

    title: str
    description: str
    variant: NotificationVariant = NotificationVariant.DEFAULT
    created_at: float = Field(default_factory=time.time)


class ErrorCode(str, Enum):
    """Error codes returned in API error bodies."""

    ACCESS_DENIED = "ACCESS_DENIED"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    DATA_UNAVAILABLE = "DATA_UNAVAILABLE"
    DATA_LOADING = "DATA_LOADING"
    NETWORK_FAILURE = "NETWORK_FAILURE"
    HTTP_ERROR = "HTTP_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    PARTIAL_CREATION = "PARTIAL_CREATION"
    INTERNAL_ERROR = "INTERNAL_ERROR"


def success(description: str, title: str = "Success") -> Notification:
    return Notification(title=title, description=description)


def failure(description: str, title: str = "Error") -> Notification:
    return Notification(
        title=title,
        description=description or GENERIC_FAILURE_MESSAGE,
        variant=NotificationVariant.DESTRUCTIVE,
    )


def error_code_for(exc: BaseException) -> ErrorCode:
    """Classify an exception into an :class:`ErrorCode`."""
    if isinstance(exc, AccessDenied):
        return ErrorCode.ACCESS_DENIED
    if isinstance(exc, PartialCreationFailure):
        return ErrorCode.PARTIAL_CREATION
    if isinstance(exc, FormValidationError):
        return ErrorCode.VALIDATION_ERROR
    if isinstance(exc, NetworkFailure):
        return ErrorCode.NETWORK_FAILURE
    if isinstance(exc, (ApiHttpError, MutationError)):
        return ErrorCode.HTTP_ERROR
    if isinstance(exc, FetchError):
        return ErrorCode.DATA_UNAVAILABLE
    return ErrorCode.INTERNAL_ERROR


def to_notification(exc: BaseException) -> Notification:
    """Turn any failure into the destructive notification shown to the user."""
    if isinstance(exc, PortalError):
        return failure(exc.message, title=exc.title)
    return failure(GENERIC_FAILURE_MESSAGE)
