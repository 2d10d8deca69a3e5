"""Custom exception hierarchy for the school data portal."""

from errors.exceptions import (
    AccessDenied,
    ApiHttpError,
    FetchError,
    FormValidationError,
    MutationError,
    NetworkFailure,
    PartialCreationFailure,
    PortalError,
    ResponseParseError,
)

__all__ = [
    "AccessDenied",
    "ApiHttpError",
    "FetchError",
    "FormValidationError",
    "MutationError",
    "NetworkFailure",
    "PartialCreationFailure",
    "PortalError",
    "ResponseParseError",
]
