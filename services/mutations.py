"""Mutation command executor — create / update / delete / toggle-status.

Every write follows the same three-phase sequence:

1. mark the submitting form as pending (``dialog.submitting = True``);
2. send exactly one HTTP request;
3. on 2xx: success notification, close the dialog, refetch the aggregator.
   On failure: failure notification carrying the server's ``message`` (or a
   generic text); the dialog stays open with the user's values intact.

The aggregator is reconciled by a full refetch, never by patching local
state.  Nothing is retried.  Concurrent toggles of the same entity from two
clients are not reconciled: last write wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol

from errors.exceptions import (
    ApiHttpError,
    MutationError,
    NetworkFailure,
    PortalError,
    ResponseParseError,
)
from models.data import EntityStatus
from models.errors import failure, success, to_notification
from services.notifications import NotificationCenter
from services.school_data import SchoolDataAggregator

logger = logging.getLogger(__name__)


class ApiWriter(Protocol):
    async def request(self, method: str, path: str, json_body: Any = None) -> Any: ...


@dataclass
class FormDialog:
    """State of an open create/edit dialog."""

    values: dict[str, Any] = field(default_factory=dict)
    is_open: bool = True
    submitting: bool = False

    def close(self) -> None:
        self.is_open = False


@dataclass
class MutationResult:
    ok: bool
    data: Any = None
    error: PortalError | None = None
    dropped: bool = False  # session ended while the request was in flight


class MutationExecutor:
    """Runs writes against the school API and reconciles the aggregator."""

    def __init__(
        self,
        client: ApiWriter,
        aggregator: SchoolDataAggregator,
        notifications: NotificationCenter,
    ) -> None:
        self._client = client
        self._aggregator = aggregator
        self._notifications = notifications

    @property
    def client(self) -> ApiWriter:
        return self._client

    # -- low level -----------------------------------------------------------

    async def send(self, method: str, url: str, body: Any = None) -> Any:
        """Send one request without side effects.

        Raises:
            MutationError: non-2xx status or network failure.
        """
        try:
            return await self._client.request(method, url, json_body=body)
        except ApiHttpError as exc:
            raise MutationError(method, url, exc.status_code, exc.server_message or "") from exc
        except NetworkFailure as exc:
            raise MutationError(method, url, 0, "") from exc
        except ResponseParseError:
            # 2xx with an undecodable body: the write happened.
            logger.warning("%s %s succeeded with an undecodable body", method, url)
            return None

    # -- three-phase execution ----------------------------------------------

    async def execute(
        self,
        method: str,
        url: str,
        body: Any = None,
        *,
        dialog: FormDialog | None = None,
        success_message: str = "Saved successfully",
        failure_message: str = "Request failed",
    ) -> MutationResult:
        """Send one write request with the full notify/close/refetch sequence."""
        return await self.run(
            lambda: self.send(method, url, body),
            dialog=dialog,
            success_message=success_message,
            failure_message=failure_message,
        )

    async def run(
        self,
        operation: Callable[[], Awaitable[Any]],
        *,
        dialog: FormDialog | None = None,
        success_message: str = "Saved successfully",
        failure_message: str = "Request failed",
    ) -> MutationResult:
        """Run *operation* (one or more requests) as a single user action."""
        if dialog is not None:
            dialog.submitting = True
        try:
            data = await operation()
        except MutationError as exc:
            if self._aggregator.is_closed:
                return MutationResult(ok=False, error=exc, dropped=True)
            exc.message = exc.message or failure_message
            self._notifications.push(failure(exc.message))
            return MutationResult(ok=False, error=exc)
        except PortalError as exc:
            if self._aggregator.is_closed:
                return MutationResult(ok=False, error=exc, dropped=True)
            self._notifications.push(to_notification(exc))
            return MutationResult(ok=False, error=exc)
        finally:
            if dialog is not None:
                dialog.submitting = False

        if self._aggregator.is_closed:
            logger.info("Mutation finished after session close — result dropped")
            return MutationResult(ok=True, data=data, dropped=True)

        self._notifications.push(success(success_message))
        if dialog is not None:
            dialog.close()
        await self._aggregator.refetch()
        return MutationResult(ok=True, data=data)


class ResourceCommands:
    """CRUD + status commands for one REST resource, e.g. ``/students``."""

    def __init__(self, executor: MutationExecutor, resource: str, noun: str) -> None:
        self._executor = executor
        self._resource = "/" + resource.strip("/")
        self._noun = noun

    def url(self, entity_id: str | None = None) -> str:
        if entity_id is None:
            return self._resource
        return f"{self._resource}/{entity_id}"

    async def create(self, body: dict[str, Any], *, dialog: FormDialog | None = None) -> MutationResult:
        return await self._executor.execute(
            "POST", self.url(), body,
            dialog=dialog,
            success_message=f"New {self._noun.lower()} added successfully",
            failure_message=f"Failed to save {self._noun.lower()}",
        )

    async def update(
        self, entity_id: str, body: dict[str, Any], *, dialog: FormDialog | None = None
    ) -> MutationResult:
        return await self._executor.execute(
            "PUT", self.url(entity_id), body,
            dialog=dialog,
            success_message=f"{self._noun} updated successfully",
            failure_message=f"Failed to save {self._noun.lower()}",
        )

    async def delete(self, entity_id: str, *, dialog: FormDialog | None = None) -> MutationResult:
        return await self._executor.execute(
            "DELETE", self.url(entity_id),
            dialog=dialog,
            success_message=f"{self._noun} removed successfully",
            failure_message=f"Failed to delete {self._noun.lower()}",
        )

    async def toggle_status(self, entity_id: str, current_status: EntityStatus | str) -> MutationResult:
        """``PUT /<resource>/{id}/status`` with the other of Active/Inactive."""
        new_status = EntityStatus(current_status).toggled()
        return await self._executor.execute(
            "PUT", f"{self.url(entity_id)}/status", {"status": new_status.value},
            success_message=f"Status changed to {new_status.value}",
            failure_message="Failed to update status",
        )
