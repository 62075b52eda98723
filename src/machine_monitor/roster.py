"""
Machine roster controller.

Keeps the ordered local list of machines consistent with the service under
fetch, add and delete. Only the most recently issued fetch may replace the
list, and nothing is applied after ``close()``.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as SchemaError

from machine_monitor.api.client import ApiClient
from machine_monitor.errors import Ack, MonitorError, Result, ServerError, ValidationError
from machine_monitor.schema import Machine

logger = logging.getLogger(__name__)

FETCH_FAILED = "Failed to fetch machines"
ADD_FAILED = "Failed to add machine"
DELETE_FAILED = "Failed to delete machine"
NAME_REQUIRED = "Please enter a machine name"
MALFORMED_RESPONSE = "Unexpected response from server"


def parse_machines(body: Any) -> list[Machine]:
    """
    Decode a roster response, keeping the first occurrence of each id.

    A machine whose only defect is an unrecognised status is dropped with a
    warning; any other malformed entry fails the whole response.
    """
    if not isinstance(body, list):
        raise ServerError(MALFORMED_RESPONSE)
    machines: list[Machine] = []
    seen: set[str] = set()
    for item in body:
        try:
            machine = Machine.from_wire(item)
        except SchemaError as e:
            if all(err["loc"][:1] == ("status",) for err in e.errors()):
                logger.warning(
                    "Skipping machine %s with unknown status %r", item.get("_id"), item.get("status")
                )
                continue
            raise ServerError(MALFORMED_RESPONSE) from e
        except (TypeError, AttributeError) as e:
            raise ServerError(MALFORMED_RESPONSE) from e
        if machine.id in seen:
            logger.warning("Dropping duplicate machine id %s from roster response", machine.id)
            continue
        seen.add(machine.id)
        machines.append(machine)
    return machines


class PendingRemoval:
    """
    A delete awaiting explicit confirmation.

    Created by ``MachineRosterController.remove``; resolve with exactly one of
    ``confirm()`` or ``cancel()``.
    """

    def __init__(self, controller: MachineRosterController, machine_id: str, machine: Machine | None):
        self.controller = controller
        self.machine_id = machine_id
        self.machine = machine
        self.resolved = False

    @property
    def prompt(self) -> str:
        name = self.machine.name if self.machine else self.machine_id
        return f'Are you sure you want to delete "{name}"?'

    def _resolve(self) -> None:
        if self.resolved:
            raise RuntimeError(f"Removal of {self.machine_id} already resolved")
        self.resolved = True

    async def confirm(self) -> Result[Ack]:
        self._resolve()
        return await self.controller._delete(self.machine_id, present=self.machine is not None)

    def cancel(self) -> Result[None]:
        self._resolve()
        return Result.success()


class MachineRosterController:
    """
    Ordered list of the operator's machines.

    ``loading`` is set by an initial fetch and blocks the view; ``refreshing``
    is set by a pull-to-refresh and leaves the current list visible.
    """

    def __init__(self, api: ApiClient):
        self.api = api
        self.machines: list[Machine] = []
        self.loading = False
        self.refreshing = False
        self.closed = False
        self._fetch_seq = 0

    # Derived views, computed from the current list on every access

    @property
    def total_count(self) -> int:
        return len(self.machines)

    @property
    def active_count(self) -> int:
        return sum(1 for m in self.machines if m.is_active)

    @property
    def inactive_count(self) -> int:
        return sum(1 for m in self.machines if not m.is_active)

    def get(self, machine_id: str) -> Machine | None:
        return next((m for m in self.machines if m.id == machine_id), None)

    # Fetching

    async def fetch_all(self) -> Result[list[Machine]]:
        """Replace the local list with the service's roster."""
        return await self._fetch(refresh=False)

    async def refresh(self) -> Result[list[Machine]]:
        """Like ``fetch_all`` but keeps the current list on screen."""
        return await self._fetch(refresh=True)

    async def _fetch(self, refresh: bool) -> Result[list[Machine]]:
        self._fetch_seq += 1
        seq = self._fetch_seq
        if refresh or self.refreshing:
            self.refreshing = True
        else:
            self.loading = True

        try:
            body = await self.api.request("GET", "/api/machines", failure_message=FETCH_FAILED)
            machines = parse_machines(body)
        except MonitorError as e:
            if self._is_current(seq):
                self._settle_fetch()
            return Result.fail(e)

        if self._is_current(seq):
            self.machines = machines
            self._settle_fetch()
        else:
            logger.debug("Discarding superseded roster fetch #%d", seq)
        return Result.success(machines)

    def _is_current(self, seq: int) -> bool:
        return not self.closed and seq == self._fetch_seq

    def _settle_fetch(self) -> None:
        self.loading = False
        self.refreshing = False

    # Mutations

    async def add(self, name: str) -> Result[Machine]:
        """Create a machine and append the server's copy to the list."""
        if not name or not name.strip():
            return Result.fail(ValidationError(NAME_REQUIRED, fields={"name": NAME_REQUIRED}))

        try:
            body = await self.api.request(
                "POST",
                "/api/machines",
                json={"name": name.strip()},
                failure_message=ADD_FAILED,
            )
            machine = Machine.from_wire(body)
        except MonitorError as e:
            return Result.fail(e)
        except (SchemaError, TypeError, AttributeError):
            return Result.fail(ServerError(MALFORMED_RESPONSE))

        if self.closed:
            return Result.success(machine)
        if self.get(machine.id) is None:
            self.machines.append(machine)
        else:
            logger.debug("Machine %s already in roster, not appending", machine.id)
        return Result.success(machine)

    def remove(self, machine_id: str) -> PendingRemoval:
        """Start a two-step delete; nothing is sent until ``confirm()``."""
        return PendingRemoval(self, machine_id, self.get(machine_id))

    async def _delete(self, machine_id: str, present: bool) -> Result[Ack]:
        if not present:
            # Already gone locally; nothing to reconcile.
            return Result.success(Ack())

        try:
            body = await self.api.request(
                "DELETE", f"/api/machines/{machine_id}", failure_message=DELETE_FAILED
            )
        except MonitorError as e:
            return Result.fail(e)

        if not self.closed:
            self.machines = [m for m in self.machines if m.id != machine_id]
        return Result.success(Ack.from_body(body))

    def close(self) -> None:
        """Tear down; results of requests still in flight are discarded."""
        self.closed = True
        self._settle_fetch()
