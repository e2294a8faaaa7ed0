from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Protocol

from src.market.domain.models import (
    AnnotationRaw,
    Contract,
    Review,
    Task,
    TaskFilter,
    TaskLease,
    TaskStatus,
)


class StoreTransaction(Protocol):
    """
    Unit of work over the task tables.

    Everything done through one transaction commits together when the
    surrounding ``EntityStore.transaction()`` block exits normally and is
    rolled back when it raises.
    """

    async def get_task(self, task_id: str) -> Task | None:
        """Fetch a task, with its lease view populated when one exists."""

    async def get_contract(self, contract_id: str) -> Contract | None:
        """Fetch the contract record a task belongs to."""

    async def save_contract(self, contract: Contract) -> None:
        """Insert or update a contract record."""

    async def swap_task_status(
        self,
        task_id: str,
        expected: TaskStatus,
        new: TaskStatus,
        *,
        increment_attempts: bool = False,
    ) -> Task | None:
        """
        Move the task from ``expected`` to ``new`` only if it is still in ``expected``.
        Returns the updated task, or ``None`` when another writer got there first.
        """

    async def get_lease(self, task_id: str) -> TaskLease | None:
        """Fetch the lease row of a task."""

    async def save_lease(self, lease: TaskLease) -> None:
        """Create the task's lease row, or overwrite it if one exists."""

    async def insert_lease(self, lease: TaskLease) -> None:
        """Create the task's lease row; ``ConflictError`` if the task already has one."""

    async def replace_lease(self, expected_token: str, lease: TaskLease) -> bool:
        """Overwrite the task's lease only if it still carries ``expected_token``."""

    async def delete_lease(
        self,
        task_id: str,
        lease_token: str,
        *,
        expired_before: datetime | None = None,
    ) -> bool:
        """
        Delete the task's lease if it still carries ``lease_token`` (and, when
        ``expired_before`` is given, only if it expired before that instant).
        Returns whether a row was deleted.
        """

    async def list_expired_leases(
        self,
        now: datetime,
        *,
        after_task_id: str | None = None,
        limit: int = 100,
    ) -> list[TaskLease]:
        """List leases whose expiry is before ``now``, ordered by task id."""

    async def add_annotation(self, annotation: AnnotationRaw) -> AnnotationRaw:
        """Append a raw annotation and return it with id and timestamp set."""

    async def list_annotations(self, task_id: str) -> list[AnnotationRaw]:
        """List the raw annotations of a task, oldest first."""

    async def add_review(self, review: Review) -> Review:
        """Append a QC review and return it with id and timestamp set."""

    async def create_tasks(self, contract_id: str, asset_ids: list[str]) -> list[Task]:
        """Create one ``ready`` task per asset for the contract."""

    async def count_tasks(
        self, contract_id: str, *, exclude_status: TaskStatus | None = None
    ) -> int:
        """Count a contract's tasks, optionally ignoring those in ``exclude_status``."""

    async def list_tasks(
        self, task_filter: TaskFilter, *, limit: int = 20, offset: int = 0
    ) -> tuple[list[Task], int]:
        """Return one page of matching tasks and the total number of matches."""


class EntityStore(Protocol):
    """Repository contract giving atomic read-modify-write over task records."""

    def transaction(self) -> AbstractAsyncContextManager[StoreTransaction]:
        """Open a transaction; commit on normal exit, roll back on error."""
