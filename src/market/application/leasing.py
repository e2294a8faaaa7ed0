"""
Task leasing: hands out exclusive, time-bounded custody of a task to the
contract's labeler, gates submission on the lease token, and returns
abandoned tasks to the pool.

Every state change runs in a single store transaction. Status moves are
compare-and-swap on the task row and lease removal/overwrite is conditional
on the token, so a caller that loses a race gets ``ConflictError`` and its
transaction rolls back without side effects.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import cast

import inject

from src.market.application.loaders import load_task, utc_now
from src.market.domain.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    LeaseExpiredError,
)
from src.market.domain.models import (
    LEASABLE_STATUSES,
    Actor,
    AnnotationPayload,
    AnnotationRaw,
    LeaseGrant,
    Task,
    TaskLease,
    TaskStatus,
)
from src.market.domain.policies import require_admin, require_labeler
from src.market.domain.repositories import EntityStore, StoreTransaction
from src.setup.lease_config import LeaseSettings, get_lease_settings

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def new_lease_token() -> str:
    """Return a fresh 128-bit random token."""
    return secrets.token_hex(16)


def _tokens_match(stored: str, presented: str) -> bool:
    return secrets.compare_digest(stored.encode(), presented.encode())


class LeaseManager:
    """Issues, validates and reclaims task leases."""

    def __init__(
        self,
        store: EntityStore | None = None,
        settings: LeaseSettings | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store or cast(EntityStore, inject.instance(EntityStore))
        self._settings = settings or get_lease_settings()
        self._clock = clock

    def lease_duration(self, minutes: int | None) -> timedelta:
        """Validate a requested lease length, falling back to the configured default."""
        if minutes is None:
            minutes = self._settings.DEFAULT_LEASE_MINUTES
        low, high = self._settings.MIN_LEASE_MINUTES, self._settings.MAX_LEASE_MINUTES
        if not low <= minutes <= high:
            raise ValueError(f"Lease duration must be between {low} and {high} minutes")
        return timedelta(minutes=minutes)

    async def acquire(
        self, task_id: str, actor: Actor, duration_minutes: int | None = None
    ) -> LeaseGrant:
        """
        Lease a task for the caller.

        ``ready`` (or previously rejected) tasks are moved to ``leased``. A
        ``leased`` task whose lease already expired is taken over in place;
        one whose lease is still running is refused with ``InvalidStateError``.
        """
        async with self._store.transaction() as tx:
            task, contract = await load_task(tx, task_id)
            require_labeler(actor, contract)
            duration = self.lease_duration(duration_minutes)

            now = self._clock()
            lease = TaskLease(
                task_id=task.id,
                labeler_user_id=actor.user_id,
                lease_token=new_lease_token(),
                leased_until=now + duration,
                created_at=now,
            )

            if task.status in LEASABLE_STATUSES:
                if await tx.swap_task_status(task.id, task.status, TaskStatus.LEASED) is None:
                    logger.warning("Lost lease race", extra={"task_id": task.id})
                    raise ConflictError(f"Task '{task.id}' was leased by someone else")
                # Lease rows are one per task: a stale row is overwritten, never duplicated.
                await tx.save_lease(lease)
            elif task.status == TaskStatus.LEASED:
                await self._take_over_expired(tx, task, lease, now)
            else:
                raise InvalidStateError.for_task(task.id, task.status.value, "lease")

            leased_task = await tx.get_task(task.id)

        logger.info(
            "Task leased",
            extra={
                "task_id": task_id,
                "labeler_user_id": actor.user_id,
                "leased_until": lease.leased_until.isoformat(),
            },
        )
        return LeaseGrant(
            task=cast(Task, leased_task),
            lease_token=lease.lease_token,
            leased_until=lease.leased_until,
        )

    async def _take_over_expired(
        self, tx: StoreTransaction, task: Task, lease: TaskLease, now: datetime
    ) -> None:
        current = await tx.get_lease(task.id)
        if current is None:
            # Either a concurrent submit or sweep just removed the lease, or the row
            # was never written. Only the latter may be healed, and only once.
            if await tx.swap_task_status(task.id, TaskStatus.LEASED, TaskStatus.LEASED) is None:
                logger.warning("Lease released during takeover", extra={"task_id": task.id})
                raise ConflictError(f"Task '{task.id}' changed while it was being leased")
            logger.warning("Leased task had no lease row", extra={"task_id": task.id})
            await tx.insert_lease(lease)
            return
        if not current.is_expired(now):
            raise InvalidStateError.for_task(task.id, task.status.value, "lease")
        if not await tx.replace_lease(current.lease_token, lease):
            logger.warning("Lost lease takeover race", extra={"task_id": task.id})
            raise ConflictError(f"Task '{task.id}' was leased by someone else")
        logger.info(
            "Expired lease taken over",
            extra={"task_id": task.id, "previous_labeler_user_id": current.labeler_user_id},
        )

    async def submit(
        self,
        task_id: str,
        lease_token: str,
        payload: AnnotationPayload,
        actor: Actor,
    ) -> Task:
        """Record an annotation for a leased task and release its lease."""
        async with self._store.transaction() as tx:
            task, contract = await load_task(tx, task_id)
            require_labeler(actor, contract)

            if task.status != TaskStatus.LEASED:
                raise InvalidStateError.for_task(task.id, task.status.value, "submit")

            lease = await tx.get_lease(task.id)
            if lease is None or not _tokens_match(lease.lease_token, lease_token):
                raise ForbiddenError("Invalid or expired lease token")

            now = self._clock()
            if lease.is_expired(now):
                raise LeaseExpiredError(task.id)

            submitted = await tx.swap_task_status(
                task.id, TaskStatus.LEASED, TaskStatus.SUBMITTED, increment_attempts=True
            )
            if submitted is None or not await tx.delete_lease(task.id, lease_token):
                logger.warning("Lease changed during submission", extra={"task_id": task.id})
                raise ConflictError(f"Lease on task '{task.id}' changed during submission")

            await tx.add_annotation(
                AnnotationRaw(
                    task_id=task.id,
                    labeler_user_id=actor.user_id,
                    payload=payload,
                    created_at=now,
                )
            )
            result = await tx.get_task(task.id)

        logger.info(
            "Task submitted",
            extra={"task_id": task_id, "attempt_count": submitted.attempt_count},
        )
        return cast(Task, result)

    async def sweep_expired(self, actor: Actor | None = None) -> int:
        """
        Return every task whose lease has expired to ``ready``.

        Leases are read in pages ordered by task id; each one is reclaimed in
        its own transaction so a concurrent submit or acquire on the same task
        either wins outright or finds nothing left to do.
        """
        if actor is not None:
            require_admin(actor)

        now = self._clock()
        batch_size = self._settings.SWEEP_BATCH_SIZE
        released = 0
        after_task_id: str | None = None

        while True:
            async with self._store.transaction() as tx:
                batch = await tx.list_expired_leases(
                    now, after_task_id=after_task_id, limit=batch_size
                )
            for lease in batch:
                if await self._reclaim(lease, now):
                    released += 1
            if len(batch) < batch_size:
                break
            after_task_id = batch[-1].task_id

        logger.info("Released expired leases", extra={"released_count": released})
        return released

    async def _reclaim(self, lease: TaskLease, now: datetime) -> bool:
        async with self._store.transaction() as tx:
            if not await tx.delete_lease(lease.task_id, lease.lease_token, expired_before=now):
                return False
            task = await tx.swap_task_status(lease.task_id, TaskStatus.LEASED, TaskStatus.READY)
        if task is None:
            logger.warning(
                "Removed lease of a task that was not leased", extra={"task_id": lease.task_id}
            )
            return False
        logger.info("Expired lease reclaimed", extra={"task_id": lease.task_id})
        return True
