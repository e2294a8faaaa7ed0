from __future__ import annotations

import logging
from typing import cast

import inject

from src.market.application.loaders import load_task
from src.market.domain.exceptions import ConflictError, InvalidStateError, NotFoundError
from src.market.domain.models import (
    Actor,
    ContractStatus,
    Review,
    ReviewDecision,
    Task,
    TaskFilter,
    TaskPage,
    TaskStatus,
)
from src.market.domain.policies import require_client, require_party
from src.market.domain.repositories import EntityStore
from src.setup.api_config import ApiSettings, get_api_settings

logger = logging.getLogger(__name__)

# A rejected task goes straight back to the pool so it can be leased again.
_QC_TARGETS = {
    ReviewDecision.ACCEPT: TaskStatus.ACCEPTED,
    ReviewDecision.REJECT: TaskStatus.READY,
}


class TaskLifecycleController:
    """Drives task transitions outside leasing: QC decisions, generation and reads."""

    def __init__(
        self,
        store: EntityStore | None = None,
        settings: ApiSettings | None = None,
    ) -> None:
        self._store = store or cast(EntityStore, inject.instance(EntityStore))
        self._settings = settings or get_api_settings()

    async def accept(self, task_id: str, actor: Actor, notes: str | None = None) -> Task:
        task, _ = await self._decide(task_id, actor, ReviewDecision.ACCEPT, notes)
        return task

    async def reject(self, task_id: str, actor: Actor, reason: str | None = None) -> Task:
        task, _ = await self._decide(task_id, actor, ReviewDecision.REJECT, reason)
        return task

    async def create_review(
        self,
        task_id: str,
        actor: Actor,
        decision: ReviewDecision,
        notes: str | None = None,
    ) -> Review:
        """Record a QC review and apply its decision to the task."""
        _, review = await self._decide(task_id, actor, decision, notes)
        return review

    async def _decide(
        self,
        task_id: str,
        actor: Actor,
        decision: ReviewDecision,
        notes: str | None,
    ) -> tuple[Task, Review]:
        action = decision.value
        async with self._store.transaction() as tx:
            task, contract = await load_task(tx, task_id)
            require_client(actor, contract)

            if task.status != TaskStatus.SUBMITTED:
                raise InvalidStateError.for_task(task.id, task.status.value, action)

            updated = await tx.swap_task_status(
                task.id, TaskStatus.SUBMITTED, _QC_TARGETS[decision]
            )
            if updated is None:
                logger.warning("Lost review race", extra={"task_id": task.id})
                raise ConflictError(f"Task '{task.id}' was reviewed by someone else")

            review = await tx.add_review(
                Review(
                    task_id=task.id,
                    reviewer_user_id=actor.user_id,
                    decision=decision,
                    notes=notes,
                )
            )

        logger.info(
            "Task reviewed",
            extra={
                "task_id": task_id,
                "decision": action,
                "notes": notes,
            },
        )
        return updated, review

    async def generate_tasks(
        self, contract_id: str, asset_ids: list[str], actor: Actor
    ) -> list[Task]:
        """Create one ``ready`` task per asset of an active contract, once."""
        unique_asset_ids = list(dict.fromkeys(asset_ids))
        if not unique_asset_ids:
            raise ValueError("At least one asset id is required to generate tasks")

        async with self._store.transaction() as tx:
            contract = await tx.get_contract(contract_id)
            if contract is None:
                raise NotFoundError("Contract", contract_id)
            require_client(actor, contract)

            if contract.status != ContractStatus.ACTIVE:
                raise InvalidStateError(
                    f"Contract must be active to generate tasks (status: {contract.status.value})",
                    status=contract.status.value,
                )
            if await tx.count_tasks(contract_id) > 0:
                raise ConflictError("Tasks already generated for this contract")

            tasks = await tx.create_tasks(contract_id, unique_asset_ids)

        logger.info(
            "Generated tasks",
            extra={"contract_id": contract_id, "count": len(tasks)},
        )
        return tasks

    async def get_task(self, task_id: str, actor: Actor) -> Task:
        async with self._store.transaction() as tx:
            task, contract = await load_task(tx, task_id)
            require_party(actor, contract)
        return task

    async def list_tasks(
        self,
        actor: Actor,
        *,
        contract_id: str | None = None,
        status: TaskStatus | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> TaskPage:
        """List tasks visible to the caller; admins see every contract."""
        if limit is None:
            limit = self._settings.DEFAULT_PAGE_SIZE
        if page < 1:
            raise ValueError("page must be >= 1")
        if not 1 <= limit <= self._settings.MAX_PAGE_SIZE:
            raise ValueError(f"limit must be between 1 and {self._settings.MAX_PAGE_SIZE}")

        task_filter = TaskFilter(
            contract_id=contract_id,
            status=status,
            visible_to=None if actor.is_admin else actor.user_id,
        )
        async with self._store.transaction() as tx:
            items, total = await tx.list_tasks(
                task_filter, limit=limit, offset=(page - 1) * limit
            )
        return TaskPage(items=items, page=page, limit=limit, total=total)

    async def contract_completed(self, contract_id: str) -> bool:
        """True once every task of the contract has been accepted."""
        async with self._store.transaction() as tx:
            if await tx.get_contract(contract_id) is None:
                raise NotFoundError("Contract", contract_id)
            total = await tx.count_tasks(contract_id)
            pending = await tx.count_tasks(contract_id, exclude_status=TaskStatus.ACCEPTED)
        return total > 0 and pending == 0
