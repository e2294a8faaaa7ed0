from __future__ import annotations

from datetime import UTC, datetime

from src.market.domain.exceptions import NotFoundError
from src.market.domain.models import Contract, Task
from src.market.domain.repositories import StoreTransaction


def utc_now() -> datetime:
    return datetime.now(UTC)


async def load_task(tx: StoreTransaction, task_id: str) -> tuple[Task, Contract]:
    """Fetch a task together with the contract that scopes access to it."""
    task = await tx.get_task(task_id)
    if task is None:
        raise NotFoundError("Task", task_id)
    contract = await tx.get_contract(task.contract_id)
    if contract is None:
        raise NotFoundError("Contract", task.contract_id)
    return task, contract
