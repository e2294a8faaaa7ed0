from __future__ import annotations

import asyncio
import importlib
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.market.application.leasing import LeaseManager
from src.market.application.lifecycle import TaskLifecycleController
from src.market.domain.exceptions import ConflictError
from src.market.domain.models import (
    Actor,
    AnnotationRaw,
    Contract,
    Review,
    Role,
    Task,
    TaskFilter,
    TaskLease,
    TaskStatus,
)
from src.market.domain.repositories import EntityStore, StoreTransaction
from src.setup.api_config import ApiSettings
from src.setup.lease_config import LeaseSettings

_MISSING = object()


class FakeClock:
    """Manually advanced clock injected wherever the services read time."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class InMemoryStoreTransaction(StoreTransaction):
    """
    Store transaction over plain dicts.

    Writes are applied immediately and recorded in an undo log so the
    enclosing ``transaction()`` can roll them back. Reads yield to the event
    loop first, letting concurrent callers interleave between read and write.
    """

    def __init__(self, store: InMemoryEntityStore) -> None:
        self._store = store
        self._undo: list[tuple[dict, str, object]] = []

    def _put(self, mapping: dict, key: str, value: object) -> None:
        self._undo.append((mapping, key, mapping.get(key, _MISSING)))
        mapping[key] = value

    def _pop(self, mapping: dict, key: str) -> None:
        self._undo.append((mapping, key, mapping.pop(key)))

    def rollback(self) -> None:
        for mapping, key, previous in reversed(self._undo):
            if previous is _MISSING:
                mapping.pop(key, None)
            else:
                mapping[key] = previous
        self._undo.clear()

    async def get_task(self, task_id: str) -> Task | None:
        await asyncio.sleep(0)
        return self._store.view_task(task_id)

    async def get_contract(self, contract_id: str) -> Contract | None:
        await asyncio.sleep(0)
        return self._store.contracts.get(contract_id)

    async def save_contract(self, contract: Contract) -> None:
        self._put(self._store.contracts, contract.id, contract)

    async def swap_task_status(
        self,
        task_id: str,
        expected: TaskStatus,
        new: TaskStatus,
        *,
        increment_attempts: bool = False,
    ) -> Task | None:
        task = self._store.tasks.get(task_id)
        if task is None or task.status != expected:
            return None
        attempts = task.attempt_count + 1 if increment_attempts else task.attempt_count
        self._put(
            self._store.tasks,
            task_id,
            task.model_copy(
                update={"status": new, "attempt_count": attempts, "updated_at": self._store.clock()}
            ),
        )
        return self._store.view_task(task_id)

    async def get_lease(self, task_id: str) -> TaskLease | None:
        await asyncio.sleep(0)
        return self._store.leases.get(task_id)

    async def save_lease(self, lease: TaskLease) -> None:
        self._put(self._store.leases, lease.task_id, lease)

    async def insert_lease(self, lease: TaskLease) -> None:
        if lease.task_id in self._store.leases:
            raise ConflictError(f"Task '{lease.task_id}' was leased by someone else")
        self._put(self._store.leases, lease.task_id, lease)

    async def replace_lease(self, expected_token: str, lease: TaskLease) -> bool:
        current = self._store.leases.get(lease.task_id)
        if current is None or current.lease_token != expected_token:
            return False
        self._put(self._store.leases, lease.task_id, lease)
        return True

    async def delete_lease(
        self,
        task_id: str,
        lease_token: str,
        *,
        expired_before: datetime | None = None,
    ) -> bool:
        current = self._store.leases.get(task_id)
        if current is None or current.lease_token != lease_token:
            return False
        if expired_before is not None and not current.leased_until < expired_before:
            return False
        self._pop(self._store.leases, task_id)
        return True

    async def list_expired_leases(
        self,
        now: datetime,
        *,
        after_task_id: str | None = None,
        limit: int = 100,
    ) -> list[TaskLease]:
        await asyncio.sleep(0)
        expired = sorted(
            (lease for lease in self._store.leases.values() if lease.leased_until < now),
            key=lambda lease: lease.task_id,
        )
        if after_task_id is not None:
            expired = [lease for lease in expired if lease.task_id > after_task_id]
        return expired[:limit]

    async def add_annotation(self, annotation: AnnotationRaw) -> AnnotationRaw:
        stored = annotation.model_copy(
            update={
                "id": f"annotation-{next(self._store.ids)}",
                "created_at": annotation.created_at or self._store.clock(),
            }
        )
        self._put(self._store.annotations, stored.id, stored)
        return stored

    async def list_annotations(self, task_id: str) -> list[AnnotationRaw]:
        return [a for a in self._store.annotations.values() if a.task_id == task_id]

    async def add_review(self, review: Review) -> Review:
        stored = review.model_copy(
            update={
                "id": f"review-{next(self._store.ids)}",
                "created_at": review.created_at or self._store.clock(),
            }
        )
        self._put(self._store.reviews, stored.id, stored)
        return stored

    async def create_tasks(self, contract_id: str, asset_ids: list[str]) -> list[Task]:
        existing = {t.asset_id for t in self._store.tasks.values() if t.contract_id == contract_id}
        if existing.intersection(asset_ids):
            raise ConflictError("Tasks already generated for this contract")
        created = []
        for asset_id in asset_ids:
            task = self._store.new_task(contract_id, asset_id)
            self._put(self._store.tasks, task.id, task)
            created.append(task)
        return created

    async def count_tasks(
        self, contract_id: str, *, exclude_status: TaskStatus | None = None
    ) -> int:
        return sum(
            1
            for t in self._store.tasks.values()
            if t.contract_id == contract_id and t.status != exclude_status
        )

    async def list_tasks(
        self, task_filter: TaskFilter, *, limit: int = 20, offset: int = 0
    ) -> tuple[list[Task], int]:
        matches = [
            self._store.view_task(t.id)
            for t in self._store.tasks.values()
            if self._matches(t, task_filter)
        ]
        return matches[offset : offset + limit], len(matches)

    def _matches(self, task: Task, task_filter: TaskFilter) -> bool:
        if task_filter.contract_id is not None and task.contract_id != task_filter.contract_id:
            return False
        if task_filter.status is not None and task.status != task_filter.status:
            return False
        if task_filter.visible_to is not None:
            contract = self._store.contracts[task.contract_id]
            return task_filter.visible_to in (contract.client_user_id, contract.labeler_user_id)
        return True


class InMemoryEntityStore(EntityStore):
    def __init__(self, clock: Callable[[], datetime]) -> None:
        self.clock = clock
        self.ids = count(1)
        self.contracts: dict[str, Contract] = {}
        self.tasks: dict[str, Task] = {}
        self.leases: dict[str, TaskLease] = {}
        self.annotations: dict[str, AnnotationRaw] = {}
        self.reviews: dict[str, Review] = {}

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreTransaction]:
        tx = InMemoryStoreTransaction(self)
        try:
            yield tx
        except BaseException:
            tx.rollback()
            raise

    def new_task(
        self, contract_id: str, asset_id: str, status: TaskStatus = TaskStatus.READY
    ) -> Task:
        now = self.clock()
        return Task(
            id=f"task-{next(self.ids)}",
            contract_id=contract_id,
            asset_id=asset_id,
            status=status,
            created_at=now,
            updated_at=now,
        )

    def add_task(
        self, contract_id: str, asset_id: str, status: TaskStatus = TaskStatus.READY
    ) -> Task:
        task = self.new_task(contract_id, asset_id, status)
        self.tasks[task.id] = task
        return task

    def view_task(self, task_id: str) -> Task | None:
        task = self.tasks.get(task_id)
        if task is None:
            return None
        lease = self.leases.get(task_id)
        return task.model_copy(update={"lease": lease.to_view() if lease is not None else None})


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 5, 9, 0, tzinfo=UTC))


@pytest.fixture
def store(clock: FakeClock) -> InMemoryEntityStore:
    return InMemoryEntityStore(clock)


@pytest.fixture
def contract(store: InMemoryEntityStore) -> Contract:
    contract = Contract(
        id="contract-1",
        listing_id="listing-1",
        client_user_id="client-1",
        labeler_user_id="labeler-1",
    )
    store.contracts[contract.id] = contract
    return contract


@pytest.fixture
def ready_task(store: InMemoryEntityStore, contract: Contract) -> Task:
    return store.add_task(contract.id, "asset-1")


@pytest.fixture
def labeler() -> Actor:
    return Actor(user_id="labeler-1", role=Role.LABELER)


@pytest.fixture
def other_labeler() -> Actor:
    return Actor(user_id="labeler-2", role=Role.LABELER)


@pytest.fixture
def client_actor() -> Actor:
    return Actor(user_id="client-1", role=Role.CLIENT)


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id="admin-1", role=Role.ADMIN)


@pytest.fixture
def lease_settings() -> LeaseSettings:
    return LeaseSettings(
        DEFAULT_LEASE_MINUTES=30, MIN_LEASE_MINUTES=5, MAX_LEASE_MINUTES=120, SWEEP_BATCH_SIZE=2
    )


@pytest.fixture
def lease_manager(
    store: InMemoryEntityStore, lease_settings: LeaseSettings, clock: FakeClock
) -> LeaseManager:
    return LeaseManager(store=store, settings=lease_settings, clock=clock)


@pytest.fixture
def lifecycle(store: InMemoryEntityStore) -> TaskLifecycleController:
    return TaskLifecycleController(
        store=store, settings=ApiSettings(DEFAULT_PAGE_SIZE=20, MAX_PAGE_SIZE=100)
    )


def _patch_inject_instance(monkeypatch: pytest.MonkeyPatch, store: InMemoryEntityStore) -> None:
    """Patch `inject.instance` to hand out the in-memory store."""
    import inject

    def fake_instance(interface: object) -> object:
        if interface is EntityStore:
            return store
        raise RuntimeError(f"Unexpected dependency request: {interface}")

    monkeypatch.setattr(inject, "instance", fake_instance)


@pytest.fixture
def api_client(monkeypatch: pytest.MonkeyPatch, store: InMemoryEntityStore, contract: Contract):
    """FastAPI test client with the routes' services wired to the in-memory store."""
    from src.market.presentation.errors import register_error_handlers

    _patch_inject_instance(monkeypatch, store)

    # Reload so the module-level services pick up the patched injector.
    routes_module = importlib.reload(importlib.import_module("src.market.presentation.routes"))

    app = FastAPI()
    register_error_handlers(app)
    app.include_router(routes_module.router)
    return TestClient(app)


def headers_for(actor: Actor) -> dict[str, str]:
    return {"X-User-Id": actor.user_id, "X-User-Role": actor.role.value}


@pytest.fixture
def as_headers() -> Callable[[Actor], dict[str, str]]:
    return headers_for
