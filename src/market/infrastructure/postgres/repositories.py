from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import Select, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.market.domain.exceptions import ConflictError
from src.market.domain.models import (
    AnnotationRaw,
    Contract,
    Review,
    Task,
    TaskFilter,
    TaskLease,
    TaskStatus,
)
from src.market.domain.repositories import EntityStore, StoreTransaction
from src.market.infrastructure.postgres.mappers import OrmMapper
from src.market.infrastructure.postgres.orm import (
    AnnotationRawRow,
    ContractRow,
    PostgresOrm,
    TaskLeaseRow,
    TaskRow,
)


class SqlAlchemyStoreTransaction(StoreTransaction):
    """
    Store operations bound to one open SQLAlchemy session transaction.

    Status and lease writes are conditional UPDATE/DELETE statements whose
    row count tells the caller whether it won against concurrent writers.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_task(self, task_id: str) -> Task | None:
        statement = self._task_with_lease().where(TaskRow.id == task_id)
        row = (await self._session.execute(statement)).one_or_none()
        if row is None:
            return None
        task_row, lease_row = row
        return OrmMapper.to_domain_task(task_row, lease_row)

    async def get_contract(self, contract_id: str) -> Contract | None:
        row = await self._session.get(ContractRow, contract_id, populate_existing=True)
        return OrmMapper.to_domain_contract(row) if row is not None else None

    async def save_contract(self, contract: Contract) -> None:
        await self._session.merge(OrmMapper.to_contract_row(contract))
        await self._session.flush()

    async def swap_task_status(
        self,
        task_id: str,
        expected: TaskStatus,
        new: TaskStatus,
        *,
        increment_attempts: bool = False,
    ) -> Task | None:
        values: dict[str, object] = {"status": new, "updated_at": datetime.now(UTC)}
        if increment_attempts:
            values["attempt_count"] = TaskRow.attempt_count + 1
        result = await self._session.execute(
            update(TaskRow)
            .where(TaskRow.id == task_id, TaskRow.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None
        return await self.get_task(task_id)

    async def get_lease(self, task_id: str) -> TaskLease | None:
        row = await self._session.get(TaskLeaseRow, task_id, populate_existing=True)
        return OrmMapper.to_domain_lease(row) if row is not None else None

    async def save_lease(self, lease: TaskLease) -> None:
        row = await self._session.get(TaskLeaseRow, lease.task_id, populate_existing=True)
        if row is None:
            self._session.add(OrmMapper.to_lease_row(lease))
        else:
            row.labeler_user_id = lease.labeler_user_id
            row.lease_token = lease.lease_token
            row.leased_until = lease.leased_until
            row.created_at = lease.created_at
        await self._flush_lease(lease.task_id)

    async def insert_lease(self, lease: TaskLease) -> None:
        self._session.add(OrmMapper.to_lease_row(lease))
        await self._flush_lease(lease.task_id)

    async def _flush_lease(self, task_id: str) -> None:
        # Another transaction created a lease row for the same task (or token) first.
        try:
            await self._session.flush()
        except IntegrityError as exc:
            raise ConflictError(f"Task '{task_id}' was leased by someone else") from exc

    async def replace_lease(self, expected_token: str, lease: TaskLease) -> bool:
        result = await self._session.execute(
            update(TaskLeaseRow)
            .where(
                TaskLeaseRow.task_id == lease.task_id,
                TaskLeaseRow.lease_token == expected_token,
            )
            .values(
                labeler_user_id=lease.labeler_user_id,
                lease_token=lease.lease_token,
                leased_until=lease.leased_until,
                created_at=lease.created_at,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def delete_lease(
        self,
        task_id: str,
        lease_token: str,
        *,
        expired_before: datetime | None = None,
    ) -> bool:
        statement = delete(TaskLeaseRow).where(
            TaskLeaseRow.task_id == task_id,
            TaskLeaseRow.lease_token == lease_token,
        )
        if expired_before is not None:
            statement = statement.where(TaskLeaseRow.leased_until < expired_before)
        result = await self._session.execute(
            statement.execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list_expired_leases(
        self,
        now: datetime,
        *,
        after_task_id: str | None = None,
        limit: int = 100,
    ) -> list[TaskLease]:
        statement = select(TaskLeaseRow).where(TaskLeaseRow.leased_until < now)
        if after_task_id is not None:
            statement = statement.where(TaskLeaseRow.task_id > after_task_id)
        statement = statement.order_by(TaskLeaseRow.task_id).limit(limit)
        rows = (await self._session.execute(statement)).scalars().all()
        return [OrmMapper.to_domain_lease(row) for row in rows]

    async def add_annotation(self, annotation: AnnotationRaw) -> AnnotationRaw:
        if annotation.created_at is None:
            annotation = annotation.model_copy(update={"created_at": datetime.now(UTC)})
        row = OrmMapper.to_annotation_row(uuid4().hex, annotation)
        self._session.add(row)
        await self._session.flush()
        return OrmMapper.to_domain_annotation(row)

    async def list_annotations(self, task_id: str) -> list[AnnotationRaw]:
        rows = (
            await self._session.execute(
                select(AnnotationRawRow)
                .where(AnnotationRawRow.task_id == task_id)
                .order_by(AnnotationRawRow.created_at, AnnotationRawRow.id)
            )
        ).scalars().all()
        return [OrmMapper.to_domain_annotation(row) for row in rows]

    async def add_review(self, review: Review) -> Review:
        if review.created_at is None:
            review = review.model_copy(update={"created_at": datetime.now(UTC)})
        row = OrmMapper.to_review_row(uuid4().hex, review)
        self._session.add(row)
        await self._session.flush()
        return OrmMapper.to_domain_review(row)

    async def create_tasks(self, contract_id: str, asset_ids: list[str]) -> list[Task]:
        now = datetime.now(UTC)
        rows = [
            TaskRow(
                id=uuid4().hex,
                contract_id=contract_id,
                asset_id=asset_id,
                status=TaskStatus.READY,
                attempt_count=0,
                created_at=now,
                updated_at=now,
            )
            for asset_id in asset_ids
        ]
        self._session.add_all(rows)
        try:
            await self._session.flush()
        except IntegrityError as exc:
            raise ConflictError("Tasks already generated for this contract") from exc
        return [OrmMapper.to_domain_task(row) for row in rows]

    async def count_tasks(
        self, contract_id: str, *, exclude_status: TaskStatus | None = None
    ) -> int:
        statement = select(func.count()).select_from(TaskRow).where(
            TaskRow.contract_id == contract_id
        )
        if exclude_status is not None:
            statement = statement.where(TaskRow.status != exclude_status)
        return int((await self._session.execute(statement)).scalar_one())

    async def list_tasks(
        self, task_filter: TaskFilter, *, limit: int = 20, offset: int = 0
    ) -> tuple[list[Task], int]:
        statement = self._apply_filter(self._task_with_lease(), task_filter)
        count_statement = self._apply_filter(
            select(func.count()).select_from(TaskRow), task_filter
        )
        total = int((await self._session.execute(count_statement)).scalar_one())

        statement = statement.order_by(TaskRow.created_at, TaskRow.id).limit(limit).offset(offset)
        rows = (await self._session.execute(statement)).all()
        return [OrmMapper.to_domain_task(task_row, lease_row) for task_row, lease_row in rows], total

    @staticmethod
    def _task_with_lease() -> Select:
        return (
            select(TaskRow, TaskLeaseRow)
            .outerjoin(TaskLeaseRow, TaskLeaseRow.task_id == TaskRow.id)
            .execution_options(populate_existing=True)
        )

    @staticmethod
    def _apply_filter(statement: Select, task_filter: TaskFilter) -> Select:
        if task_filter.contract_id is not None:
            statement = statement.where(TaskRow.contract_id == task_filter.contract_id)
        if task_filter.status is not None:
            statement = statement.where(TaskRow.status == task_filter.status)
        if task_filter.visible_to is not None:
            statement = statement.join(ContractRow, ContractRow.id == TaskRow.contract_id).where(
                or_(
                    ContractRow.client_user_id == task_filter.visible_to,
                    ContractRow.labeler_user_id == task_filter.visible_to,
                )
            )
        return statement


class SqlAlchemyEntityStore(EntityStore):
    """Postgres-backed entity store using SQLAlchemy async sessions."""

    def __init__(self, orm: PostgresOrm) -> None:
        self._orm = orm

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreTransaction]:
        async with self._orm.session_factory() as session:
            async with session.begin():
                yield SqlAlchemyStoreTransaction(session)
