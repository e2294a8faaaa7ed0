from __future__ import annotations

from datetime import UTC, datetime

from src.market.domain.models import (
    AnnotationRaw,
    Contract,
    Review,
    Task,
    TaskLease,
)
from src.market.infrastructure.postgres.orm import (
    AnnotationRawRow,
    ContractRow,
    ReviewRow,
    TaskLeaseRow,
    TaskRow,
)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


class OrmMapper:
    @staticmethod
    def to_contract_row(contract: Contract) -> ContractRow:
        return ContractRow(
            id=contract.id,
            listing_id=contract.listing_id,
            client_user_id=contract.client_user_id,
            labeler_user_id=contract.labeler_user_id,
            status=contract.status,
        )

    @staticmethod
    def to_lease_row(lease: TaskLease) -> TaskLeaseRow:
        return TaskLeaseRow(
            task_id=lease.task_id,
            labeler_user_id=lease.labeler_user_id,
            lease_token=lease.lease_token,
            leased_until=lease.leased_until,
            created_at=lease.created_at,
        )

    @staticmethod
    def to_annotation_row(annotation_id: str, annotation: AnnotationRaw) -> AnnotationRawRow:
        return AnnotationRawRow(
            id=annotation_id,
            task_id=annotation.task_id,
            labeler_user_id=annotation.labeler_user_id,
            payload=annotation.payload,
            created_at=annotation.created_at,
        )

    @staticmethod
    def to_review_row(review_id: str, review: Review) -> ReviewRow:
        return ReviewRow(
            id=review_id,
            task_id=review.task_id,
            reviewer_user_id=review.reviewer_user_id,
            decision=review.decision,
            notes=review.notes,
            created_at=review.created_at,
        )

    @staticmethod
    def to_domain_task(row: TaskRow, lease_row: TaskLeaseRow | None = None) -> Task:
        lease = OrmMapper.to_domain_lease(lease_row) if lease_row is not None else None
        return Task(
            id=row.id,
            contract_id=row.contract_id,
            asset_id=row.asset_id,
            status=row.status,
            attempt_count=row.attempt_count,
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
            lease=lease.to_view() if lease is not None else None,
        )

    @staticmethod
    def to_domain_lease(row: TaskLeaseRow) -> TaskLease:
        return TaskLease(
            task_id=row.task_id,
            labeler_user_id=row.labeler_user_id,
            lease_token=row.lease_token,
            leased_until=_as_utc(row.leased_until),
            created_at=_as_utc(row.created_at),
        )

    @staticmethod
    def to_domain_contract(row: ContractRow) -> Contract:
        return Contract(
            id=row.id,
            listing_id=row.listing_id,
            client_user_id=row.client_user_id,
            labeler_user_id=row.labeler_user_id,
            status=row.status,
        )

    @staticmethod
    def to_domain_annotation(row: AnnotationRawRow) -> AnnotationRaw:
        return AnnotationRaw(
            id=row.id,
            task_id=row.task_id,
            labeler_user_id=row.labeler_user_id,
            payload=row.payload,
            created_at=_as_utc(row.created_at),
        )

    @staticmethod
    def to_domain_review(row: ReviewRow) -> Review:
        return Review(
            id=row.id,
            task_id=row.task_id,
            reviewer_user_id=row.reviewer_user_id,
            decision=row.decision,
            notes=row.notes,
            created_at=_as_utc(row.created_at),
        )
