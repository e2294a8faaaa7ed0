from datetime import datetime

from pydantic import BaseModel, Field


class TaskLease(BaseModel):
    """Exclusive, time-bounded custody of a task by a labeler."""

    task_id: str = Field(description="Leased task; at most one lease per task.")
    labeler_user_id: str = Field(description="Labeler holding the lease.")
    lease_token: str = Field(description="Secret required to submit the task.")
    leased_until: datetime = Field(description="Absolute expiry instant (UTC).")
    created_at: datetime | None = Field(default=None, description="When the lease was issued.")

    def is_expired(self, now: datetime) -> bool:
        return self.leased_until < now

    def to_view(self) -> "TaskLeaseView":
        return TaskLeaseView(
            labeler_user_id=self.labeler_user_id,
            leased_until=self.leased_until,
        )


class TaskLeaseView(BaseModel):
    """Lease information safe to show to any reader of the task."""

    labeler_user_id: str
    leased_until: datetime
