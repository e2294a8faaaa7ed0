from datetime import datetime

from pydantic import BaseModel, Field

from src.market.domain.models.task_lease import TaskLeaseView
from src.market.domain.models.task_status import TaskStatus


class Task(BaseModel):
    id: str = Field(description="Unique task identifier.")
    contract_id: str = Field(description="Contract the task belongs to.")
    asset_id: str = Field(description="Asset to be labeled.")
    status: TaskStatus = Field(description="Current lifecycle status.")
    attempt_count: int = Field(
        default=0, ge=0, description="Number of submissions made for this task."
    )
    created_at: datetime | None = Field(default=None, description="Creation time.")
    updated_at: datetime | None = Field(default=None, description="Last status change.")
    lease: TaskLeaseView | None = Field(
        default=None, description="Current lease, if the task is leased."
    )
