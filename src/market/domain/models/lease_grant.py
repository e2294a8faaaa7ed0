from datetime import datetime

from pydantic import BaseModel, Field

from src.market.domain.models.task import Task


class LeaseGrant(BaseModel):
    task: Task = Field(description="The task after the lease was taken.")
    lease_token: str = Field(description="Token to present on submit.")
    leased_until: datetime = Field(description="Lease expiry instant (UTC).")
