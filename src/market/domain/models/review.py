from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ReviewDecision(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class Review(BaseModel):
    id: str | None = Field(default=None, description="Review identifier.")
    task_id: str = Field(description="Reviewed task.")
    reviewer_user_id: str = Field(description="Client or admin who reviewed.")
    decision: ReviewDecision = Field(description="QC outcome.")
    notes: str | None = Field(default=None, description="Free-form reviewer notes.")
    created_at: datetime | None = Field(default=None, description="Review time.")
