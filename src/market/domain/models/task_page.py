import math

from pydantic import BaseModel, Field, computed_field

from src.market.domain.models.task import Task
from src.market.domain.models.task_status import TaskStatus


class TaskFilter(BaseModel):
    """Criteria for task listings; ``visible_to`` limits rows to one user's contracts."""

    contract_id: str | None = None
    status: TaskStatus | None = None
    visible_to: str | None = None


class TaskPage(BaseModel):
    items: list[Task] = Field(default_factory=list)
    page: int = Field(ge=1)
    limit: int = Field(ge=1)
    total: int = Field(ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)
