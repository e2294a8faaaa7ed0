from src.market.domain.models.actor import Actor, Role
from src.market.domain.models.annotation import AnnotationPayload, AnnotationRaw
from src.market.domain.models.contract import Contract, ContractStatus
from src.market.domain.models.review import Review, ReviewDecision
from src.market.domain.models.lease_grant import LeaseGrant
from src.market.domain.models.task import Task
from src.market.domain.models.task_lease import TaskLease, TaskLeaseView
from src.market.domain.models.task_page import TaskFilter, TaskPage
from src.market.domain.models.task_status import LEASABLE_STATUSES, TaskStatus

__all__ = [
    "Actor",
    "Role",
    "AnnotationPayload",
    "AnnotationRaw",
    "Contract",
    "ContractStatus",
    "Review",
    "ReviewDecision",
    "Task",
    "TaskStatus",
    "LEASABLE_STATUSES",
    "TaskLease",
    "TaskLeaseView",
    "LeaseGrant",
    "TaskFilter",
    "TaskPage",
]
