from enum import Enum


class TaskStatus(str, Enum):
    READY = "ready"
    LEASED = "leased"
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


LEASABLE_STATUSES = frozenset({TaskStatus.READY, TaskStatus.REJECTED})
