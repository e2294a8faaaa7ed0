class MarketError(Exception):
    """Base class for failures surfaced to the caller of a task operation."""

    code = "error"


class NotFoundError(MarketError):
    """Raised when a task or its contract does not exist."""

    code = "not_found"

    def __init__(self, resource: str, resource_id: str) -> None:
        super().__init__(f"{resource} with id '{resource_id}' was not found.")
        self.resource = resource
        self.resource_id = resource_id


class ForbiddenError(MarketError):
    """Raised when the caller's role, ownership or lease token does not permit the action."""

    code = "forbidden"


class InvalidStateError(MarketError):
    """Raised when the action is not valid for the task's current status."""

    code = "invalid_state"

    def __init__(self, message: str, status: str | None = None) -> None:
        super().__init__(message)
        self.status = status

    @classmethod
    def for_task(cls, task_id: str, status: str, action: str) -> "InvalidStateError":
        return cls(f"Cannot {action} task '{task_id}' with status: {status}", status=status)


class ConflictError(MarketError):
    """Raised when a concurrent writer changed the task first."""

    code = "conflict"


class LeaseExpiredError(MarketError):
    """Raised when a lease elapsed before the submission arrived."""

    code = "lease_expired"

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Lease on task '{task_id}' has expired; lease the task again.")
        self.task_id = task_id
