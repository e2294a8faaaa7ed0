from enum import Enum

from pydantic import BaseModel, Field


class ContractStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUBMITTED = "submitted"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Contract(BaseModel):
    """The slice of a marketplace contract the task workflow depends on."""

    id: str = Field(description="Contract identifier.")
    listing_id: str = Field(description="Listing the contract was made for.")
    client_user_id: str = Field(description="Client who pays for the work.")
    labeler_user_id: str = Field(description="Labeler assigned to the work.")
    status: ContractStatus = Field(default=ContractStatus.ACTIVE)
