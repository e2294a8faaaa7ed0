from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    ADMIN = "admin"
    CLIENT = "client"
    LABELER = "labeler"


class Actor(BaseModel):
    """Identity of the caller, as resolved by the API layer."""

    user_id: str = Field(description="Authenticated user id.")
    role: Role = Field(description="Marketplace role of the user.")

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
