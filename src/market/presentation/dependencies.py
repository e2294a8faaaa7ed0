from __future__ import annotations

from fastapi import Header, HTTPException

from src.market.domain.models import Actor, Role


def get_actor(
    x_user_id: str | None = Header(default=None, description="Authenticated user id."),
    x_user_role: str | None = Header(default=None, description="Role of the user."),
) -> Actor:
    """
    Resolve the caller from identity headers set by the upstream auth gateway.
    """
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        role = Role(x_user_role.lower())
    except ValueError:
        raise HTTPException(status_code=401, detail="Unknown role")  # noqa: B904
    return Actor(user_id=x_user_id, role=role)
