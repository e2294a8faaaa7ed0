from __future__ import annotations

from src.market.domain.exceptions import ForbiddenError
from src.market.domain.models import Actor, Contract, Role


def is_allowed(role: Role, user_id: str, owner_id: str | None) -> bool:
    """Admins may act on anything; everyone else only on what they own."""
    if role == Role.ADMIN:
        return True
    return owner_id is not None and user_id == owner_id


def require_labeler(actor: Actor, contract: Contract) -> None:
    if not is_allowed(actor.role, actor.user_id, contract.labeler_user_id):
        raise ForbiddenError("You are not the labeler for this contract")


def require_client(actor: Actor, contract: Contract) -> None:
    if not is_allowed(actor.role, actor.user_id, contract.client_user_id):
        raise ForbiddenError("Only the client of this contract can do that")


def require_party(actor: Actor, contract: Contract) -> None:
    if not (
        is_allowed(actor.role, actor.user_id, contract.client_user_id)
        or is_allowed(actor.role, actor.user_id, contract.labeler_user_id)
    ):
        raise ForbiddenError("You do not have access to this task")


def require_admin(actor: Actor) -> None:
    if not is_allowed(actor.role, actor.user_id, None):
        raise ForbiddenError("Only admin can release expired leases")
