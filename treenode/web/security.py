"""
Caller identity for the web layer.

Authentication happens upstream; the gateway forwards the authenticated user
as X-User-Id / X-User-Role headers. The hierarchy engine never sees these.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException

from treenode.services.exceptions import ForbiddenError

ADMIN_ROLE = "Admin"
DEFAULT_ROLE = "User"


@dataclass(frozen=True)
class Actor:
    id: str
    role: str = DEFAULT_ROLE


def get_actor(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role")
) -> Actor:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return Actor(id=x_user_id, role=x_user_role or DEFAULT_ROLE)


def require_role(role: str):
    """Dependency factory that only lets actors with `role` through."""
    def dependency(actor: Actor = Depends(get_actor)) -> Actor:
        if actor.role != role:
            logging.warning(f"User {actor.id} with role {actor.role} denied; {role} required")
            raise ForbiddenError(f"Role '{role}' is required for this operation")
        return actor
    return dependency
