"""Actor identity supplied by the external identity provider.

The stewardship engine does not authenticate anyone. The upstream gateway
authenticates the request and forwards the actor as trusted headers:

- X-Actor-Id     — stable user id
- X-Actor-Email  — user email
- X-Actor-Role   — one of visitor | member | steward | global_steward

Role gates are expressed as FastAPI dependencies so routes stay thin.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Annotated

from fastapi import Depends, Header

from swor_stewardship.errors import ForbiddenError, ValidationError


class Role(StrEnum):
    """Site-wide roles, lowest to highest authority."""

    VISITOR = "visitor"
    MEMBER = "member"
    STEWARD = "steward"
    GLOBAL_STEWARD = "global_steward"


_STEWARD_ROLES = frozenset({Role.STEWARD, Role.GLOBAL_STEWARD})


@dataclass(frozen=True)
class ActorContext:
    """The identity performing an operation.

    Attributes:
        actor_id: Stable user id from the identity provider.
        actor_email: User email, used as the audit actor label.
        role: Role granted by the identity provider.
    """

    actor_id: str
    actor_email: str
    role: Role

    @property
    def is_steward(self) -> bool:
        return self.role in _STEWARD_ROLES

    @property
    def is_global_steward(self) -> bool:
        return self.role is Role.GLOBAL_STEWARD


SYSTEM_ACTOR = ActorContext(actor_id="system", actor_email="unknown@system", role=Role.GLOBAL_STEWARD)


async def get_current_actor(
    x_actor_id: Annotated[str, Header()],
    x_actor_email: Annotated[str, Header()],
    x_actor_role: Annotated[str, Header()] = Role.MEMBER.value,
) -> ActorContext:
    """FastAPI dependency building the ActorContext from gateway headers.

    Raises:
        ValidationError: If the role header is not a known role.
    """
    try:
        role = Role(x_actor_role.strip().lower())
    except ValueError as exc:
        raise ValidationError(message=f"Unknown actor role '{x_actor_role}'", field="x-actor-role") from exc
    return ActorContext(actor_id=x_actor_id.strip(), actor_email=x_actor_email.strip().lower(), role=role)


async def require_steward(
    actor: Annotated[ActorContext, Depends(get_current_actor)],
) -> ActorContext:
    """Allow stewards and global stewards."""
    if not actor.is_steward:
        raise ForbiddenError("Steward role required")
    return actor


async def require_global_steward(
    actor: Annotated[ActorContext, Depends(get_current_actor)],
) -> ActorContext:
    """Allow global stewards only (safe reset, assignments, retention)."""
    if not actor.is_global_steward:
        raise ForbiddenError("Global steward role required")
    return actor
