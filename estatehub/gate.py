# Authorization and state-legality checks shared by every listing and request transition.
# Pure functions: they read attributes and raise, never touch the session.
from __future__ import annotations

import logging
from typing import Any, Iterable

from .errors import ForbiddenError, InvalidTransitionError, ValidationError

logger = logging.getLogger("estatehub.gate")


def _names(values: Iterable[str]) -> str:
    return ", ".join(sorted(values))


def require_role(actor: Any, allowed_roles: Iterable[str]) -> None:
    """Raise ForbiddenError unless ``actor.role`` is one of ``allowed_roles``."""
    allowed = set(allowed_roles)
    role = getattr(actor, "role", None)
    if actor is None or role not in allowed:
        logger.info("gate.role_denied", extra={"role": role, "allowed": sorted(allowed)})
        raise ForbiddenError(f"Role '{role}' is not allowed; requires one of: {_names(allowed)}")


def require_ownership(actor_id: Any, entity_owner_id: Any) -> None:
    """
    Raise ForbiddenError unless the two ids match.

    Both ids must be of the same kind: compare an AccountId to an AccountId, or an
    OwnerProfileId to an OwnerProfileId. Resolve across kinds with identity.py first.
    """
    if actor_id is None or entity_owner_id is None or actor_id != entity_owner_id:
        logger.info("gate.ownership_denied", extra={"actor_id": actor_id, "owner_id": entity_owner_id})
        raise ForbiddenError("You do not have rights over this resource")


def require_source_state(entity: Any, allowed_states: Iterable[str]) -> None:
    """Raise InvalidTransitionError naming the current state when it is not allowed."""
    allowed = set(allowed_states)
    current = getattr(entity, "status", None)
    if current not in allowed:
        raise InvalidTransitionError(
            f"Cannot transition from '{current}'; allowed source states: {_names(allowed)}"
        )


def require_target_state(new_state: str, allowed_states: Iterable[str]) -> None:
    allowed = set(allowed_states)
    if new_state not in allowed:
        raise ValidationError(
            f"Invalid target status '{new_state}'; expected one of: {_names(allowed)}",
            fields=["status"],
        )
