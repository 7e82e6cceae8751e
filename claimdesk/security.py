"""
claimdesk/security.py

Access control for claim missions.

Key rules:
- UI is never trusted; all permission checks are server-side.
- Manager: full access to every mission (field edits, ledgers, status, attachments).
- Agent: reads only the missions assigned to them; may advance their status (never to the
  terminal status) and add/delete photos and documents on them.

Actor context:
- Routes build an ActorContext from the logged-in user (current_actor()) and pass it
  explicitly to every service call. Services never read flask_login.current_user.
- Decisions are re-evaluated on every call; assignment may change between two requests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Optional

from flask_login import current_user

from .enums import Role
from .errors import PermissionDenied

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActorContext:
    """Who is calling: supplied per request, never cached across requests."""

    actor_id: int
    role: Role
    username: Optional[str] = None

    @property
    def is_manager(self) -> bool:
        return self.role == Role.MANAGER

    @property
    def is_agent(self) -> bool:
        return self.role == Role.AGENT

    @classmethod
    def from_user(cls, user) -> "ActorContext":
        return cls(actor_id=user.id, role=Role(user.role), username=user.username)


def current_actor() -> ActorContext:
    """ActorContext of the authenticated request user (routes only)."""
    if not current_user.is_authenticated:
        raise PermissionDenied("Authentification requise")
    return ActorContext.from_user(current_user)


# ---------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------
def is_assigned_agent(actor: ActorContext, mission: Any) -> bool:
    return bool(actor.is_agent and actor.actor_id == getattr(mission, "assigned_agent_id", None))


def can_mutate_attachments(actor: ActorContext, mission: Any) -> bool:
    """Photo/document add & delete: manager, or the agent assigned to the mission."""
    return actor.is_manager or is_assigned_agent(actor, mission)


def can_view_mission(actor: ActorContext, mission: Any) -> bool:
    return actor.is_manager or is_assigned_agent(actor, mission)


def can_change_status(actor: ActorContext, mission: Any) -> bool:
    return actor.is_manager or is_assigned_agent(actor, mission)


# ---------------------------------------------------------------------
# Guards (raise PermissionDenied)
# ---------------------------------------------------------------------
def _deny(actor: ActorContext, message: str, mission: Any = None) -> PermissionDenied:
    logger.warning(
        "Permission denied: user=%s role=%s mission=%s (%s)",
        actor.actor_id,
        actor.role.value,
        getattr(mission, "id", None),
        message,
    )
    return PermissionDenied(message)


def require_manager(actor: ActorContext) -> None:
    if not actor.is_manager:
        raise _deny(actor, "Acces reserve au gestionnaire.")


def require_mission_view(actor: ActorContext, mission: Any) -> None:
    if not can_view_mission(actor, mission):
        raise _deny(actor, "Mission non assignee a cet agent.", mission)


def require_attachment_access(actor: ActorContext, mission: Any) -> None:
    if not can_mutate_attachments(actor, mission):
        raise _deny(
            actor,
            "Seule la personne assignee ou un gestionnaire peut modifier les pieces jointes.",
            mission,
        )


def require_status_access(actor: ActorContext, mission: Any) -> None:
    if not can_change_status(actor, mission):
        raise _deny(actor, "Seul l'agent assigne ou un gestionnaire peut changer le statut.", mission)


# ---------------------------------------------------------------------
# Route decorator
# ---------------------------------------------------------------------
def manager_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: manager-only route (use after @login_required)."""
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        require_manager(current_actor())
        return view_func(*args, **kwargs)

    return wrapper
