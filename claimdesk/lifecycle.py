"""
claimdesk/lifecycle.py

Mission status state machine.

    created -> assigned -> in_progress -> completed (terminal)

Rules (checked in this order):
1. Moving to an earlier status is an InvalidTransition, whatever the role.
2. Re-asserting the current status is a no-op.
3. Only a manager may move a mission to the terminal status (PermissionDenied otherwise).
4. Any other forward move, including skipping intermediate statuses, is allowed.

The machine only decides; it does not touch ledgers or attachments.
"""

from __future__ import annotations

from typing import List

from .enums import MissionStatus
from .errors import InvalidTransition, PermissionDenied
from .security import ActorContext


def check_transition(actor: ActorContext, current: MissionStatus, target: MissionStatus) -> bool:
    """
    Validate current -> target for actor.

    Returns True when the status actually changes, False for a same-status no-op.
    Raises InvalidTransition / PermissionDenied.
    """
    if target.ordinal < current.ordinal:
        raise InvalidTransition(
            f"Transition impossible: {current.value} -> {target.value} (retour en arriere)"
        )

    if target == current:
        return False

    if target.is_terminal and not actor.is_manager:
        raise PermissionDenied(f"Seul un gestionnaire peut passer la mission au statut {target.value}.")

    return True


def allowed_targets(actor: ActorContext, current: MissionStatus) -> List[MissionStatus]:
    """Statuses the actor may request from current (current included, as the no-op)."""
    targets = []
    for status in MissionStatus:
        if status.ordinal < current.ordinal:
            continue
        if status.is_terminal and status != current and not actor.is_manager:
            continue
        targets.append(status)
    return targets
