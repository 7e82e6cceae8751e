"""Access policy predicates and guards."""

from types import SimpleNamespace

import pytest

from claimdesk.enums import Role
from claimdesk.errors import PermissionDenied
from claimdesk.security import (
    ActorContext,
    can_mutate_attachments,
    can_view_mission,
    require_attachment_access,
    require_manager,
    require_status_access,
)

MANAGER = ActorContext(actor_id=1, role=Role.MANAGER)
AGENT = ActorContext(actor_id=2, role=Role.AGENT)
OTHER_AGENT = ActorContext(actor_id=3, role=Role.AGENT)


def _mission(agent_id):
    return SimpleNamespace(id=10, assigned_agent_id=agent_id)


class TestAttachmentPolicy:
    def test_manager_always_allowed(self) -> None:
        assert can_mutate_attachments(MANAGER, _mission(None))
        assert can_mutate_attachments(MANAGER, _mission(AGENT.actor_id))

    def test_assigned_agent_allowed(self) -> None:
        assert can_mutate_attachments(AGENT, _mission(AGENT.actor_id))

    def test_other_agent_denied(self) -> None:
        assert not can_mutate_attachments(OTHER_AGENT, _mission(AGENT.actor_id))

    def test_unassigned_mission_denied_to_agents(self) -> None:
        assert not can_mutate_attachments(AGENT, _mission(None))

    def test_decision_follows_reassignment(self) -> None:
        mission = _mission(AGENT.actor_id)
        assert can_mutate_attachments(AGENT, mission)
        mission.assigned_agent_id = OTHER_AGENT.actor_id
        assert not can_mutate_attachments(AGENT, mission)
        assert can_mutate_attachments(OTHER_AGENT, mission)

    def test_guard_raises(self) -> None:
        with pytest.raises(PermissionDenied):
            require_attachment_access(OTHER_AGENT, _mission(AGENT.actor_id))


class TestGuards:
    def test_require_manager(self) -> None:
        require_manager(MANAGER)
        with pytest.raises(PermissionDenied):
            require_manager(AGENT)

    def test_view_limited_to_assignment(self) -> None:
        assert can_view_mission(AGENT, _mission(AGENT.actor_id))
        assert not can_view_mission(OTHER_AGENT, _mission(AGENT.actor_id))

    def test_status_access(self) -> None:
        require_status_access(AGENT, _mission(AGENT.actor_id))
        with pytest.raises(PermissionDenied):
            require_status_access(OTHER_AGENT, _mission(AGENT.actor_id))
