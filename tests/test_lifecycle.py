"""Mission status state machine: forward-only, terminal status reserved to managers."""

import pytest

from claimdesk.enums import MissionStatus, Role, parse_status
from claimdesk.errors import InvalidTransition, PermissionDenied, ValidationError
from claimdesk.lifecycle import allowed_targets, check_transition
from claimdesk.security import ActorContext

MANAGER = ActorContext(actor_id=1, role=Role.MANAGER, username="manager")
AGENT = ActorContext(actor_id=2, role=Role.AGENT, username="agent")


class TestCheckTransition:
    def test_forward_step(self) -> None:
        assert check_transition(AGENT, MissionStatus.CREATED, MissionStatus.ASSIGNED) is True

    def test_skipping_intermediate_statuses(self) -> None:
        assert check_transition(AGENT, MissionStatus.CREATED, MissionStatus.IN_PROGRESS) is True
        assert check_transition(MANAGER, MissionStatus.CREATED, MissionStatus.COMPLETED) is True

    def test_same_status_is_noop(self) -> None:
        assert check_transition(AGENT, MissionStatus.IN_PROGRESS, MissionStatus.IN_PROGRESS) is False
        assert check_transition(AGENT, MissionStatus.COMPLETED, MissionStatus.COMPLETED) is False

    @pytest.mark.parametrize("actor", [MANAGER, AGENT])
    def test_backward_rejected_for_everyone(self, actor) -> None:
        with pytest.raises(InvalidTransition):
            check_transition(actor, MissionStatus.IN_PROGRESS, MissionStatus.ASSIGNED)

    def test_completed_is_terminal(self) -> None:
        with pytest.raises(InvalidTransition):
            check_transition(MANAGER, MissionStatus.COMPLETED, MissionStatus.IN_PROGRESS)

    def test_agent_cannot_complete(self) -> None:
        with pytest.raises(PermissionDenied):
            check_transition(AGENT, MissionStatus.IN_PROGRESS, MissionStatus.COMPLETED)

    def test_manager_completes(self) -> None:
        assert check_transition(MANAGER, MissionStatus.IN_PROGRESS, MissionStatus.COMPLETED) is True


class TestAllowedTargets:
    def test_manager_from_assigned(self) -> None:
        assert allowed_targets(MANAGER, MissionStatus.ASSIGNED) == [
            MissionStatus.ASSIGNED,
            MissionStatus.IN_PROGRESS,
            MissionStatus.COMPLETED,
        ]

    def test_agent_never_offered_completed(self) -> None:
        assert allowed_targets(AGENT, MissionStatus.CREATED) == [
            MissionStatus.CREATED,
            MissionStatus.ASSIGNED,
            MissionStatus.IN_PROGRESS,
        ]

    def test_completed_mission_offers_only_itself(self) -> None:
        assert allowed_targets(AGENT, MissionStatus.COMPLETED) == [MissionStatus.COMPLETED]


class TestParseStatus:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("in_progress", MissionStatus.IN_PROGRESS),
            ("IN-PROGRESS", MissionStatus.IN_PROGRESS),
            ("en_cours", MissionStatus.IN_PROGRESS),
            ("terminee", MissionStatus.COMPLETED),
            ("Affectee", MissionStatus.ASSIGNED),
        ],
    )
    def test_accepted_values(self, raw, expected) -> None:
        assert parse_status(raw) is expected

    @pytest.mark.parametrize("raw", ["", None, "archived"])
    def test_rejected_values(self, raw) -> None:
        with pytest.raises(ValidationError) as exc:
            parse_status(raw)
        assert "status" in exc.value.fields
