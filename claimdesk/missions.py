"""
claimdesk/missions.py

Mission services: create / read / update / delete, status transitions, valuation and the
settlement override.

Rules:
- Field edits (dossier, assignment, guarantee terms) are manager-only.
- Status: manager or the assigned agent; lifecycle.check_transition decides the rest.
- Valuation is recomputed from the persisted ledgers on every read (never cached).
- final_indemnisation is written only by recalculate_indemnisation (copies the current
  recommendation) or set_final_indemnisation (manual entry). Ledger or guarantee edits
  never rewrite it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from .audit import log_action, serialize_model
from .enums import GuaranteeType, MissionStatus, Role, parse_optional_guarantee, parse_status
from .errors import ValidationError
from .extensions import db
from .ledgers import MAX_AMOUNT, damage_snapshot, ensure_labor_grid, labor_snapshot
from .lifecycle import allowed_targets, check_transition
from .models import Mission, User
from .security import (
    ActorContext,
    can_mutate_attachments,
    require_manager,
    require_mission_view,
    require_status_access,
)
from .store import get_mission, mission_write_scope
from .utils import PayloadReader
from .valuation import ValuationResult, damage_totals, evaluate, labor_totals

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")

_TEXT_FIELDS = {
    "insured_name": 255,
    "insured_phone": 50,
    "insured_email": 255,
    "vehicle_brand": 120,
    "vehicle_model": 120,
    "vehicle_registration": 50,
    "vehicle_year": 20,
    "claim_code": 80,
    "claim_policy": 80,
    "claim_circumstances": 5000,
    "garage_name": 255,
}


# ---------------------------------------------------------------------
# Typed input
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class MissionInput:
    """
    Mission fields present in a create/update payload.

    `values` only holds the keys the caller sent (partial update); every value is
    already typed and validated.
    """

    values: Dict[str, Any] = field(default_factory=dict)
    status: Optional[MissionStatus] = None

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]], *, creating: bool) -> "MissionInput":
        reader = PayloadReader(payload)
        values: Dict[str, Any] = {}

        for key, max_length in _TEXT_FIELDS.items():
            if creating or reader.has(key):
                values[key] = reader.text(key, required=(key == "insured_name"), max_length=max_length)

        if reader.has("claim_date"):
            values["claim_date"] = reader.date("claim_date")

        if reader.has("assigned_agent_id"):
            values["assigned_agent_id"] = reader.integer("assigned_agent_id")

        if reader.has("guarantee_type"):
            try:
                values["guarantee_type"] = parse_optional_guarantee(reader.payload.get("guarantee_type"))
            except ValidationError as exc:
                reader.errors.update(exc.fields)

        if reader.has("franchise_rate_percent"):
            values["franchise_rate_percent"] = reader.decimal(
                "franchise_rate_percent", minimum=ZERO, maximum=HUNDRED, default=ZERO, places=2
            )
        if reader.has("franchise_fixed_amount"):
            values["franchise_fixed_amount"] = reader.decimal(
                "franchise_fixed_amount", minimum=ZERO, maximum=MAX_AMOUNT, default=ZERO, places=2
            )

        status = None
        if not creating and reader.has("status"):
            try:
                status = parse_status(reader.payload.get("status"))
            except ValidationError as exc:
                reader.errors.update(exc.fields)

        reader.raise_if_errors()
        return cls(values=values, status=status)


def _validate_assignee(agent_id: Optional[int]) -> Optional[User]:
    """Assignee must be an active manager or agent account."""
    if agent_id is None:
        return None
    user = db.session.get(User, agent_id)
    if user is None or not user.is_active or user.role not in (Role.AGENT, Role.MANAGER):
        raise ValidationError(
            "Responsable invalide",
            fields={"assigned_agent_id": "Utilisateur introuvable ou inactif"},
        )
    return user


# ---------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------
def mission_valuation(mission: Mission) -> ValuationResult:
    """Valuation from the current persisted ledgers and guarantee terms."""
    return evaluate(
        damage_totals(mission.damage_lines),
        labor_totals(mission.labor_entries, mission.supplies_ht, mission.supplies_ttc),
        mission.guarantee_terms,
        final_indemnisation=mission.final_indemnisation,
    )


def get_mission_for(actor: ActorContext, mission_id: int) -> Mission:
    mission = get_mission(mission_id)
    require_mission_view(actor, mission)
    return mission


def list_missions(actor: ActorContext, status=None) -> List[Mission]:
    """Managers see every mission; agents only the ones assigned to them."""
    q = Mission.query
    if not actor.is_manager:
        q = q.filter(Mission.assigned_agent_id == actor.actor_id)
    if status:
        q = q.filter(Mission.status == parse_status(status))
    return q.order_by(Mission.created_at.desc(), Mission.id.desc()).all()


def mission_detail(actor: ActorContext, mission: Mission) -> dict:
    """Everything the mission page shows, computed from the current state."""
    return {
        "mission": mission.to_dict(),
        "damages": damage_snapshot(mission).to_dict(),
        "labors": labor_snapshot(mission).to_dict(),
        "valuation": mission_valuation(mission).to_dict(),
        "photos": [photo.to_dict() for photo in mission.photos],
        "documents": [doc.to_dict() for doc in mission.documents],
        "allowed_statuses": [s.value for s in allowed_targets(actor, mission.status)],
        "can_manage_attachments": can_mutate_attachments(actor, mission),
    }


# ---------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------
def create_mission(actor: ActorContext, payload) -> Mission:
    require_manager(actor)
    data = MissionInput.from_payload(payload, creating=True)
    _validate_assignee(data.values.get("assigned_agent_id"))

    mission = Mission(status=MissionStatus.CREATED, **data.values)
    try:
        db.session.add(mission)
        ensure_labor_grid(mission)
        db.session.flush()
        log_action(actor, mission, "CREATE", after=serialize_model(mission))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Mission #%s created by user %s", mission.id, actor.actor_id)
    return mission


def update_mission(actor: ActorContext, mission_id: int, payload) -> Mission:
    """Partial update of dossier fields, assignment, guarantee terms (and optionally status)."""
    require_manager(actor)
    data = MissionInput.from_payload(payload, creating=False)
    if "assigned_agent_id" in data.values:
        _validate_assignee(data.values["assigned_agent_id"])

    with mission_write_scope(mission_id) as mission:
        before = serialize_model(mission)
        for key, value in data.values.items():
            setattr(mission, key, value)
        if data.status is not None:
            check_transition(actor, mission.status, data.status)
            mission.status = data.status
        db.session.flush()
        log_action(actor, mission, "UPDATE", before=before, after=serialize_model(mission))

    logger.info("Mission #%s updated by user %s", mission_id, actor.actor_id)
    return mission


def update_guarantee_terms(
    actor: ActorContext,
    mission_id: int,
    guarantee_type: Optional[GuaranteeType],
    franchise_rate_percent: Decimal = ZERO,
    franchise_fixed_amount: Decimal = ZERO,
) -> Mission:
    """Typed shortcut over update_mission for the guarantee block."""
    return update_mission(
        actor,
        mission_id,
        {
            "guarantee_type": guarantee_type.value if guarantee_type else None,
            "franchise_rate_percent": franchise_rate_percent,
            "franchise_fixed_amount": franchise_fixed_amount,
        },
    )


def delete_mission(actor: ActorContext, mission_id: int) -> None:
    require_manager(actor)

    with mission_write_scope(mission_id) as mission:
        log_action(actor, mission, "DELETE", before=serialize_model(mission))
        db.session.delete(mission)

    logger.info("Mission #%s deleted by user %s", mission_id, actor.actor_id)


def change_status(actor: ActorContext, mission_id: int, target) -> Mission:
    """
    Move the mission to `target`.

    Lifecycle rules are checked first (so a backward move is always InvalidTransition),
    then the caller must be a manager or the assigned agent.
    """
    target_status = parse_status(target)

    with mission_write_scope(mission_id) as mission:
        current = mission.status
        changed = check_transition(actor, current, target_status)
        require_status_access(actor, mission)
        if changed:
            mission.status = target_status
            log_action(
                actor,
                mission,
                "STATUS",
                before={"status": current.value},
                after={"status": target_status.value},
            )

    if changed:
        logger.info(
            "Mission #%s status %s -> %s by user %s", mission_id, current.value, target_status.value, actor.actor_id
        )
    return mission


def recalculate_indemnisation(actor: ActorContext, mission_id: int) -> ValuationResult:
    """Copy the current recommended settlement into the stored override."""
    require_manager(actor)

    with mission_write_scope(mission_id) as mission:
        result = mission_valuation(mission)
        before = {"final_indemnisation": None if mission.final_indemnisation is None else str(mission.final_indemnisation)}
        mission.final_indemnisation = result.recommended_indemnisation
        log_action(
            actor,
            mission,
            "RECALCULATE",
            before=before,
            after={"final_indemnisation": str(result.recommended_indemnisation)},
        )

    logger.info(
        "Mission #%s indemnisation recalculated to %s by user %s",
        mission_id,
        result.recommended_indemnisation,
        actor.actor_id,
    )
    return mission_valuation(mission)


def set_final_indemnisation(actor: ActorContext, mission_id: int, payload) -> ValuationResult:
    """Manual settlement entry; null clears the override."""
    require_manager(actor)
    reader = PayloadReader(payload)
    if not reader.has("final_indemnisation"):
        raise ValidationError("Montant manquant", fields={"final_indemnisation": "Champ obligatoire"})
    amount = reader.decimal("final_indemnisation", minimum=ZERO, maximum=MAX_AMOUNT, places=2)
    reader.raise_if_errors()

    with mission_write_scope(mission_id) as mission:
        before = {"final_indemnisation": None if mission.final_indemnisation is None else str(mission.final_indemnisation)}
        mission.final_indemnisation = amount
        log_action(
            actor,
            mission,
            "INDEMNISATION",
            before=before,
            after={"final_indemnisation": None if amount is None else str(amount)},
        )

    logger.info("Mission #%s indemnisation set to %s by user %s", mission_id, amount, actor.actor_id)
    return mission_valuation(mission)

