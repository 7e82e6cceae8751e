"""
claimdesk/blueprints/missions/routes.py

Mission routes (JSON)

Includes:
- list / create / detail / update / delete
- status transitions
- damage ledger and labor ledger (grid, single category, supplies)
- valuation and the settlement override

IMPORTANT:
- UI is never trusted. Each route builds the ActorContext and the service enforces
  access control and validation.
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ... import ledgers, missions
from ...security import current_actor, manager_required

missions_bp = Blueprint("missions", __name__, url_prefix="/api/missions")


def _payload():
    return request.get_json(silent=True)


# ---------------------------------------------------------------------
# Missions
# ---------------------------------------------------------------------
@missions_bp.route("", methods=["GET"])
@login_required
def list_missions():
    actor = current_actor()
    rows = missions.list_missions(actor, status=request.args.get("status"))
    return jsonify({"missions": [m.to_dict() for m in rows]})


@missions_bp.route("", methods=["POST"])
@login_required
@manager_required
def create_mission():
    actor = current_actor()
    mission = missions.create_mission(actor, _payload())
    return jsonify(missions.mission_detail(actor, mission)), 201


@missions_bp.route("/<int:mission_id>", methods=["GET"])
@login_required
def mission_detail(mission_id: int):
    actor = current_actor()
    mission = missions.get_mission_for(actor, mission_id)
    return jsonify(missions.mission_detail(actor, mission))


@missions_bp.route("/<int:mission_id>", methods=["PUT"])
@login_required
def update_mission(mission_id: int):
    actor = current_actor()
    mission = missions.update_mission(actor, mission_id, _payload())
    return jsonify(missions.mission_detail(actor, mission))


@missions_bp.route("/<int:mission_id>", methods=["DELETE"])
@login_required
def delete_mission(mission_id: int):
    missions.delete_mission(current_actor(), mission_id)
    return "", 204


@missions_bp.route("/<int:mission_id>/status", methods=["PATCH"])
@login_required
def change_status(mission_id: int):
    actor = current_actor()
    body = _payload()
    target = None
    if isinstance(body, dict):
        # first-version clients send the French key
        target = body["status"] if "status" in body else body.get("statut")
    mission = missions.change_status(actor, mission_id, target)
    return jsonify(missions.mission_detail(actor, mission))


# ---------------------------------------------------------------------
# Valuation & settlement
# ---------------------------------------------------------------------
@missions_bp.route("/<int:mission_id>/valuation", methods=["GET"])
@login_required
def valuation(mission_id: int):
    mission = missions.get_mission_for(current_actor(), mission_id)
    return jsonify(missions.mission_valuation(mission).to_dict())


@missions_bp.route("/<int:mission_id>/indemnisation/recalculate", methods=["POST"])
@login_required
def recalculate_indemnisation(mission_id: int):
    result = missions.recalculate_indemnisation(current_actor(), mission_id)
    return jsonify(result.to_dict())


@missions_bp.route("/<int:mission_id>/indemnisation", methods=["PUT"])
@login_required
def set_indemnisation(mission_id: int):
    result = missions.set_final_indemnisation(current_actor(), mission_id, _payload())
    return jsonify(result.to_dict())


# ---------------------------------------------------------------------
# Damage ledger
# ---------------------------------------------------------------------
@missions_bp.route("/<int:mission_id>/damages", methods=["GET"])
@login_required
def list_damages(mission_id: int):
    mission = missions.get_mission_for(current_actor(), mission_id)
    return jsonify(ledgers.damage_snapshot(mission).to_dict())


@missions_bp.route("/<int:mission_id>/damages", methods=["POST"])
@login_required
def add_damage(mission_id: int):
    snapshot = ledgers.add_damage_line(current_actor(), mission_id, _payload())
    return jsonify(snapshot.to_dict()), 201


@missions_bp.route("/<int:mission_id>/damages/<int:line_id>", methods=["PUT"])
@login_required
def update_damage(mission_id: int, line_id: int):
    snapshot = ledgers.update_damage_line(current_actor(), mission_id, line_id, _payload())
    return jsonify(snapshot.to_dict())


@missions_bp.route("/<int:mission_id>/damages/<int:line_id>", methods=["DELETE"])
@login_required
def delete_damage(mission_id: int, line_id: int):
    snapshot = ledgers.delete_damage_line(current_actor(), mission_id, line_id)
    return jsonify(snapshot.to_dict())


# ---------------------------------------------------------------------
# Labor ledger
# ---------------------------------------------------------------------
@missions_bp.route("/<int:mission_id>/labors", methods=["GET"])
@login_required
def list_labors(mission_id: int):
    mission = missions.get_mission_for(current_actor(), mission_id)
    return jsonify(ledgers.labor_snapshot(mission).to_dict())


@missions_bp.route("/<int:mission_id>/labors", methods=["PUT"])
@login_required
def save_labors(mission_id: int):
    snapshot = ledgers.save_labors(current_actor(), mission_id, _payload())
    return jsonify(snapshot.to_dict())


@missions_bp.route("/<int:mission_id>/labors/<category>", methods=["PUT"])
@login_required
def set_labor_entry(mission_id: int, category: str):
    snapshot = ledgers.set_labor_entry(current_actor(), mission_id, category, _payload())
    return jsonify(snapshot.to_dict())


@missions_bp.route("/<int:mission_id>/supplies", methods=["PUT"])
@login_required
def set_supplies(mission_id: int):
    snapshot = ledgers.set_supplies(current_actor(), mission_id, _payload())
    return jsonify(snapshot.to_dict())
