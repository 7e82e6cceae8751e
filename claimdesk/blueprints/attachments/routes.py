"""
claimdesk/blueprints/attachments/routes.py

Photo / document metadata of a mission.

Manager, or the agent assigned to the mission (checked by the service on every call).
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ... import attachments, missions
from ...security import current_actor

attachments_bp = Blueprint("attachments", __name__, url_prefix="/api/missions")


@attachments_bp.route("/<int:mission_id>/photos", methods=["GET"])
@login_required
def list_photos(mission_id: int):
    mission = missions.get_mission_for(current_actor(), mission_id)
    return jsonify({"photos": [p.to_dict() for p in mission.photos]})


@attachments_bp.route("/<int:mission_id>/photos", methods=["POST"])
@login_required
def add_photos(mission_id: int):
    photos = attachments.add_photos(current_actor(), mission_id, request.get_json(silent=True))
    return jsonify({"photos": photos}), 201


@attachments_bp.route("/<int:mission_id>/photos/<int:photo_id>", methods=["DELETE"])
@login_required
def delete_photo(mission_id: int, photo_id: int):
    photos = attachments.delete_photo(current_actor(), mission_id, photo_id)
    return jsonify({"photos": photos})


@attachments_bp.route("/<int:mission_id>/documents", methods=["GET"])
@login_required
def list_documents(mission_id: int):
    mission = missions.get_mission_for(current_actor(), mission_id)
    return jsonify({"documents": [d.to_dict() for d in mission.documents]})


@attachments_bp.route("/<int:mission_id>/documents", methods=["POST"])
@login_required
def add_document(mission_id: int):
    documents = attachments.add_document(current_actor(), mission_id, request.get_json(silent=True))
    return jsonify({"documents": documents}), 201


@attachments_bp.route("/<int:mission_id>/documents/<int:document_id>", methods=["DELETE"])
@login_required
def delete_document(mission_id: int, document_id: int):
    documents = attachments.delete_document(current_actor(), mission_id, document_id)
    return jsonify({"documents": documents})
