"""
claimdesk/audit.py

Audit logging helper utilities.

Goals:
- Capture WHO did WHAT to WHICH entity, with BEFORE/AFTER snapshots.
- Store username snapshot to preserve identity even if username changes later.
- Store the owning mission id so a mission's full history survives its deletion.
- Store IP address for traceability (when called within a request).

IMPORTANT:
- This helper ADDS AuditLog entries to the current SQLAlchemy session.
  The caller controls transaction boundaries (store.mission_write_scope commits/rolls back).
- The actor is passed explicitly; no hidden request globals for identity.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from flask import has_request_context, request

from .extensions import db
from .models import AuditLog
from .security import ActorContext


def _safe_str(value: Any) -> Optional[str]:
    """
    Convert a value to a stable string representation suitable for JSON and DB storage.

    - Enums: their value.
    - Decimal/datetime/etc: str(value).
    - None: None.
    """
    if value is None:
        return None
    enum_value = getattr(value, "value", None)
    if enum_value is not None and not callable(enum_value):
        return str(enum_value)
    return str(value)


def serialize_model(instance: Any) -> Dict[str, Optional[str]]:
    """
    Convert a SQLAlchemy model instance to a dict snapshot based on table columns.

    Captures only scalar column values (not relationships).
    """
    data: Dict[str, Optional[str]] = {}
    for column in instance.__table__.columns:
        data[column.name] = _safe_str(getattr(instance, column.key))
    return data


def log_action(
    actor: ActorContext,
    entity: Any,
    action: str,
    *,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
    mission_id: Optional[int] = None,
) -> AuditLog:
    """
    Add an AuditLog entry to the current db session.

    Parameters:
        actor: who performs the action
        entity: SQLAlchemy model instance with .id (flush first for new rows)
        action: CREATE / UPDATE / DELETE / STATUS / RECALCULATE ...
        before / after: dict snapshots (optional)
        mission_id: owning mission (defaults to entity.mission_id, or entity.id for a Mission)
    """
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        raise ValueError("log_action entity must have an 'id' attribute (after flush).")

    if mission_id is None:
        mission_id = getattr(entity, "mission_id", None)
    if mission_id is None and entity.__class__.__name__ == "Mission":
        mission_id = entity_id

    entry = AuditLog(
        user_id=actor.actor_id,
        username_snapshot=actor.username,
        entity_type=entity.__class__.__name__,
        entity_id=int(entity_id),
        mission_id=mission_id,
        action=str(action),
        before_data=json.dumps(before, ensure_ascii=False) if before else None,
        after_data=json.dumps(after, ensure_ascii=False) if after else None,
        ip_address=request.remote_addr if has_request_context() else None,
    )
    db.session.add(entry)
    return entry
