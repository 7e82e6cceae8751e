"""
claimdesk/store.py

Mission record store: loading missions and the per-mission write scope.

Every mutation of a mission (fields, status, ledgers, override, attachments) runs inside
mission_write_scope(mission_id):

1. the mission row is loaded with SELECT ... FOR UPDATE (row lock where the database supports it),
2. the caller mutates and adds its audit rows,
3. the mission row is touched so its version counter is bumped and checked,
4. the transaction commits; any exception rolls everything back.

A version mismatch means another writer changed the mission in between: Conflict.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm.exc import StaleDataError

from .errors import Conflict, NotFound
from .extensions import db
from .models import Mission

logger = logging.getLogger(__name__)


def get_mission(mission_id: int, *, for_update: bool = False) -> Mission:
    """Load a mission or raise NotFound."""
    if for_update:
        mission = db.session.get(Mission, mission_id, with_for_update=True)
    else:
        mission = db.session.get(Mission, mission_id)
    if mission is None:
        raise NotFound(f"Mission #{mission_id} introuvable")
    return mission


@contextmanager
def mission_write_scope(mission_id: int) -> Iterator[Mission]:
    """Serialize one write on a mission; commit on success, rollback on any error."""
    try:
        mission = get_mission(mission_id, for_update=True)
        yield mission
        if mission not in db.session.deleted:
            mission.touch()
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        logger.error("Concurrent modification detected on mission #%s", mission_id)
        raise Conflict("La mission a ete modifiee entre-temps, rechargez-la.") from exc
    except Exception:
        db.session.rollback()
        raise
