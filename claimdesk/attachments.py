"""
claimdesk/attachments.py

Photo and document metadata of a mission.

Access (re-evaluated on every call, inside the write scope so a concurrent reassignment
is seen): manager, or the agent the mission is assigned to.
File storage is external; only filename / url / mime type are recorded here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from .audit import log_action, serialize_model
from .enums import PhotoPhase
from .errors import NotFound, ValidationError
from .extensions import db
from .models import MissionDocument, MissionPhoto
from .security import ActorContext, require_attachment_access
from .store import mission_write_scope
from .utils import PayloadReader

logger = logging.getLogger(__name__)

DEFAULT_PHOTO_LABELS = {
    PhotoPhase.AVANT: "Avant reparation",
    PhotoPhase.APRES: "Apres reparation",
}


@dataclass(frozen=True)
class PhotoInput:
    filename: str
    url: str


@dataclass(frozen=True)
class PhotoBatchInput:
    phase: PhotoPhase
    label: str
    files: List[PhotoInput]

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> "PhotoBatchInput":
        reader = PayloadReader(payload)
        phase = reader.enum(PhotoPhase, "phase", default=PhotoPhase.AVANT)
        label = reader.text("label", max_length=120)

        files: List[PhotoInput] = []
        raw_files = reader.payload.get("files")
        if not isinstance(raw_files, list) or not raw_files:
            reader.errors["files"] = "Au moins un fichier est requis"
            raw_files = []

        for idx, raw in enumerate(raw_files):
            try:
                item = PayloadReader(raw)
            except ValidationError as exc:
                reader.errors[f"files[{idx}]"] = exc.message
                continue
            filename = item.text("filename", required=True, max_length=255)
            url = item.text("url", required=True, max_length=500)
            for key, message in item.errors.items():
                reader.errors[f"files[{idx}].{key}"] = message
            if not item.errors:
                files.append(PhotoInput(filename=filename, url=url))

        reader.raise_if_errors()
        return cls(phase=phase, label=label or DEFAULT_PHOTO_LABELS[phase], files=files)


@dataclass(frozen=True)
class DocumentInput:
    original_name: str
    mime_type: Optional[str]
    url: str

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> "DocumentInput":
        reader = PayloadReader(payload)
        name = reader.text("original_name", required=True, max_length=255)
        mime = reader.text("mime_type", max_length=120)
        url = reader.text("url", required=True, max_length=500)
        reader.raise_if_errors()
        return cls(original_name=name, mime_type=mime, url=url)


def _photos(mission) -> List[dict]:
    return [photo.to_dict() for photo in mission.photos]


def _documents(mission) -> List[dict]:
    return [doc.to_dict() for doc in mission.documents]


# ---------------------------------------------------------------------
# Photos
# ---------------------------------------------------------------------
def add_photos(actor: ActorContext, mission_id: int, payload) -> List[dict]:
    """Attach one or many photos (same phase and label) to a mission."""
    data = PhotoBatchInput.from_payload(payload)

    with mission_write_scope(mission_id) as mission:
        require_attachment_access(actor, mission)
        for item in data.files:
            photo = MissionPhoto(
                phase=data.phase,
                label=data.label,
                filename=item.filename,
                url=item.url,
                uploaded_by_id=actor.actor_id,
            )
            mission.photos.append(photo)
            db.session.flush()
            log_action(actor, photo, "CREATE", after=serialize_model(photo))

    logger.info("%s photo(s) added to mission #%s by user %s", len(data.files), mission_id, actor.actor_id)
    return _photos(mission)


def delete_photo(actor: ActorContext, mission_id: int, photo_id: int) -> List[dict]:
    with mission_write_scope(mission_id) as mission:
        require_attachment_access(actor, mission)
        photo = next((p for p in mission.photos if p.id == photo_id), None)
        if photo is None:
            raise NotFound(f"Photo #{photo_id} introuvable pour la mission #{mission_id}")
        log_action(actor, photo, "DELETE", before=serialize_model(photo))
        mission.photos.remove(photo)
        db.session.flush()

    logger.info("Photo #%s of mission #%s deleted by user %s", photo_id, mission_id, actor.actor_id)
    return _photos(mission)


# ---------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------
def add_document(actor: ActorContext, mission_id: int, payload) -> List[dict]:
    data = DocumentInput.from_payload(payload)

    with mission_write_scope(mission_id) as mission:
        require_attachment_access(actor, mission)
        doc = MissionDocument(
            original_name=data.original_name,
            mime_type=data.mime_type,
            url=data.url,
            uploaded_by_id=actor.actor_id,
        )
        mission.documents.append(doc)
        db.session.flush()
        log_action(actor, doc, "CREATE", after=serialize_model(doc))

    logger.info("Document %r added to mission #%s by user %s", data.original_name, mission_id, actor.actor_id)
    return _documents(mission)


def delete_document(actor: ActorContext, mission_id: int, document_id: int) -> List[dict]:
    with mission_write_scope(mission_id) as mission:
        require_attachment_access(actor, mission)
        doc = next((d for d in mission.documents if d.id == document_id), None)
        if doc is None:
            raise NotFound(f"Document #{document_id} introuvable pour la mission #{mission_id}")
        log_action(actor, doc, "DELETE", before=serialize_model(doc))
        mission.documents.remove(doc)
        db.session.flush()

    logger.info("Document #%s of mission #%s deleted by user %s", document_id, mission_id, actor.actor_id)
    return _documents(mission)
