"""
claimdesk/ledgers.py

Damage ledger and labor ledger of a mission.

Damage ledger:
- add / update / delete itemized damage lines
- every call returns the full line list with recomputed totals

Labor ledger:
- fixed grid, one LaborEntry per LaborCategory, created with the mission
- set_labor_entry replaces hours/rate of one category; categories are never added or removed
- set_supplies sets supplies HT and TTC independently (TTC may be entered by hand)
- save_labors applies the whole grid + supplies in one write

All writes:
- manager only
- input validated BEFORE the mission is touched (ValidationError carries every bad field)
- run inside store.mission_write_scope (all-or-nothing, serialized per mission)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from .audit import log_action, serialize_model
from .enums import LaborCategory, PieceType, parse_enum
from .errors import NotFound, ValidationError
from .extensions import db
from .models import DamageLine, LaborEntry, Mission
from .security import ActorContext, require_manager
from .store import mission_write_scope
from .utils import PayloadReader
from .valuation import DamageTotals, LaborTotals, damage_totals, labor_totals

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Upper bounds of the Numeric(12,2) amount columns and Numeric(8,2) hours column
MAX_AMOUNT = Decimal("9999999999.99")
MAX_HOURS = Decimal("999999.99")


# ---------------------------------------------------------------------
# Typed inputs
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class DamageLineInput:
    piece: str
    piece_type: PieceType
    price_ht: Decimal
    vetuste_percent: Decimal
    vat_applicable: bool

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> "DamageLineInput":
        reader = PayloadReader(payload)
        piece = reader.text("piece", required=True, max_length=255)
        piece_type = reader.enum(PieceType, "piece_type", default=PieceType.ORIGINE)
        price_ht = reader.decimal("price_ht", required=True, minimum=ZERO, maximum=MAX_AMOUNT, places=2)
        vetuste = reader.decimal("vetuste_percent", minimum=ZERO, maximum=HUNDRED, default=ZERO, places=2)
        vat = reader.boolean("vat_applicable", default=True)
        reader.raise_if_errors()
        return cls(piece=piece, piece_type=piece_type, price_ht=price_ht, vetuste_percent=vetuste, vat_applicable=vat)

    def apply_to(self, line: DamageLine) -> None:
        line.piece = self.piece
        line.piece_type = self.piece_type
        line.price_ht = self.price_ht
        line.vetuste_percent = self.vetuste_percent
        line.vat_applicable = self.vat_applicable


@dataclass(frozen=True)
class LaborEntryInput:
    category: LaborCategory
    hours: Decimal
    hourly_rate: Decimal

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]], category=None) -> "LaborEntryInput":
        reader = PayloadReader(payload)
        if category is None:
            parsed_category = reader.enum(LaborCategory, "category")
        else:
            parsed_category = parse_enum(LaborCategory, category, "category")
        hours = reader.decimal("hours", minimum=ZERO, maximum=MAX_HOURS, default=ZERO, places=2)
        rate = reader.decimal("hourly_rate", minimum=ZERO, maximum=MAX_AMOUNT, default=ZERO, places=2)
        reader.raise_if_errors()
        return cls(category=parsed_category, hours=hours, hourly_rate=rate)


@dataclass(frozen=True)
class SuppliesInput:
    ht: Decimal
    ttc: Decimal

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> "SuppliesInput":
        reader = PayloadReader(payload)
        ht = reader.decimal("ht", minimum=ZERO, maximum=MAX_AMOUNT, default=ZERO, places=2)
        ttc = reader.decimal("ttc", minimum=ZERO, maximum=MAX_AMOUNT, default=ZERO, places=2)
        reader.raise_if_errors()
        return cls(ht=ht, ttc=ttc)


@dataclass(frozen=True)
class LaborGridInput:
    entries: List[LaborEntryInput] = field(default_factory=list)
    supplies: Optional[SuppliesInput] = None

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> "LaborGridInput":
        reader = PayloadReader(payload)
        errors: Dict[str, str] = {}
        entries: List[LaborEntryInput] = []
        seen = set()

        raw_entries = reader.payload.get("entries") or []
        if not isinstance(raw_entries, list):
            errors["entries"] = "Liste attendue"
            raw_entries = []

        for idx, raw in enumerate(raw_entries):
            try:
                entry = LaborEntryInput.from_payload(raw)
            except ValidationError as exc:
                if not exc.fields:
                    errors[f"entries[{idx}]"] = exc.message
                for key, message in exc.fields.items():
                    errors[f"entries[{idx}].{key}"] = message
                continue
            if entry.category in seen:
                errors[f"entries[{idx}].category"] = "Categorie en double"
                continue
            seen.add(entry.category)
            entries.append(entry)

        supplies = None
        if reader.has("supplies") and reader.payload.get("supplies") is not None:
            try:
                supplies = SuppliesInput.from_payload(reader.payload.get("supplies"))
            except ValidationError as exc:
                if not exc.fields:
                    errors["supplies"] = exc.message
                for key, message in exc.fields.items():
                    errors[f"supplies.{key}"] = message

        reader.errors.update(errors)
        reader.raise_if_errors()
        return cls(entries=entries, supplies=supplies)


# ---------------------------------------------------------------------
# Snapshots (what every ledger call returns)
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class DamageLedgerSnapshot:
    lines: List[dict]
    totals: DamageTotals

    def to_dict(self) -> dict:
        return {"lines": self.lines, "totals": self.totals.to_dict()}


@dataclass(frozen=True)
class LaborLedgerSnapshot:
    entries: List[dict]
    totals: LaborTotals

    def to_dict(self) -> dict:
        return {"entries": self.entries, "totals": self.totals.to_dict()}


def damage_snapshot(mission: Mission) -> DamageLedgerSnapshot:
    lines = list(mission.damage_lines)
    return DamageLedgerSnapshot(lines=[line.to_dict() for line in lines], totals=damage_totals(lines))


def labor_snapshot(mission: Mission) -> LaborLedgerSnapshot:
    order = {category: idx for idx, category in enumerate(LaborCategory)}
    entries = sorted(mission.labor_entries, key=lambda e: order[e.category])
    return LaborLedgerSnapshot(
        entries=[entry.to_dict() for entry in entries],
        totals=labor_totals(entries, mission.supplies_ht, mission.supplies_ttc),
    )


# ---------------------------------------------------------------------
# Damage ledger
# ---------------------------------------------------------------------
def _damage_line_of(mission: Mission, line_id: int) -> DamageLine:
    for line in mission.damage_lines:
        if line.id == line_id:
            return line
    raise NotFound(f"Ligne de dommage #{line_id} introuvable pour la mission #{mission.id}")


def add_damage_line(actor: ActorContext, mission_id: int, payload) -> DamageLedgerSnapshot:
    require_manager(actor)
    data = DamageLineInput.from_payload(payload)

    with mission_write_scope(mission_id) as mission:
        line = DamageLine()
        data.apply_to(line)
        mission.damage_lines.append(line)
        db.session.flush()
        log_action(actor, line, "CREATE", after=serialize_model(line))

    logger.info("Damage line #%s added to mission #%s by user %s", line.id, mission_id, actor.actor_id)
    return damage_snapshot(mission)


def update_damage_line(actor: ActorContext, mission_id: int, line_id: int, payload) -> DamageLedgerSnapshot:
    require_manager(actor)
    data = DamageLineInput.from_payload(payload)

    with mission_write_scope(mission_id) as mission:
        line = _damage_line_of(mission, line_id)
        before = serialize_model(line)
        data.apply_to(line)
        db.session.flush()
        log_action(actor, line, "UPDATE", before=before, after=serialize_model(line))

    logger.info("Damage line #%s of mission #%s updated by user %s", line_id, mission_id, actor.actor_id)
    return damage_snapshot(mission)


def delete_damage_line(actor: ActorContext, mission_id: int, line_id: int) -> DamageLedgerSnapshot:
    require_manager(actor)

    with mission_write_scope(mission_id) as mission:
        line = _damage_line_of(mission, line_id)
        before = serialize_model(line)
        log_action(actor, line, "DELETE", before=before)
        mission.damage_lines.remove(line)
        db.session.flush()

    logger.info("Damage line #%s of mission #%s deleted by user %s", line_id, mission_id, actor.actor_id)
    return damage_snapshot(mission)


# ---------------------------------------------------------------------
# Labor ledger
# ---------------------------------------------------------------------
def ensure_labor_grid(mission: Mission) -> None:
    """Create the missing fixed-category entries (new missions, or categories added later)."""
    existing = {entry.category for entry in mission.labor_entries}
    for category in LaborCategory:
        if category not in existing:
            mission.labor_entries.append(
                LaborEntry(category=category, hours=Decimal("0.00"), hourly_rate=Decimal("0.00"))
            )


def _apply_entry(actor: ActorContext, mission: Mission, data: LaborEntryInput) -> None:
    entry = mission.labor_entry(data.category)
    if entry is None:
        ensure_labor_grid(mission)
        db.session.flush()
        entry = mission.labor_entry(data.category)

    before = serialize_model(entry)
    entry.hours = data.hours
    entry.hourly_rate = data.hourly_rate
    db.session.flush()
    log_action(actor, entry, "UPDATE", before=before, after=serialize_model(entry))


def _apply_supplies(actor: ActorContext, mission: Mission, data: SuppliesInput) -> None:
    before = {"supplies_ht": str(mission.supplies_ht), "supplies_ttc": str(mission.supplies_ttc)}
    mission.supplies_ht = data.ht
    mission.supplies_ttc = data.ttc
    log_action(
        actor,
        mission,
        "SUPPLIES",
        before=before,
        after={"supplies_ht": str(data.ht), "supplies_ttc": str(data.ttc)},
    )


def set_labor_entry(actor: ActorContext, mission_id: int, category, payload) -> LaborLedgerSnapshot:
    require_manager(actor)
    data = LaborEntryInput.from_payload(payload, category=category)

    with mission_write_scope(mission_id) as mission:
        _apply_entry(actor, mission, data)

    logger.info("Labor %s of mission #%s set by user %s", data.category.value, mission_id, actor.actor_id)
    return labor_snapshot(mission)


def set_supplies(actor: ActorContext, mission_id: int, payload) -> LaborLedgerSnapshot:
    require_manager(actor)
    data = SuppliesInput.from_payload(payload)

    with mission_write_scope(mission_id) as mission:
        _apply_supplies(actor, mission, data)

    logger.info("Supplies of mission #%s set by user %s", mission_id, actor.actor_id)
    return labor_snapshot(mission)


def save_labors(actor: ActorContext, mission_id: int, payload) -> LaborLedgerSnapshot:
    require_manager(actor)
    data = LaborGridInput.from_payload(payload)

    with mission_write_scope(mission_id) as mission:
        for entry in data.entries:
            _apply_entry(actor, mission, entry)
        if data.supplies is not None:
            _apply_supplies(actor, mission, data.supplies)

    logger.info("Labor grid of mission #%s saved by user %s", mission_id, actor.actor_id)
    return labor_snapshot(mission)
