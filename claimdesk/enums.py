"""
claimdesk/enums.py

Closed value sets of the mission domain.

Free strings coming from the UI are parsed into these enums at the route/service boundary
(parse_enum); anything outside the set is a ValidationError, never stored.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Type, TypeVar

from .errors import ValidationError


class Role(str, Enum):
    """Actor roles."""
    MANAGER = "manager"
    AGENT = "agent"


class MissionStatus(str, Enum):
    """Mission lifecycle, declared in order. The last member is terminal."""
    CREATED = "created"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @property
    def ordinal(self) -> int:
        return list(MissionStatus).index(self)

    @property
    def is_terminal(self) -> bool:
        return self is MissionStatus.COMPLETED


class GuaranteeType(str, Enum):
    """Insurance guarantee of the claim."""
    DOMMAGE_COLLISION = "dommage_collision"
    TIERCE = "tierce"
    RC = "rc"

    @property
    def has_franchise(self) -> bool:
        return self in (GuaranteeType.DOMMAGE_COLLISION, GuaranteeType.TIERCE)


class LaborCategory(str, Enum):
    """Fixed labor grid of a mission (one entry per category)."""
    TOLERIE = "tolerie"
    PEINTURE = "peinture"
    MECANIQUE = "mecanique"
    ELECTRICITE = "electricite"


class PieceType(str, Enum):
    """Origin of a replacement part."""
    ORIGINE = "origine"
    ADAPTABLE = "adaptable"
    OCCASION = "occasion"


class PhotoPhase(str, Enum):
    AVANT = "avant"
    APRES = "apres"


# Status values used by the first version of the application
LEGACY_STATUS_ALIASES: Dict[str, MissionStatus] = {
    "cree": MissionStatus.CREATED,
    "affectee": MissionStatus.ASSIGNED,
    "en_cours": MissionStatus.IN_PROGRESS,
    "terminee": MissionStatus.COMPLETED,
}

LABOR_CATEGORY_LABELS = {
    LaborCategory.TOLERIE: "Tolerie",
    LaborCategory.PEINTURE: "Peinture",
    LaborCategory.MECANIQUE: "Mecanique",
    LaborCategory.ELECTRICITE: "Electricite",
}


E = TypeVar("E", bound=Enum)


def _normalize_token(value: str) -> str:
    """'Dommage Collision' / 'dommage-collision' / ' DOMMAGE_collision ' -> 'dommage_collision'."""
    raw = str(value).strip().lower()
    for sep in ("-", " "):
        raw = raw.replace(sep, "_")
    while "__" in raw:
        raw = raw.replace("__", "_")
    return raw


def parse_enum(enum_cls: Type[E], value, field: str, aliases: Dict[str, E] | None = None) -> E:
    """
    Parse a user-supplied value into a member of enum_cls (case-insensitive).

    Raises ValidationError(fields={field: ...}) for empty or unknown values.
    """
    if isinstance(value, enum_cls):
        return value
    if value is None or str(value).strip() == "":
        raise ValidationError("Valeur obligatoire", fields={field: "Valeur obligatoire"})

    token = _normalize_token(value)
    for member in enum_cls:
        if member.value == token:
            return member
    if aliases and token in aliases:
        return aliases[token]

    allowed = ", ".join(m.value for m in enum_cls)
    raise ValidationError(
        f"Valeur inconnue: {value}",
        fields={field: f"Valeur inconnue '{value}' (attendu: {allowed})"},
    )


def parse_status(value, field: str = "status") -> MissionStatus:
    return parse_enum(MissionStatus, value, field, aliases=LEGACY_STATUS_ALIASES)


def parse_optional_guarantee(value, field: str = "guarantee_type") -> GuaranteeType | None:
    """Guarantee type is nullable on a mission; empty input clears it."""
    if value is None or str(value).strip() == "":
        return None
    return parse_enum(GuaranteeType, value, field)
