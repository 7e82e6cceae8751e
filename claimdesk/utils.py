"""
Utility functions shared across the app.

- PayloadReader: typed reading of a JSON payload with per-field error collection.
  Every field problem is collected, then raise_if_errors() raises a single
  ValidationError carrying all of them (the form highlights each field).
- parse_decimal / parse_optional_int: lenient parsing of user input (accepts "12,50").
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

from .enums import parse_enum
from .errors import ValidationError

E = TypeVar("E")

_MISSING = object()


def parse_decimal(value: Any) -> Optional[Decimal]:
    """Parse decimal from user input (accepts comma or dot). None for empty/invalid."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    raw = str(value).strip().replace(",", ".")
    if raw == "":
        return None
    try:
        parsed = Decimal(raw)
    except (InvalidOperation, ValueError):
        return None
    return parsed if parsed.is_finite() else None


def parse_optional_int(value: Any) -> Optional[int]:
    """Parse optional int from payload/query. None for empty/invalid."""
    if value is None or isinstance(value, bool):
        return None
    raw = str(value).strip()
    if raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


class PayloadReader:
    """Read typed fields from a JSON object, collecting errors per field."""

    def __init__(self, payload: Optional[Mapping[str, Any]]):
        if payload is not None and not isinstance(payload, Mapping):
            raise ValidationError("Le corps de la requete doit etre un objet JSON")
        self.payload: Mapping[str, Any] = payload or {}
        self.errors: Dict[str, str] = {}

    def has(self, key: str) -> bool:
        return key in self.payload

    def _raw(self, key: str):
        return self.payload.get(key, _MISSING)

    def text(self, key: str, *, required: bool = False, max_length: int | None = None) -> Optional[str]:
        raw = self._raw(key)
        value = "" if raw is _MISSING or raw is None else str(raw).strip()
        if not value:
            if required:
                self.errors[key] = "Champ obligatoire"
            return None
        if max_length and len(value) > max_length:
            self.errors[key] = f"{max_length} caracteres maximum"
            return None
        return value

    def decimal(
        self,
        key: str,
        *,
        required: bool = False,
        minimum: Decimal | None = None,
        maximum: Decimal | None = None,
        default: Decimal | None = None,
        places: int | None = None,
    ) -> Optional[Decimal]:
        """
        Decimal field. With `places`, the value is rounded ROUND_HALF_UP to that many
        decimals (same rule as the valuation engine) before it reaches a Numeric column.
        """
        raw = self._raw(key)
        if raw is _MISSING or raw is None or (isinstance(raw, str) and raw.strip() == ""):
            if required:
                self.errors[key] = "Champ obligatoire"
            return default

        value = parse_decimal(raw)
        if value is None:
            self.errors[key] = "Nombre invalide"
            return None
        if minimum is not None and value < minimum:
            self.errors[key] = f"Doit etre superieur ou egal a {minimum}"
            return None
        if maximum is not None and value > maximum:
            self.errors[key] = f"Doit etre inferieur ou egal a {maximum}"
            return None
        if places is not None:
            try:
                value = value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
            except InvalidOperation:
                self.errors[key] = "Nombre invalide"
                return None
        return value

    def boolean(self, key: str, *, default: bool = False) -> bool:
        raw = self._raw(key)
        if raw is _MISSING or raw is None:
            return default
        if isinstance(raw, bool):
            return raw
        token = str(raw).strip().lower()
        if token in ("1", "true", "yes", "on", "oui"):
            return True
        if token in ("0", "false", "no", "off", "non", ""):
            return False
        self.errors[key] = "Booleen invalide"
        return default

    def integer(self, key: str, *, required: bool = False) -> Optional[int]:
        raw = self._raw(key)
        if raw is _MISSING or raw is None or (isinstance(raw, str) and raw.strip() == ""):
            if required:
                self.errors[key] = "Champ obligatoire"
            return None
        value = parse_optional_int(raw)
        if value is None:
            self.errors[key] = "Entier invalide"
        return value

    def date(self, key: str) -> Optional[date]:
        raw = self._raw(key)
        if raw is _MISSING or raw is None or str(raw).strip() == "":
            return None
        try:
            return date.fromisoformat(str(raw).strip()[:10])
        except ValueError:
            self.errors[key] = "Date invalide (AAAA-MM-JJ)"
            return None

    def enum(self, enum_cls: Type[E], key: str, *, required: bool = True, aliases=None, default=None) -> Optional[E]:
        raw = self._raw(key)
        if raw is _MISSING or raw is None or str(raw).strip() == "":
            if required and default is None:
                self.errors[key] = "Champ obligatoire"
            return default
        try:
            return parse_enum(enum_cls, raw, key, aliases=aliases)
        except ValidationError as exc:
            self.errors.update(exc.fields)
            return None

    def raise_if_errors(self) -> None:
        if self.errors:
            raise ValidationError("Donnees invalides", fields=self.errors)
