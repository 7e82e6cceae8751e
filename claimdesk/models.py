"""
Claim Missions – Domain Models

- User: login account with a role (manager / agent)
- Mission: one claims-handling case (status, assignment, guarantee terms, supplies, override)
- DamageLine: itemized damaged part (vetuste + VAT flag)
- LaborEntry: one row per fixed labor category (hours x hourly rate)
- MissionPhoto / MissionDocument: attachment metadata (storage lives elsewhere)
- AuditLog: who did what, with before/after snapshots

IMPORTANT:
- Totals and the settlement recommendation are never stored; they are derived on read
  (see valuation.py). The only stored settlement value is Mission.final_indemnisation.
- Mission carries a version counter (SQLAlchemy version_id_col). Every ledger write touches
  the mission row so concurrent writers on the same mission are detected.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from .enums import LABOR_CATEGORY_LABELS, GuaranteeType, LaborCategory, MissionStatus, PhotoPhase, PieceType, Role
from .extensions import db
from .valuation import (
    GuaranteeTerms,
    damage_line_amounts,
    format_money,
    labor_entry_amounts,
    to_decimal,
)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


def _enum_column(enum_cls, length: int = 30):
    """Enum stored as its value in a VARCHAR (portable SQLite/PostgreSQL)."""
    return db.Enum(
        enum_cls,
        native_enum=False,
        values_callable=_enum_values,
        validate_strings=True,
        length=length,
    )


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


# ---------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------
class User(UserMixin, db.Model):
    """System login user."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(_enum_column(Role), nullable=False, default=Role.AGENT, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    @property
    def is_manager(self) -> bool:
        return self.role == Role.MANAGER

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role.value if self.role else None,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<User {self.username} ({self.role})>"


# ---------------------------------------------------------------------
# Mission domain
# ---------------------------------------------------------------------
class Mission(db.Model):
    __tablename__ = "missions"

    id = db.Column(db.Integer, primary_key=True)

    status = db.Column(
        _enum_column(MissionStatus),
        nullable=False,
        default=MissionStatus.CREATED,
        index=True,
    )

    assigned_agent_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    assigned_agent = db.relationship("User", foreign_keys=[assigned_agent_id])

    # Dossier
    insured_name = db.Column(db.String(255), nullable=False)
    insured_phone = db.Column(db.String(50))
    insured_email = db.Column(db.String(255))

    vehicle_brand = db.Column(db.String(120))
    vehicle_model = db.Column(db.String(120))
    vehicle_registration = db.Column(db.String(50), index=True)
    vehicle_year = db.Column(db.String(20))

    claim_code = db.Column(db.String(80), index=True)
    claim_policy = db.Column(db.String(80))
    claim_circumstances = db.Column(db.Text)
    claim_date = db.Column(db.Date)

    garage_name = db.Column(db.String(255))

    # Guarantee terms
    guarantee_type = db.Column(_enum_column(GuaranteeType), nullable=True)
    franchise_rate_percent = db.Column(db.Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    franchise_fixed_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    # Supplies line (TTC entered independently of HT)
    supplies_ht = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    supplies_ttc = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    # Settlement override; only written by explicit recalculate / manual entry
    final_indemnisation = db.Column(db.Numeric(12, 2), nullable=True)

    version_id = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    damage_lines = db.relationship(
        "DamageLine",
        back_populates="mission",
        cascade="all, delete-orphan",
        order_by="DamageLine.id",
    )

    labor_entries = db.relationship(
        "LaborEntry",
        back_populates="mission",
        cascade="all, delete-orphan",
        order_by="LaborEntry.id",
    )

    photos = db.relationship(
        "MissionPhoto",
        back_populates="mission",
        cascade="all, delete-orphan",
        order_by="MissionPhoto.id",
    )

    documents = db.relationship(
        "MissionDocument",
        back_populates="mission",
        cascade="all, delete-orphan",
        order_by="MissionDocument.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def guarantee_terms(self) -> GuaranteeTerms:
        return GuaranteeTerms(
            guarantee_type=self.guarantee_type,
            franchise_rate_percent=to_decimal(self.franchise_rate_percent),
            franchise_fixed_amount=to_decimal(self.franchise_fixed_amount),
        )

    def labor_entry(self, category: LaborCategory) -> "LaborEntry | None":
        for entry in self.labor_entries:
            if entry.category == category:
                return entry
        return None

    def touch(self):
        """Force an UPDATE of the mission row (bumps and checks version_id)."""
        self.updated_at = datetime.utcnow()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status.value,
            "assigned_agent_id": self.assigned_agent_id,
            "assigned_agent_username": self.assigned_agent.username if self.assigned_agent else None,
            "insured_name": self.insured_name,
            "insured_phone": self.insured_phone,
            "insured_email": self.insured_email,
            "vehicle_brand": self.vehicle_brand,
            "vehicle_model": self.vehicle_model,
            "vehicle_registration": self.vehicle_registration,
            "vehicle_year": self.vehicle_year,
            "claim_code": self.claim_code,
            "claim_policy": self.claim_policy,
            "claim_circumstances": self.claim_circumstances,
            "claim_date": self.claim_date.isoformat() if self.claim_date else None,
            "garage_name": self.garage_name,
            "guarantee_type": self.guarantee_type.value if self.guarantee_type else None,
            "franchise_rate_percent": format_money(self.franchise_rate_percent),
            "franchise_fixed_amount": format_money(self.franchise_fixed_amount),
            "final_indemnisation": format_money(self.final_indemnisation),
            "version": self.version_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Mission #{self.id} {self.status}>"


class DamageLine(db.Model):
    __tablename__ = "damage_lines"

    id = db.Column(db.Integer, primary_key=True)

    mission_id = db.Column(
        db.Integer,
        db.ForeignKey("missions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    piece = db.Column(db.String(255), nullable=False)
    piece_type = db.Column(_enum_column(PieceType), nullable=False, default=PieceType.ORIGINE)
    price_ht = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    vetuste_percent = db.Column(db.Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    vat_applicable = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    mission = db.relationship("Mission", back_populates="damage_lines")

    @property
    def amounts(self):
        return damage_line_amounts(self.price_ht, self.vetuste_percent, bool(self.vat_applicable))

    def to_dict(self) -> dict:
        amounts = self.amounts
        return {
            "id": self.id,
            "piece": self.piece,
            "piece_type": self.piece_type.value,
            "price_ht": format_money(self.price_ht),
            "vetuste_percent": format_money(self.vetuste_percent),
            "vat_applicable": bool(self.vat_applicable),
            "price_after_vetuste": format_money(amounts.price_after_vetuste),
            "price_ttc": format_money(amounts.price_ttc),
            "price_after_vetuste_ttc": format_money(amounts.price_after_vetuste_ttc),
        }


class LaborEntry(db.Model):
    __tablename__ = "labor_entries"

    id = db.Column(db.Integer, primary_key=True)

    mission_id = db.Column(
        db.Integer,
        db.ForeignKey("missions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    category = db.Column(_enum_column(LaborCategory), nullable=False)
    hours = db.Column(db.Numeric(8, 2), nullable=False, default=Decimal("0.00"))
    hourly_rate = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    mission = db.relationship("Mission", back_populates="labor_entries")

    __table_args__ = (
        db.UniqueConstraint("mission_id", "category", name="uq_labor_mission_category"),
    )

    def to_dict(self) -> dict:
        amounts = labor_entry_amounts(self.hours, self.hourly_rate)
        return {
            "category": self.category.value,
            "label": LABOR_CATEGORY_LABELS[self.category],
            "hours": format_money(self.hours),
            "hourly_rate": format_money(self.hourly_rate),
            "ht": format_money(amounts.ht),
            "tva": format_money(amounts.tva),
            "ttc": format_money(amounts.ttc),
        }


class MissionPhoto(db.Model):
    __tablename__ = "mission_photos"

    id = db.Column(db.Integer, primary_key=True)

    mission_id = db.Column(
        db.Integer,
        db.ForeignKey("missions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    phase = db.Column(_enum_column(PhotoPhase), nullable=False, default=PhotoPhase.AVANT)
    label = db.Column(db.String(120), nullable=False)
    filename = db.Column(db.String(255), nullable=False)
    url = db.Column(db.String(500), nullable=False)

    uploaded_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    uploaded_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    mission = db.relationship("Mission", back_populates="photos")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "mission_id": self.mission_id,
            "phase": self.phase.value,
            "label": self.label,
            "filename": self.filename,
            "url": self.url,
            "uploaded_at": _iso(self.uploaded_at),
        }


class MissionDocument(db.Model):
    __tablename__ = "mission_documents"

    id = db.Column(db.Integer, primary_key=True)

    mission_id = db.Column(
        db.Integer,
        db.ForeignKey("missions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    original_name = db.Column(db.String(255), nullable=False)
    mime_type = db.Column(db.String(120))
    url = db.Column(db.String(500), nullable=False)

    uploaded_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    uploaded_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    mission = db.relationship("Mission", back_populates="documents")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "mission_id": self.mission_id,
            "original_name": self.original_name,
            "mime_type": self.mime_type,
            "url": self.url,
            "uploaded_at": _iso(self.uploaded_at),
        }


class AuditLog(db.Model):
    """Audit trail of every mutation."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    username_snapshot = db.Column(db.String(150), nullable=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=False, index=True)
    mission_id = db.Column(db.Integer, nullable=True, index=True)

    action = db.Column(db.String(20), nullable=False, index=True)

    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
