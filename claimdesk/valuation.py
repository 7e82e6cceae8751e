"""
claimdesk/valuation.py

Claim valuation engine (pure functions, no database access).

Pipeline:
  damage lines  -> DamageTotals  (vetuste + VAT per line, then sums)
  labor entries -> LaborTotals   (hours x rate + 20% VAT, plus supplies)
  evaluate(damage_totals, labor_totals, guarantee_terms) -> ValuationResult

Money rules:
- Decimal everywhere, 2 decimals, ROUND_HALF_UP.
- Every derived line amount is rounded to cents before it is summed.
- VAT is a single global rate (20%); a damage line only carries a yes/no VAT flag.

Settlement rules:
- vetuste_loss_ttc       = max(0, damage total_ttc - damage total_after_ttc)
- net_evaluation_ttc     = max(0, labor grand_total_ttc - vetuste_loss_ttc)
- franchise_amount       = max(rate% x labor grand_total_ttc, fixed amount)
                           only for "dommage collision" and "tierce", else 0
- recommended            = max(0, net_evaluation_ttc - franchise_amount)

The stored override (final_indemnisation) is passed through untouched: the engine never
replaces it with the recommended value.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, Optional

from .enums import GuaranteeType

VAT_RATE = Decimal("0.20")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def to_decimal(value) -> Decimal:
    """Convert Numeric/None/str to Decimal safely."""
    if value is None:
        return Decimal("0.00")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(x: Decimal) -> Decimal:
    return to_decimal(x).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def format_money(x: Optional[Decimal]) -> Optional[str]:
    """JSON representation of an amount ("1234.50"), None stays None."""
    if x is None:
        return None
    return str(money(x))


def _with_vat(amount: Decimal, vat_applicable: bool) -> Decimal:
    if not vat_applicable:
        return money(amount)
    return money(amount * (Decimal("1") + VAT_RATE))


# ---------------------------------------------------------------------
# Damage ledger
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class DamageLineAmounts:
    price_ht: Decimal
    price_after_vetuste: Decimal
    price_ttc: Decimal
    price_after_vetuste_ttc: Decimal


def damage_line_amounts(price_ht, vetuste_percent, vat_applicable: bool) -> DamageLineAmounts:
    """
    Derived amounts of one damage line.

    Example: 1000 HT, 20% vetuste, VAT -> 800 after vetuste, 1200 TTC, 960 after vetuste TTC.
    """
    ht = money(to_decimal(price_ht))
    rate = to_decimal(vetuste_percent)
    after = money(ht * (Decimal("1") - rate / HUNDRED))
    return DamageLineAmounts(
        price_ht=ht,
        price_after_vetuste=after,
        price_ttc=_with_vat(ht, vat_applicable),
        price_after_vetuste_ttc=_with_vat(after, vat_applicable),
    )


@dataclass(frozen=True)
class DamageTotals:
    total_ht: Decimal = ZERO
    total_ttc: Decimal = ZERO
    total_after_ht: Decimal = ZERO
    total_after_ttc: Decimal = ZERO

    def to_dict(self) -> Dict[str, str]:
        return {
            "total_ht": format_money(self.total_ht),
            "total_ttc": format_money(self.total_ttc),
            "total_after_ht": format_money(self.total_after_ht),
            "total_after_ttc": format_money(self.total_after_ttc),
        }


def damage_totals(lines: Iterable[Any]) -> DamageTotals:
    """
    Sum damage lines.

    Each line exposes price_ht, vetuste_percent and vat_applicable (ORM rows or any
    object with those attributes).
    """
    total_ht = total_ttc = total_after_ht = total_after_ttc = ZERO
    for line in lines:
        amounts = damage_line_amounts(line.price_ht, line.vetuste_percent, bool(line.vat_applicable))
        total_ht += amounts.price_ht
        total_ttc += amounts.price_ttc
        total_after_ht += amounts.price_after_vetuste
        total_after_ttc += amounts.price_after_vetuste_ttc

    return DamageTotals(
        total_ht=money(total_ht),
        total_ttc=money(total_ttc),
        total_after_ht=money(total_after_ht),
        total_after_ttc=money(total_after_ttc),
    )


# ---------------------------------------------------------------------
# Labor ledger
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class LaborEntryAmounts:
    ht: Decimal
    tva: Decimal
    ttc: Decimal


def labor_entry_amounts(hours, hourly_rate) -> LaborEntryAmounts:
    ht = money(to_decimal(hours) * to_decimal(hourly_rate))
    tva = money(ht * VAT_RATE)
    return LaborEntryAmounts(ht=ht, tva=tva, ttc=money(ht + tva))


@dataclass(frozen=True)
class LaborTotals:
    total_ht: Decimal = ZERO
    total_tva: Decimal = ZERO
    total_ttc: Decimal = ZERO
    supplies_ht: Decimal = ZERO
    supplies_ttc: Decimal = ZERO
    grand_total_ht: Decimal = ZERO
    grand_total_ttc: Decimal = ZERO

    def to_dict(self) -> Dict[str, str]:
        return {
            "total_ht": format_money(self.total_ht),
            "total_tva": format_money(self.total_tva),
            "total_ttc": format_money(self.total_ttc),
            "supplies_ht": format_money(self.supplies_ht),
            "supplies_ttc": format_money(self.supplies_ttc),
            "grand_total_ht": format_money(self.grand_total_ht),
            "grand_total_ttc": format_money(self.grand_total_ttc),
        }


def labor_totals(entries: Iterable[Any], supplies_ht=None, supplies_ttc=None) -> LaborTotals:
    """
    Sum labor entries (hours, hourly_rate attributes) and add the supplies line.

    Supplies TTC is taken as entered; it is not derived from supplies HT.
    """
    total_ht = total_tva = total_ttc = ZERO
    for entry in entries:
        amounts = labor_entry_amounts(entry.hours, entry.hourly_rate)
        total_ht += amounts.ht
        total_tva += amounts.tva
        total_ttc += amounts.ttc

    s_ht = money(to_decimal(supplies_ht))
    s_ttc = money(to_decimal(supplies_ttc))

    return LaborTotals(
        total_ht=money(total_ht),
        total_tva=money(total_tva),
        total_ttc=money(total_ttc),
        supplies_ht=s_ht,
        supplies_ttc=s_ttc,
        grand_total_ht=money(total_ht + s_ht),
        grand_total_ttc=money(total_ttc + s_ttc),
    )


# ---------------------------------------------------------------------
# Settlement
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class GuaranteeTerms:
    guarantee_type: Optional[GuaranteeType] = None
    franchise_rate_percent: Decimal = ZERO
    franchise_fixed_amount: Decimal = ZERO


def franchise_amount(terms: GuaranteeTerms, grand_total_ttc: Decimal) -> Decimal:
    """
    Deductible for the guarantee.

    Floor rule: the larger of (rate% of gross labor TTC) and the fixed amount, never their sum.
    Guarantees without franchise (rc, unset) ignore both inputs.
    """
    if terms.guarantee_type is None or not terms.guarantee_type.has_franchise:
        return ZERO

    by_rate = money(to_decimal(terms.franchise_rate_percent) / HUNDRED * to_decimal(grand_total_ttc))
    fixed = money(to_decimal(terms.franchise_fixed_amount))
    return max(by_rate, fixed)


@dataclass(frozen=True)
class ValuationResult:
    damage_totals: DamageTotals
    labor_totals: LaborTotals
    vetuste_loss_ttc: Decimal
    net_evaluation_ttc: Decimal
    franchise_amount: Decimal
    recommended_indemnisation: Decimal
    final_indemnisation: Optional[Decimal] = None

    @property
    def has_override(self) -> bool:
        return self.final_indemnisation is not None

    @property
    def payable_indemnisation(self) -> Decimal:
        """Stored override when one was set, otherwise the recommended amount."""
        if self.final_indemnisation is not None:
            return money(self.final_indemnisation)
        return self.recommended_indemnisation

    def to_dict(self) -> Dict[str, Any]:
        return {
            "damage_totals": self.damage_totals.to_dict(),
            "labor_totals": self.labor_totals.to_dict(),
            "vetuste_loss_ttc": format_money(self.vetuste_loss_ttc),
            "net_evaluation_ttc": format_money(self.net_evaluation_ttc),
            "franchise_amount": format_money(self.franchise_amount),
            "recommended_indemnisation": format_money(self.recommended_indemnisation),
            "final_indemnisation": format_money(self.final_indemnisation),
            "payable_indemnisation": format_money(self.payable_indemnisation),
            "has_override": self.has_override,
        }


def evaluate(
    damage: DamageTotals,
    labor: LaborTotals,
    terms: GuaranteeTerms,
    final_indemnisation: Optional[Decimal] = None,
) -> ValuationResult:
    """Combine ledger totals and guarantee terms into a settlement recommendation."""
    vetuste_loss = max(ZERO, money(damage.total_ttc - damage.total_after_ttc))
    net = max(ZERO, money(labor.grand_total_ttc - vetuste_loss))
    franchise = franchise_amount(terms, labor.grand_total_ttc)
    recommended = max(ZERO, money(net - franchise))

    return ValuationResult(
        damage_totals=damage,
        labor_totals=labor,
        vetuste_loss_ttc=vetuste_loss,
        net_evaluation_ttc=net,
        franchise_amount=franchise,
        recommended_indemnisation=recommended,
        final_indemnisation=None if final_indemnisation is None else money(final_indemnisation),
    )
