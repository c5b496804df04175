"""
Statutory Tax Engine (``payroll_engines.tax``).

Responsibility
--------------
Pure calculation of the three monthly statutory deductions:

* progressive income tax (PAYE-equivalent) with personal relief,
* tiered social-security contribution,
* banded health contribution.

Rates, bands, tier limits and relief all come from a ``StatutoryConfig``
value passed to the constructor.  Swapping the value swaps the regulatory
regime; nothing here is a module-level table.

Architecture position
---------------------
**Engines layer** -- pure functions over ``Decimal``.  No I/O, no clock.
Imports only ``payroll_config.schema`` types.

Invariants enforced
-------------------
* All amounts are ``Decimal`` quantized to 0.01 with ROUND_HALF_UP.
* Income tax is floored at zero after relief.
* Social security is capped at the top tier limit.

Failure modes
-------------
* Negative gross -> ``ValueError``.

Usage:
    from payroll_config import get_active_config
    from payroll_engines.tax import TaxCalculator

    calculator = TaxCalculator(get_active_config("KE", date(2024, 6, 30)))
    calculator.calculate_income_tax(Decimal("50000"))  # Decimal("7382.80")
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from payroll_config.schema import (
    HealthContributionBand,
    IncomeTaxBand,
    StatutoryConfig,
)
from payroll_engines.tracer import traced_engine

_ZERO = Decimal("0")
_CENT = Decimal("0.01")


def round_money(amount: Decimal) -> Decimal:
    """Quantize to 2 decimal places using standard (half-up) rounding."""
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class StatutoryDeductions:
    """Breakdown of the statutory deductions for one monthly gross."""

    income_tax: Decimal
    social_security: Decimal
    health_contribution: Decimal
    total: Decimal

    def __post_init__(self) -> None:
        parts = self.income_tax + self.social_security + self.health_contribution
        if parts != self.total:
            raise ValueError(
                f"Statutory total {self.total} does not equal sum of parts {parts}"
            )


class TaxCalculator:
    """
    Statutory deduction calculator bound to one configuration set.

    Contract:
        Every public method is deterministic for a given config and input.
    """

    def __init__(self, config: StatutoryConfig):
        self._config = config

    @property
    def config(self) -> StatutoryConfig:
        return self._config

    @property
    def default_personal_relief(self) -> Decimal:
        return self._config.personal_relief

    @traced_engine("income_tax", "1.0", fingerprint_fields=("monthly_gross", "personal_relief"))
    def calculate_income_tax(
        self,
        monthly_gross: Decimal,
        personal_relief: Decimal | None = None,
    ) -> Decimal:
        """
        Progressive income tax for one month.

        Each band the gross exceeds contributes its rate times the slice
        ``min(gross, band.max_amount) - band.min_amount``.  Gross above a
        closed last band is taxed at that band's rate.  The sum, less
        ``personal_relief`` (config default when None), is floored at zero.

        Gross falling in the one-unit gap between whole-unit bands adds
        nothing, so tax never decreases as gross rises.
        """
        _require_non_negative(monthly_gross)
        relief = self._config.personal_relief if personal_relief is None else personal_relief
        if relief < 0:
            raise ValueError("personal_relief cannot be negative")

        gross_tax = sum(
            (band.rate * portion for band, portion in self._band_portions(monthly_gross)),
            _ZERO,
        )
        return round_money(max(_ZERO, gross_tax - relief))

    @traced_engine("social_security", "1.0", fingerprint_fields=("monthly_gross",))
    def calculate_social_security(self, monthly_gross: Decimal) -> Decimal:
        """Sum of each tier's rate over the slice of gross falling in that tier."""
        _require_non_negative(monthly_gross)
        total = _ZERO
        lower = _ZERO
        for tier in self._config.social_security_tiers:
            if monthly_gross <= lower:
                break
            portion = min(monthly_gross, tier.upper_limit) - lower
            total += portion * tier.rate
            lower = tier.upper_limit
        return round_money(total)

    @traced_engine("health_contribution", "1.0", fingerprint_fields=("monthly_gross",))
    def calculate_health_contribution(self, monthly_gross: Decimal) -> Decimal:
        """Fixed amount of the highest band whose lower bound the gross reaches."""
        _require_non_negative(monthly_gross)
        return round_money(self._health_band(monthly_gross).amount)

    def calculate_statutory(
        self,
        monthly_gross: Decimal,
        personal_relief: Decimal | None = None,
    ) -> StatutoryDeductions:
        income_tax = self.calculate_income_tax(monthly_gross, personal_relief)
        social_security = self.calculate_social_security(monthly_gross)
        health = self.calculate_health_contribution(monthly_gross)
        return StatutoryDeductions(
            income_tax=income_tax,
            social_security=social_security,
            health_contribution=health,
            total=income_tax + social_security + health,
        )

    # ------------------------------------------------------------------
    # Band lookup
    # ------------------------------------------------------------------

    def _band_portions(self, monthly_gross: Decimal) -> list[tuple[IncomeTaxBand, Decimal]]:
        """(band, taxable slice) for every band the gross exceeds."""
        bands = self._config.income_tax_bands
        portions = []
        for index, band in enumerate(bands):
            if monthly_gross <= band.min_amount:
                break
            upper = monthly_gross
            if band.max_amount is not None and index < len(bands) - 1:
                upper = min(monthly_gross, band.max_amount)
            portions.append((band, upper - band.min_amount))
        return portions

    def _health_band(self, monthly_gross: Decimal) -> HealthContributionBand:
        selected = self._config.health_bands[0]
        for band in self._config.health_bands:
            if band.min_amount <= monthly_gross:
                selected = band
            else:
                break
        return selected


def _require_non_negative(monthly_gross: Decimal) -> None:
    if monthly_gross < 0:
        raise ValueError(f"monthly_gross cannot be negative, got {monthly_gross}")
