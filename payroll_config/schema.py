"""
StatutoryConfig schema.

Defines the human-authored, reviewable statutory configuration: income-tax
bands, personal relief, social-security tiers, health-contribution bands,
and the salary-advance policy.  YAML files are parsed into these types by
the loader; engines receive a ``StatutoryConfig`` value and never read
files themselves.

Every type is frozen and validates itself in ``__post_init__`` (ValueError),
so an invalid regulatory table can never reach a calculation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from payroll_config.lifecycle import ConfigStatus

# ---------------------------------------------------------------------------
# Scope
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConfigScope:
    """Jurisdiction and effective-date range a configuration set covers."""

    jurisdiction: str
    currency: str
    effective_from: date
    effective_to: date | None = None

    def covers(self, as_of: date) -> bool:
        if as_of < self.effective_from:
            return False
        return self.effective_to is None or as_of <= self.effective_to


# ---------------------------------------------------------------------------
# Statutory tables
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IncomeTaxBand:
    """One progressive income-tax band.

    ``base_amount`` is the published, rounded cumulative tax of all lower
    bands; the calculator sums band slices and does not read it.
    ``max_amount`` is None only for the open-ended top band.
    """

    min_amount: Decimal
    max_amount: Decimal | None
    rate: Decimal
    base_amount: Decimal

    def __post_init__(self):
        if self.min_amount < 0:
            raise ValueError("min_amount cannot be negative")
        if self.max_amount is not None and self.max_amount < self.min_amount:
            raise ValueError(
                f"max_amount {self.max_amount} is below min_amount {self.min_amount}"
            )
        if not Decimal("0") <= self.rate <= Decimal("1"):
            raise ValueError(f"rate must be between 0 and 1, got {self.rate}")
        if self.base_amount < 0:
            raise ValueError("base_amount cannot be negative")


@dataclass(frozen=True)
class SocialSecurityTier:
    """A contribution tier covering earnings up to ``upper_limit``."""

    upper_limit: Decimal
    rate: Decimal

    def __post_init__(self):
        if self.upper_limit <= 0:
            raise ValueError("upper_limit must be positive")
        if not Decimal("0") <= self.rate <= Decimal("1"):
            raise ValueError(f"rate must be between 0 and 1, got {self.rate}")


@dataclass(frozen=True)
class HealthContributionBand:
    """A gross-salary range mapped to a fixed contribution amount."""

    min_amount: Decimal
    max_amount: Decimal | None
    amount: Decimal

    def __post_init__(self):
        if self.min_amount < 0:
            raise ValueError("min_amount cannot be negative")
        if self.max_amount is not None and self.max_amount < self.min_amount:
            raise ValueError(
                f"max_amount {self.max_amount} is below min_amount {self.min_amount}"
            )
        if self.amount < 0:
            raise ValueError("amount cannot be negative")


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AdvancePolicy:
    """Salary-advance limits and repayment bounds."""

    max_advance_rate: Decimal = Decimal("0.25")
    max_advance_amount: Decimal | None = None
    min_service_months: int = 0
    default_repayment_months: int = 1
    max_repayment_months: int = 6

    def __post_init__(self):
        if not Decimal("0") < self.max_advance_rate <= Decimal("1"):
            raise ValueError(
                f"max_advance_rate must be in (0, 1], got {self.max_advance_rate}"
            )
        if self.max_advance_amount is not None and self.max_advance_amount <= 0:
            raise ValueError("max_advance_amount must be positive when set")
        if self.min_service_months < 0:
            raise ValueError("min_service_months cannot be negative")
        if self.default_repayment_months < 1:
            raise ValueError("default_repayment_months must be at least 1")
        if self.max_repayment_months < self.default_repayment_months:
            raise ValueError(
                "max_repayment_months cannot be below default_repayment_months"
            )


@dataclass(frozen=True)
class PayrollPolicy:
    """Non-statutory payroll rules used by the computation."""

    default_overtime_multiplier: Decimal = Decimal("1.5")
    excessive_hours_threshold: Decimal = Decimal("200")

    def __post_init__(self):
        if self.default_overtime_multiplier < 1:
            raise ValueError("default_overtime_multiplier cannot be below 1")
        if self.excessive_hours_threshold <= 0:
            raise ValueError("excessive_hours_threshold must be positive")


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StatutoryConfig:
    """
    A complete, versioned statutory configuration set.

    This is a value: swapping the value swaps the regulatory regime.  There
    is no process-wide active configuration.
    """

    config_id: str
    version: int
    scope: ConfigScope
    income_tax_bands: tuple[IncomeTaxBand, ...]
    personal_relief: Decimal
    social_security_tiers: tuple[SocialSecurityTier, ...]
    health_bands: tuple[HealthContributionBand, ...]
    advance_policy: AdvancePolicy = field(default_factory=AdvancePolicy)
    payroll_policy: PayrollPolicy = field(default_factory=PayrollPolicy)
    status: ConfigStatus = ConfigStatus.DRAFT
    checksum: str = ""

    def __post_init__(self):
        if self.version < 1:
            raise ValueError("version must be at least 1")
        if self.personal_relief < 0:
            raise ValueError("personal_relief cannot be negative")
        _validate_tax_bands(self.income_tax_bands)
        _validate_tiers(self.social_security_tiers)
        _validate_health_bands(self.health_bands)


def _validate_tax_bands(bands: tuple[IncomeTaxBand, ...]) -> None:
    if not bands:
        raise ValueError("at least one income tax band is required")
    if bands[0].min_amount != 0:
        raise ValueError("the first income tax band must start at 0")
    for prev, band in zip(bands, bands[1:]):
        if prev.max_amount is None:
            raise ValueError("only the last income tax band may be open-ended")
        # Whole-unit tables publish the next band as max + 1.
        if band.min_amount not in (prev.max_amount, prev.max_amount + 1):
            raise ValueError(
                f"income tax bands are not contiguous: {prev.max_amount} -> {band.min_amount}"
            )
        if band.base_amount < prev.base_amount:
            raise ValueError("income tax base amounts must be non-decreasing")


def _validate_tiers(tiers: tuple[SocialSecurityTier, ...]) -> None:
    if not tiers:
        raise ValueError("at least one social security tier is required")
    limits = [t.upper_limit for t in tiers]
    if limits != sorted(limits) or len(set(limits)) != len(limits):
        raise ValueError("social security tiers must have strictly increasing limits")


def _validate_health_bands(bands: tuple[HealthContributionBand, ...]) -> None:
    if not bands:
        raise ValueError("at least one health contribution band is required")
    if bands[0].min_amount != 0:
        raise ValueError("the first health contribution band must start at 0")
    for prev, band in zip(bands, bands[1:]):
        if prev.max_amount is None:
            raise ValueError("only the last health contribution band may be open-ended")
        if band.min_amount <= prev.min_amount:
            raise ValueError("health contribution bands must be ordered by min_amount")
        if band.amount < prev.amount:
            raise ValueError("health contribution amounts must be monotonically increasing")
