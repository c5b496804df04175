"""
payroll_engines.advance_eligibility -- Salary-advance limit and eligibility.

Responsibility:
    Compute the maximum advance an employee may hold, the credit still
    available after outstanding advances, and a full eligibility verdict
    with a human-readable reason.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Imports only ``payroll_config.schema`` types.  Callers supply the
    as-of date; this module never reads the clock.

Invariants enforced:
    - ``max_limit = monthly_salary x max_advance_rate``, capped at
      ``max_advance_amount`` when the policy sets one.
    - ``available_credit = max(0, max_limit - outstanding)``.
    - Every function is re-entrant: the workflow calls them at submission
      and again at each approval gate with fresh salary / balance data.

Failure modes:
    - Negative salary or outstanding balance -> ``ValueError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from payroll_config.schema import AdvancePolicy
from payroll_engines.tracer import traced_engine

_ZERO = Decimal("0")
_CENT = Decimal("0.01")
_DEFAULT_POLICY = AdvancePolicy()


@dataclass(frozen=True)
class EligibilityResult:
    """Outcome of an eligibility check."""

    is_eligible: bool
    max_amount: Decimal
    available_credit: Decimal
    reason: str | None = None
    service_months: int | None = None
    exceeds_limit: bool = False


def months_of_service(hire_date: date, as_of_date: date) -> int:
    """Whole 30-day months between ``hire_date`` and ``as_of_date``."""
    days = (as_of_date - hire_date).days
    return max(0, days // 30)


def calculate_max_advance_limit(
    monthly_salary: Decimal,
    policy: AdvancePolicy | None = None,
) -> Decimal:
    """Maximum advance for ``monthly_salary`` under ``policy``."""
    if monthly_salary < 0:
        raise ValueError(f"monthly_salary cannot be negative, got {monthly_salary}")
    policy = policy or _DEFAULT_POLICY
    limit = monthly_salary * policy.max_advance_rate
    if policy.max_advance_amount is not None:
        limit = min(limit, policy.max_advance_amount)
    return limit.quantize(_CENT, rounding=ROUND_HALF_UP)


def calculate_available_credit(
    monthly_salary: Decimal,
    outstanding_advances: Decimal,
    policy: AdvancePolicy | None = None,
) -> Decimal:
    """Credit left after ``outstanding_advances``, never below zero."""
    if outstanding_advances < 0:
        raise ValueError(
            f"outstanding_advances cannot be negative, got {outstanding_advances}"
        )
    limit = calculate_max_advance_limit(monthly_salary, policy)
    return max(_ZERO, limit - outstanding_advances).quantize(_CENT, rounding=ROUND_HALF_UP)


@traced_engine(
    "advance_eligibility", "1.0",
    fingerprint_fields=("monthly_salary", "requested_amount", "outstanding_advances"),
)
def check_eligibility(
    *,
    monthly_salary: Decimal | None,
    requested_amount: Decimal,
    outstanding_advances: Decimal = _ZERO,
    is_active: bool = True,
    hire_date: date | None = None,
    as_of_date: date | None = None,
    policy: AdvancePolicy | None = None,
) -> EligibilityResult:
    """
    Evaluate every advance policy rule and return the first failure.

    Checks run in order: employment status, salary defined, minimum
    service, positive amount, available credit.  Service months are only
    computed when both ``hire_date`` and ``as_of_date`` are supplied.
    """
    policy = policy or _DEFAULT_POLICY

    if not is_active:
        return EligibilityResult(False, _ZERO, _ZERO, reason="Employee is not active")

    if not monthly_salary or monthly_salary <= 0:
        return EligibilityResult(False, _ZERO, _ZERO, reason="Employee salary not defined")

    max_amount = calculate_max_advance_limit(monthly_salary, policy)
    available = calculate_available_credit(monthly_salary, outstanding_advances, policy)

    service_months = None
    if hire_date is not None and as_of_date is not None:
        service_months = months_of_service(hire_date, as_of_date)
        if service_months < policy.min_service_months:
            return EligibilityResult(
                False, max_amount, available,
                reason=f"Minimum service period of {policy.min_service_months} months required",
                service_months=service_months,
            )

    if requested_amount <= 0:
        return EligibilityResult(
            False, max_amount, available,
            reason="Requested amount must be positive",
            service_months=service_months,
        )

    if requested_amount > available:
        return EligibilityResult(
            False, max_amount, available,
            reason=(
                f"Requested amount exceeds available credit. Available: {available} "
                f"(limit {max_amount}, outstanding {outstanding_advances})"
            ),
            service_months=service_months,
            exceeds_limit=True,
        )

    return EligibilityResult(True, max_amount, available, service_months=service_months)
