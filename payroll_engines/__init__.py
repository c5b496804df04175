"""
Module: payroll_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for
    ``payroll_modules``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ``payroll_kernel`` and ``payroll_config.schema``.
    MUST NOT import ``payroll_modules``.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Dates are passed in as explicit parameters.
    - Decimal-only arithmetic: all monetary amounts use ``Decimal``.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine invocations are traced via ``@traced_engine`` (see
    ``payroll_engines.tracer``), emitting PAYROLL_ENGINE_TRACE records.
"""

from payroll_engines.advance_eligibility import (
    EligibilityResult,
    calculate_available_credit,
    calculate_max_advance_limit,
    check_eligibility,
    months_of_service,
)
from payroll_engines.repayment import (
    AdvanceDeduction,
    DeductionHistoryEntry,
    DeductionScheduler,
    DeductionStatus,
    RepaymentApplication,
    RepaymentSchedule,
)
from payroll_engines.tax import StatutoryDeductions, TaxCalculator, round_money
from payroll_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    # Tax
    "StatutoryDeductions",
    "TaxCalculator",
    "round_money",
    # Eligibility
    "EligibilityResult",
    "calculate_available_credit",
    "calculate_max_advance_limit",
    "check_eligibility",
    "months_of_service",
    # Repayment
    "AdvanceDeduction",
    "DeductionHistoryEntry",
    "DeductionScheduler",
    "DeductionStatus",
    "RepaymentApplication",
    "RepaymentSchedule",
    # Tracing
    "compute_input_fingerprint",
    "traced_engine",
]
