"""
Repayment Scheduler (``payroll_engines.repayment``).

Responsibility
--------------
Turns a disbursed salary advance into a recurring payroll deduction and
consumes it one payroll period at a time until the balance reaches zero.

Architecture position
---------------------
**Engines layer** -- pure value transformations.  A schedule is a frozen
value; applying a period returns a new schedule.  No I/O, no clock.

Invariants enforced
-------------------
* ``total_deducted + remaining_balance == original_amount`` for every
  schedule value, checked in ``__post_init__``.
* ``deduction_history`` is append-only and its amounts sum to
  ``total_deducted``.
* At most one deduction per (schedule_id, period_id): re-applying a period
  returns the original amount with ``already_applied=True``.
* The monthly installment is rounded UP to the cent, so the balance is
  cleared within ``repayment_months`` periods; the last installment is
  ``min(monthly_deduction, remaining_balance)``.

Failure modes
-------------
* Applying a new period to a settled schedule -> ``ScheduleSettledError``.
* Non-positive amount or months < 1 -> ``ValueError``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import ROUND_UP, Decimal
from enum import Enum
from typing import Protocol

from payroll_engines.tracer import traced_engine
from payroll_kernel.exceptions import ScheduleSettledError

_ZERO = Decimal("0")
_CENT = Decimal("0.01")


class DeductionStatus(str, Enum):
    APPLIED = "applied"


class DisbursableAdvance(Protocol):
    """What the scheduler reads from a disbursed advance request."""

    @property
    def request_id(self) -> str: ...

    @property
    def employee_id(self) -> str: ...

    @property
    def disbursable_amount(self) -> Decimal: ...

    @property
    def repayment_months(self) -> int | None: ...


@dataclass(frozen=True)
class DeductionHistoryEntry:
    """One period's deduction against a schedule."""

    period_id: str
    amount: Decimal
    remaining_after: Decimal
    status: DeductionStatus = DeductionStatus.APPLIED


@dataclass(frozen=True)
class RepaymentSchedule:
    """Deduction plan for one disbursed advance."""

    schedule_id: str
    request_id: str
    employee_id: str
    original_amount: Decimal
    monthly_deduction: Decimal
    repayment_months: int
    remaining_balance: Decimal
    total_deducted: Decimal = _ZERO
    deduction_history: tuple[DeductionHistoryEntry, ...] = ()

    def __post_init__(self) -> None:
        if self.original_amount <= 0:
            raise ValueError("original_amount must be positive")
        if self.repayment_months < 1:
            raise ValueError("repayment_months must be at least 1")
        if self.remaining_balance < 0:
            raise ValueError("remaining_balance cannot be negative")
        if self.total_deducted + self.remaining_balance != self.original_amount:
            raise ValueError(
                f"Schedule {self.schedule_id}: total_deducted {self.total_deducted} + "
                f"remaining_balance {self.remaining_balance} != "
                f"original_amount {self.original_amount}"
            )
        history_total = sum((e.amount for e in self.deduction_history), _ZERO)
        if history_total != self.total_deducted:
            raise ValueError(
                f"Schedule {self.schedule_id}: history total {history_total} != "
                f"total_deducted {self.total_deducted}"
            )

    @property
    def is_settled(self) -> bool:
        return self.remaining_balance == 0

    def entry_for(self, period_id: str) -> DeductionHistoryEntry | None:
        for entry in self.deduction_history:
            if entry.period_id == period_id:
                return entry
        return None


@dataclass(frozen=True)
class RepaymentApplication:
    """Result of applying one payroll period to a schedule."""

    schedule: RepaymentSchedule
    period_id: str
    amount_applied: Decimal
    new_remaining_balance: Decimal
    already_applied: bool = False

    @property
    def is_settled(self) -> bool:
        return self.schedule.is_settled


@dataclass(frozen=True)
class AdvanceDeduction:
    """Active advance installment handed to the payroll computation."""

    schedule_id: str
    request_id: str
    employee_id: str
    amount: Decimal
    remaining_balance: Decimal


class DeductionScheduler:
    """
    Creates and advances repayment schedules.

    ``default_repayment_months`` applies when the approved request carries
    no explicit term.
    """

    def __init__(self, default_repayment_months: int = 1):
        if default_repayment_months < 1:
            raise ValueError("default_repayment_months must be at least 1")
        self._default_months = default_repayment_months

    def on_disburse(
        self,
        request: DisbursableAdvance,
        schedule_id: str | None = None,
    ) -> RepaymentSchedule:
        amount = request.disbursable_amount
        if amount <= 0:
            raise ValueError(f"Cannot schedule non-positive advance amount {amount}")
        months = request.repayment_months or self._default_months
        if months < 1:
            raise ValueError("repayment_months must be at least 1")

        monthly = (amount / Decimal(months)).quantize(_CENT, rounding=ROUND_UP)
        return RepaymentSchedule(
            schedule_id=schedule_id or f"RS-{request.request_id}",
            request_id=request.request_id,
            employee_id=request.employee_id,
            original_amount=amount,
            monthly_deduction=min(monthly, amount),
            repayment_months=months,
            remaining_balance=amount,
        )

    @traced_engine("repayment", "1.0", fingerprint_fields=("schedule", "period_id"))
    def apply_to_period(
        self,
        schedule: RepaymentSchedule,
        period_id: str,
    ) -> RepaymentApplication:
        """Deduct one installment for ``period_id``; idempotent per period."""
        existing = schedule.entry_for(period_id)
        if existing is not None:
            return RepaymentApplication(
                schedule=schedule,
                period_id=period_id,
                amount_applied=existing.amount,
                new_remaining_balance=schedule.remaining_balance,
                already_applied=True,
            )

        if schedule.is_settled:
            raise ScheduleSettledError(schedule.schedule_id, period_id)

        amount = min(schedule.monthly_deduction, schedule.remaining_balance)
        remaining = schedule.remaining_balance - amount
        updated = replace(
            schedule,
            remaining_balance=remaining,
            total_deducted=schedule.total_deducted + amount,
            deduction_history=schedule.deduction_history
            + (DeductionHistoryEntry(period_id=period_id, amount=amount, remaining_after=remaining),),
        )
        return RepaymentApplication(
            schedule=updated,
            period_id=period_id,
            amount_applied=amount,
            new_remaining_balance=remaining,
        )

    def active_deduction(
        self,
        schedule: RepaymentSchedule,
        period_id: str,
    ) -> AdvanceDeduction | None:
        """
        The installment owed for ``period_id``.

        A period already in the history yields the amount recorded for it,
        so recalculating that period reproduces the same deduction.  A new
        period yields the next installment, or None once settled.
        """
        existing = schedule.entry_for(period_id)
        if existing is not None:
            return AdvanceDeduction(
                schedule_id=schedule.schedule_id,
                request_id=schedule.request_id,
                employee_id=schedule.employee_id,
                amount=existing.amount,
                remaining_balance=existing.remaining_after + existing.amount,
            )
        if schedule.is_settled:
            return None
        return AdvanceDeduction(
            schedule_id=schedule.schedule_id,
            request_id=schedule.request_id,
            employee_id=schedule.employee_id,
            amount=min(schedule.monthly_deduction, schedule.remaining_balance),
            remaining_balance=schedule.remaining_balance,
        )
