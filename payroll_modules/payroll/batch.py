"""
payroll_modules.payroll.batch -- Concurrent payroll run for one period.

Contract:
    ``run_payroll_batch`` computes a ``PayrollRecord`` for every employee in
    the period, concurrently, and returns an immutable summary with
    period-level totals and a statutory tax breakdown.

Invariants enforced:
    - Each employee's active advance-deduction snapshot is read once,
      before any computation starts.
    - Workers share no mutable state; every worker returns a value.
    - Period totals are reduced only after all futures are complete.
    - A failure in one employee's computation is recorded as a FAILED item
      and does not abort the batch.
    - Advance deductions are applied to their schedules only after the
      barrier, once per (request, period).  An applier failure is recorded
      on the summary and the remaining deductions are still applied.
"""

from __future__ import annotations

import contextvars
import time
import uuid
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from payroll_engines.repayment import AdvanceDeduction
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_modules.payroll.computation import PayrollComputation
from payroll_modules.payroll.models import (
    Employee,
    ManualAdjustment,
    PayrollPeriod,
    PayrollRecord,
    TimeEntry,
)

logger = get_logger("modules.payroll.batch")

_ZERO = Decimal("0")
_CENT = Decimal("0.01")
_HUNDRED = Decimal("100")


class BatchItemStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class BatchStatus(str, Enum):
    COMPLETED = "completed"  # All items succeeded
    PARTIALLY_COMPLETED = "partially_completed"  # Some items failed
    FAILED = "failed"  # No item succeeded


@dataclass(frozen=True)
class PayrollBatchInput:
    """Everything the run needs for one employee."""

    employee: Employee
    time_entries: tuple[TimeEntry, ...] = ()
    adjustments: tuple[ManualAdjustment, ...] = ()


@dataclass(frozen=True)
class PayrollBatchItem:
    """Outcome for one employee in the batch."""

    item_index: int
    employee_id: str
    status: BatchItemStatus
    record: PayrollRecord | None = None
    error_code: str | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class DeductionFailure:
    """An advance deduction the applier could not record after the barrier."""

    request_id: str
    employee_id: str
    error_code: str
    error_message: str


@dataclass(frozen=True)
class TaxBreakdownLine:
    amount: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class TaxBreakdown:
    """Statutory totals per component with each component's share."""

    income_tax: TaxBreakdownLine
    social_security: TaxBreakdownLine
    health_contribution: TaxBreakdownLine
    total: Decimal


@dataclass(frozen=True)
class PeriodTotals:
    employee_count: int
    total_gross: Decimal
    total_statutory: Decimal
    total_other_deductions: Decimal
    total_net: Decimal
    total_take_home: Decimal
    exception_count: int


@dataclass(frozen=True)
class PayrollBatchSummary:
    """Immutable result of a payroll batch run."""

    batch_id: str
    period_id: str
    status: BatchStatus
    items: tuple[PayrollBatchItem, ...]
    totals: PeriodTotals
    tax_breakdown: TaxBreakdown
    deduction_failures: tuple[DeductionFailure, ...] = ()
    duration_ms: int = 0

    @property
    def records(self) -> tuple[PayrollRecord, ...]:
        return tuple(i.record for i in self.items if i.record is not None)

    @property
    def failed_items(self) -> tuple[PayrollBatchItem, ...]:
        return tuple(i for i in self.items if i.status == BatchItemStatus.FAILED)


def _share(amount: Decimal, total: Decimal) -> TaxBreakdownLine:
    if total == 0:
        return TaxBreakdownLine(amount, _ZERO)
    pct = (amount / total * _HUNDRED).quantize(_CENT, rounding=ROUND_HALF_UP)
    return TaxBreakdownLine(amount, pct)


def calculate_tax_breakdown(records: Sequence[PayrollRecord]) -> TaxBreakdown:
    """Totals per statutory component and their percentage of the whole."""
    income_tax = sum((r.statutory.income_tax for r in records), _ZERO)
    social = sum((r.statutory.social_security for r in records), _ZERO)
    health = sum((r.statutory.health_contribution for r in records), _ZERO)
    total = income_tax + social + health
    return TaxBreakdown(
        income_tax=_share(income_tax, total),
        social_security=_share(social, total),
        health_contribution=_share(health, total),
        total=total,
    )


def summarize_records(records: Sequence[PayrollRecord]) -> PeriodTotals:
    return PeriodTotals(
        employee_count=len(records),
        total_gross=sum((r.gross_pay for r in records), _ZERO),
        total_statutory=sum((r.statutory.total for r in records), _ZERO),
        total_other_deductions=sum((r.other_deductions for r in records), _ZERO),
        total_net=sum((r.net_pay for r in records), _ZERO),
        total_take_home=sum((r.take_home_pay for r in records), _ZERO),
        exception_count=sum(1 for r in records if r.has_exceptions),
    )


def _apply_deductions(
    applier: Callable[[str, str], Any],
    records: Sequence[PayrollRecord],
    period_id: str,
) -> tuple[DeductionFailure, ...]:
    """Apply every record's advance deductions; one failure never stops the rest."""
    failures = []
    for record in records:
        for adv in record.advance_deductions:
            try:
                applier(adv.request_id, period_id)
            except Exception as exc:
                logger.exception(
                    "payroll_batch_deduction_failed",
                    extra={"employee_id": record.employee_id, "request_id": adv.request_id},
                )
                failures.append(
                    DeductionFailure(
                        request_id=adv.request_id,
                        employee_id=record.employee_id,
                        error_code=getattr(exc, "code", type(exc).__name__),
                        error_message=str(exc),
                    )
                )
    return tuple(failures)


def run_payroll_batch(
    computation: PayrollComputation,
    period: PayrollPeriod,
    inputs: Sequence[PayrollBatchInput],
    deduction_source: Callable[[str, str], Sequence[AdvanceDeduction]],
    *,
    deduction_applier: Callable[[str, str], Any] | None = None,
    batch_id: str | None = None,
    max_workers: int | None = None,
) -> PayrollBatchSummary:
    """
    Compute payroll for every input concurrently.

    Args:
        computation: Per-employee calculator.
        period: The period being paid.
        inputs: One entry per employee.
        deduction_source: Called as ``source(employee_id, period_id)``; returns
            the advance deductions owed for the period
            (e.g. ``AdvanceWorkflowService.active_deductions_for``).
        deduction_applier: Called as ``applier(request_id, period_id)`` for
            every advance deduction on a successful record, after the
            barrier (e.g. ``AdvanceWorkflowService.apply_payroll_deduction``).
        batch_id: Identifier for logs; generated when omitted.
        max_workers: Thread pool size.
    """
    batch_id = batch_id or str(uuid.uuid4())
    t0 = time.monotonic()

    with LogContext.bind(batch_id=batch_id, period_id=period.id):
        snapshot = {
            inp.employee.id: tuple(deduction_source(inp.employee.id, period.id)) for inp in inputs
        }
        logger.info(
            "payroll_batch_started",
            extra={"employee_count": len(inputs)},
        )

        def compute(index: int, inp: PayrollBatchInput) -> PayrollBatchItem:
            try:
                record = computation.calculate_payroll(
                    inp.employee,
                    inp.time_entries,
                    period,
                    inp.adjustments,
                    snapshot[inp.employee.id],
                    stub_sequence=index + 1,
                )
            except Exception as exc:
                logger.exception(
                    "payroll_batch_item_failed",
                    extra={"employee_id": inp.employee.id, "item_index": index},
                )
                return PayrollBatchItem(
                    item_index=index,
                    employee_id=inp.employee.id,
                    status=BatchItemStatus.FAILED,
                    error_code=getattr(exc, "code", type(exc).__name__),
                    error_message=str(exc),
                )
            return PayrollBatchItem(
                item_index=index,
                employee_id=inp.employee.id,
                status=BatchItemStatus.SUCCEEDED,
                record=record,
            )

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [
                executor.submit(contextvars.copy_context().run, compute, index, inp)
                for index, inp in enumerate(inputs)
            ]
            items = tuple(f.result() for f in futures)

        # Barrier passed: every item is final.
        records = [i.record for i in items if i.record is not None]
        failed = len(items) - len(records)
        if not items or failed == 0:
            status = BatchStatus.COMPLETED
        elif records:
            status = BatchStatus.PARTIALLY_COMPLETED
        else:
            status = BatchStatus.FAILED

        deduction_failures: tuple[DeductionFailure, ...] = ()
        if deduction_applier is not None:
            deduction_failures = _apply_deductions(deduction_applier, records, period.id)

        summary = PayrollBatchSummary(
            batch_id=batch_id,
            period_id=period.id,
            status=status,
            items=items,
            totals=summarize_records(records),
            tax_breakdown=calculate_tax_breakdown(records),
            deduction_failures=deduction_failures,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        logger.info(
            "payroll_batch_completed",
            extra={
                "status": status.value,
                "succeeded": len(records),
                "failed": failed,
                "deduction_failures": len(deduction_failures),
                "total_gross": str(summary.totals.total_gross),
                "total_statutory": str(summary.totals.total_statutory),
                "total_net": str(summary.totals.total_net),
            },
        )
        return summary
