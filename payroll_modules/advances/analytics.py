"""Advance portfolio summary.

Pure aggregation over request and schedule values.  Rates are percentages
rounded to two places; a rate whose base is zero is reported as zero.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from payroll_engines.repayment import RepaymentSchedule
from payroll_modules.advances.models import AdvanceStatus, SalaryAdvanceRequest
from payroll_modules.advances.workflows import IN_FLIGHT_STATUSES

_ZERO = Decimal("0")
_CENT = Decimal("0.01")
_HUNDRED = Decimal("100")

_APPROVED_STATUSES = frozenset({
    AdvanceStatus.OPS_FINAL_APPROVED,
    AdvanceStatus.DISBURSED,
    AdvanceStatus.REPAYING,
    AdvanceStatus.COMPLETED,
})
_DISBURSED_STATUSES = frozenset({
    AdvanceStatus.DISBURSED,
    AdvanceStatus.REPAYING,
    AdvanceStatus.COMPLETED,
})
_REJECTED_STATUSES = frozenset({
    AdvanceStatus.OPS_FINAL_REJECTED,
    AdvanceStatus.HR_REJECTED,
})


@dataclass(frozen=True)
class AdvanceAnalytics:
    total_requests: int
    pending: int
    approved: int
    rejected: int
    disbursed: int
    completed: int
    approval_rate: Decimal
    disbursement_rate: Decimal
    total_requested: Decimal
    total_disbursed: Decimal
    total_repaid: Decimal
    outstanding: Decimal


def _rate(part: int, whole: int) -> Decimal:
    if whole == 0:
        return _ZERO
    return (Decimal(part) / Decimal(whole) * _HUNDRED).quantize(_CENT, rounding=ROUND_HALF_UP)


def summarize_advances(
    requests: Sequence[SalaryAdvanceRequest],
    schedules: Sequence[RepaymentSchedule],
) -> AdvanceAnalytics:
    """
    Portfolio figures for a set of requests and their schedules.

    ``approval_rate`` is approved over decided (approved + rejected);
    ``disbursement_rate`` is disbursed over approved.  Money totals come
    from the schedules, so partial approvals count at the disbursed amount.
    """
    approved = sum(1 for r in requests if r.status in _APPROVED_STATUSES)
    rejected = sum(1 for r in requests if r.status in _REJECTED_STATUSES)
    disbursed = sum(1 for r in requests if r.status in _DISBURSED_STATUSES)

    return AdvanceAnalytics(
        total_requests=len(requests),
        pending=sum(1 for r in requests if r.status in IN_FLIGHT_STATUSES
                    and r.status != AdvanceStatus.OPS_FINAL_APPROVED),
        approved=approved,
        rejected=rejected,
        disbursed=disbursed,
        completed=sum(1 for r in requests if r.status == AdvanceStatus.COMPLETED),
        approval_rate=_rate(approved, approved + rejected),
        disbursement_rate=_rate(disbursed, approved),
        total_requested=sum((r.requested_amount for r in requests), _ZERO),
        total_disbursed=sum((s.original_amount for s in schedules), _ZERO),
        total_repaid=sum((s.total_deducted for s in schedules), _ZERO),
        outstanding=sum((s.remaining_balance for s in schedules), _ZERO),
    )
