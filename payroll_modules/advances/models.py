"""
Salary Advance Domain Models (``payroll_modules.advances.models``).

Responsibility
--------------
Frozen value objects for the salary-advance lifecycle: the request, the
actors who decide it, and the append-only audit trail of workflow steps.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  A request is
changed only by ``AdvanceWorkflowService``, which builds a new value and
swaps it into the store.

Invariants enforced
-------------------
* ``history`` only ever grows; steps are frozen.
* ``approved_amount`` never exceeds ``requested_amount``.
* ``version`` increases by one on every stored change.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from payroll_modules.payroll.models import PaymentMethod


class AdvanceStatus(str, Enum):
    """Salary-advance request states."""
    PENDING_OPS_INITIAL = "pending_ops_initial"
    FORWARDED_TO_HR = "forwarded_to_hr"
    HR_APPROVED = "hr_approved"
    OPS_FINAL_APPROVED = "ops_final_approved"
    DISBURSED = "disbursed"
    REPAYING = "repaying"
    COMPLETED = "completed"
    OPS_FINAL_REJECTED = "ops_final_rejected"
    HR_REJECTED = "hr_rejected"


class ActorRole(str, Enum):
    EMPLOYEE = "employee"
    OPERATIONS = "operations"
    HR = "hr"
    FINANCE = "finance"
    SYSTEM = "system"


class AdvanceAction(str, Enum):
    """Named actions in the advance workflow transition table."""
    OPS_INITIAL_APPROVE = "ops_initial_approve"
    OPS_INITIAL_REJECT = "ops_initial_reject"
    WAIVE_OPS_INITIAL = "waive_ops_initial"
    HR_APPROVE = "hr_approve"
    HR_REJECT = "hr_reject"
    OPS_FINAL_APPROVE = "ops_final_approve"
    OPS_FINAL_REJECT = "ops_final_reject"
    WAIVE_OPS_FINAL = "waive_ops_final"
    DISBURSE = "disburse"
    START_REPAYMENT = "start_repayment"
    COMPLETE_REPAYMENT = "complete_repayment"


class StepDecision(str, Enum):
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    WAIVED = "waived"
    DISBURSED = "disbursed"
    DEDUCTED = "deducted"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Actor:
    """Whoever performs a workflow action."""
    actor_id: str
    role: ActorRole


SYSTEM_ACTOR = Actor(actor_id="system", role=ActorRole.SYSTEM)


@dataclass(frozen=True)
class WorkflowStep:
    """Immutable audit entry appended on every transition."""
    actor_id: str
    actor_role: ActorRole
    action: str
    decision: StepDecision
    from_status: AdvanceStatus | None
    to_status: AdvanceStatus
    timestamp: datetime
    comment: str | None = None


@dataclass(frozen=True)
class SalaryAdvanceRequest:
    """A salary-advance request and its workflow history."""
    request_id: str
    employee_id: str
    requested_amount: Decimal
    reason: str
    disbursement_method: PaymentMethod
    status: AdvanceStatus
    monthly_salary: Decimal
    submitted_at: datetime
    history: tuple[WorkflowStep, ...] = ()
    approved_amount: Decimal | None = None
    repayment_months: int | None = None
    ops_reviewer_id: str | None = None
    ops_review_waived: bool = False
    version: int = 1

    def __post_init__(self):
        if self.requested_amount <= 0:
            raise ValueError("requested_amount must be positive")
        if self.approved_amount is not None:
            if self.approved_amount <= 0:
                raise ValueError("approved_amount must be positive")
            if self.approved_amount > self.requested_amount:
                raise ValueError("approved_amount cannot exceed requested_amount")
        if self.repayment_months is not None and self.repayment_months < 1:
            raise ValueError("repayment_months must be at least 1")

    @property
    def disbursable_amount(self) -> Decimal:
        """Amount paid out: the approved amount when set, else the request."""
        return self.approved_amount if self.approved_amount is not None else self.requested_amount

    @property
    def last_step(self) -> WorkflowStep | None:
        return self.history[-1] if self.history else None
