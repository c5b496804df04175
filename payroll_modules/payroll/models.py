"""
Payroll Domain Models (``payroll_modules.payroll.models``).

Responsibility
--------------
Frozen dataclass value objects representing the nouns of payroll:
employees, time entries, manual adjustments, standing deductions, pay
periods, pay stubs and computed payroll records.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by
``PayrollComputation`` and returned to callers.  Employee and time data
are owned by outside collaborators; these types only describe what the
computation reads.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Salary, hourly rate and hours are non-negative.

Failure modes
-------------
* Construction with negative pay or hours raises ``ValueError``.

Audit relevance
---------------
* A ``PayrollRecord`` is never mutated; a recalculation produces a new
  record that supersedes the old one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from payroll_engines.repayment import AdvanceDeduction
from payroll_engines.tax import StatutoryDeductions
from payroll_kernel.logging_config import get_logger

logger = get_logger("modules.payroll.models")

_ZERO = Decimal("0")


class EmploymentType(Enum):
    """How gross pay is derived."""
    SALARIED = "salaried"
    HOURLY = "hourly"


class EmployeeStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class PaymentMethod(Enum):
    BANK_TRANSFER = "bank_transfer"
    MOBILE_MONEY = "mobile_money"
    CASH = "cash"
    CHEQUE = "cheque"


class AdjustmentType(Enum):
    """Manual adjustment types."""
    BONUS = "bonus"
    ALLOWANCE = "allowance"
    OVERTIME = "overtime"
    COMMISSION = "commission"
    DEDUCTION = "deduction"
    LOAN_REPAYMENT = "loan_repayment"


EARNING_ADJUSTMENT_TYPES = frozenset({
    AdjustmentType.BONUS,
    AdjustmentType.ALLOWANCE,
    AdjustmentType.OVERTIME,
    AdjustmentType.COMMISSION,
})


class DeductionType(Enum):
    LOAN = "loan"
    SALARY_ADVANCE = "salary_advance"
    WELFARE = "welfare"
    SACCO = "sacco"
    INSURANCE = "insurance"
    UNION_DUES = "union_dues"
    OTHER = "other"


class LineKind(Enum):
    EARNING = "earning"
    DEDUCTION = "deduction"


@dataclass(frozen=True)
class Deduction:
    """A standing deduction on an employee's payroll profile."""
    id: str
    deduction_type: DeductionType
    name: str
    amount: Decimal
    is_recurring: bool = True
    remaining_balance: Decimal | None = None
    monthly_installment: Decimal | None = None

    def __post_init__(self):
        if self.amount < 0:
            raise ValueError("deduction amount cannot be negative")

    @property
    def period_amount(self) -> Decimal:
        """Amount taken this period: the installment when set, never above the balance."""
        amount = self.monthly_installment if self.monthly_installment is not None else self.amount
        if self.remaining_balance is not None:
            amount = min(amount, self.remaining_balance)
        return amount


@dataclass(frozen=True)
class Employee:
    """An employee for payroll purposes."""
    id: str
    name: str
    employment_type: EmploymentType
    monthly_salary: Decimal = _ZERO
    hourly_rate: Decimal = _ZERO
    overtime_rate: Decimal | None = None
    tax_pin: str | None = None
    social_security_number: str | None = None
    health_number: str | None = None
    personal_relief: Decimal | None = None
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    bank_name: str | None = None
    bank_account_number: str | None = None
    mobile_money_number: str | None = None
    standing_deductions: tuple[Deduction, ...] = ()
    department: str | None = None
    branch: str | None = None
    ops_reviewer_id: str | None = None
    hire_date: date | None = None
    status: EmployeeStatus = EmployeeStatus.ACTIVE

    def __post_init__(self):
        if self.monthly_salary < 0 or self.hourly_rate < 0:
            logger.warning(
                "employee_negative_pay",
                extra={
                    "employee_id": self.id,
                    "monthly_salary": str(self.monthly_salary),
                    "hourly_rate": str(self.hourly_rate),
                },
            )
            raise ValueError("salary and hourly rate cannot be negative")
        if self.overtime_rate is not None and self.overtime_rate < 0:
            raise ValueError("overtime_rate cannot be negative")
        if self.personal_relief is not None and self.personal_relief < 0:
            raise ValueError("personal_relief cannot be negative")

    @property
    def is_active(self) -> bool:
        return self.status == EmployeeStatus.ACTIVE


@dataclass(frozen=True)
class TimeEntry:
    """Hours worked by one employee on one day."""
    employee_id: str
    work_date: date
    regular_hours: Decimal = _ZERO
    overtime_hours: Decimal = _ZERO
    sick_hours: Decimal = _ZERO
    vacation_hours: Decimal = _ZERO
    holiday_hours: Decimal = _ZERO
    personal_hours: Decimal = _ZERO
    approved: bool = True

    def __post_init__(self):
        for name in ("regular_hours", "overtime_hours", "sick_hours",
                     "vacation_hours", "holiday_hours", "personal_hours"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")

    @property
    def paid_leave_hours(self) -> Decimal:
        return self.sick_hours + self.vacation_hours + self.holiday_hours + self.personal_hours

    @property
    def worked_hours(self) -> Decimal:
        return self.regular_hours + self.overtime_hours


@dataclass(frozen=True)
class ManualAdjustment:
    """A one-off amount attached to a payroll run."""
    id: str
    adjustment_type: AdjustmentType
    description: str
    amount: Decimal
    is_taxable: bool = True

    def __post_init__(self):
        if self.amount < 0:
            raise ValueError("adjustment amount cannot be negative")

    @property
    def is_earning(self) -> bool:
        return self.adjustment_type in EARNING_ADJUSTMENT_TYPES


@dataclass(frozen=True)
class PayrollPeriod:
    """A pay period."""
    id: str
    name: str
    start_date: date
    end_date: date
    pay_date: date

    def __post_init__(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date cannot precede start_date")


@dataclass(frozen=True)
class PayStubLine:
    """One itemised earning or deduction on a pay stub."""
    kind: LineKind
    category: str
    name: str
    amount: Decimal
    is_statutory: bool = False


@dataclass(frozen=True)
class PayStub:
    """Employee-facing pay statement for one period."""
    stub_number: str
    employee_id: str
    employee_name: str
    period_id: str
    period_start: date
    period_end: date
    pay_date: date
    tax_pin: str | None
    social_security_number: str | None
    health_number: str | None
    earnings: tuple[PayStubLine, ...]
    deductions: tuple[PayStubLine, ...]
    gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    take_home_pay: Decimal


@dataclass(frozen=True)
class PayrollRecord:
    """Computed payroll for one employee and one period."""
    employee_id: str
    employee_name: str
    period_id: str
    regular_hours: Decimal
    overtime_hours: Decimal
    paid_leave_hours: Decimal
    total_hours: Decimal
    gross_pay: Decimal
    statutory: StatutoryDeductions
    other_deductions: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    non_taxable_additions: Decimal
    take_home_pay: Decimal
    advance_deductions: tuple[AdvanceDeduction, ...]
    exceptions: tuple[str, ...]
    calculated_at: datetime
    pay_stub: PayStub

    @property
    def has_exceptions(self) -> bool:
        return bool(self.exceptions)
