"""
Payroll Computation (``payroll_modules.payroll.computation``).

Responsibility
--------------
Combines one employee's salary or time data, manual adjustments, standing
deductions and active advance installments with the statutory tax engine
into a complete ``PayrollRecord`` and ``PayStub``.

Architecture position
---------------------
**Modules layer** -- orchestration over pure engines.  No I/O.  The only
impure input is the injected ``Clock`` used for ``calculated_at``.

Invariants enforced
-------------------
* ``net_pay = gross_pay - (statutory.total + other_deductions)``.
* ``take_home_pay = net_pay + non_taxable_additions``.
* Non-taxable earnings never enter gross pay and are never dropped.
* Data-quality problems are reported on the record, never raised.

Failure modes
-------------
* Advance deductions belonging to another employee -> ``ValueError``.
* Negative amounts on inputs are rejected by the model constructors.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from payroll_engines.repayment import AdvanceDeduction
from payroll_engines.tax import StatutoryDeductions, TaxCalculator, round_money
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_modules.payroll.models import (
    Employee,
    EmploymentType,
    LineKind,
    ManualAdjustment,
    PaymentMethod,
    PayrollPeriod,
    PayrollRecord,
    PayStub,
    PayStubLine,
    TimeEntry,
)

logger = get_logger("modules.payroll.computation")

_ZERO = Decimal("0")

EXC_NO_TIME_ENTRIES = "No time entries found for hourly employee"
EXC_MISSING_TAX_PIN = "Missing tax PIN number"
EXC_MISSING_BANK = "Missing bank account information"
EXC_MISSING_MOBILE_MONEY = "Missing mobile money number"
EXC_NON_POSITIVE_GROSS = "Zero or negative gross pay"
EXC_EXCESSIVE_HOURS = "Excessive hours worked"
EXC_NEGATIVE_NET = "Deductions exceed gross pay"


def format_stub_number(period: PayrollPeriod, sequence: int) -> str:
    """``PS{YYYY}{MM}{seq:04d}`` from the period's pay date."""
    if sequence < 1:
        raise ValueError("stub sequence must be at least 1")
    return f"PS{period.pay_date.year}{period.pay_date.month:02d}{sequence:04d}"


class PayrollComputation:
    """
    Per-employee payroll calculation.

    Contract:
        ``calculate_payroll`` is deterministic for a given clock reading and
        has no shared mutable state, so a batch may run it concurrently.
    """

    def __init__(self, tax_calculator: TaxCalculator, clock: Clock | None = None):
        self._tax = tax_calculator
        self._policy = tax_calculator.config.payroll_policy
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Gross pay
    # ------------------------------------------------------------------

    def overtime_rate(self, employee: Employee) -> Decimal:
        if employee.overtime_rate is not None:
            return employee.overtime_rate
        return employee.hourly_rate * self._policy.default_overtime_multiplier

    def _base_earnings(
        self, employee: Employee, time_entries: Sequence[TimeEntry],
    ) -> list[tuple[str, str, Decimal]]:
        if employee.employment_type == EmploymentType.SALARIED:
            return [("basic_salary", "Basic salary", employee.monthly_salary)]

        regular = sum((e.regular_hours for e in time_entries), _ZERO)
        overtime = sum((e.overtime_hours for e in time_entries), _ZERO)
        leave = sum((e.paid_leave_hours for e in time_entries), _ZERO)
        return [
            ("regular_pay", f"Regular pay ({regular} h)", regular * employee.hourly_rate),
            ("overtime_pay", f"Overtime pay ({overtime} h)", overtime * self.overtime_rate(employee)),
            ("paid_leave", f"Paid leave ({leave} h)", leave * employee.hourly_rate),
        ]

    def calculate_gross_pay(
        self,
        employee: Employee,
        time_entries: Sequence[TimeEntry],
        adjustments: Sequence[ManualAdjustment] = (),
    ) -> Decimal:
        """Base earnings from approved time entries plus taxable earning adjustments."""
        time_entries = _payable_entries(employee, time_entries)
        base = sum((amount for _, _, amount in self._base_earnings(employee, time_entries)), _ZERO)
        taxable = sum(
            (a.amount for a in adjustments if a.is_earning and a.is_taxable), _ZERO
        )
        return round_money(base + taxable)

    @staticmethod
    def calculate_non_taxable_additions(adjustments: Sequence[ManualAdjustment]) -> Decimal:
        return round_money(sum(
            (a.amount for a in adjustments if a.is_earning and not a.is_taxable), _ZERO
        ))

    # ------------------------------------------------------------------
    # Deductions
    # ------------------------------------------------------------------

    def calculate_statutory_deductions(
        self, employee: Employee, gross_pay: Decimal,
    ) -> StatutoryDeductions:
        """Statutory breakdown using the employee's relief, or the config default."""
        return self._tax.calculate_statutory(max(gross_pay, _ZERO), employee.personal_relief)

    def calculate_other_deductions(
        self,
        employee: Employee,
        active_advance_deductions: Sequence[AdvanceDeduction] = (),
        adjustments: Sequence[ManualAdjustment] = (),
    ) -> Decimal:
        """Standing deductions, advance installments and one-off deduction adjustments."""
        _check_advance_ownership(employee, active_advance_deductions)
        standing = sum((d.period_amount for d in employee.standing_deductions), _ZERO)
        advances = sum((d.amount for d in active_advance_deductions), _ZERO)
        one_off = sum((a.amount for a in adjustments if not a.is_earning), _ZERO)
        return round_money(standing + advances + one_off)

    # ------------------------------------------------------------------
    # Exceptions
    # ------------------------------------------------------------------

    def detect_exceptions(
        self,
        employee: Employee,
        time_entries: Sequence[TimeEntry],
        gross_pay: Decimal,
        net_pay: Decimal,
    ) -> tuple[str, ...]:
        exceptions: list[str] = []
        time_entries = _payable_entries(employee, time_entries)

        if employee.employment_type == EmploymentType.HOURLY and not time_entries:
            exceptions.append(EXC_NO_TIME_ENTRIES)

        if not employee.tax_pin:
            exceptions.append(EXC_MISSING_TAX_PIN)

        if employee.payment_method == PaymentMethod.BANK_TRANSFER:
            if not employee.bank_name or not employee.bank_account_number:
                exceptions.append(EXC_MISSING_BANK)
        elif employee.payment_method == PaymentMethod.MOBILE_MONEY:
            if not employee.mobile_money_number:
                exceptions.append(EXC_MISSING_MOBILE_MONEY)

        if gross_pay <= 0:
            exceptions.append(EXC_NON_POSITIVE_GROSS)

        worked = sum((e.worked_hours for e in time_entries), _ZERO)
        if worked > self._policy.excessive_hours_threshold:
            exceptions.append(EXC_EXCESSIVE_HOURS)

        if net_pay < 0:
            exceptions.append(EXC_NEGATIVE_NET)

        return tuple(exceptions)

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    def calculate_payroll(
        self,
        employee: Employee,
        time_entries: Sequence[TimeEntry],
        period: PayrollPeriod,
        adjustments: Sequence[ManualAdjustment] = (),
        active_advance_deductions: Sequence[AdvanceDeduction] = (),
        stub_sequence: int = 1,
    ) -> PayrollRecord:
        """
        Compute one employee's payroll record for ``period``.

        Preconditions:
            - ``active_advance_deductions`` is the snapshot taken for this
              employee before the run started.
        Postconditions:
            - Returns a new frozen ``PayrollRecord``; nothing is mutated.
        """
        with LogContext.bind(employee_id=employee.id, period_id=period.id):
            time_entries = _payable_entries(employee, time_entries)
            gross = self.calculate_gross_pay(employee, time_entries, adjustments)
            statutory = self.calculate_statutory_deductions(employee, gross)
            other = self.calculate_other_deductions(
                employee, active_advance_deductions, adjustments,
            )
            total_deductions = statutory.total + other
            net = gross - total_deductions
            non_taxable = self.calculate_non_taxable_additions(adjustments)

            exceptions = self.detect_exceptions(employee, time_entries, gross, net)

            regular = sum((e.regular_hours for e in time_entries), _ZERO)
            overtime = sum((e.overtime_hours for e in time_entries), _ZERO)
            leave = sum((e.paid_leave_hours for e in time_entries), _ZERO)

            stub = PayStub(
                stub_number=format_stub_number(period, stub_sequence),
                employee_id=employee.id,
                employee_name=employee.name,
                period_id=period.id,
                period_start=period.start_date,
                period_end=period.end_date,
                pay_date=period.pay_date,
                tax_pin=employee.tax_pin,
                social_security_number=employee.social_security_number,
                health_number=employee.health_number,
                earnings=self._earning_lines(employee, time_entries, adjustments),
                deductions=self._deduction_lines(
                    employee, statutory, active_advance_deductions, adjustments,
                ),
                gross_pay=gross,
                total_deductions=total_deductions,
                net_pay=net,
                take_home_pay=net + non_taxable,
            )

            record = PayrollRecord(
                employee_id=employee.id,
                employee_name=employee.name,
                period_id=period.id,
                regular_hours=regular,
                overtime_hours=overtime,
                paid_leave_hours=leave,
                total_hours=regular + overtime,
                gross_pay=gross,
                statutory=statutory,
                other_deductions=other,
                total_deductions=total_deductions,
                net_pay=net,
                non_taxable_additions=non_taxable,
                take_home_pay=net + non_taxable,
                advance_deductions=tuple(active_advance_deductions),
                exceptions=exceptions,
                calculated_at=self._clock.now(),
                pay_stub=stub,
            )

            if exceptions:
                logger.warning(
                    "payroll_exceptions_detected",
                    extra={"exceptions": list(exceptions)},
                )
            logger.info(
                "payroll_calculated",
                extra={
                    "gross_pay": str(gross),
                    "statutory_total": str(statutory.total),
                    "other_deductions": str(other),
                    "net_pay": str(net),
                    "advance_deduction_count": len(active_advance_deductions),
                },
            )
            return record

    # ------------------------------------------------------------------
    # Pay stub lines
    # ------------------------------------------------------------------

    def _earning_lines(
        self,
        employee: Employee,
        time_entries: Sequence[TimeEntry],
        adjustments: Sequence[ManualAdjustment],
    ) -> tuple[PayStubLine, ...]:
        lines = [
            PayStubLine(LineKind.EARNING, category, name, round_money(amount))
            for category, name, amount in self._base_earnings(employee, time_entries)
            if amount > 0 or category == "basic_salary"
        ]
        for adj in adjustments:
            if not adj.is_earning:
                continue
            category = adj.adjustment_type.value if adj.is_taxable else "non_taxable"
            lines.append(PayStubLine(LineKind.EARNING, category, adj.description, adj.amount))
        return tuple(lines)

    @staticmethod
    def _deduction_lines(
        employee: Employee,
        statutory: StatutoryDeductions,
        advance_deductions: Sequence[AdvanceDeduction],
        adjustments: Sequence[ManualAdjustment],
    ) -> tuple[PayStubLine, ...]:
        lines = [
            PayStubLine(LineKind.DEDUCTION, "income_tax", "Income tax", statutory.income_tax, True),
            PayStubLine(
                LineKind.DEDUCTION, "social_security", "Social security",
                statutory.social_security, True,
            ),
            PayStubLine(
                LineKind.DEDUCTION, "health_contribution", "Health contribution",
                statutory.health_contribution, True,
            ),
        ]
        for d in employee.standing_deductions:
            lines.append(
                PayStubLine(LineKind.DEDUCTION, d.deduction_type.value, d.name, d.period_amount)
            )
        for adv in advance_deductions:
            lines.append(
                PayStubLine(
                    LineKind.DEDUCTION, "salary_advance",
                    f"Salary advance {adv.request_id}", adv.amount,
                )
            )
        for adj in adjustments:
            if not adj.is_earning:
                lines.append(
                    PayStubLine(
                        LineKind.DEDUCTION, adj.adjustment_type.value, adj.description, adj.amount,
                    )
                )
        return tuple(lines)


def _check_advance_ownership(
    employee: Employee, deductions: Sequence[AdvanceDeduction],
) -> None:
    for d in deductions:
        if d.employee_id != employee.id:
            raise ValueError(
                f"Advance deduction {d.schedule_id} belongs to employee "
                f"{d.employee_id}, not {employee.id}"
            )


def _payable_entries(employee: Employee, entries: Sequence[TimeEntry]) -> tuple[TimeEntry, ...]:
    """Approved entries of ``employee``; an entry for anyone else is a routing error."""
    for e in entries:
        if e.employee_id != employee.id:
            raise ValueError(
                f"Time entry for {e.work_date} belongs to employee "
                f"{e.employee_id}, not {employee.id}"
            )
    return tuple(e for e in entries if e.approved)
