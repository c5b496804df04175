"""
Tests for per-employee payroll computation.

Covers:
- Gross pay for salaried and hourly employees
- Taxable and non-taxable adjustments
- Standing, advance and one-off deductions
- Data-quality exceptions
- Pay stub numbering and lines
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from payroll_engines.repayment import AdvanceDeduction
from payroll_modules.payroll.computation import (
    EXC_EXCESSIVE_HOURS,
    EXC_MISSING_BANK,
    EXC_MISSING_MOBILE_MONEY,
    EXC_MISSING_TAX_PIN,
    EXC_NEGATIVE_NET,
    EXC_NO_TIME_ENTRIES,
    EXC_NON_POSITIVE_GROSS,
    format_stub_number,
)
from payroll_modules.payroll.models import (
    AdjustmentType,
    Deduction,
    DeductionType,
    EmploymentType,
    LineKind,
    ManualAdjustment,
    PaymentMethod,
    TimeEntry,
)


def _hourly(make_employee, **overrides):
    fields = dict(
        employment_type=EmploymentType.HOURLY,
        monthly_salary=Decimal("0"),
        hourly_rate=Decimal("500"),
    )
    fields.update(overrides)
    return make_employee("H-001", **fields)


def _entries(employee_id, days, regular="8", overtime="0", **leave):
    start = date(2024, 6, 3)
    return tuple(
        TimeEntry(
            employee_id=employee_id,
            work_date=start + timedelta(days=i),
            regular_hours=Decimal(regular),
            overtime_hours=Decimal(overtime),
            **{k: Decimal(v) for k, v in leave.items()},
        )
        for i in range(days)
    )


def _advance(employee_id="E-001", amount="10000"):
    return AdvanceDeduction(
        schedule_id="RS-ADV-1",
        request_id="ADV-1",
        employee_id=employee_id,
        amount=Decimal(amount),
        remaining_balance=Decimal(amount),
    )


class TestGrossPay:

    def test_salaried_is_monthly_salary(self, computation, make_employee):
        assert computation.calculate_gross_pay(make_employee(), ()) == Decimal("40000.00")

    def test_hourly_regular_overtime_and_leave(self, computation, make_employee):
        employee = _hourly(make_employee)
        entries = (
            TimeEntry("H-001", date(2024, 6, 3), regular_hours=Decimal("8"), overtime_hours=Decimal("2")),
            TimeEntry("H-001", date(2024, 6, 4), regular_hours=Decimal("8"), vacation_hours=Decimal("8")),
        )
        # 16 * 500 + 2 * 750 + 8 * 500
        assert computation.calculate_gross_pay(employee, entries) == Decimal("13500.00")

    def test_unapproved_entries_not_paid(self, computation, make_employee):
        employee = _hourly(make_employee)
        entries = (
            TimeEntry("H-001", date(2024, 6, 3), regular_hours=Decimal("8")),
            TimeEntry("H-001", date(2024, 6, 4), regular_hours=Decimal("8"), approved=False),
        )
        assert computation.calculate_gross_pay(employee, entries) == Decimal("4000.00")

    def test_foreign_time_entry_rejected(self, computation, make_employee):
        entries = _entries("H-002", 1)
        with pytest.raises(ValueError, match="belongs to employee H-002"):
            computation.calculate_gross_pay(_hourly(make_employee), entries)

    def test_explicit_overtime_rate(self, computation, make_employee):
        employee = _hourly(make_employee, overtime_rate=Decimal("1000"))
        entries = _entries("H-001", 1, regular="0", overtime="3")
        assert computation.calculate_gross_pay(employee, entries) == Decimal("3000.00")

    def test_taxable_adjustments_enter_gross(self, computation, make_employee):
        adjustments = (
            ManualAdjustment("A-1", AdjustmentType.BONUS, "Q2 bonus", Decimal("5000")),
            ManualAdjustment("A-2", AdjustmentType.ALLOWANCE, "Meal allowance", Decimal("2000"), is_taxable=False),
            ManualAdjustment("A-3", AdjustmentType.DEDUCTION, "Damaged tool", Decimal("1000")),
        )
        assert computation.calculate_gross_pay(make_employee(), (), adjustments) == Decimal("45000.00")
        assert computation.calculate_non_taxable_additions(adjustments) == Decimal("2000.00")


class TestOtherDeductions:

    def test_standing_advance_and_one_off(self, computation, make_employee):
        employee = make_employee(standing_deductions=(
            Deduction("D-1", DeductionType.SACCO, "Sacco savings", Decimal("500")),
        ))
        adjustments = (ManualAdjustment("A-3", AdjustmentType.LOAN_REPAYMENT, "Staff loan", Decimal("1000")),)

        total = computation.calculate_other_deductions(employee, (_advance(),), adjustments)

        assert total == Decimal("11500.00")

    def test_installment_capped_by_remaining_balance(self):
        loan = Deduction(
            "D-2", DeductionType.LOAN, "Bank loan", Decimal("5000"),
            remaining_balance=Decimal("200"), monthly_installment=Decimal("300"),
        )
        assert loan.period_amount == Decimal("200")

    def test_foreign_advance_rejected(self, computation, make_employee):
        with pytest.raises(ValueError, match="belongs to employee"):
            computation.calculate_other_deductions(make_employee(), (_advance("E-999"),))


class TestCalculatePayroll:

    def test_salaried_record(self, computation, make_employee, june_period, deterministic_clock):
        record = computation.calculate_payroll(make_employee(), (), june_period)

        assert record.gross_pay == Decimal("40000.00")
        assert record.statutory.total == Decimal("7542.80")
        assert record.other_deductions == Decimal("0.00")
        assert record.net_pay == Decimal("32457.20")
        assert record.take_home_pay == record.net_pay
        assert record.exceptions == ()
        assert record.calculated_at == deterministic_clock.now()

    def test_net_and_take_home(self, computation, make_employee, june_period):
        employee = make_employee(standing_deductions=(
            Deduction("D-1", DeductionType.SACCO, "Sacco savings", Decimal("500")),
        ))
        adjustments = (
            ManualAdjustment("A-1", AdjustmentType.BONUS, "Q2 bonus", Decimal("5000")),
            ManualAdjustment("A-2", AdjustmentType.ALLOWANCE, "Meal allowance", Decimal("2000"), is_taxable=False),
            ManualAdjustment("A-3", AdjustmentType.DEDUCTION, "Damaged tool", Decimal("1000")),
        )

        record = computation.calculate_payroll(
            employee, (), june_period, adjustments, (_advance(),),
        )

        assert record.gross_pay == Decimal("45000.00")
        assert record.statutory.income_tax == Decimal("5882.80")
        assert record.statutory.health_contribution == Decimal("1100.00")
        assert record.other_deductions == Decimal("11500.00")
        assert record.total_deductions == record.statutory.total + record.other_deductions
        assert record.net_pay == Decimal("24357.20")
        assert record.take_home_pay == Decimal("26357.20")
        assert record.advance_deductions == (_advance(),)

    def test_employee_relief_override(self, computation, make_employee, june_period):
        record = computation.calculate_payroll(
            make_employee(personal_relief=Decimal("0")), (), june_period,
        )
        assert record.statutory.income_tax == Decimal("6782.80")

    def test_hours_totals(self, computation, make_employee, june_period):
        entries = _entries("H-001", 2, regular="8", overtime="1", sick_hours="2")

        record = computation.calculate_payroll(_hourly(make_employee), entries, june_period)

        assert record.regular_hours == Decimal("16")
        assert record.overtime_hours == Decimal("2")
        assert record.paid_leave_hours == Decimal("4")
        assert record.total_hours == Decimal("18")

    def test_logs_calculation(self, computation, make_employee, june_period, captured_logs):
        computation.calculate_payroll(make_employee(), (), june_period)

        logs = [r for r in captured_logs() if r["message"] == "payroll_calculated"]
        assert len(logs) == 1
        assert logs[0]["employee_id"] == "E-001"
        assert logs[0]["period_id"] == "2024-06"
        assert logs[0]["net_pay"] == "32457.20"


class TestExceptionDetection:
    """Data-quality problems are reported on the record, never raised."""

    def test_hourly_without_time_entries(self, computation, make_employee, june_period):
        record = computation.calculate_payroll(_hourly(make_employee), (), june_period)

        assert EXC_NO_TIME_ENTRIES in record.exceptions
        assert EXC_NON_POSITIVE_GROSS in record.exceptions
        assert record.has_exceptions

    def test_missing_tax_pin(self, computation, make_employee, june_period):
        record = computation.calculate_payroll(make_employee(tax_pin=None), (), june_period)
        assert record.exceptions == (EXC_MISSING_TAX_PIN,)

    def test_missing_bank_details(self, computation, make_employee, june_period):
        record = computation.calculate_payroll(make_employee(bank_account_number=""), (), june_period)
        assert record.exceptions == (EXC_MISSING_BANK,)

    def test_missing_mobile_money_number(self, computation, make_employee, june_period):
        employee = make_employee(payment_method=PaymentMethod.MOBILE_MONEY, bank_name=None)
        record = computation.calculate_payroll(employee, (), june_period)
        assert record.exceptions == (EXC_MISSING_MOBILE_MONEY,)

    def test_cash_needs_no_account(self, computation, make_employee, june_period):
        employee = make_employee(payment_method=PaymentMethod.CASH, bank_name=None, bank_account_number=None)
        assert computation.calculate_payroll(employee, (), june_period).exceptions == ()

    def test_excessive_hours(self, computation, make_employee, june_period):
        entries = _entries("H-001", 26)  # 208 hours
        record = computation.calculate_payroll(_hourly(make_employee), entries, june_period)
        assert EXC_EXCESSIVE_HOURS in record.exceptions

    def test_exactly_threshold_not_excessive(self, computation, make_employee, june_period):
        entries = _entries("H-001", 25)  # 200 hours
        record = computation.calculate_payroll(_hourly(make_employee), entries, june_period)
        assert EXC_EXCESSIVE_HOURS not in record.exceptions

    def test_unapproved_hours_not_counted(self, computation, make_employee, june_period):
        approved = _entries("H-001", 25)  # 200 hours
        pending = (TimeEntry("H-001", date(2024, 6, 30), regular_hours=Decimal("8"), approved=False),)

        record = computation.calculate_payroll(_hourly(make_employee), approved + pending, june_period)

        assert record.regular_hours == Decimal("200")
        assert EXC_EXCESSIVE_HOURS not in record.exceptions

    def test_only_unapproved_entries_is_no_time_entries(self, computation, make_employee, june_period):
        pending = (TimeEntry("H-001", date(2024, 6, 3), regular_hours=Decimal("8"), approved=False),)
        record = computation.calculate_payroll(_hourly(make_employee), pending, june_period)
        assert EXC_NO_TIME_ENTRIES in record.exceptions

    def test_deductions_exceed_gross(self, computation, make_employee, june_period):
        employee = make_employee(monthly_salary=Decimal("10000"))
        record = computation.calculate_payroll(
            employee, (), june_period, active_advance_deductions=(_advance(amount="20000"),),
        )
        assert record.net_pay < 0
        assert EXC_NEGATIVE_NET in record.exceptions

    def test_exceptions_logged(self, computation, make_employee, june_period, captured_logs):
        computation.calculate_payroll(make_employee(tax_pin=None), (), june_period)

        logs = [r for r in captured_logs() if r["message"] == "payroll_exceptions_detected"]
        assert logs[0]["exceptions"] == [EXC_MISSING_TAX_PIN]
        assert logs[0]["level"] == "WARNING"


class TestPayStub:

    def test_stub_number(self, june_period):
        assert format_stub_number(june_period, 1) == "PS2024060001"
        assert format_stub_number(june_period, 123) == "PS2024060123"

    def test_stub_sequence_must_be_positive(self, june_period):
        with pytest.raises(ValueError):
            format_stub_number(june_period, 0)

    def test_salaried_lines(self, computation, make_employee, june_period):
        employee = make_employee(standing_deductions=(
            Deduction("D-1", DeductionType.SACCO, "Sacco savings", Decimal("500")),
        ))
        adjustments = (
            ManualAdjustment("A-2", AdjustmentType.ALLOWANCE, "Meal allowance", Decimal("2000"), is_taxable=False),
        )

        stub = computation.calculate_payroll(
            employee, (), june_period, adjustments, (_advance(),), stub_sequence=7,
        ).pay_stub

        assert stub.stub_number == "PS2024060007"
        assert stub.tax_pin == "A00E-001"
        assert [(line.kind, line.category) for line in stub.earnings] == [
            (LineKind.EARNING, "basic_salary"),
            (LineKind.EARNING, "non_taxable"),
        ]
        assert [line.category for line in stub.deductions] == [
            "income_tax", "social_security", "health_contribution", "sacco", "salary_advance",
        ]
        assert [line.is_statutory for line in stub.deductions] == [True, True, True, False, False]
        assert stub.deductions[-1].name == "Salary advance ADV-1"
        assert stub.take_home_pay == stub.net_pay + Decimal("2000")

    def test_hourly_lines_skip_zero_components(self, computation, make_employee, june_period):
        entries = _entries("H-001", 2)

        stub = computation.calculate_payroll(_hourly(make_employee), entries, june_period).pay_stub

        assert [line.category for line in stub.earnings] == ["regular_pay"]
        assert stub.earnings[0].amount == Decimal("8000.00")

    def test_deduction_lines_sum_to_total(self, computation, make_employee, june_period):
        adjustments = (ManualAdjustment("A-3", AdjustmentType.DEDUCTION, "Damaged tool", Decimal("1000")),)

        stub = computation.calculate_payroll(
            make_employee(), (), june_period, adjustments, (_advance(),),
        ).pay_stub

        assert sum(line.amount for line in stub.deductions) == stub.total_deductions
