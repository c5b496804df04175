"""
Payroll Module.

Handles per-employee payroll computation and concurrent period runs.

Pay flow:
    employee + time data -> gross pay -> statutory deductions
    -> standing + advance deductions -> net pay + pay stub
"""

from payroll_modules.payroll.batch import (
    BatchItemStatus,
    BatchStatus,
    DeductionFailure,
    PayrollBatchInput,
    PayrollBatchItem,
    PayrollBatchSummary,
    PeriodTotals,
    TaxBreakdown,
    TaxBreakdownLine,
    calculate_tax_breakdown,
    run_payroll_batch,
    summarize_records,
)
from payroll_modules.payroll.computation import PayrollComputation, format_stub_number
from payroll_modules.payroll.models import (
    AdjustmentType,
    Deduction,
    DeductionType,
    Employee,
    EmployeeStatus,
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

__all__ = [
    "AdjustmentType",
    "BatchItemStatus",
    "BatchStatus",
    "Deduction",
    "DeductionFailure",
    "DeductionType",
    "Employee",
    "EmployeeStatus",
    "EmploymentType",
    "LineKind",
    "ManualAdjustment",
    "PaymentMethod",
    "PayrollBatchInput",
    "PayrollBatchItem",
    "PayrollBatchSummary",
    "PayrollComputation",
    "PayrollPeriod",
    "PayrollRecord",
    "PayStub",
    "PayStubLine",
    "PeriodTotals",
    "TaxBreakdown",
    "TaxBreakdownLine",
    "TimeEntry",
    "calculate_tax_breakdown",
    "format_stub_number",
    "run_payroll_batch",
    "summarize_records",
]
