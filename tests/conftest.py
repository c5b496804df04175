"""
Shared fixtures for the payroll core test suite.

Everything here is in-memory: statutory configuration is read from the
packaged YAML sets, clocks are deterministic, and the advance store lives
for one test.
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from payroll_config import get_active_config
from payroll_engines.tax import TaxCalculator
from payroll_kernel.domain.clock import DeterministicClock
from payroll_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from payroll_modules.advances.models import Actor, ActorRole
from payroll_modules.advances.service import AdvanceWorkflowService
from payroll_modules.advances.store import InMemoryAdvanceStore
from payroll_modules.payroll.computation import PayrollComputation
from payroll_modules.payroll.models import (
    Employee,
    EmploymentType,
    PaymentMethod,
    PayrollPeriod,
)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session", autouse=True)
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture payroll_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, advance_service):
            advance_service.submit(...)
            logs = captured_logs()
            assert any(r["message"] == "advance_request_submitted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("payroll_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# ---------------------------------------------------------------------------
# Time and configuration
# ---------------------------------------------------------------------------


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2024, 6, 15, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def ke_config():
    """Published Kenyan 2024 statutory set."""
    return get_active_config("KE", date(2024, 6, 30))


@pytest.fixture
def tax_calculator(ke_config):
    return TaxCalculator(ke_config)


@pytest.fixture
def computation(tax_calculator, deterministic_clock):
    return PayrollComputation(tax_calculator, clock=deterministic_clock)


@pytest.fixture
def june_period():
    return PayrollPeriod(
        id="2024-06",
        name="June 2024",
        start_date=date(2024, 6, 1),
        end_date=date(2024, 6, 30),
        pay_date=date(2024, 6, 28),
    )


# ---------------------------------------------------------------------------
# Employees and actors
# ---------------------------------------------------------------------------


@pytest.fixture
def make_employee():
    """Factory for a fully documented salaried employee."""

    def _make(
        employee_id: str = "E-001",
        monthly_salary: Decimal = Decimal("40000"),
        **overrides,
    ) -> Employee:
        fields = dict(
            id=employee_id,
            name=f"Employee {employee_id}",
            employment_type=EmploymentType.SALARIED,
            monthly_salary=monthly_salary,
            tax_pin=f"A00{employee_id}",
            social_security_number=f"SS-{employee_id}",
            health_number=f"HN-{employee_id}",
            payment_method=PaymentMethod.BANK_TRANSFER,
            bank_name="Equity Bank",
            bank_account_number=f"0100{employee_id}",
            branch="Nairobi",
            ops_reviewer_id="OPS-1",
            hire_date=date(2020, 1, 6),
        )
        fields.update(overrides)
        return Employee(**fields)

    return _make


@pytest.fixture
def ops_actor():
    return Actor("OPS-1", ActorRole.OPERATIONS)


@pytest.fixture
def hr_actor():
    return Actor("HR-1", ActorRole.HR)


@pytest.fixture
def finance_actor():
    return Actor("FIN-1", ActorRole.FINANCE)


# ---------------------------------------------------------------------------
# Advances
# ---------------------------------------------------------------------------


@pytest.fixture
def advance_store():
    return InMemoryAdvanceStore()


@pytest.fixture
def advance_service(ke_config, advance_store, deterministic_clock):
    """Workflow service with sequential request ids ADV-0001, ADV-0002, ..."""
    counter = iter(range(1, 10_000))
    return AdvanceWorkflowService(
        policy=ke_config.advance_policy,
        store=advance_store,
        clock=deterministic_clock,
        id_factory=lambda: f"ADV-{next(counter):04d}",
    )
