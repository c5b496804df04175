"""Tests for the advance portfolio summary."""

from decimal import Decimal

from payroll_modules.advances.analytics import summarize_advances


class TestSummarizeAdvances:

    def test_mixed_portfolio(self, advance_service, make_employee, ops_actor, hr_actor, finance_actor):
        # Completed: 10000 repaid in one period.
        done = advance_service.submit(make_employee("E-001"), Decimal("10000"), "Fees")
        advance_service.ops_initial_review(done.request_id, ops_actor, approve=True)
        advance_service.hr_decision(done.request_id, hr_actor, approve=True)
        advance_service.ops_final_decision(done.request_id, ops_actor, approve=True)
        advance_service.disburse(done.request_id, finance_actor)
        advance_service.apply_payroll_deduction(done.request_id, "2024-07")

        # Rejected by HR.
        rejected = advance_service.submit(make_employee("E-002"), Decimal("5000"), "Travel")
        advance_service.ops_initial_review(rejected.request_id, ops_actor, approve=True)
        advance_service.hr_decision(rejected.request_id, hr_actor, approve=False)

        # Still waiting for operations.
        advance_service.submit(make_employee("E-003"), Decimal("3000"), "Rent")

        # Partially approved, half repaid.
        partial = advance_service.submit(make_employee("E-004"), Decimal("8000"), "Repairs")
        advance_service.ops_initial_review(partial.request_id, ops_actor, approve=True)
        advance_service.hr_decision(partial.request_id, hr_actor, approve=True)
        advance_service.ops_final_decision(
            partial.request_id, ops_actor, approve=True,
            approved_amount=Decimal("6000"), repayment_months=2,
        )
        advance_service.disburse(partial.request_id, finance_actor)
        advance_service.apply_payroll_deduction(partial.request_id, "2024-07")

        summary = summarize_advances(advance_service.list_requests(), advance_service.list_schedules())

        assert summary.total_requests == 4
        assert summary.pending == 1
        assert summary.approved == 2
        assert summary.rejected == 1
        assert summary.disbursed == 2
        assert summary.completed == 1
        assert summary.approval_rate == Decimal("66.67")
        assert summary.disbursement_rate == Decimal("100.00")
        assert summary.total_requested == Decimal("26000")
        assert summary.total_disbursed == Decimal("16000")
        assert summary.total_repaid == Decimal("13000.00")
        assert summary.outstanding == Decimal("3000.00")

    def test_approved_not_yet_disbursed(self, advance_service, make_employee, ops_actor, hr_actor):
        request = advance_service.submit(make_employee(), Decimal("2000"), "Fees")
        advance_service.ops_initial_review(request.request_id, ops_actor, approve=True)
        advance_service.hr_decision(request.request_id, hr_actor, approve=True)
        advance_service.ops_final_decision(request.request_id, ops_actor, approve=True)

        summary = summarize_advances(advance_service.list_requests(), advance_service.list_schedules())

        assert summary.pending == 0
        assert summary.approved == 1
        assert summary.disbursement_rate == Decimal("0.00")

    def test_empty_portfolio(self):
        summary = summarize_advances((), ())

        assert summary.total_requests == 0
        assert summary.approval_rate == Decimal("0")
        assert summary.disbursement_rate == Decimal("0")
        assert summary.outstanding == Decimal("0")
