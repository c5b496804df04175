"""
Salary Advance Workflow Service (``payroll_modules.advances.service``).

Responsibility
--------------
Executes every salary-advance transition: submission, the operations /
HR / operations approval chain, disbursement, and repayment through
payroll deductions.  All transitions resolve against the single table in
``payroll_modules.advances.workflows``.

Architecture position
---------------------
**Modules layer** -- thin coordinator.  Eligibility math is delegated to
``payroll_engines.advance_eligibility``, schedule math to
``payroll_engines.repayment``, and atomic state swaps to
``InMemoryAdvanceStore``.

Invariants enforced
-------------------
* A refused action raises a typed error and leaves the stored request
  untouched; every check runs before the new value is built.
* Only the role named on the transition may fire it.
* No actor may decide an advance they requested.  When the requester is
  the branch operations reviewer, both operations gates are passed by
  SYSTEM steps and the request is never left waiting on that reviewer.
* Eligibility is re-checked at every approval gate.
* Every transition appends one ``WorkflowStep``; history is append-only.
* A payroll period deducts at most once per request.

Failure modes
-------------
* ``TransitionNotYetEligibleError`` / ``RequestAlreadyDecidedError`` /
  ``UnauthorizedActorError`` -- action not valid for the current state
  or role.
* ``SelfApprovalError`` -- decision-maker is the requester.
* ``AdvanceLimitExceededError`` / ``AdvanceNotEligibleError`` -- policy.
* ``InvalidRepaymentTermsError`` -- months or approved amount out of range.
* ``StaleRequestStateError`` -- another actor transitioned first.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import replace
from decimal import Decimal

from payroll_config.schema import AdvancePolicy
from payroll_engines.advance_eligibility import EligibilityResult, check_eligibility
from payroll_engines.repayment import (
    AdvanceDeduction,
    DeductionScheduler,
    RepaymentApplication,
    RepaymentSchedule,
)
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.workflow import Transition
from payroll_kernel.exceptions import (
    AdvanceLimitExceededError,
    AdvanceNotEligibleError,
    InvalidRepaymentTermsError,
    InvalidTransitionError,
    RequestAlreadyDecidedError,
    SelfApprovalError,
    StaleRequestStateError,
    TransitionNotYetEligibleError,
    UnauthorizedActorError,
)
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_modules.advances.models import (
    SYSTEM_ACTOR,
    Actor,
    ActorRole,
    AdvanceAction,
    AdvanceStatus,
    SalaryAdvanceRequest,
    StepDecision,
    WorkflowStep,
)
from payroll_modules.advances.store import InMemoryAdvanceStore
from payroll_modules.advances.workflows import (
    ADVANCE_WORKFLOW,
    IN_FLIGHT_STATUSES,
    REPAYMENT_STATUSES,
    path_rank,
)
from payroll_modules.payroll.models import Employee, PaymentMethod

logger = get_logger("modules.advances.service")

_ZERO = Decimal("0")
_MAX_DEDUCTION_ATTEMPTS = 3
_APPROVE_ACTIONS = frozenset({
    AdvanceAction.OPS_INITIAL_APPROVE,
    AdvanceAction.HR_APPROVE,
    AdvanceAction.OPS_FINAL_APPROVE,
})


class AdvanceWorkflowService:
    """
    Salary-advance workflow executor.

    Contract:
        Public methods take ids and actors, return the stored request (or a
        ``RepaymentApplication``), and raise typed ``PayrollCoreError``
        subclasses on refusal.
    """

    def __init__(
        self,
        policy: AdvancePolicy | None = None,
        store: InMemoryAdvanceStore | None = None,
        clock: Clock | None = None,
        id_factory: Callable[[], str] | None = None,
    ):
        self._policy = policy or AdvancePolicy()
        self._store = store or InMemoryAdvanceStore()
        self._clock = clock or SystemClock()
        self._scheduler = DeductionScheduler(self._policy.default_repayment_months)
        self._new_id = id_factory or (lambda: str(uuid.uuid4()))

    @property
    def policy(self) -> AdvancePolicy:
        return self._policy

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, request_id: str) -> SalaryAdvanceRequest:
        return self._store.get(request_id)

    def list_requests(self, employee_id: str | None = None) -> tuple[SalaryAdvanceRequest, ...]:
        return self._store.list_requests(employee_id)

    def schedule_for(self, request_id: str) -> RepaymentSchedule:
        return self._store.get_schedule(request_id)

    def list_schedules(self, employee_id: str | None = None) -> tuple[RepaymentSchedule, ...]:
        return self._store.list_schedules(employee_id)

    def active_deductions_for(self, employee_id: str, period_id: str) -> tuple[AdvanceDeduction, ...]:
        """
        Installments owed by ``employee_id`` for ``period_id``.

        Schedules that already deducted this period report the recorded
        amount, so a recalculated period keeps its advance deductions.
        """
        deductions = []
        for schedule in self._store.list_schedules(employee_id):
            deduction = self._scheduler.active_deduction(schedule, period_id)
            if deduction is not None:
                deductions.append(deduction)
        return tuple(deductions)

    def outstanding_for(self, employee_id: str, exclude_request_id: str | None = None) -> Decimal:
        """Unrepaid balances plus amounts of requests still in approval."""
        total = _ZERO
        for request in self._store.list_requests(employee_id):
            if request.request_id == exclude_request_id:
                continue
            if request.status in IN_FLIGHT_STATUSES:
                total += request.disbursable_amount
            elif request.status in REPAYMENT_STATUSES:
                schedule = self._store.find_schedule(request.request_id)
                if schedule is not None:
                    total += schedule.remaining_balance
        return total

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(
        self,
        employee: Employee,
        amount: Decimal,
        reason: str,
        disbursement_method: PaymentMethod | None = None,
        *,
        repayment_months: int | None = None,
        outstanding_advances: Decimal | None = None,
    ) -> SalaryAdvanceRequest:
        """
        Create a request in ``pending_ops_initial``.

        When the employee is their own branch operations reviewer the
        request is forwarded to HR immediately by a SYSTEM step.
        """
        request_id = self._new_id()
        with LogContext.bind(request_id=request_id, actor_id=employee.id, employee_id=employee.id):
            if repayment_months is not None:
                self._check_months(request_id, repayment_months)

            outstanding = (
                self.outstanding_for(employee.id)
                if outstanding_advances is None else outstanding_advances
            )
            result = check_eligibility(
                monthly_salary=employee.monthly_salary,
                requested_amount=amount,
                outstanding_advances=outstanding,
                is_active=employee.is_active,
                hire_date=employee.hire_date,
                as_of_date=self._clock.now().date(),
                policy=self._policy,
            )
            self._raise_if_ineligible(employee.id, amount, result)

            now = self._clock.now()
            request = SalaryAdvanceRequest(
                request_id=request_id,
                employee_id=employee.id,
                requested_amount=amount,
                reason=reason,
                disbursement_method=disbursement_method or employee.payment_method,
                status=AdvanceStatus.PENDING_OPS_INITIAL,
                monthly_salary=employee.monthly_salary,
                submitted_at=now,
                history=(
                    WorkflowStep(
                        actor_id=employee.id,
                        actor_role=ActorRole.EMPLOYEE,
                        action="submit",
                        decision=StepDecision.SUBMITTED,
                        from_status=None,
                        to_status=AdvanceStatus.PENDING_OPS_INITIAL,
                        timestamp=now,
                        comment=reason,
                    ),
                ),
                repayment_months=repayment_months,
                ops_reviewer_id=employee.ops_reviewer_id,
            )

            if employee.ops_reviewer_id is not None and employee.ops_reviewer_id == employee.id:
                request = self._apply(
                    request,
                    self._resolve(request, AdvanceAction.WAIVE_OPS_INITIAL, SYSTEM_ACTOR),
                    SYSTEM_ACTOR,
                    StepDecision.WAIVED,
                    "Operations review waived: requester is the branch operations reviewer",
                    ops_review_waived=True,
                )

            self._store.add(request)
            logger.info(
                "advance_request_submitted",
                extra={
                    "requested_amount": str(amount),
                    "status": request.status.value,
                    "ops_review_waived": request.ops_review_waived,
                    "available_credit": str(result.available_credit),
                },
            )
            return request

    # ------------------------------------------------------------------
    # Decision gates
    # ------------------------------------------------------------------

    def ops_initial_review(
        self,
        request_id: str,
        actor: Actor,
        approve: bool,
        comment: str | None = None,
        *,
        employee: Employee | None = None,
    ) -> SalaryAdvanceRequest:
        """Operations first look: forward to HR or reject."""
        action = AdvanceAction.OPS_INITIAL_APPROVE if approve else AdvanceAction.OPS_INITIAL_REJECT
        return self._decide(request_id, actor, action, comment, employee=employee)

    def hr_decision(
        self,
        request_id: str,
        actor: Actor,
        approve: bool,
        comment: str | None = None,
        *,
        employee: Employee | None = None,
        approved_amount: Decimal | None = None,
        repayment_months: int | None = None,
    ) -> SalaryAdvanceRequest:
        """HR approval or rejection of a forwarded request."""
        action = AdvanceAction.HR_APPROVE if approve else AdvanceAction.HR_REJECT
        return self._decide(
            request_id, actor, action, comment,
            employee=employee,
            approved_amount=approved_amount,
            repayment_months=repayment_months,
        )

    def ops_final_decision(
        self,
        request_id: str,
        actor: Actor,
        approve: bool,
        comment: str | None = None,
        *,
        employee: Employee | None = None,
        approved_amount: Decimal | None = None,
        repayment_months: int | None = None,
    ) -> SalaryAdvanceRequest:
        """Operations final sign-off; may approve a lower amount or set the term."""
        action = AdvanceAction.OPS_FINAL_APPROVE if approve else AdvanceAction.OPS_FINAL_REJECT
        return self._decide(
            request_id, actor, action, comment,
            employee=employee,
            approved_amount=approved_amount,
            repayment_months=repayment_months,
        )

    def _decide(
        self,
        request_id: str,
        actor: Actor,
        action: AdvanceAction,
        comment: str | None,
        *,
        employee: Employee | None = None,
        approved_amount: Decimal | None = None,
        repayment_months: int | None = None,
    ) -> SalaryAdvanceRequest:
        with LogContext.bind(request_id=request_id, actor_id=actor.actor_id):
            request = self._store.get(request_id)
            transition = self._resolve(request, action, actor)
            approving = action in _APPROVE_ACTIONS

            changes: dict = {}
            if approving:
                changes.update(self._terms(request, approved_amount, repayment_months))
                amount = changes.get("approved_amount", request.disbursable_amount)
                changes["monthly_salary"] = self._recheck(request, employee, amount)

            decision = StepDecision.APPROVED if approving else StepDecision.REJECTED
            updated = self._apply(request, transition, actor, decision, comment, **changes)

            if action == AdvanceAction.HR_APPROVE and updated.ops_review_waived:
                updated = self._apply(
                    updated,
                    self._resolve(updated, AdvanceAction.WAIVE_OPS_FINAL, SYSTEM_ACTOR),
                    SYSTEM_ACTOR,
                    StepDecision.WAIVED,
                    "Operations final approval waived: requester is the branch operations reviewer",
                )

            return self._commit(request, updated)

    # ------------------------------------------------------------------
    # Disbursement and repayment
    # ------------------------------------------------------------------

    def disburse(
        self,
        request_id: str,
        actor: Actor,
        comment: str | None = None,
    ) -> SalaryAdvanceRequest:
        """Pay out an approved advance and open its repayment schedule."""
        with LogContext.bind(request_id=request_id, actor_id=actor.actor_id):
            request = self._store.get(request_id)
            transition = self._resolve(request, AdvanceAction.DISBURSE, actor)
            schedule = self._scheduler.on_disburse(request)
            updated = self._apply(
                request, transition, actor, StepDecision.DISBURSED, comment,
                repayment_months=schedule.repayment_months,
            )
            stored = self._commit(request, updated, schedule)
            logger.info(
                "advance_disbursed",
                extra={
                    "schedule_id": schedule.schedule_id,
                    "amount": str(schedule.original_amount),
                    "monthly_deduction": str(schedule.monthly_deduction),
                    "repayment_months": schedule.repayment_months,
                },
            )
            return stored

    def apply_payroll_deduction(self, request_id: str, period_id: str) -> RepaymentApplication:
        """
        Deduct this period's installment and advance the request status.

        The first deduction moves ``disbursed`` to ``repaying``; clearing
        the balance moves ``repaying`` to ``completed``.  Re-applying a
        period returns ``already_applied=True`` without changing anything.
        """
        with LogContext.bind(request_id=request_id, period_id=period_id):
            for attempt in range(1, _MAX_DEDUCTION_ATTEMPTS + 1):
                request = self._store.get(request_id)
                schedule = self._store.get_schedule(request_id)
                application = self._scheduler.apply_to_period(schedule, period_id)
                if application.already_applied:
                    logger.info(
                        "advance_deduction_already_applied",
                        extra={"amount": str(application.amount_applied)},
                    )
                    return application

                updated = request
                if updated.status == AdvanceStatus.DISBURSED:
                    updated = self._apply(
                        updated,
                        self._resolve(updated, AdvanceAction.START_REPAYMENT, SYSTEM_ACTOR),
                        SYSTEM_ACTOR,
                        StepDecision.DEDUCTED,
                        f"First deduction of {application.amount_applied} in period {period_id}",
                    )
                elif updated.status != AdvanceStatus.REPAYING:
                    raise self._refusal(updated, AdvanceAction.START_REPAYMENT)

                if application.is_settled:
                    updated = self._apply(
                        updated,
                        self._resolve(updated, AdvanceAction.COMPLETE_REPAYMENT, SYSTEM_ACTOR),
                        SYSTEM_ACTOR,
                        StepDecision.COMPLETED,
                        f"Balance cleared in period {period_id}",
                    )

                try:
                    self._commit(request, updated, application.schedule)
                except StaleRequestStateError:
                    if attempt == _MAX_DEDUCTION_ATTEMPTS:
                        raise
                    continue

                logger.info(
                    "advance_deduction_applied",
                    extra={
                        "amount": str(application.amount_applied),
                        "remaining_balance": str(application.new_remaining_balance),
                        "settled": application.is_settled,
                    },
                )
                return application
        raise AssertionError("unreachable")

    # ------------------------------------------------------------------
    # Transition resolution
    # ------------------------------------------------------------------

    def _resolve(
        self,
        request: SalaryAdvanceRequest,
        action: AdvanceAction,
        actor: Actor,
    ) -> Transition:
        """Find the transition for ``action`` or raise the precise refusal."""
        transition = ADVANCE_WORKFLOW.find_transition(request.status.value, action.value)
        if transition is None:
            raise self._refusal(request, action)

        if transition.required_roles and actor.role.value not in transition.required_roles:
            error = UnauthorizedActorError(
                request.request_id,
                request.status.value,
                action.value,
                actor.role.value,
                transition.required_roles,
            )
            self._log_refusal(error)
            raise error

        if actor.role != ActorRole.SYSTEM and actor.actor_id == request.employee_id:
            error = SelfApprovalError(request.request_id, actor.actor_id, action.value)
            self._log_refusal(error)
            raise error

        return transition

    def _refusal(self, request: SalaryAdvanceRequest, action: AdvanceAction) -> InvalidTransitionError:
        """Classify why ``action`` is invalid from the request's status."""
        current = request.status.value
        sources = [t.from_state for t in ADVANCE_WORKFLOW.transitions_for_action(action.value)]
        source_ranks = [r for r in (path_rank(s) for s in sources) if r is not None]
        current_rank = path_rank(current)

        error: InvalidTransitionError
        if (
            not ADVANCE_WORKFLOW.is_terminal(current)
            and current_rank is not None
            and source_ranks
            and current_rank < min(source_ranks)
        ):
            required = min(sources, key=lambda s: path_rank(s) or 0)
            error = TransitionNotYetEligibleError(
                request.request_id, current, action.value, required,
            )
        else:
            error = RequestAlreadyDecidedError(request.request_id, current, action.value)
        self._log_refusal(error)
        return error

    @staticmethod
    def _log_refusal(error: Exception) -> None:
        logger.warning(
            "advance_workflow_refused",
            extra={"error_code": getattr(error, "code", None), "detail": str(error)},
        )

    def _apply(
        self,
        request: SalaryAdvanceRequest,
        transition: Transition,
        actor: Actor,
        decision: StepDecision,
        comment: str | None,
        **changes,
    ) -> SalaryAdvanceRequest:
        """New request value with the transition applied and one step appended."""
        to_status = AdvanceStatus(transition.to_state)
        step = WorkflowStep(
            actor_id=actor.actor_id,
            actor_role=actor.role,
            action=transition.action,
            decision=decision,
            from_status=request.status,
            to_status=to_status,
            timestamp=self._clock.now(),
            comment=comment,
        )
        logger.info(
            "advance_workflow_transition",
            extra={
                "action": transition.action,
                "from_status": request.status.value,
                "to_status": to_status.value,
                "actor_role": actor.role.value,
                "decision": decision.value,
            },
        )
        return replace(request, status=to_status, history=request.history + (step,), **changes)

    def _commit(
        self,
        expected: SalaryAdvanceRequest,
        updated: SalaryAdvanceRequest,
        schedule: RepaymentSchedule | None = None,
    ) -> SalaryAdvanceRequest:
        return self._store.commit(expected, updated, schedule)

    # ------------------------------------------------------------------
    # Policy checks
    # ------------------------------------------------------------------

    def _check_months(self, request_id: str, months: int) -> None:
        if not 1 <= months <= self._policy.max_repayment_months:
            raise InvalidRepaymentTermsError(
                request_id,
                f"repayment_months must be between 1 and "
                f"{self._policy.max_repayment_months}, got {months}",
            )

    def _terms(
        self,
        request: SalaryAdvanceRequest,
        approved_amount: Decimal | None,
        repayment_months: int | None,
    ) -> dict:
        changes: dict = {}
        if approved_amount is not None:
            if approved_amount <= 0 or approved_amount > request.requested_amount:
                raise InvalidRepaymentTermsError(
                    request.request_id,
                    f"approved_amount must be positive and at most "
                    f"{request.requested_amount}, got {approved_amount}",
                )
            changes["approved_amount"] = approved_amount
        if repayment_months is not None:
            self._check_months(request.request_id, repayment_months)
            changes["repayment_months"] = repayment_months
        return changes

    def _recheck(
        self,
        request: SalaryAdvanceRequest,
        employee: Employee | None,
        amount: Decimal,
    ) -> Decimal:
        """Re-run eligibility with current salary and balances; returns the salary used."""
        if employee is not None and employee.id != request.employee_id:
            raise ValueError(
                f"Employee {employee.id} does not own advance request {request.request_id}"
            )
        salary = employee.monthly_salary if employee is not None else request.monthly_salary
        result = check_eligibility(
            monthly_salary=salary,
            requested_amount=amount,
            outstanding_advances=self.outstanding_for(request.employee_id, request.request_id),
            is_active=employee.is_active if employee is not None else True,
            policy=self._policy,
        )
        self._raise_if_ineligible(request.employee_id, amount, result)
        return salary

    @staticmethod
    def _raise_if_ineligible(employee_id: str, amount: Decimal, result: EligibilityResult) -> None:
        if result.is_eligible:
            return
        logger.warning(
            "advance_eligibility_failed",
            extra={
                "requested_amount": str(amount),
                "available_credit": str(result.available_credit),
                "reason": result.reason,
            },
        )
        if result.exceeds_limit:
            raise AdvanceLimitExceededError(
                employee_id,
                str(amount),
                str(result.available_credit),
                str(result.max_amount),
            )
        raise AdvanceNotEligibleError(employee_id, result.reason or "not eligible")
