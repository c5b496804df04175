"""
Typed Exception Hierarchy for the Payroll Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Workflow callers have to render an accurate message for every refusal:
"it is not your turn", "this request was already decided", "the amount is
above the employee's limit".  Parsing message strings for that is fragile,
so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way:
    try:
        service.hr_decision(request_id, actor, approve=True)
    except Exception as e:
        if "already" in str(e):
            ...

Example - RIGHT way:
    try:
        service.hr_decision(request_id, actor, approve=True)
    except RequestAlreadyDecidedError as e:
        api_response(code=e.code, status=e.current_status)
    except TransitionNotYetEligibleError as e:
        api_response(code=e.code, status=e.current_status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PayrollCoreError (base)
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |   |   +-- TransitionNotYetEligibleError
    |   |   +-- RequestAlreadyDecidedError
    |   |   +-- UnauthorizedActorError
    |   +-- SelfApprovalError
    |   +-- AdvanceRequestNotFoundError
    |
    +-- EligibilityError
    |   +-- AdvanceLimitExceededError
    |   +-- AdvanceNotEligibleError
    |   +-- InvalidRepaymentTermsError
    |
    +-- ScheduleError
    |   +-- RepaymentScheduleNotFoundError
    |   +-- ScheduleSettledError
    |
    +-- ConcurrencyError
        +-- StaleRequestStateError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                        | When Raised
-------------|-----------------------------|--------------------------------------
Workflow     | INVALID_TRANSITION          | No such transition from current state
             | NOT_YET_ELIGIBLE            | Request has not reached this gate yet
             | ALREADY_DECIDED             | Request is past this gate or terminal
             | UNAUTHORIZED_ACTOR          | Actor role may not act on this state
             | SELF_APPROVAL               | Decision-maker is the requester
             | ADVANCE_REQUEST_NOT_FOUND   | Unknown request id
-------------|-----------------------------|--------------------------------------
Eligibility  | ADVANCE_LIMIT_EXCEEDED      | Amount above available credit
             | ADVANCE_NOT_ELIGIBLE        | Employee fails a policy check
             | INVALID_REPAYMENT_TERMS     | Months / approved amount out of range
-------------|-----------------------------|--------------------------------------
Schedule     | REPAYMENT_SCHEDULE_NOT_FOUND| No schedule for the request
             | SCHEDULE_SETTLED            | Deduction against a zero balance
-------------|-----------------------------|--------------------------------------
Concurrency  | STALE_REQUEST_STATE         | Another actor transitioned first

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Workflow refusals never leave partial state behind: every check runs
   before the new request value is built, and the store swaps values
   atomically.

2. "Not your turn" and "already decided" are separate classes under a
   common InvalidTransitionError so callers can catch either precisely or
   both at once.

===============================================================================
"""


class PayrollCoreError(Exception):
    """
    Base exception for all payroll core errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PAYROLL_CORE_ERROR"


# Workflow-related exceptions


class WorkflowError(PayrollCoreError):
    """Base exception for salary-advance workflow errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """No transition exists for this action from the request's current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, request_id: str, current_status: str, action: str, reason: str | None = None):
        self.request_id = request_id
        self.current_status = current_status
        self.action = action
        self.reason = reason or f"'{action}' is not valid from '{current_status}'"
        super().__init__(
            f"Invalid transition for advance request {request_id}: {self.reason}"
        )


class TransitionNotYetEligibleError(InvalidTransitionError):
    """The request has not yet reached the gate this action decides."""

    code: str = "NOT_YET_ELIGIBLE"

    def __init__(self, request_id: str, current_status: str, action: str, required_status: str):
        self.required_status = required_status
        super().__init__(
            request_id,
            current_status,
            action,
            reason=(
                f"request is not yet eligible for '{action}': it is in "
                f"'{current_status}', '{action}' requires '{required_status}'"
            ),
        )


class RequestAlreadyDecidedError(InvalidTransitionError):
    """The request is past the gate this action decides, or terminal."""

    code: str = "ALREADY_DECIDED"

    def __init__(self, request_id: str, current_status: str, action: str):
        super().__init__(
            request_id,
            current_status,
            action,
            reason=f"request was already decided (current status '{current_status}')",
        )


class UnauthorizedActorError(InvalidTransitionError):
    """The actor's role may not perform this transition."""

    code: str = "UNAUTHORIZED_ACTOR"

    def __init__(
        self,
        request_id: str,
        current_status: str,
        action: str,
        actor_role: str,
        required_roles: tuple[str, ...],
    ):
        self.actor_role = actor_role
        self.required_roles = required_roles
        super().__init__(
            request_id,
            current_status,
            action,
            reason=(
                f"role '{actor_role}' may not '{action}' a request in "
                f"'{current_status}' (requires one of {list(required_roles)})"
            ),
        )


class SelfApprovalError(WorkflowError):
    """The decision-maker is the employee who requested the advance."""

    code: str = "SELF_APPROVAL"

    def __init__(self, request_id: str, actor_id: str, action: str):
        self.request_id = request_id
        self.actor_id = actor_id
        self.action = action
        super().__init__(
            f"Actor {actor_id} cannot '{action}' their own advance request {request_id}"
        )


class AdvanceRequestNotFoundError(WorkflowError):
    """No advance request exists with the given id."""

    code: str = "ADVANCE_REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Advance request not found: {request_id}")


# Eligibility-related exceptions


class EligibilityError(PayrollCoreError):
    """Base exception for salary-advance eligibility errors."""

    code: str = "ELIGIBILITY_ERROR"


class AdvanceLimitExceededError(EligibilityError):
    """Requested amount is above the employee's available advance credit."""

    code: str = "ADVANCE_LIMIT_EXCEEDED"

    def __init__(self, employee_id: str, requested_amount: str, available_credit: str, max_limit: str):
        self.employee_id = employee_id
        self.requested_amount = requested_amount
        self.available_credit = available_credit
        self.max_limit = max_limit
        super().__init__(
            f"Advance of {requested_amount} for employee {employee_id} exceeds "
            f"available credit {available_credit} (limit {max_limit})"
        )


class AdvanceNotEligibleError(EligibilityError):
    """Employee fails an advance-policy check (status, service, salary)."""

    code: str = "ADVANCE_NOT_ELIGIBLE"

    def __init__(self, employee_id: str, reason: str):
        self.employee_id = employee_id
        self.reason = reason
        super().__init__(f"Employee {employee_id} not eligible for an advance: {reason}")


class InvalidRepaymentTermsError(EligibilityError):
    """Repayment months or approved amount are outside policy bounds."""

    code: str = "INVALID_REPAYMENT_TERMS"

    def __init__(self, request_id: str, reason: str):
        self.request_id = request_id
        self.reason = reason
        super().__init__(f"Invalid repayment terms for advance request {request_id}: {reason}")


# Repayment-schedule exceptions


class ScheduleError(PayrollCoreError):
    """Base exception for repayment schedule errors."""

    code: str = "SCHEDULE_ERROR"


class RepaymentScheduleNotFoundError(ScheduleError):
    """No repayment schedule exists for the advance request."""

    code: str = "REPAYMENT_SCHEDULE_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"No repayment schedule for advance request {request_id}")


class ScheduleSettledError(ScheduleError):
    """A deduction was attempted against a fully repaid schedule."""

    code: str = "SCHEDULE_SETTLED"

    def __init__(self, schedule_id: str, period_id: str):
        self.schedule_id = schedule_id
        self.period_id = period_id
        super().__init__(
            f"Repayment schedule {schedule_id} is already settled; "
            f"nothing to deduct for period {period_id}"
        )


# Concurrency-related exceptions


class ConcurrencyError(PayrollCoreError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class StaleRequestStateError(ConcurrencyError):
    """Another actor transitioned the request after it was read."""

    code: str = "STALE_REQUEST_STATE"

    def __init__(
        self,
        request_id: str,
        expected_status: str,
        expected_version: int,
        actual_status: str,
        actual_version: int,
    ):
        self.request_id = request_id
        self.expected_status = expected_status
        self.expected_version = expected_version
        self.actual_status = actual_status
        self.actual_version = actual_version
        super().__init__(
            f"Advance request {request_id} changed concurrently: expected "
            f"'{expected_status}' v{expected_version}, found "
            f"'{actual_status}' v{actual_version}"
        )
