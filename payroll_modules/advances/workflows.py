"""Salary Advance Workflow.

The single transition table for salary-advance requests.  Every caller
goes through ``AdvanceWorkflowService``, which resolves actions against
this table; no other code compares status strings.
"""

from payroll_kernel.domain.workflow import Guard, Transition, Workflow
from payroll_kernel.logging_config import get_logger
from payroll_modules.advances.models import AdvanceAction, AdvanceStatus, ActorRole

logger = get_logger("modules.advances.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

NOT_REQUESTER = Guard(
    name="not_requester",
    description="The deciding actor is not the employee who requested the advance",
)

WITHIN_AVAILABLE_CREDIT = Guard(
    name="within_available_credit",
    description="Amount is within the employee's available advance credit",
)

OPS_REVIEW_WAIVED = Guard(
    name="ops_review_waived",
    description="Requester is the branch operations reviewer",
)

BALANCE_SETTLED = Guard(
    name="balance_settled",
    description="Repayment schedule remaining balance is zero",
)


# -----------------------------------------------------------------------------
# Advance Request Workflow
# -----------------------------------------------------------------------------

_S = AdvanceStatus
_A = AdvanceAction
_OPS = (ActorRole.OPERATIONS.value,)
_HR = (ActorRole.HR.value,)
_FINANCE = (ActorRole.FINANCE.value,)
_SYSTEM = (ActorRole.SYSTEM.value,)

ADVANCE_WORKFLOW = Workflow(
    name="salary_advance",
    description="Salary advance approval, disbursement and repayment lifecycle",
    initial_state=_S.PENDING_OPS_INITIAL.value,
    states=tuple(s.value for s in AdvanceStatus),
    transitions=(
        Transition(_S.PENDING_OPS_INITIAL.value, _S.FORWARDED_TO_HR.value,
                   action=_A.OPS_INITIAL_APPROVE.value, required_roles=_OPS, guard=WITHIN_AVAILABLE_CREDIT),
        Transition(_S.PENDING_OPS_INITIAL.value, _S.OPS_FINAL_REJECTED.value,
                   action=_A.OPS_INITIAL_REJECT.value, required_roles=_OPS, guard=NOT_REQUESTER),
        Transition(_S.PENDING_OPS_INITIAL.value, _S.FORWARDED_TO_HR.value,
                   action=_A.WAIVE_OPS_INITIAL.value, required_roles=_SYSTEM, guard=OPS_REVIEW_WAIVED),
        Transition(_S.FORWARDED_TO_HR.value, _S.HR_APPROVED.value,
                   action=_A.HR_APPROVE.value, required_roles=_HR, guard=WITHIN_AVAILABLE_CREDIT),
        Transition(_S.FORWARDED_TO_HR.value, _S.HR_REJECTED.value,
                   action=_A.HR_REJECT.value, required_roles=_HR, guard=NOT_REQUESTER),
        Transition(_S.HR_APPROVED.value, _S.OPS_FINAL_APPROVED.value,
                   action=_A.OPS_FINAL_APPROVE.value, required_roles=_OPS, guard=WITHIN_AVAILABLE_CREDIT),
        Transition(_S.HR_APPROVED.value, _S.OPS_FINAL_REJECTED.value,
                   action=_A.OPS_FINAL_REJECT.value, required_roles=_OPS, guard=NOT_REQUESTER),
        Transition(_S.HR_APPROVED.value, _S.OPS_FINAL_APPROVED.value,
                   action=_A.WAIVE_OPS_FINAL.value, required_roles=_SYSTEM, guard=OPS_REVIEW_WAIVED),
        Transition(_S.OPS_FINAL_APPROVED.value, _S.DISBURSED.value,
                   action=_A.DISBURSE.value, required_roles=_FINANCE, guard=NOT_REQUESTER),
        Transition(_S.DISBURSED.value, _S.REPAYING.value,
                   action=_A.START_REPAYMENT.value, required_roles=_SYSTEM),
        Transition(_S.REPAYING.value, _S.COMPLETED.value,
                   action=_A.COMPLETE_REPAYMENT.value, required_roles=_SYSTEM, guard=BALANCE_SETTLED),
    ),
    terminal_states=(
        _S.COMPLETED.value,
        _S.OPS_FINAL_REJECTED.value,
        _S.HR_REJECTED.value,
    ),
)

# Main success path, used to tell "not yet eligible" from "already decided".
MAIN_PATH: tuple[str, ...] = (
    _S.PENDING_OPS_INITIAL.value,
    _S.FORWARDED_TO_HR.value,
    _S.HR_APPROVED.value,
    _S.OPS_FINAL_APPROVED.value,
    _S.DISBURSED.value,
    _S.REPAYING.value,
    _S.COMPLETED.value,
)

# Statuses whose request still counts against the employee's credit.
IN_FLIGHT_STATUSES = frozenset({
    _S.PENDING_OPS_INITIAL,
    _S.FORWARDED_TO_HR,
    _S.HR_APPROVED,
    _S.OPS_FINAL_APPROVED,
})

REPAYMENT_STATUSES = frozenset({_S.DISBURSED, _S.REPAYING})


def path_rank(status: str) -> int | None:
    """Position of ``status`` on the main path, or None for rejections."""
    try:
        return MAIN_PATH.index(status)
    except ValueError:
        return None


logger.info(
    "advance_workflow_registered",
    extra={
        "workflow_name": ADVANCE_WORKFLOW.name,
        "state_count": len(ADVANCE_WORKFLOW.states),
        "transition_count": len(ADVANCE_WORKFLOW.transitions),
    },
)
