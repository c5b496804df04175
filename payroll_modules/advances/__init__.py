"""
Salary Advance Module.

Multi-actor approval of salary advances and their repayment through
payroll deductions.

Request lifecycle:
    pending_ops_initial -> forwarded_to_hr -> hr_approved
    -> ops_final_approved -> disbursed -> repaying -> completed
"""

from payroll_modules.advances.analytics import AdvanceAnalytics, summarize_advances
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
from payroll_modules.advances.service import AdvanceWorkflowService
from payroll_modules.advances.store import InMemoryAdvanceStore
from payroll_modules.advances.workflows import ADVANCE_WORKFLOW

__all__ = [
    "ADVANCE_WORKFLOW",
    "SYSTEM_ACTOR",
    "Actor",
    "ActorRole",
    "AdvanceAction",
    "AdvanceAnalytics",
    "AdvanceStatus",
    "AdvanceWorkflowService",
    "InMemoryAdvanceStore",
    "SalaryAdvanceRequest",
    "StepDecision",
    "WorkflowStep",
    "summarize_advances",
]
