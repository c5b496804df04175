"""
payroll_modules.advances.store -- In-process advance request registry.

Contract:
    Holds the current value of every salary-advance request and its
    repayment schedule for the life of the process.  Values are replaced,
    never edited: ``commit`` swaps a request (and optionally its schedule)
    only if the stored request still has the status and version the caller
    read.

Invariants enforced:
    - Optimistic concurrency: a commit whose expected (status, version)
      does not match the stored request raises ``StaleRequestStateError``
      and changes nothing.
    - ``version`` increases by exactly one per successful commit.
    - Request and schedule are swapped together under one lock.

Non-goals:
    - No durable persistence.
"""

from __future__ import annotations

import threading
from dataclasses import replace

from payroll_engines.repayment import RepaymentSchedule
from payroll_kernel.exceptions import (
    AdvanceRequestNotFoundError,
    RepaymentScheduleNotFoundError,
    StaleRequestStateError,
)
from payroll_kernel.logging_config import get_logger
from payroll_modules.advances.models import SalaryAdvanceRequest

logger = get_logger("modules.advances.store")


class InMemoryAdvanceStore:
    """Thread-safe request and schedule registry with compare-and-swap."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._requests: dict[str, SalaryAdvanceRequest] = {}
        self._schedules: dict[str, RepaymentSchedule] = {}

    def add(self, request: SalaryAdvanceRequest) -> SalaryAdvanceRequest:
        with self._lock:
            if request.request_id in self._requests:
                raise ValueError(f"Advance request {request.request_id} already exists")
            self._requests[request.request_id] = request
        return request

    def get(self, request_id: str) -> SalaryAdvanceRequest:
        with self._lock:
            request = self._requests.get(request_id)
        if request is None:
            raise AdvanceRequestNotFoundError(request_id)
        return request

    def get_schedule(self, request_id: str) -> RepaymentSchedule:
        schedule = self.find_schedule(request_id)
        if schedule is None:
            raise RepaymentScheduleNotFoundError(request_id)
        return schedule

    def find_schedule(self, request_id: str) -> RepaymentSchedule | None:
        with self._lock:
            return self._schedules.get(request_id)

    def list_requests(self, employee_id: str | None = None) -> tuple[SalaryAdvanceRequest, ...]:
        with self._lock:
            requests = tuple(self._requests.values())
        if employee_id is None:
            return requests
        return tuple(r for r in requests if r.employee_id == employee_id)

    def list_schedules(self, employee_id: str | None = None) -> tuple[RepaymentSchedule, ...]:
        with self._lock:
            schedules = tuple(self._schedules.values())
        if employee_id is None:
            return schedules
        return tuple(s for s in schedules if s.employee_id == employee_id)

    def commit(
        self,
        expected: SalaryAdvanceRequest,
        updated: SalaryAdvanceRequest,
        schedule: RepaymentSchedule | None = None,
    ) -> SalaryAdvanceRequest:
        """
        Swap ``expected`` for ``updated`` if nobody else changed it first.

        Returns the stored request, whose version is ``expected.version + 1``.

        Raises:
            AdvanceRequestNotFoundError: unknown request id.
            StaleRequestStateError: the stored request no longer matches
                ``expected`` on status and version.
        """
        if updated.request_id != expected.request_id:
            raise ValueError("commit cannot change the request id")

        with self._lock:
            current = self._requests.get(expected.request_id)
            if current is None:
                raise AdvanceRequestNotFoundError(expected.request_id)
            if current.status != expected.status or current.version != expected.version:
                logger.warning(
                    "advance_request_stale",
                    extra={
                        "request_id": expected.request_id,
                        "expected_status": expected.status.value,
                        "expected_version": expected.version,
                        "actual_status": current.status.value,
                        "actual_version": current.version,
                    },
                )
                raise StaleRequestStateError(
                    expected.request_id,
                    expected.status.value,
                    expected.version,
                    current.status.value,
                    current.version,
                )
            stored = replace(updated, version=expected.version + 1)
            self._requests[stored.request_id] = stored
            if schedule is not None:
                self._schedules[stored.request_id] = schedule
        return stored
