"""
Payroll Modules.

Thin orchestration layers over the payroll kernel and engines.
Each module contains:
- Domain models (the nouns)
- Workflows (state machines)
- Services / computations (orchestration)

Modules:
- Payroll: per-employee computation, pay stubs, concurrent period runs
- Advances: salary-advance approval workflow, repayment, analytics

Actual calculation logic lives in the engines.
"""
