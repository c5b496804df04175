"""
Payroll Kernel

Shared foundation for the statutory payroll engine and the salary-advance
workflow:
- Typed, coded exception hierarchy
- Structured JSON logging with request-scoped context
- Injectable clock
- Canonical workflow value types
"""

__version__ = "0.1.0"
