"""
Expense Kernel

The approval core of the expense tracker:
- Closed expense status lifecycle (pending -> approved | rejected)
- Pure authorization resolver (role + department eligibility)
- Atomic, version-checked decisions
- Append-only approval audit trail with tamper evidence
"""

__version__ = "0.1.0"
