"""
Ledger Kernel - construction contract ledger engine.

An in-memory, transactional ledger for construction contracts with:
- Derived beneficiary balances (suppliers, workers, subcontractors)
- Partial debt repayment with an auditable settlement history
- Percentage-based payment schedules
- A contract lifecycle state machine
- Snapshot-based persistence boundary
"""

__version__ = "0.1.0"
