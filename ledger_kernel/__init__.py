"""
Ledger Kernel - double-entry bookkeeping core

An owner-scoped, append-only accounting ledger with:
- Balanced journal posting (debits == credits)
- Atomic, row-locked balance maintenance
- Idempotent posting via client references
- Invoice and payment auto-posting
- Derived statements (trial balance, P&L, balance sheet, account ledger)
- Append-only audit log
"""

__version__ = "0.1.0"
