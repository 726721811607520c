"""
BaseService -- abstract base for all ledger services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-side service.  Services receive a SQLAlchemy ``Session``
    and persist through ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or roll back themselves.  LedgerOrchestrator (or the
    test harness) owns commit/rollback, which is what makes a journal entry,
    its lines, the balance updates and the audit log one atomic unit.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for all ledger services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-only query methods -- those belong in
          ``ledger_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
