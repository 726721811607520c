"""
JournalPostingEngine -- validates and writes double-entry journal entries.

Responsibility:
    The single choke point through which all money movement flows.  Manual
    entries, invoices and payments all post through
    ``create_journal_entry``.

Architecture position:
    Kernel > Services -- imperative shell.  Delegates balance maintenance to
    BalanceMaintainer and audit to AuditLogger.  Does not own the
    transaction boundary.

Invariants enforced:
    - Balance: ``|sum(debits) - sum(credits)| < tolerance`` (0.01 by
      default) after quantizing every amount to cents.  Checked before any
      write; a rejected entry leaves no rows behind.
    - Referential: every line's account exists in the owner's chart,
      checked before any write.
    - Idempotency: (owner_id, client_ref) is unique.  A repeated client_ref
      returns the existing entry before its lines are looked at; a concurrent duplicate insert is caught in
      a savepoint and resolved to the winner's entry.
    - Atomicity: entry, lines, balance updates and the audit log are
      flushed into the caller's transaction as one unit.

Failure modes:
    - InvalidLineError: fewer than two lines, negative or non-numeric
      amount, a line with no account reference, or a line mapping with a
      missing field or malformed account_id.
    - UnbalancedEntryError: debits != credits.
    - AccountNotFoundError: unknown account id or code.

Audit relevance:
    Exactly one ``post_journal`` audit log per new entry.  Idempotent
    replays write nothing.
"""

import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Mapping, Sequence
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import JournalLineInput
from ledger_kernel.domain.money import DEFAULT_TOLERANCE, ZERO, to_money, totals_balance
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    InvalidLineError,
    UnbalancedEntryError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from ledger_kernel.services.audit_logger import AuditLogger
from ledger_kernel.services.balance_maintainer import BalanceMaintainer
from ledger_kernel.services.base import BaseService

logger = get_logger("services.journal_posting")

MIN_LINES = 2


def _side_and_amount(line: Any) -> tuple[bool, Decimal]:
    if isinstance(line, Mapping):
        return bool(line["is_debit"]), to_money(line["amount"])
    return bool(line.is_debit), to_money(line.amount)


def sum_sides(lines: Iterable[Any]) -> tuple[Decimal, Decimal]:
    """Return (total debits, total credits) with every amount quantized."""
    debits = ZERO
    credits = ZERO
    for line in lines:
        is_debit, amount = _side_and_amount(line)
        if is_debit:
            debits += amount
        else:
            credits += amount
    return debits, credits


def validate_double_entry(
    lines: Iterable[Any],
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> bool:
    """
    True iff the lines' debits equal their credits within ``tolerance``.

    Pure function.  Lines may be JournalLineInput, JournalLine, or mappings
    with ``amount`` and ``is_debit`` keys.
    """
    debits, credits = sum_sides(lines)
    return totals_balance(debits, credits, tolerance)


@dataclass(frozen=True)
class _CheckedLine:
    line_seq: int
    source: JournalLineInput
    amount: Decimal


class JournalPostingEngine(BaseService):
    """
    Posts balanced journal entries.

    Contract:
        ``create_journal_entry`` either flushes a complete entry (with lines,
        balance updates and audit) or raises before flushing anything.

    Non-goals:
        - No draft, void or reversal.  Corrections are new entries.
        - No commit.  LedgerOrchestrator owns the transaction.
    """

    def __init__(
        self,
        session: Session,
        auditor: AuditLogger,
        balance_maintainer: BalanceMaintainer | None = None,
        clock: Clock | None = None,
        tolerance: Decimal = DEFAULT_TOLERANCE,
    ):
        super().__init__(session)
        self._auditor = auditor
        self._balances = balance_maintainer or BalanceMaintainer(session)
        self._clock = clock or SystemClock()
        self._tolerance = tolerance

    def create_journal_entry(
        self,
        owner_id: UUID,
        description: str,
        lines: Sequence[JournalLineInput | Mapping[str, Any]],
        client_ref: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> JournalEntry:
        """
        Validate and post one journal entry.

        Postconditions:
            - New entry: entry and lines flushed, balances updated, one
              ``post_journal`` audit log flushed.
            - Repeated client_ref: the existing entry is returned and
              nothing is written.
        """
        t0 = time.monotonic()
        if client_ref:
            existing = self._get_existing_entry(owner_id, client_ref)
            if existing is not None:
                logger.info(
                    "journal_post_idempotent",
                    extra={"entry_id": str(existing.id), "client_ref": client_ref},
                )
                return existing

        inputs = self._coerce_lines(lines)
        checked = self._check_lines(inputs)

        debits, credits = sum_sides(inputs)
        balanced = totals_balance(debits, credits, self._tolerance)
        logger.info(
            "balance_validated",
            extra={
                "sum_debit": str(debits),
                "sum_credit": str(credits),
                "balanced": balanced,
                "line_count": len(inputs),
            },
        )
        if not balanced:
            logger.warning(
                "unbalanced_entry_rejected",
                extra={"imbalance": str(debits - credits)},
            )
            raise UnbalancedEntryError(str(debits), str(credits))

        accounts = self._resolve_accounts(owner_id, checked)

        entry = JournalEntry(
            owner_id=owner_id,
            description=description,
            client_ref=client_ref,
            status=JournalEntryStatus.POSTED,
            posted_at=self._clock.now(),
            entry_metadata=metadata,
        )
        try:
            with self.session.begin_nested():
                self.session.add(entry)
                self.session.flush()
        except IntegrityError:
            # Concurrent insert of the same client_ref - return the winner
            logger.warning(
                "concurrent_insert_conflict",
                extra={"client_ref": client_ref},
            )
            existing = self._get_existing_entry(owner_id, client_ref) if client_ref else None
            if existing is None:
                raise
            return existing

        for item in checked:
            account = accounts[item.line_seq]
            journal_line = JournalLine(
                entry=entry,
                account_id=account.id,
                amount=item.amount,
                is_debit=item.source.is_debit,
                currency=account.currency,
                description=item.source.description,
                line_seq=item.line_seq,
            )
            self.session.add(journal_line)

            logger.debug(
                "line_written",
                extra={
                    "entry_id": str(entry.id),
                    "line_seq": item.line_seq,
                    "account_code": account.code,
                    "side": "debit" if item.source.is_debit else "credit",
                    "amount": str(item.amount),
                },
            )
        self.session.flush()

        self._balances.update_account_balances(owner_id, entry.lines)
        self._auditor.record_journal_posted(owner_id, entry, len(checked))

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info(
            "journal_posted",
            extra={
                "entry_id": str(entry.id),
                "client_ref": client_ref,
                "line_count": len(checked),
                "total": str(debits),
                "duration_ms": duration_ms,
            },
        )
        return entry

    @staticmethod
    def _coerce_lines(
        lines: Sequence[JournalLineInput | Mapping[str, Any]],
    ) -> list[JournalLineInput]:
        inputs = []
        for index, line in enumerate(lines):
            if isinstance(line, JournalLineInput):
                inputs.append(line)
                continue
            try:
                inputs.append(JournalLineInput.from_mapping(line))
            except KeyError as exc:
                raise InvalidLineError(index, f"missing field {exc.args[0]!r}") from exc
            except (AttributeError, TypeError, ValueError) as exc:
                raise InvalidLineError(index, str(exc)) from exc
        return inputs

    def _check_lines(self, inputs: list[JournalLineInput]) -> list[_CheckedLine]:
        if len(inputs) < MIN_LINES:
            raise InvalidLineError(
                None, f"an entry needs at least {MIN_LINES} lines, got {len(inputs)}"
            )
        checked = []
        for index, line in enumerate(inputs):
            if line.account_id is None and not line.account_code:
                raise InvalidLineError(index, "no account_id or account_code")
            try:
                amount = to_money(line.amount)
            except ValueError as exc:
                raise InvalidLineError(index, str(exc)) from exc
            if amount < 0:
                raise InvalidLineError(index, f"amount must be non-negative, got {amount}")
            checked.append(_CheckedLine(line_seq=index, source=line, amount=amount))
        return checked

    def _resolve_accounts(
        self,
        owner_id: UUID,
        checked: list[_CheckedLine],
    ) -> dict[int, Account]:
        """Map each line_seq to its account, or raise AccountNotFoundError."""
        ids = {c.source.account_id for c in checked if c.source.account_id is not None}
        codes = {c.source.account_code for c in checked if c.source.account_id is None}

        conditions = []
        if ids:
            conditions.append(Account.id.in_(ids))
        if codes:
            conditions.append(Account.code.in_(codes))
        found = self.session.execute(
            select(Account).where(Account.owner_id == owner_id, or_(*conditions))
        ).scalars().all()
        by_id = {a.id: a for a in found}
        by_code = {a.code: a for a in found}

        resolved: dict[int, Account] = {}
        for c in checked:
            if c.source.account_id is not None:
                account = by_id.get(c.source.account_id)
                if account is not None and c.source.account_code and account.code != c.source.account_code:
                    raise InvalidLineError(
                        c.line_seq,
                        f"account_id {account.id} does not have code {c.source.account_code}",
                    )
            else:
                account = by_code.get(c.source.account_code)
            if account is None:
                logger.warning(
                    "account_not_found",
                    extra={"account_ref": c.source.account_ref, "line_seq": c.line_seq},
                )
                raise AccountNotFoundError(c.source.account_ref)
            resolved[c.line_seq] = account
        return resolved

    def _get_existing_entry(self, owner_id: UUID, client_ref: str) -> JournalEntry | None:
        return self.session.execute(
            select(JournalEntry)
            .where(
                JournalEntry.owner_id == owner_id,
                JournalEntry.client_ref == client_ref,
            )
            .with_for_update()
        ).scalar_one_or_none()
