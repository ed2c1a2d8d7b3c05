"""
Posting service: the only writer of the ledger.

It enforces the fundamental rules:
1. Every referenced account exists and is active
2. Every entry's currency matches its account's currency
3. Every amount is strictly positive
4. Per currency, total debits equal total credits
5. Entries are immutable; corrections are new, reversing
   transactions

The checks run in that order and all of them run before anything
is added to the session. If a check fails nothing is written.

A successful post adds the transaction, its entries and the
cached-balance change of every affected account in one flush.
The caller commits. post_with_retry() wraps the whole thing in
its own session and database transaction for callers that want
a finished unit of work.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from ledger_core.config import get_settings
from ledger_core.exceptions import (
    AccountNotFound,
    AlreadyReversed,
    CurrencyMismatch,
    InvalidAmount,
    PostingConflict,
    TransactionNotFound,
    UnbalancedTransaction,
)
from ledger_core.models.account import Account
from ledger_core.models.enums import EntryType
from ledger_core.models.ledger_entry import LedgerEntry
from ledger_core.models.transaction import Transaction
from ledger_core.schemas.ledger import (
    EntryDraft,
    TransactionDraft,
    TransactionResponse,
)
from ledger_core.services.balance_service import signed_amount

logger = logging.getLogger(__name__)


class PostingService:
    """
    Validates and writes transactions.

    The service takes a database session as a constructor
    argument, so the caller controls the transaction boundary.
    """

    def __init__(self, db: Session):
        self.db = db

    def _find_by_idempotency_key(self, key: str) -> Transaction | None:
        return self.db.execute(
            select(Transaction).where(Transaction.idempotency_key == key)
        ).scalar_one_or_none()

    def _lock_accounts(self, account_ids: set[int]) -> dict[int, Account]:
        """
        Load the accounts a draft touches, locked for update.

        FOR UPDATE holds the rows until commit on databases that
        support it. populate_existing makes sure the cached
        balance and version come from the database, not from an
        older copy already in this session.
        """
        accounts = self.db.execute(
            select(Account)
            .where(Account.id.in_(account_ids))
            .order_by(Account.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        return {a.id: a for a in accounts}

    def _validate(
        self, entries: list[EntryDraft], accounts: dict[int, Account]
    ) -> None:
        requested = {e.account_id for e in entries}

        missing = requested - set(accounts)
        if missing:
            raise AccountNotFound(missing)

        inactive = {a.id for a in accounts.values() if not a.is_active}
        if inactive:
            raise AccountNotFound(inactive, reason="is not active")

        for entry in entries:
            account = accounts[entry.account_id]
            if entry.currency != account.currency:
                raise CurrencyMismatch(
                    account.currency, entry.currency, account_id=account.id
                )

        for entry in entries:
            if entry.amount <= 0:
                raise InvalidAmount(entry.amount)

        totals: dict[str, list[int]] = defaultdict(lambda: [0, 0])
        for entry in entries:
            side = 0 if entry.entry_type == EntryType.DEBIT else 1
            totals[entry.currency][side] += entry.amount

        imbalances = {
            currency: (debits, credits)
            for currency, (debits, credits) in totals.items()
            if debits != credits
        }
        if imbalances:
            raise UnbalancedTransaction(imbalances)

    def post(self, draft: TransactionDraft, reverses_id: int | None = None) -> Transaction:
        """
        Post a transaction draft.

        Raises AccountNotFound, CurrencyMismatch, InvalidAmount or
        UnbalancedTransaction without writing anything. If the
        draft carries an idempotency key that has been used
        before, the earlier transaction is returned.
        """
        if draft.idempotency_key:
            existing = self._find_by_idempotency_key(draft.idempotency_key)
            if existing:
                logger.info(
                    "Idempotent replay of posting",
                    extra={
                        "transaction_id": existing.id,
                        "idempotency_key": draft.idempotency_key,
                    },
                )
                return existing

        accounts = self._lock_accounts({e.account_id for e in draft.entries})
        try:
            self._validate(draft.entries, accounts)
        except Exception as e:
            logger.info(
                "Posting rejected",
                extra={"error": type(e).__name__, "detail": str(e)},
            )
            raise

        txn = Transaction(
            idempotency_key=draft.idempotency_key,
            transaction_date=draft.date,
            description=draft.description,
            reverses_id=reverses_id,
        )
        for entry_data in draft.entries:
            account = accounts[entry_data.account_id]
            txn.entries.append(LedgerEntry(
                account_id=account.id,
                entry_type=entry_data.entry_type,
                amount=entry_data.amount,
                currency=entry_data.currency,
                transaction_date=draft.date,
            ))
            account.cached_balance += signed_amount(
                account.account_type, entry_data.entry_type, entry_data.amount
            )

        self.db.add(txn)
        self.db.flush()

        logger.info(
            "Transaction posted",
            extra={
                "transaction_id": txn.id,
                "entries": len(txn.entries),
                "accounts": sorted(accounts),
                "transaction_date": draft.date.isoformat(),
            },
        )
        return txn

    def get_transaction(self, transaction_id: int) -> Transaction:
        txn = self.db.execute(
            select(Transaction)
            .where(Transaction.id == transaction_id)
            .options(selectinload(Transaction.entries))
        ).scalar_one_or_none()
        if not txn:
            raise TransactionNotFound(transaction_id)
        return txn

    def reverse(
        self,
        transaction_id: int,
        idempotency_key: str | None = None,
        on: date | None = None,
    ) -> Transaction:
        """
        Reverse a transaction by posting offsetting entries.

        The original is not touched. A new transaction with every
        debit turned into a credit and vice versa is posted through
        the normal validation path and points back at the original.
        A transaction can be reversed once.
        """
        if idempotency_key:
            existing = self._find_by_idempotency_key(idempotency_key)
            if existing:
                return existing

        original = self.get_transaction(transaction_id)

        reversal = self.db.execute(
            select(Transaction).where(Transaction.reverses_id == original.id)
        ).scalar_one_or_none()
        if reversal:
            raise AlreadyReversed(original.id, reversal.id)

        draft = TransactionDraft(
            date=on or datetime.now(timezone.utc).date(),
            description=f"Reversal of transaction {original.id}",
            idempotency_key=idempotency_key,
            entries=[
                EntryDraft(
                    account_id=entry.account_id,
                    entry_type=entry.entry_type.opposite(),
                    amount=entry.amount,
                    currency=entry.currency,
                )
                for entry in original.entries
            ],
        )
        return self.post(draft, reverses_id=original.id)

    def update_description(self, transaction_id: int, description: str) -> Transaction:
        """Change the description, the only editable field of a transaction."""
        txn = self.get_transaction(transaction_id)
        txn.description = description
        self.db.flush()
        return txn


def commit_with_retry(db: Session, operation, max_attempts: int | None = None):
    """
    Run operation(PostingService(db)) and commit it.

    A posting that loses a race with a concurrent one fails in
    one of two ways: the account version moved (StaleDataError)
    or a unique key was taken first (IntegrityError on the
    idempotency key or on reverses_id). Either way the attempt
    is rolled back whole and run again; on the rerun the
    idempotency lookup returns the winner's transaction, and a
    duplicate reversal becomes AlreadyReversed.

    When every attempt loses, PostingConflict is raised. Other
    errors propagate; the caller rolls back.
    """
    if max_attempts is None:
        max_attempts = get_settings().POSTING_MAX_ATTEMPTS

    for attempt in range(1, max_attempts + 1):
        try:
            txn = operation(PostingService(db))
            txn_id = txn.id
            db.commit()
            return txn_id
        except (StaleDataError, IntegrityError) as e:
            db.rollback()
            if attempt == max_attempts:
                raise PostingConflict(attempt) from e
            logger.warning(
                "Posting lost a race with a concurrent write; retrying",
                extra={
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                    "error": type(e).__name__,
                },
            )


def post_with_retry(
    session_factory, draft: TransactionDraft, max_attempts: int | None = None
) -> TransactionResponse:
    """
    Post a draft as a complete unit of work in its own session.

    The transaction, its entries and all balance updates are
    committed together or not at all. Closing the session rolls
    back whatever an exception (or a cancellation) interrupted.
    Races with concurrent postings are retried as described in
    commit_with_retry(); validation errors and storage failures
    propagate to the caller untouched.
    """
    with session_factory() as session:
        txn_id = commit_with_retry(
            session, lambda service: service.post(draft), max_attempts
        )
        return TransactionResponse.model_validate(
            PostingService(session).get_transaction(txn_id)
        )
