"""
Integrity service: checks the cache against the ledger.

The cached balance on each account is a projection of its
entries. This service recomputes the projection and compares.
reconcile() is the only sanctioned way to overwrite a cached
balance; it repairs cache drift, never a ledger that does not
balance (that is rejected at posting time).
"""

import logging
from collections import defaultdict
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_core.exceptions import AccountNotFound, IntegrityViolation
from ledger_core.models.account import Account
from ledger_core.models.enums import EntryType
from ledger_core.models.ledger_entry import LedgerEntry
from ledger_core.services.balance_service import BalanceService
from ledger_core.services.posting_service import PostingService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntegrityReport:
    account_id: int
    cached_balance: int
    computed_balance: int

    @property
    def is_valid(self) -> bool:
        return self.cached_balance == self.computed_balance


@dataclass(frozen=True)
class CurrencyTotals:
    currency: str
    total_debits: int
    total_credits: int

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


@dataclass(frozen=True)
class TransactionCheck:
    transaction_id: int
    totals: list[CurrencyTotals]

    @property
    def is_balanced(self) -> bool:
        return all(t.is_balanced for t in self.totals)


@dataclass(frozen=True)
class TrialBalance:
    totals: list[CurrencyTotals]

    @property
    def is_balanced(self) -> bool:
        return all(t.is_balanced for t in self.totals)


def _totals(rows) -> list[CurrencyTotals]:
    sums: dict[str, list[int]] = defaultdict(lambda: [0, 0])
    for currency, entry_type, amount in rows:
        side = 0 if entry_type == EntryType.DEBIT else 1
        sums[currency][side] += amount
    return [
        CurrencyTotals(currency, debits, credits)
        for currency, (debits, credits) in sorted(sums.items())
    ]


class IntegrityService:

    def __init__(self, db: Session):
        self.db = db
        self.balances = BalanceService(db)

    def report(self, account_id: int) -> IntegrityReport:
        """Cached and recomputed balance side by side."""
        account = self.db.get(Account, account_id)
        if not account:
            raise AccountNotFound(account_id)
        return IntegrityReport(
            account_id=account.id,
            cached_balance=account.cached_balance,
            computed_balance=self.balances.current_balance(account.id),
        )

    def validate(self, account_id: int) -> bool:
        """
        True if the cached balance matches the entries.

        A missing account is reported as invalid rather than
        raised: this is a diagnostic, not an operation on the
        account.
        """
        try:
            return self.report(account_id).is_valid
        except AccountNotFound:
            return False

    def reconcile(self, account_id: int) -> None:
        """Overwrite the cached balance with the recomputed one if they differ."""
        report = self.report(account_id)
        if report.is_valid:
            return

        account = self.db.get(Account, account_id)
        account.cached_balance = report.computed_balance
        self.db.flush()

        logger.warning(
            "Cached balance reconciled",
            extra={
                "account_id": account_id,
                "cached_balance": report.cached_balance,
                "computed_balance": report.computed_balance,
            },
        )

    def sweep(self) -> list[IntegrityViolation]:
        """
        Validate every account and repair any drift found.

        Drift outside reconcile() means something wrote a balance
        behind the posting service's back. Each case is logged at
        CRITICAL and repaired; the violations are returned for the
        caller to report.
        """
        account_ids = self.db.execute(
            select(Account.id).order_by(Account.id)
        ).scalars().all()

        violations = []
        for account_id in account_ids:
            report = self.report(account_id)
            if report.is_valid:
                continue
            violation = IntegrityViolation(
                account_id, report.cached_balance, report.computed_balance
            )
            logger.critical(
                str(violation),
                extra={
                    "account_id": account_id,
                    "cached_balance": report.cached_balance,
                    "computed_balance": report.computed_balance,
                    "drift": violation.drift,
                },
            )
            self.reconcile(account_id)
            violations.append(violation)
        return violations

    def check_transaction(self, transaction_id: int) -> TransactionCheck:
        """Per-currency debit and credit totals of one transaction."""
        txn = PostingService(self.db).get_transaction(transaction_id)
        return TransactionCheck(
            transaction_id=txn.id,
            totals=_totals(
                (e.currency, e.entry_type, e.amount) for e in txn.entries
            ),
        )

    def trial_balance(self) -> TrialBalance:
        """Per-currency debit and credit totals over the whole ledger."""
        rows = self.db.execute(
            select(
                LedgerEntry.currency,
                LedgerEntry.entry_type,
                LedgerEntry.amount,
            ).execution_options(yield_per=1000)
        )
        return TrialBalance(totals=_totals(rows))
