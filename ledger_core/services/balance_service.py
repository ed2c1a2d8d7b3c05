"""
Balance service: derived views over the ledger.

Balances are a pure function of the entries. This service reads
entries and folds them under the sign convention:

    ASSET:      DEBIT +amount, CREDIT -amount
    LIABILITY:  DEBIT -amount, CREDIT +amount

It never writes. The cached balance on the account row is not
consulted here; comparing the two is the integrity service's job.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import assert_never

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from ledger_core.exceptions import AccountNotFound, InvalidDateRange
from ledger_core.models.account import Account
from ledger_core.models.ledger_entry import LedgerEntry
from ledger_core.models.enums import AccountType, EntryType
from ledger_core.money import Money, normalize_currency

logger = logging.getLogger(__name__)

# Rows fetched per round trip when folding entries in Python
STREAM_BATCH_SIZE = 1000


def signed_amount(account_type: AccountType, entry_type: EntryType, amount: int) -> int:
    """Effect of one entry on the balance of an account of the given type."""
    match account_type:
        case AccountType.ASSET:
            match entry_type:
                case EntryType.DEBIT:
                    return amount
                case EntryType.CREDIT:
                    return -amount
                case _:
                    assert_never(entry_type)
        case AccountType.LIABILITY:
            match entry_type:
                case EntryType.DEBIT:
                    return -amount
                case EntryType.CREDIT:
                    return amount
                case _:
                    assert_never(entry_type)
        case _:
            assert_never(account_type)


@dataclass(frozen=True)
class BalancePoint:
    """End-of-day balance of an account."""
    date: date
    balance: int


@dataclass(frozen=True)
class NetWorthSummary:
    currency: str
    total_assets: int
    total_liabilities: int

    @property
    def net_worth(self) -> int:
        return self.total_assets - self.total_liabilities

    def formatted(self) -> str:
        return str(Money(self.net_worth, self.currency))


class BalanceService:
    """
    Read-only balance calculations.

    Like the other services, it takes the caller's session and
    leaves transaction boundaries to the caller.
    """

    def __init__(self, db: Session):
        self.db = db

    def _get_account(self, account_id: int) -> Account:
        account = self.db.get(Account, account_id)
        if not account:
            raise AccountNotFound(account_id)
        return account

    def _native_sums(self) -> bool:
        # Databases with exact decimals can sum in SQL without
        # rounding; others get the entries streamed and summed here.
        return self.db.get_bind().dialect.supports_native_decimal

    def _fold(self, account: Account, *criteria) -> int:
        """Signed sum of the account's entries matching criteria."""
        base = LedgerEntry.account_id == account.id

        if self._native_sums():
            rows = self.db.execute(
                select(LedgerEntry.entry_type, func.sum(LedgerEntry.amount))
                .where(base, *criteria)
                .group_by(LedgerEntry.entry_type)
            ).all()
        else:
            rows = self.db.execute(
                select(LedgerEntry.entry_type, LedgerEntry.amount)
                .where(base, *criteria)
                .execution_options(yield_per=STREAM_BATCH_SIZE)
            )

        balance = 0
        for entry_type, amount in rows:
            balance += signed_amount(account.account_type, entry_type, amount or 0)
        return balance

    def current_balance(self, account_id: int) -> int:
        """
        Calculate an account's balance from its entries.

        Returns 0 for an account with no entries. Inactive accounts
        are still readable; only a missing account is an error.
        """
        account = self._get_account(account_id)
        return self._fold(account)

    def balance_history(
        self, account_id: int, start_date: date, end_date: date
    ) -> list[BalancePoint]:
        """
        End-of-day balances for each day in [start_date, end_date]
        on which the account has entries, oldest first.

        Days are UTC calendar days. The balance before start_date
        seeds the running total, so each point is the true balance
        at the end of that day, not just the movement within the
        range. Several entries on one day produce one point.
        """
        if start_date > end_date:
            raise InvalidDateRange(start_date, end_date)

        account = self._get_account(account_id)
        running = self._fold(account, LedgerEntry.transaction_date < start_date)

        rows = self.db.execute(
            select(
                LedgerEntry.transaction_date,
                LedgerEntry.entry_type,
                LedgerEntry.amount,
            )
            .where(
                LedgerEntry.account_id == account.id,
                LedgerEntry.transaction_date >= start_date,
                LedgerEntry.transaction_date <= end_date,
            )
            .order_by(LedgerEntry.transaction_date, LedgerEntry.id)
            .execution_options(yield_per=STREAM_BATCH_SIZE)
        )

        points: list[BalancePoint] = []
        current_day = None
        for day, entry_type, amount in rows:
            if current_day is not None and day != current_day:
                points.append(BalancePoint(current_day, running))
            running += signed_amount(account.account_type, entry_type, amount)
            current_day = day

        if current_day is not None:
            points.append(BalancePoint(current_day, running))

        logger.debug(
            "Rebuilt balance history",
            extra={"account_id": account_id, "points": len(points)},
        )
        return points

    def net_worth(self, currency: str) -> NetWorthSummary:
        """
        Total assets minus total liabilities over active accounts
        in one currency. Balances are recomputed from entries.
        """
        currency = normalize_currency(currency)
        accounts = self.db.execute(
            select(Account).where(
                Account.currency == currency,
                Account.is_active.is_(True),
            )
        ).scalars().all()

        total_assets = 0
        total_liabilities = 0
        for account in accounts:
            balance = self._fold(account)
            match account.account_type:
                case AccountType.ASSET:
                    total_assets += balance
                case AccountType.LIABILITY:
                    total_liabilities += balance
                case _:
                    assert_never(account.account_type)

        return NetWorthSummary(
            currency=currency,
            total_assets=total_assets,
            total_liabilities=total_liabilities,
        )
