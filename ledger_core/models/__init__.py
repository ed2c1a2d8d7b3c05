"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from ledger_core.models.base import Base
from ledger_core.models.enums import AccountType, EntryType
from ledger_core.models.types import MinorUnits
from ledger_core.models.account import Account
from ledger_core.models.transaction import Transaction
from ledger_core.models.ledger_entry import LedgerEntry

__all__ = [
    "Base",
    "AccountType",
    "EntryType",
    "MinorUnits",
    "Account",
    "Transaction",
    "LedgerEntry",
]
