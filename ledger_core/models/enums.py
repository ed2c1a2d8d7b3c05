"""
Shared enumerations for database models.

Using Python enums mapped to database enums ensures that
only valid values can be stored. An invalid account type
or entry type is caught at the database level, not just
in Python validation.
"""

import enum


class AccountType(str, enum.Enum):
    """Account classification; decides the sign convention."""
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"


class EntryType(str, enum.Enum):
    """Direction of a ledger entry."""
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"

    def opposite(self) -> "EntryType":
        if self is EntryType.DEBIT:
            return EntryType.CREDIT
        return EntryType.DEBIT
