"""
Ledger entry model.

Each entry is one debit or credit against one account, owned by
one transaction. Entries are immutable: once posted they are
never modified or deleted.
"""

from datetime import date, datetime

from sqlalchemy import (
    String, Date, DateTime, ForeignKey, Index,
    Enum as SAEnum, event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_core.exceptions import ImmutableRecord
from ledger_core.models.base import Base
from ledger_core.models.enums import EntryType
from ledger_core.models.types import MinorUnits


class LedgerEntry(Base):
    """
    An immutable debit or credit entry in the ledger.

    Within a transaction, for every currency, the sum of DEBIT
    amounts must equal the sum of CREDIT amounts. That rule spans
    several rows, so it is enforced by the posting service rather
    than by the model.

    transaction_date is a copy of the owning transaction's date.
    Keeping it on the entry lets the (account_id, transaction_date)
    index serve balance-history range scans without a join.
    """

    __tablename__ = "ledger_entries"
    __table_args__ = (
        Index(
            "ix_ledger_entries_account_date",
            "account_id",
            "transaction_date",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id"), nullable=False, index=True
    )
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"), nullable=False
    )
    entry_type: Mapped[EntryType] = mapped_column(
        SAEnum(EntryType, name="entry_type_enum", create_constraint=True),
        nullable=False,
    )
    amount: Mapped[int] = mapped_column(MinorUnits, nullable=False)
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False
    )
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    account: Mapped["Account"] = relationship(back_populates="entries")
    transaction: Mapped["Transaction"] = relationship(
        back_populates="entries"
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.entry_type.value} "
            f"{self.amount} {self.currency}>"
        )


@event.listens_for(LedgerEntry, "before_update")
def _no_entry_update(mapper, connection, target):
    raise ImmutableRecord(f"Ledger entry {target.id} is immutable")


@event.listens_for(LedgerEntry, "before_delete")
def _no_entry_delete(mapper, connection, target):
    raise ImmutableRecord(f"Ledger entry {target.id} cannot be deleted")
