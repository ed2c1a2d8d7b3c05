"""
Transaction model.

A transaction is a dated, described group of ledger entries
that must balance. It is written once, together with all of its
entries. Afterwards only the description may change; a mistake
in the amounts is corrected by posting a reversing transaction,
never by editing rows in place.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import (
    String, Date, DateTime, ForeignKey, Uuid, event, inspect,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_core.exceptions import ImmutableRecord
from ledger_core.models.base import Base

# Columns that may be edited after the transaction is written
MUTABLE_COLUMNS = frozenset({"description"})


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, nullable=False, default=uuid.uuid4
    )
    idempotency_key: Mapped[str | None] = mapped_column(
        String(100), unique=True, nullable=True
    )
    # Economic date of the movement (UTC calendar day), not the
    # moment the row was written.
    transaction_date: Mapped[date] = mapped_column(
        Date, nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(
        String(255), nullable=False
    )
    reverses_id: Mapped[int | None] = mapped_column(
        ForeignKey("transactions.id"), unique=True, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    entries: Mapped[list["LedgerEntry"]] = relationship(
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="LedgerEntry.id",
    )
    reverses: Mapped["Transaction | None"] = relationship(
        remote_side=[id], foreign_keys=[reverses_id]
    )

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.id} {self.transaction_date} "
            f"{self.description!r} ({len(self.entries)} entries)>"
        )


@event.listens_for(Transaction, "before_update")
def _only_description_changes(mapper, connection, target):
    state = inspect(target)
    for attr in state.mapper.column_attrs:
        if attr.key in MUTABLE_COLUMNS:
            continue
        if state.attrs[attr.key].history.has_changes():
            raise ImmutableRecord(
                f"Transaction {target.id}: column '{attr.key}' is immutable"
            )


@event.listens_for(Transaction, "before_delete")
def _no_transaction_delete(mapper, connection, target):
    raise ImmutableRecord(
        f"Transaction {target.id} cannot be deleted; post a reversal instead"
    )
