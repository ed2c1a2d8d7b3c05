"""
Account model.

An account is a bucket that ledger entries are posted against.
Its type (ASSET or LIABILITY) is fixed at creation and decides
whether a debit raises or lowers its balance.

cached_balance is a read cache of the balance the entries imply.
It is kept in step by the posting service and can always be
recomputed and repaired by the integrity service. It is never
the source of truth.
"""

from datetime import datetime

from sqlalchemy import String, Boolean, DateTime, Integer, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_core.models.base import Base
from ledger_core.models.enums import AccountType
from ledger_core.models.types import MinorUnits


class Account(Base):
    """
    A single account in the ledger.

    Once an account has entries it is never deleted, only
    deactivated via is_active=False.
    """

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_type: Mapped[AccountType] = mapped_column(
        SAEnum(AccountType, name="account_type_enum", create_constraint=True),
        nullable=False,
    )
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default="USD"
    )
    cached_balance: Mapped[int] = mapped_column(
        MinorUnits, nullable=False, default=0
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    # Bumped on every UPDATE; a writer holding an old version
    # gets StaleDataError instead of overwriting a newer balance.
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    entries: Mapped[list["LedgerEntry"]] = relationship(
        back_populates="account"
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Account {self.code} ({self.account_type.value}, {self.currency})>"
