"""
Account service: creation and deactivation of accounts.

Account lifecycle is owned by whoever manages accounts; the
ledger only needs a row with a type, a currency and a cached
balance. Accounts are never hard-deleted, so their entries keep
pointing at something.
"""

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_core.exceptions import AccountNotFound, DuplicateAccount
from ledger_core.models.account import Account
from ledger_core.money import normalize_currency
from ledger_core.schemas.account import AccountCreate

logger = logging.getLogger(__name__)


class AccountService:

    def __init__(self, db: Session):
        self.db = db

    def create_account(self, request: AccountCreate) -> Account:
        """
        Create a new account with a zero balance.

        Raises DuplicateAccount if the code is already taken.
        """
        existing = self.db.execute(
            select(Account).where(Account.code == request.code)
        ).scalar_one_or_none()

        if existing:
            raise DuplicateAccount(request.code)

        account = Account(
            code=request.code,
            name=request.name,
            account_type=request.account_type,
            currency=request.currency,
            cached_balance=0,
        )
        self.db.add(account)
        self.db.flush()
        logger.info(
            "Account created",
            extra={
                "account_id": account.id,
                "code": account.code,
                "account_type": account.account_type.value,
                "currency": account.currency,
            },
        )
        return account

    def get_account(self, account_id: int) -> Account:
        """Get an account by ID."""
        account = self.db.get(Account, account_id)
        if not account:
            raise AccountNotFound(account_id)
        return account

    def deactivate_account(self, account_id: int) -> Account:
        """Soft-delete an account. Deactivating twice is a no-op."""
        account = self.get_account(account_id)
        if account.is_active:
            account.is_active = False
            self.db.flush()
            logger.info("Account deactivated", extra={"account_id": account_id})
        return account

    def list_accounts(
        self, currency: str | None = None, include_inactive: bool = False
    ) -> list[Account]:
        query = select(Account).order_by(Account.id)
        if currency:
            query = query.where(Account.currency == normalize_currency(currency))
        if not include_inactive:
            query = query.where(Account.is_active.is_(True))
        return list(self.db.execute(query).scalars().all())
