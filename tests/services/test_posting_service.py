"""
Tests for the PostingService.

Tests cover:
- Balanced posting and cached balance updates
- Validation order and typed rejections
- Atomicity of rejected posts
- Idempotency keys
- Reversal and description edits
- Immutability of posted entries
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from ledger_core.exceptions import (
    AccountNotFound,
    AlreadyReversed,
    CurrencyMismatch,
    ImmutableRecord,
    InvalidAmount,
    TransactionNotFound,
    UnbalancedTransaction,
)
from ledger_core.models.enums import AccountType, EntryType
from ledger_core.models.ledger_entry import LedgerEntry
from ledger_core.models.transaction import Transaction
from ledger_core.schemas.ledger import EntryDraft, TransactionDraft
from ledger_core.services.account_service import AccountService
from ledger_core.services.balance_service import BalanceService
from ledger_core.services.posting_service import PostingService


def count_rows(db_session, model):
    return db_session.execute(select(func.count()).select_from(model)).scalar()


class TestPost:

    def test_balanced_transaction_succeeds(self, db_session, cash, card, transfer_draft):
        service = PostingService(db_session)

        txn = service.post(transfer_draft(cash.id, card.id, 50000))
        db_session.commit()

        assert txn.id is not None
        assert txn.transaction_date == date(2024, 3, 1)
        assert len(txn.entries) == 2
        assert {e.entry_type for e in txn.entries} == {EntryType.DEBIT, EntryType.CREDIT}
        assert all(e.amount == 50000 for e in txn.entries)
        assert all(e.transaction_date == date(2024, 3, 1) for e in txn.entries)

    def test_cached_balances_follow_sign_convention(self, db_session, cash, card, transfer_draft):
        service = PostingService(db_session)

        # Asset debited, liability credited: both go up
        service.post(transfer_draft(cash.id, card.id, 12345))
        db_session.commit()

        db_session.refresh(cash)
        db_session.refresh(card)
        assert cash.cached_balance == 12345
        assert card.cached_balance == 12345

        # Paying the card down: liability debited, asset credited
        service.post(transfer_draft(card.id, cash.id, 2345))
        db_session.commit()

        db_session.refresh(cash)
        db_session.refresh(card)
        assert cash.cached_balance == 10000
        assert card.cached_balance == 10000

    def test_multi_leg_split_transaction(self, db_session, make_account):
        checking = make_account("CHK", AccountType.ASSET)
        savings = make_account("SAV", AccountType.ASSET)
        loan = make_account("LOAN", AccountType.LIABILITY)

        txn = PostingService(db_session).post(TransactionDraft(
            date=date(2024, 5, 1),
            description="Loan disbursement split",
            entries=[
                EntryDraft(account_id=checking.id, entry_type=EntryType.DEBIT,
                           amount=70000, currency="USD"),
                EntryDraft(account_id=savings.id, entry_type=EntryType.DEBIT,
                           amount=30000, currency="USD"),
                EntryDraft(account_id=loan.id, entry_type=EntryType.CREDIT,
                           amount=100000, currency="USD"),
            ],
        ))
        db_session.commit()

        assert len(txn.entries) == 3
        assert loan.cached_balance == 100000

    def test_same_account_twice_in_one_transaction(self, db_session, cash, card):
        PostingService(db_session).post(TransactionDraft(
            date=date(2024, 5, 1),
            description="Two charges settled at once",
            entries=[
                EntryDraft(account_id=cash.id, entry_type=EntryType.DEBIT,
                           amount=100, currency="USD"),
                EntryDraft(account_id=cash.id, entry_type=EntryType.DEBIT,
                           amount=200, currency="USD"),
                EntryDraft(account_id=card.id, entry_type=EntryType.CREDIT,
                           amount=300, currency="USD"),
            ],
        ))
        db_session.commit()

        db_session.refresh(cash)
        assert cash.cached_balance == 300

    def test_datetime_is_reduced_to_utc_day(self, db_session, cash, card, transfer_draft):
        # 23:30 at UTC-5 on the 1st is already the 2nd in UTC
        late_evening = datetime(2024, 3, 1, 23, 30, tzinfo=timezone(timedelta(hours=-5)))

        txn = PostingService(db_session).post(
            transfer_draft(cash.id, card.id, 100, on=late_evening)
        )

        assert txn.transaction_date == date(2024, 3, 2)


class TestValidation:

    def test_nonexistent_account_rejected(self, db_session, cash, transfer_draft):
        with pytest.raises(AccountNotFound) as exc_info:
            PostingService(db_session).post(transfer_draft(cash.id, 999, 100))
        assert exc_info.value.account_ids == [999]

    def test_inactive_account_rejected(self, db_session, cash, card, transfer_draft):
        AccountService(db_session).deactivate_account(card.id)
        db_session.commit()

        with pytest.raises(AccountNotFound, match="not active"):
            PostingService(db_session).post(transfer_draft(cash.id, card.id, 100))

    def test_currency_mismatch_rejected(self, db_session, cash, card):
        with pytest.raises(CurrencyMismatch) as exc_info:
            PostingService(db_session).post(TransactionDraft(
                date=date(2024, 3, 1),
                description="Mismatch",
                entries=[
                    EntryDraft(account_id=cash.id, entry_type=EntryType.DEBIT,
                               amount=100, currency="USD"),
                    EntryDraft(account_id=card.id, entry_type=EntryType.CREDIT,
                               amount=100, currency="EUR"),
                ],
            ))
        assert exc_info.value.expected == "USD"
        assert exc_info.value.actual == "EUR"
        assert exc_info.value.account_id == card.id

    @pytest.mark.parametrize("amount", [0, -500])
    def test_non_positive_amount_rejected(self, db_session, cash, card, transfer_draft, amount):
        with pytest.raises(InvalidAmount):
            PostingService(db_session).post(transfer_draft(cash.id, card.id, amount))

    def test_single_cent_imbalance_rejected(self, db_session, cash, card):
        with pytest.raises(UnbalancedTransaction) as exc_info:
            PostingService(db_session).post(TransactionDraft(
                date=date(2024, 3, 1),
                description="Off by one",
                entries=[
                    EntryDraft(account_id=cash.id, entry_type=EntryType.DEBIT,
                               amount=10001, currency="USD"),
                    EntryDraft(account_id=card.id, entry_type=EntryType.CREDIT,
                               amount=10000, currency="USD"),
                ],
            ))
        assert exc_info.value.imbalances == {"USD": (10001, 10000)}

    def test_single_entry_is_unbalanced(self, db_session, cash):
        with pytest.raises(UnbalancedTransaction):
            PostingService(db_session).post(TransactionDraft(
                date=date(2024, 3, 1),
                description="One-sided",
                entries=[
                    EntryDraft(account_id=cash.id, entry_type=EntryType.DEBIT,
                               amount=100, currency="USD"),
                ],
            ))

    def test_balance_is_checked_per_currency(self, db_session, cash, card, make_account):
        eur_cash = make_account("EUR-CASH", AccountType.ASSET, currency="EUR")
        eur_card = make_account("EUR-CARD", AccountType.LIABILITY, currency="EUR")

        # USD debits match EUR credits in number, but not per currency
        with pytest.raises(UnbalancedTransaction) as exc_info:
            PostingService(db_session).post(TransactionDraft(
                date=date(2024, 3, 1),
                description="Cross-currency",
                entries=[
                    EntryDraft(account_id=cash.id, entry_type=EntryType.DEBIT,
                               amount=100, currency="USD"),
                    EntryDraft(account_id=eur_card.id, entry_type=EntryType.CREDIT,
                               amount=100, currency="EUR"),
                ],
            ))
        assert set(exc_info.value.imbalances) == {"USD", "EUR"}

        # Balanced within each currency is accepted
        txn = PostingService(db_session).post(TransactionDraft(
            date=date(2024, 3, 1),
            description="Two currencies, each balanced",
            entries=[
                EntryDraft(account_id=cash.id, entry_type=EntryType.DEBIT,
                           amount=100, currency="USD"),
                EntryDraft(account_id=card.id, entry_type=EntryType.CREDIT,
                           amount=100, currency="USD"),
                EntryDraft(account_id=eur_cash.id, entry_type=EntryType.DEBIT,
                           amount=90, currency="EUR"),
                EntryDraft(account_id=eur_card.id, entry_type=EntryType.CREDIT,
                           amount=90, currency="EUR"),
            ],
        ))
        assert len(txn.entries) == 4

    def test_missing_account_reported_before_bad_amount(self, db_session, cash, transfer_draft):
        # Account checks come first, so the zero amount is not what fails
        with pytest.raises(AccountNotFound):
            PostingService(db_session).post(transfer_draft(cash.id, 424242, 0))

    def test_currency_reported_before_imbalance(self, db_session, cash, card):
        with pytest.raises(CurrencyMismatch):
            PostingService(db_session).post(TransactionDraft(
                date=date(2024, 3, 1),
                description="Both wrong",
                entries=[
                    EntryDraft(account_id=cash.id, entry_type=EntryType.DEBIT,
                               amount=500, currency="GBP"),
                    EntryDraft(account_id=card.id, entry_type=EntryType.CREDIT,
                               amount=100, currency="USD"),
                ],
            ))


class TestAtomicity:

    def test_rejected_post_leaves_everything_unchanged(self, db_session, cash, card, transfer_draft):
        service = PostingService(db_session)
        service.post(transfer_draft(cash.id, card.id, 40000))
        db_session.commit()

        with pytest.raises(CurrencyMismatch):
            service.post(TransactionDraft(
                date=date(2024, 3, 2),
                description="Bad currency on one leg",
                entries=[
                    EntryDraft(account_id=cash.id, entry_type=EntryType.DEBIT,
                               amount=100, currency="USD"),
                    EntryDraft(account_id=card.id, entry_type=EntryType.CREDIT,
                               amount=100, currency="JPY"),
                ],
            ))
        db_session.rollback()

        db_session.refresh(cash)
        db_session.refresh(card)
        assert cash.cached_balance == 40000
        assert card.cached_balance == 40000
        assert count_rows(db_session, Transaction) == 1
        assert count_rows(db_session, LedgerEntry) == 2

    def test_rollback_discards_flushed_post(self, db_session, cash, card, transfer_draft):
        # A caller that fails after post() but before commit loses it all
        PostingService(db_session).post(transfer_draft(cash.id, card.id, 700))
        db_session.rollback()

        db_session.refresh(cash)
        assert cash.cached_balance == 0
        assert count_rows(db_session, Transaction) == 0
        assert count_rows(db_session, LedgerEntry) == 0


class TestIdempotency:

    def test_same_key_returns_first_transaction(self, db_session, cash, card, transfer_draft):
        service = PostingService(db_session)
        draft = transfer_draft(cash.id, card.id, 25000, key="import-2024-03-01-001")

        first = service.post(draft)
        db_session.commit()
        second = service.post(draft)
        db_session.commit()

        assert first.id == second.id
        assert count_rows(db_session, Transaction) == 1
        assert BalanceService(db_session).current_balance(cash.id) == 25000

    def test_no_key_posts_twice(self, db_session, cash, card, transfer_draft):
        service = PostingService(db_session)
        draft = transfer_draft(cash.id, card.id, 100)

        service.post(draft)
        service.post(draft)
        db_session.commit()

        assert count_rows(db_session, Transaction) == 2


class TestReverse:

    def test_reversal_restores_balances(self, db_session, cash, card, transfer_draft):
        service = PostingService(db_session)
        original = service.post(transfer_draft(cash.id, card.id, 9900))
        db_session.commit()

        reversal = service.reverse(original.id, on=date(2024, 3, 5))
        db_session.commit()

        assert reversal.reverses_id == original.id
        assert reversal.transaction_date == date(2024, 3, 5)
        assert reversal.description == f"Reversal of transaction {original.id}"
        assert BalanceService(db_session).current_balance(cash.id) == 0
        assert BalanceService(db_session).current_balance(card.id) == 0
        db_session.refresh(cash)
        assert cash.cached_balance == 0

    def test_reversal_swaps_entry_types(self, db_session, cash, card, transfer_draft):
        service = PostingService(db_session)
        original = service.post(transfer_draft(cash.id, card.id, 500))
        reversal = service.reverse(original.id)

        by_account = {e.account_id: e.entry_type for e in reversal.entries}
        assert by_account == {cash.id: EntryType.CREDIT, card.id: EntryType.DEBIT}

    def test_original_entries_untouched(self, db_session, cash, card, transfer_draft):
        service = PostingService(db_session)
        original = service.post(transfer_draft(cash.id, card.id, 500))
        db_session.commit()
        service.reverse(original.id)
        db_session.commit()

        assert count_rows(db_session, LedgerEntry) == 4
        db_session.refresh(original)
        assert [e.amount for e in original.entries] == [500, 500]

    def test_cannot_reverse_twice(self, db_session, cash, card, transfer_draft):
        service = PostingService(db_session)
        original = service.post(transfer_draft(cash.id, card.id, 500))
        first = service.reverse(original.id)
        db_session.commit()

        with pytest.raises(AlreadyReversed) as exc_info:
            service.reverse(original.id)
        assert exc_info.value.reversal_id == first.id

    def test_reverse_unknown_transaction(self, db_session):
        with pytest.raises(TransactionNotFound):
            PostingService(db_session).reverse(12345)

    def test_reversal_needs_active_accounts(self, db_session, cash, card, transfer_draft):
        service = PostingService(db_session)
        original = service.post(transfer_draft(cash.id, card.id, 500))
        AccountService(db_session).deactivate_account(card.id)
        db_session.commit()

        with pytest.raises(AccountNotFound):
            service.reverse(original.id)


class TestImmutability:

    def test_description_can_be_edited(self, db_session, cash, card, transfer_draft):
        service = PostingService(db_session)
        txn = service.post(transfer_draft(cash.id, card.id, 500))
        db_session.commit()

        service.update_description(txn.id, "Groceries")
        db_session.commit()

        assert service.get_transaction(txn.id).description == "Groceries"

    def test_transaction_date_cannot_be_edited(self, db_session, cash, card, transfer_draft):
        txn = PostingService(db_session).post(transfer_draft(cash.id, card.id, 500))
        db_session.commit()

        txn.transaction_date = date(2020, 1, 1)
        with pytest.raises(ImmutableRecord):
            db_session.flush()

    def test_entry_amount_cannot_be_edited(self, db_session, cash, card, transfer_draft):
        txn = PostingService(db_session).post(transfer_draft(cash.id, card.id, 500))
        db_session.commit()

        txn.entries[0].amount = 1
        with pytest.raises(ImmutableRecord):
            db_session.flush()

    def test_entry_cannot_be_deleted(self, db_session, cash, card, transfer_draft):
        txn = PostingService(db_session).post(transfer_draft(cash.id, card.id, 500))
        db_session.commit()

        db_session.delete(txn.entries[0])
        with pytest.raises(ImmutableRecord):
            db_session.flush()

    def test_get_unknown_transaction(self, db_session):
        with pytest.raises(TransactionNotFound):
            PostingService(db_session).get_transaction(404)
