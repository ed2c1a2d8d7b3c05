"""
Ledger error taxonomy.

Every error a caller can cause is a LedgerError. They subclass
ValueError so code that only cares about "bad input" can keep
catching ValueError, while the API layer can tell a missing
account apart from an unbalanced transaction.

Storage and connection failures are not wrapped here. They
surface as SQLAlchemy errors and mean "the system is
unavailable", not "your input was wrong".
"""


class LedgerError(ValueError):
    """Base class for all caller-facing ledger errors."""


class AccountNotFound(LedgerError):
    """Referenced account does not exist or is inactive."""

    def __init__(self, account_ids, reason: str = "not found"):
        if isinstance(account_ids, int):
            account_ids = [account_ids]
        self.account_ids = sorted(account_ids)
        self.reason = reason
        ids = ", ".join(str(i) for i in self.account_ids)
        super().__init__(f"Account {ids} {reason}")


class CurrencyMismatch(LedgerError):
    """An entry's currency disagrees with its account's currency."""

    def __init__(self, expected: str, actual: str, account_id: int | None = None):
        self.expected = expected
        self.actual = actual
        self.account_id = account_id
        where = f"Account {account_id}" if account_id is not None else "Money"
        super().__init__(
            f"{where} currency is {expected}, got {actual}"
        )


class InvalidAmount(LedgerError):
    """Amount is not a strictly positive whole number of minor units."""

    def __init__(self, amount, detail: str = "amount must be positive"):
        self.amount = amount
        super().__init__(f"Invalid amount {amount}: {detail}")


class UnbalancedTransaction(LedgerError):
    """Debit and credit sums disagree for at least one currency."""

    def __init__(self, imbalances: dict[str, tuple[int, int]]):
        # currency -> (total_debits, total_credits)
        self.imbalances = imbalances
        parts = [
            f"{currency}: debits={debits}, credits={credits}"
            for currency, (debits, credits) in sorted(imbalances.items())
        ]
        super().__init__(
            "Transaction does not balance (" + "; ".join(parts) + ")"
        )


class IntegrityViolation(LedgerError):
    """A cached balance disagrees with the balance recomputed from entries."""

    def __init__(self, account_id: int, cached_balance: int, computed_balance: int):
        self.account_id = account_id
        self.cached_balance = cached_balance
        self.computed_balance = computed_balance
        super().__init__(
            f"Account {account_id} cached balance {cached_balance} "
            f"does not match ledger balance {computed_balance}"
        )

    @property
    def drift(self) -> int:
        return self.cached_balance - self.computed_balance


class TransactionNotFound(LedgerError):
    def __init__(self, transaction_id):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} not found")


class AlreadyReversed(LedgerError):
    def __init__(self, transaction_id, reversal_id):
        self.transaction_id = transaction_id
        self.reversal_id = reversal_id
        super().__init__(
            f"Transaction {transaction_id} already reversed "
            f"by transaction {reversal_id}"
        )


class DuplicateAccount(LedgerError):
    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Account with code '{code}' already exists")


class InvalidDateRange(LedgerError):
    def __init__(self, start_date, end_date):
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            f"start_date {start_date} is after end_date {end_date}"
        )


class ImmutableRecord(LedgerError):
    """Attempt to change or remove committed financial data in place."""


class PostingConflict(LedgerError):
    """Concurrent writers kept winning the race for the same rows."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Posting conflicted with concurrent writes {attempts} times; "
            f"nothing was written"
        )
