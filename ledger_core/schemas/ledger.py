"""
Pydantic schemas for posting and reading transactions.

These define the API contract. A draft is deliberately lenient
about amounts: a zero or negative amount is a ledger rule, so the
posting service rejects it with InvalidAmount in its documented
order, after account and currency checks, rather than the schema
rejecting it first.
"""

import uuid
import datetime as dt
from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator

from ledger_core.models.enums import EntryType
from ledger_core.money import normalize_currency


def to_utc_day(value):
    """
    Reduce a date or datetime to its UTC calendar day.

    Aware datetimes are converted to UTC first; naive ones are
    taken to already be UTC.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, str) and "T" in value:
        return to_utc_day(datetime.fromisoformat(value.replace("Z", "+00:00")))
    return value


# --- Request Schemas ---

class EntryDraft(BaseModel):
    """A single debit or credit in a transaction draft."""
    account_id: int
    entry_type: EntryType
    amount: int
    currency: str = Field(min_length=3, max_length=3)

    @field_validator("currency")
    @classmethod
    def currency_code(cls, v: str) -> str:
        return normalize_currency(v)


class TransactionDraft(BaseModel):
    """
    A transaction to be posted: a date, a description, and the
    entries that must balance per currency.

    idempotency_key is optional. When given, posting the same key
    twice returns the first transaction instead of writing again.
    """
    date: dt.date
    description: str = Field(min_length=1, max_length=255)
    entries: list[EntryDraft] = Field(min_length=1)
    idempotency_key: str | None = Field(default=None, min_length=1, max_length=100)

    @field_validator("date", mode="before")
    @classmethod
    def utc_calendar_day(cls, v):
        return to_utc_day(v)


class DescriptionUpdate(BaseModel):
    description: str = Field(min_length=1, max_length=255)


class ReversalRequest(BaseModel):
    date: dt.date | None = None
    idempotency_key: str | None = Field(default=None, min_length=1, max_length=100)

    @field_validator("date", mode="before")
    @classmethod
    def utc_calendar_day(cls, v):
        return to_utc_day(v)


# --- Response Schemas ---

class LedgerEntryResponse(BaseModel):
    """Single entry in API responses."""
    id: int
    transaction_id: int
    account_id: int
    entry_type: EntryType
    amount: int
    currency: str
    transaction_date: dt.date
    created_at: datetime

    model_config = {"from_attributes": True}


class TransactionResponse(BaseModel):
    id: int
    external_id: uuid.UUID
    idempotency_key: str | None
    transaction_date: dt.date
    description: str
    reverses_id: int | None
    created_at: datetime
    entries: list[LedgerEntryResponse]

    model_config = {"from_attributes": True}


class CurrencyTotalsResponse(BaseModel):
    currency: str
    total_debits: int
    total_credits: int


class TransactionCheckResponse(BaseModel):
    transaction_id: int
    is_balanced: bool
    totals: list[CurrencyTotalsResponse]


class TrialBalanceResponse(BaseModel):
    """Debit and credit totals over every entry, per currency."""
    is_balanced: bool
    totals: list[CurrencyTotalsResponse]


class IntegrityViolationResponse(BaseModel):
    account_id: int
    cached_balance: int
    computed_balance: int
    drift: int


class SweepResponse(BaseModel):
    """Accounts whose cached balance had drifted and was repaired."""
    violations: list[IntegrityViolationResponse]
