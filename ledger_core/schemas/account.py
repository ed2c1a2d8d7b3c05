"""
Pydantic schemas for account operations.
"""

import datetime as dt
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from ledger_core.models.enums import AccountType
from ledger_core.money import normalize_currency


class AccountCreate(BaseModel):
    """Request to create a new account."""
    code: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1, max_length=100)
    account_type: AccountType
    currency: str = Field(default="USD", min_length=3, max_length=3)

    @field_validator("currency")
    @classmethod
    def currency_code(cls, v: str) -> str:
        return normalize_currency(v)


class AccountResponse(BaseModel):
    id: int
    code: str
    name: str
    account_type: AccountType
    currency: str
    cached_balance: int
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class AccountBalanceResponse(BaseModel):
    """Balance recomputed from entries, in minor units."""
    account_id: int
    account_code: str
    account_type: AccountType
    balance: int
    formatted: str
    currency: str


class BalancePointResponse(BaseModel):
    date: dt.date
    balance: int


class BalanceHistoryResponse(BaseModel):
    account_id: int
    currency: str
    start_date: dt.date
    end_date: dt.date
    points: list[BalancePointResponse]


class IntegrityReportResponse(BaseModel):
    account_id: int
    cached_balance: int
    computed_balance: int
    is_valid: bool


class NetWorthResponse(BaseModel):
    currency: str
    total_assets: int
    total_liabilities: int
    net_worth: int
    formatted: str
