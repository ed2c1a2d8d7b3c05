"""
Account API endpoints.

Balance, history and integrity reads for a single account, plus
the minimal lifecycle operations. The layer is thin: it maps
ledger errors to HTTP status codes and delegates everything else
to the services.
"""

from datetime import date, datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ledger_core.config import get_settings
from ledger_core.exceptions import (
    AccountNotFound,
    DuplicateAccount,
    LedgerError,
)
from ledger_core.models.base import get_db
from ledger_core.money import Money
from ledger_core.schemas.account import (
    AccountCreate,
    AccountResponse,
    AccountBalanceResponse,
    BalanceHistoryResponse,
    BalancePointResponse,
    IntegrityReportResponse,
    NetWorthResponse,
)
from ledger_core.services.account_service import AccountService
from ledger_core.services.balance_service import BalanceService
from ledger_core.services.integrity_service import IntegrityService

router = APIRouter(prefix="/accounts", tags=["Accounts"])


@router.post("", response_model=AccountResponse, status_code=201)
def create_account(
    request: AccountCreate,
    db: Session = Depends(get_db),
):
    """Create a new account with a zero balance."""
    service = AccountService(db)
    try:
        account = service.create_account(request)
        db.commit()
        return account
    except DuplicateAccount as e:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(e))


@router.get("", response_model=list[AccountResponse])
def list_accounts(
    currency: str | None = Query(default=None, min_length=3, max_length=3),
    include_inactive: bool = False,
    db: Session = Depends(get_db),
):
    """List accounts by id, optionally for one currency."""
    try:
        return AccountService(db).list_accounts(currency, include_inactive)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# Declared before /{account_id} so "net-worth" is not parsed as an id
@router.get("/net-worth", response_model=NetWorthResponse)
def get_net_worth(
    currency: str = Query(default="USD", min_length=3, max_length=3),
    db: Session = Depends(get_db),
):
    """Total assets minus total liabilities over active accounts."""
    try:
        summary = BalanceService(db).net_worth(currency)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return NetWorthResponse(
        currency=summary.currency,
        total_assets=summary.total_assets,
        total_liabilities=summary.total_liabilities,
        net_worth=summary.net_worth,
        formatted=summary.formatted(),
    )


@router.get("/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: int,
    db: Session = Depends(get_db),
):
    try:
        return AccountService(db).get_account(account_id)
    except AccountNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{account_id}/deactivate", response_model=AccountResponse)
def deactivate_account(
    account_id: int,
    db: Session = Depends(get_db),
):
    """Soft-delete an account. Its entries and history remain."""
    try:
        account = AccountService(db).deactivate_account(account_id)
        db.commit()
        return account
    except AccountNotFound as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{account_id}/balance", response_model=AccountBalanceResponse)
def get_account_balance(
    account_id: int,
    db: Session = Depends(get_db),
):
    """
    Current balance, recomputed from entries.

    The cached balance is not used here; see /integrity for the
    comparison between the two.
    """
    try:
        account = AccountService(db).get_account(account_id)
        balance = BalanceService(db).current_balance(account_id)
    except AccountNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    return AccountBalanceResponse(
        account_id=account.id,
        account_code=account.code,
        account_type=account.account_type,
        balance=balance,
        formatted=str(Money(balance, account.currency)),
        currency=account.currency,
    )


@router.get("/{account_id}/history", response_model=BalanceHistoryResponse)
def get_balance_history(
    account_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
    db: Session = Depends(get_db),
):
    """
    End-of-day balances between two UTC dates, inclusive.

    Defaults to the last HISTORY_DEFAULT_DAYS days up to today.
    """
    if end_date is None:
        end_date = datetime.now(timezone.utc).date()
    if start_date is None:
        start_date = end_date - timedelta(days=get_settings().HISTORY_DEFAULT_DAYS)

    try:
        account = AccountService(db).get_account(account_id)
        points = BalanceService(db).balance_history(account_id, start_date, end_date)
    except AccountNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except LedgerError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return BalanceHistoryResponse(
        account_id=account.id,
        currency=account.currency,
        start_date=start_date,
        end_date=end_date,
        points=[BalancePointResponse(date=p.date, balance=p.balance) for p in points],
    )


@router.get("/{account_id}/integrity", response_model=IntegrityReportResponse)
def get_integrity_report(
    account_id: int,
    db: Session = Depends(get_db),
):
    """Cached balance against the balance the entries imply."""
    try:
        report = IntegrityService(db).report(account_id)
    except AccountNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    return IntegrityReportResponse(
        account_id=report.account_id,
        cached_balance=report.cached_balance,
        computed_balance=report.computed_balance,
        is_valid=report.is_valid,
    )


@router.post("/{account_id}/reconcile", response_model=IntegrityReportResponse)
def reconcile_account(
    account_id: int,
    db: Session = Depends(get_db),
):
    """Repair cache drift and return the resulting report."""
    service = IntegrityService(db)
    try:
        service.reconcile(account_id)
        db.commit()
        report = service.report(account_id)
    except AccountNotFound as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))

    return IntegrityReportResponse(
        account_id=report.account_id,
        cached_balance=report.cached_balance,
        computed_balance=report.computed_balance,
        is_valid=report.is_valid,
    )
