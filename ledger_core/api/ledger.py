"""
Ledger-wide API endpoints.

Checks that span every account rather than one: the trial
balance and the integrity sweep. Meant for operators and
scheduled jobs, not for end-user clients.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ledger_core.models.base import get_db
from ledger_core.schemas.ledger import (
    CurrencyTotalsResponse,
    IntegrityViolationResponse,
    SweepResponse,
    TrialBalanceResponse,
)
from ledger_core.services.integrity_service import IntegrityService

router = APIRouter(prefix="/ledger", tags=["Ledger"])


@router.get("/trial-balance", response_model=TrialBalanceResponse)
def get_trial_balance(db: Session = Depends(get_db)):
    """
    Total debits and credits per currency over the whole ledger.

    Every posted transaction balances, so the totals must match.
    is_balanced false means the stored entries were tampered with.
    """
    trial = IntegrityService(db).trial_balance()
    return TrialBalanceResponse(
        is_balanced=trial.is_balanced,
        totals=[
            CurrencyTotalsResponse(
                currency=t.currency,
                total_debits=t.total_debits,
                total_credits=t.total_credits,
            )
            for t in trial.totals
        ],
    )


@router.post("/sweep", response_model=SweepResponse)
def run_integrity_sweep(db: Session = Depends(get_db)):
    """
    Validate every account's cached balance and repair drift.

    Returns the violations found; an empty list means every
    cache already agreed with its entries.
    """
    violations = IntegrityService(db).sweep()
    db.commit()

    return SweepResponse(
        violations=[
            IntegrityViolationResponse(
                account_id=v.account_id,
                cached_balance=v.cached_balance,
                computed_balance=v.computed_balance,
                drift=v.drift,
            )
            for v in violations
        ],
    )
