"""
Transaction API endpoints.

Posting, reading, reversing and re-describing transactions.
Every write either commits completely or is rolled back before
the error is returned; no partial result is ever sent.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ledger_core.exceptions import (
    AccountNotFound,
    AlreadyReversed,
    LedgerError,
    PostingConflict,
    TransactionNotFound,
)
from ledger_core.models.base import get_db
from ledger_core.schemas.ledger import (
    CurrencyTotalsResponse,
    DescriptionUpdate,
    ReversalRequest,
    TransactionCheckResponse,
    TransactionDraft,
    TransactionResponse,
)
from ledger_core.services.integrity_service import IntegrityService
from ledger_core.services.posting_service import PostingService, commit_with_retry

router = APIRouter(prefix="/transactions", tags=["Transactions"])


def _status_for(error: LedgerError) -> int:
    if isinstance(error, (AccountNotFound, TransactionNotFound)):
        return 404
    if isinstance(error, (AlreadyReversed, PostingConflict)):
        return 409
    return 400


@router.post("", response_model=TransactionResponse, status_code=201)
def post_transaction(
    request: TransactionDraft,
    db: Session = Depends(get_db),
):
    """
    Post a balanced transaction.

    Rejected with 404 if an account is missing or inactive and
    400 for a currency mismatch, a non-positive amount or an
    unbalanced draft. A post that keeps losing races with
    concurrent posts to the same accounts gets 409.
    """
    try:
        txn_id = commit_with_retry(db, lambda service: service.post(request))
        return PostingService(db).get_transaction(txn_id)
    except LedgerError as e:
        db.rollback()
        raise HTTPException(
            status_code=_status_for(e),
            detail={"error": type(e).__name__, "message": str(e)},
        )


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
):
    try:
        return PostingService(db).get_transaction(transaction_id)
    except TransactionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.patch("/{transaction_id}", response_model=TransactionResponse)
def update_description(
    transaction_id: int,
    request: DescriptionUpdate,
    db: Session = Depends(get_db),
):
    """Edit the description. Dates and amounts cannot be edited."""
    service = PostingService(db)
    try:
        txn = service.update_description(transaction_id, request.description)
        db.commit()
        return txn
    except TransactionNotFound as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))


@router.post(
    "/{transaction_id}/reverse",
    response_model=TransactionResponse,
    status_code=201,
)
def reverse_transaction(
    transaction_id: int,
    request: ReversalRequest,
    db: Session = Depends(get_db),
):
    """Post a compensating transaction that undoes this one."""
    def reverse(service: PostingService):
        return service.reverse(
            transaction_id,
            idempotency_key=request.idempotency_key,
            on=request.date,
        )

    try:
        txn_id = commit_with_retry(db, reverse)
        return PostingService(db).get_transaction(txn_id)
    except LedgerError as e:
        db.rollback()
        raise HTTPException(
            status_code=_status_for(e),
            detail={"error": type(e).__name__, "message": str(e)},
        )


@router.get("/{transaction_id}/check", response_model=TransactionCheckResponse)
def check_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
):
    """Per-currency debit and credit totals of a posted transaction."""
    try:
        check = IntegrityService(db).check_transaction(transaction_id)
    except TransactionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    return TransactionCheckResponse(
        transaction_id=check.transaction_id,
        is_balanced=check.is_balanced,
        totals=[
            CurrencyTotalsResponse(
                currency=t.currency,
                total_debits=t.total_debits,
                total_credits=t.total_credits,
            )
            for t in check.totals
        ],
    )
