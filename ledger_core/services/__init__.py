"""Business logic services."""

from ledger_core.services.account_service import AccountService
from ledger_core.services.balance_service import BalanceService
from ledger_core.services.integrity_service import IntegrityService
from ledger_core.services.posting_service import PostingService, post_with_retry

__all__ = [
    "AccountService",
    "BalanceService",
    "IntegrityService",
    "PostingService",
    "post_with_retry",
]
