"""
Ledger Core: FastAPI Application.

This is the entry point for the application.
All routers are registered here.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from ledger_core.config import get_settings
from ledger_core.observability.logging import setup_logging
from ledger_core.api.health import router as health_router
from ledger_core.api.accounts import router as accounts_router
from ledger_core.api.transactions import router as transactions_router
from ledger_core.api.ledger import router as ledger_router

settings = get_settings()
setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Double-entry ledger: posting, balances, history and integrity checks",
)


@app.exception_handler(OperationalError)
async def storage_unavailable(request: Request, exc: OperationalError):
    """
    Connection loss or timeout talking to the database.

    Reported as 503 so clients can tell "try again later" apart
    from "your input was invalid". Nothing is retried here.
    """
    logger.error(
        "Storage failure",
        extra={"path": request.url.path, "error": str(exc.orig)},
    )
    return JSONResponse(
        status_code=503,
        content={"detail": "Ledger storage unavailable"},
    )


# Register routers
app.include_router(health_router)
app.include_router(accounts_router)
app.include_router(transactions_router)
app.include_router(ledger_router)
