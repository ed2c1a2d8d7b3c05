"""Logging setup."""

from ledger_core.observability.logging import setup_logging

__all__ = ["setup_logging"]
