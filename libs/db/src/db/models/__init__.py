"""Shared SQLAlchemy models registry for the workspace database.

Currently holds the transaction document table used by ``receipt_ledger``.
"""

from .ledger import Base, LedgerTransaction

__all__ = [
    "Base",
    "LedgerTransaction",
]
