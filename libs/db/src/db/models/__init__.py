"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the ledger catalog models used by ``bookkeeping_assistant``.
"""

from .ledger import BaEntry, BaSubject, Base

__all__ = [
    "Base",
    "BaEntry",
    "BaSubject",
]
