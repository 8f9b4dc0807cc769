"""Async PostgreSQL repositories using asyncpg connection pooling"""

from database.repositories_async.base import BaseRepository
from database.repositories_async.ledger import LedgerRepository
from database.repositories_async.submissions import SubmissionRepository

__all__ = [
    "BaseRepository",
    "LedgerRepository",
    "SubmissionRepository",
]
