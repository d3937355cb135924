"""Repository layer for DB access only.

Repositories accept an AsyncSession explicitly and never commit; the
DatabaseManager session context owns the transaction.
"""

from .base import BaseRepository
from .context_document_repo import ContextDocumentRepository
from .prediction_repo import PredictionRepository

__all__ = [
    "BaseRepository",
    "ContextDocumentRepository",
    "PredictionRepository",
]
