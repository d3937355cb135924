"""SQLAlchemy models for the ledger: versioned context documents and predictions."""

from .base import Base
from .context_document import ContextDocument
from .prediction import Prediction

__all__ = [
    "Base",
    "ContextDocument",
    "Prediction",
]
