"""Services: stateful components composed over repositories and the database manager."""

from .document_store import PutResult, VersionedDocumentStore

__all__ = [
    "PutResult",
    "VersionedDocumentStore",
]
