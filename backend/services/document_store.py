"""
Append-only, idempotent versioning of named evidence documents within a scope.

put() is read-then-append; put_derived also builds the new content from the
latest version inside the same critical section. Writers to the same
(name, scope) are serialized by an in-process lock; writers in other processes
are caught by the (name, scope, version) unique constraint and surface as
ConflictError.
Every operation runs in its own transaction, so a failed or cancelled put
leaves no partial version behind.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Set, Tuple

from core.clock import as_utc
from core.database import DatabaseManager
from core.errors import DocumentNotFoundError
from domain.documents import VersionedDocument
from models.context_document import ContextDocument
from repositories.context_document_repo import ContextDocumentRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PutResult:
    """Outcome of a put: the latest version after the call, and whether it was written now.

    based_on_version is the version that was latest when the content was decided
    (None for a first write); content is what was compared and, if created, stored.
    """

    version: int
    created: bool
    based_on_version: Optional[int] = None
    content: str = ""


# Builds the content to store from the latest stored version (None when absent).
ContentBuilder = Callable[[Optional[VersionedDocument]], str]


def _to_domain(row: ContextDocument) -> VersionedDocument:
    return VersionedDocument(
        name=row.name,
        scope=row.scope,
        version=row.version,
        content=row.content,
        created_at=as_utc(row.created_at_utc),
    )


class VersionedDocumentStore:
    """Versioned document store over the context_documents table."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db
        # Entries live only while a writer holds the lock.
        self._locks: "weakref.WeakValueDictionary[Tuple[str, str], asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, name: str, scope: str) -> asyncio.Lock:
        key = (name, scope)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def put_derived(
        self, name: str, scope: str, build_content: ContentBuilder, now: datetime
    ) -> PutResult:
        """
        Read the latest version, build the new content from it and write it if it
        differs, all under the (name, scope) lock and in one transaction. No other
        writer in this process can slip a version in between the read and the write.
        """
        lock = self._lock_for(name, scope)
        async with lock:
            async with self._db.session() as session:
                repo = ContextDocumentRepository(session)
                row = await repo.get_latest(name, scope)
                latest = _to_domain(row) if row is not None else None
                content = build_content(latest)
                based_on = latest.version if latest is not None else None
                if latest is not None and latest.content == content:
                    logger.debug(
                        "Document %s unchanged in scope %s (version %d)", name, scope, latest.version
                    )
                    return PutResult(
                        version=latest.version, created=False, based_on_version=based_on, content=content
                    )
                next_version = 0 if latest is None else latest.version + 1
                await repo.insert_version(name, scope, next_version, content, now)
            logger.info("Saved document %s version %d in scope %s", name, next_version, scope)
            return PutResult(version=next_version, created=True, based_on_version=based_on, content=content)

    async def put_document(self, name: str, scope: str, content: str, now: datetime) -> PutResult:
        """Write a new version only if content differs from the latest one."""
        return await self.put_derived(name, scope, lambda _latest: content, now)

    async def put(self, name: str, scope: str, content: str, now: datetime) -> int:
        """Idempotent put; returns the latest version number after the call."""
        result = await self.put_document(name, scope, content, now)
        return result.version

    async def get_latest(self, name: str, scope: str) -> Optional[VersionedDocument]:
        """Latest version, or None when the document was never written."""
        async with self._db.session() as session:
            row = await ContextDocumentRepository(session).get_latest(name, scope)
            return _to_domain(row) if row is not None else None

    async def get_version(self, name: str, scope: str, version: int) -> VersionedDocument:
        """Exact version; DocumentNotFoundError if it was never written (never clamps)."""
        async with self._db.session() as session:
            row = await ContextDocumentRepository(session).get_by_version(name, scope, version)
            if row is None:
                raise DocumentNotFoundError(name, scope, version)
            return _to_domain(row)

    async def list_names(self, scope: str) -> Set[str]:
        async with self._db.session() as session:
            return set(await ContextDocumentRepository(session).list_names(scope))

    async def list_versions(self, name: str, scope: str) -> List[VersionedDocument]:
        """All versions ascending; empty list when the document does not exist."""
        async with self._db.session() as session:
            rows = await ContextDocumentRepository(session).list_versions(name, scope)
            return [_to_domain(r) for r in rows]
