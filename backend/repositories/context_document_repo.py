"""
Versioned persistence substrate for context documents (DB access only).

insert_version never overwrites: a row per (name, scope, version), guarded by a
unique constraint. Deciding *whether* to write a version is the store's job.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import distinct, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.clock import as_utc
from models.context_document import ContextDocument
from .base import BaseRepository


class ContextDocumentRepository(BaseRepository[ContextDocument]):
    """Repository for ContextDocument rows."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def insert_version(
        self,
        name: str,
        scope: str,
        version: int,
        content: str,
        created_at_utc: datetime,
    ) -> ContextDocument:
        """Insert one version row; ConflictError if that version already exists."""
        row = ContextDocument(
            name=name,
            scope=scope,
            version=version,
            content=content,
            created_at_utc=as_utc(created_at_utc),
        )
        return await self.add_and_flush(
            row,
            conflict_detail=f"Document {name!r} version {version} already written in scope {scope!r}",
        )

    async def get_latest(self, name: str, scope: str) -> Optional[ContextDocument]:
        """Return the highest version row for (name, scope) or None."""
        stmt = (
            select(ContextDocument)
            .where(ContextDocument.name == name)
            .where(ContextDocument.scope == scope)
            .order_by(ContextDocument.version.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_by_version(self, name: str, scope: str, version: int) -> Optional[ContextDocument]:
        """Return the exact version row or None (no clamping)."""
        stmt = (
            select(ContextDocument)
            .where(ContextDocument.name == name)
            .where(ContextDocument.scope == scope)
            .where(ContextDocument.version == version)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def list_names(self, scope: str) -> List[str]:
        """Distinct document names with at least one version in scope, sorted."""
        stmt = (
            select(distinct(ContextDocument.name))
            .where(ContextDocument.scope == scope)
            .order_by(ContextDocument.name)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_versions(self, name: str, scope: str) -> List[ContextDocument]:
        """All version rows for (name, scope), ascending by version."""
        stmt = (
            select(ContextDocument)
            .where(ContextDocument.name == name)
            .where(ContextDocument.scope == scope)
            .order_by(ContextDocument.version)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

