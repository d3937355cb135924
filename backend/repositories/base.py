from __future__ import annotations

from typing import Generic, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ConflictError
from models.base import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Base repository with common helpers.

    No commits are performed here; the session owner (DatabaseManager.session)
    commits or rolls back.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add_and_flush(self, entity: T, conflict_detail: str) -> T:
        """Add and flush so unique-constraint violations surface here as ConflictError."""
        self.session.add(entity)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise ConflictError(conflict_detail) from exc
        return entity

