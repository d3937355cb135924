from __future__ import annotations

import json
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.clock import as_utc
from core.errors import ConflictError, PredictionNotFoundError
from domain.documents import DocumentReference
from domain.entities import Entity
from domain.predictions import (
    NO_REPREDICTION,
    PredictionRecord,
    PredictionValue,
    value_from_json,
    value_to_json,
)
from models.prediction import Prediction
from .base import BaseRepository


def _references_to_json(references: Iterable[DocumentReference]) -> str:
    return json.dumps([r.to_dict() for r in references])


def _row_to_record(row: Prediction) -> PredictionRecord:
    raw_refs = json.loads(row.context_documents_json or "[]")
    return PredictionRecord(
        entity_key=row.entity_key,
        model=row.model,
        scope=row.scope,
        created_at=as_utc(row.created_at_utc),
        value=value_from_json(row.value_json),
        context_documents=tuple(DocumentReference.from_stored(r) for r in raw_refs),
        reprediction_index=row.reprediction_index,
        entity_text=row.entity_text,
    )


class PredictionRepository(BaseRepository[Prediction]):
    """Repository for Prediction rows; returns domain PredictionRecord values."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def _latest_row(self, entity_key: str, model: str, scope: str) -> Optional[Prediction]:
        stmt = (
            select(Prediction)
            .where(Prediction.entity_key == entity_key)
            .where(Prediction.model == model)
            .where(Prediction.scope == scope)
            .order_by(Prediction.reprediction_index.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_latest(self, entity_key: str, model: str, scope: str) -> Optional[PredictionRecord]:
        """Latest prediction (highest reprediction index) or None."""
        row = await self._latest_row(entity_key, model, scope)
        return _row_to_record(row) if row is not None else None

    async def get_by_index(
        self, entity_key: str, model: str, scope: str, reprediction_index: int
    ) -> PredictionRecord:
        """Exact reprediction; PredictionNotFoundError if that index was never written."""
        stmt = (
            select(Prediction)
            .where(Prediction.entity_key == entity_key)
            .where(Prediction.model == model)
            .where(Prediction.scope == scope)
            .where(Prediction.reprediction_index == reprediction_index)
        )
        result = await self.session.execute(stmt)
        row = result.scalars().first()
        if row is None:
            raise PredictionNotFoundError(
                f"No prediction {reprediction_index} for {entity_key!r} ({model}, {scope})"
            )
        return _row_to_record(row)

    async def get_reprediction_index(self, entity_key: str, model: str, scope: str) -> int:
        """Current reprediction index, NO_REPREDICTION (-1) if nothing is stored."""
        stmt = (
            select(func.max(Prediction.reprediction_index))
            .where(Prediction.entity_key == entity_key)
            .where(Prediction.model == model)
            .where(Prediction.scope == scope)
        )
        result = await self.session.execute(stmt)
        current = result.scalar_one_or_none()
        return NO_REPREDICTION if current is None else int(current)

    async def save_prediction(
        self,
        entity: Entity,
        value: PredictionValue,
        model: str,
        scope: str,
        references: Iterable[DocumentReference],
        created_at_utc: datetime,
        *,
        override: bool = False,
    ) -> PredictionRecord:
        """
        Save the first prediction for an entity, or replace the latest one in place
        when override=True (value, references and timestamp; index unchanged).
        Without override an existing prediction is a ConflictError.
        """
        existing = await self._latest_row(entity.entity_key, model, scope)
        if existing is not None:
            if not override:
                raise ConflictError(
                    f"Prediction for {entity.entity_key!r} already exists ({model}, {scope})"
                )
            existing.value_json = value_to_json(value)
            existing.context_documents_json = _references_to_json(references)
            existing.created_at_utc = as_utc(created_at_utc)
            self.session.add(existing)
            await self.session.flush()
            return _row_to_record(existing)

        row = Prediction(
            entity_key=entity.entity_key,
            entity_kind=entity.kind,
            model=model,
            scope=scope,
            created_at_utc=as_utc(created_at_utc),
            value_json=value_to_json(value),
            context_documents_json=_references_to_json(references),
            reprediction_index=0,
            entity_text=entity.display_name,
        )
        await self.add_and_flush(row, conflict_detail=f"Concurrent first prediction for {entity.entity_key!r}")
        return _row_to_record(row)

    async def save_reprediction(
        self,
        entity: Entity,
        value: PredictionValue,
        model: str,
        scope: str,
        references: Iterable[DocumentReference],
        created_at_utc: datetime,
        reprediction_index: int,
    ) -> PredictionRecord:
        """Append a new prediction row at reprediction_index; prior rows stay readable.

        The index must be exactly one past the stored index (0 when none exists).
        """
        current = await self.get_reprediction_index(entity.entity_key, model, scope)
        expected = 0 if current == NO_REPREDICTION else current + 1
        if reprediction_index != expected:
            raise ConflictError(
                f"Reprediction index {reprediction_index} for {entity.entity_key!r} "
                f"does not follow stored index {current}"
            )
        row = Prediction(
            entity_key=entity.entity_key,
            entity_kind=entity.kind,
            model=model,
            scope=scope,
            created_at_utc=as_utc(created_at_utc),
            value_json=value_to_json(value),
            context_documents_json=_references_to_json(references),
            reprediction_index=reprediction_index,
            entity_text=entity.display_name,
        )
        await self.add_and_flush(
            row,
            conflict_detail=f"Reprediction {reprediction_index} for {entity.entity_key!r} already written",
        )
        return _row_to_record(row)

    async def list_latest(self, model: str, scope: str) -> Dict[str, PredictionRecord]:
        """Latest prediction per entity_key for (model, scope)."""
        stmt = (
            select(Prediction)
            .where(Prediction.model == model)
            .where(Prediction.scope == scope)
            .order_by(Prediction.entity_key, Prediction.reprediction_index)
        )
        result = await self.session.execute(stmt)
        latest: Dict[str, PredictionRecord] = {}
        for row in result.scalars().all():
            latest[row.entity_key] = _row_to_record(row)
        return latest

    async def list_history(self, entity_key: str, model: str, scope: str) -> List[PredictionRecord]:
        """All predictions for an entity, ascending by reprediction index."""
        stmt = (
            select(Prediction)
            .where(Prediction.entity_key == entity_key)
            .where(Prediction.model == model)
            .where(Prediction.scope == scope)
            .order_by(Prediction.reprediction_index)
        )
        result = await self.session.execute(stmt)
        return [_row_to_record(r) for r in result.scalars().all()]
