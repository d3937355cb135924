"""Predictions API: latest stored prediction per entity and the reprediction history of one entity."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from core.dependencies import get_db_session
from domain.predictions import PredictionRecord
from repositories.prediction_repo import PredictionRepository

router = APIRouter(prefix="/predictions", tags=["predictions"])


class DocumentReferenceResponse(BaseModel):
    canonical_name: str
    display_label: str


class PredictionResponse(BaseModel):
    entity_key: str
    entity_text: Optional[str] = None
    model: str
    scope: str
    created_at: datetime
    value: dict
    reprediction_index: int
    context_documents: List[DocumentReferenceResponse]

    @classmethod
    def from_record(cls, record: PredictionRecord) -> "PredictionResponse":
        return cls(
            entity_key=record.entity_key,
            entity_text=record.entity_text,
            model=record.model,
            scope=record.scope,
            created_at=record.created_at,
            value=record.value.to_dict(),
            reprediction_index=record.reprediction_index,
            context_documents=[DocumentReferenceResponse(**r.to_dict()) for r in record.context_documents],
        )


@router.get(
    "/{scope}/{model}",
    summary="Latest prediction per entity",
    response_model=List[PredictionResponse],
)
async def list_latest_predictions(
    scope: str,
    model: str,
    session: AsyncSession = Depends(get_db_session),
) -> List[PredictionResponse]:
    latest = await PredictionRepository(session).list_latest(model, scope)
    return [PredictionResponse.from_record(latest[key]) for key in sorted(latest)]


@router.get(
    "/{scope}/{model}/history",
    summary="All repredictions of one entity",
    description="entity_key is passed as a query parameter because match keys contain '|' and ':'.",
    response_model=List[PredictionResponse],
)
async def get_prediction_history(
    scope: str,
    model: str,
    entity_key: str,
    session: AsyncSession = Depends(get_db_session),
) -> List[PredictionResponse]:
    history = await PredictionRepository(session).list_history(entity_key, model, scope)
    if not history:
        raise HTTPException(status_code=404, detail=f"No predictions for {entity_key!r} ({model}, {scope})")
    return [PredictionResponse.from_record(r) for r in history]
