"""Prediction cycle: normal reuse, override, reprediction of outdated predictions, dry-run."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

import pytest

from core.errors import InvalidRequestError
from domain.documents import DocumentReference
from domain.entities import Entity, MatchEntity
from domain.predictions import PredictionValue, ScorePrediction
from pipeline.prediction_cycle import (
    ACTION_AT_LIMIT,
    ACTION_CREATED,
    ACTION_FAILED,
    ACTION_OVERRIDDEN,
    ACTION_REPREDICTED,
    ACTION_REUSED,
    ACTION_UP_TO_DATE,
    PredictionCycle,
)
from pipeline.predictor_base import Predictor, PredictorDocument
from repositories.prediction_repo import PredictionRepository

SCOPE = "ehonda-test"
T0 = datetime(2025, 8, 25, 9, 0, tzinfo=timezone.utc)
KICKOFF = datetime(2025, 8, 30, 13, 30, tzinfo=timezone.utc)
MATCH = MatchEntity("FC Bayern München", "RB Leipzig", KICKOFF)
OTHER = MatchEntity("Borussia Dortmund", "1. FC Union Berlin", KICKOFF)


class ScriptedPredictor(Predictor):
    """Returns queued values in order; records which documents it was shown."""

    def __init__(self, *values: Optional[PredictionValue]) -> None:
        self._values = list(values)
        self.calls: List[Sequence[PredictorDocument]] = []

    @property
    def model(self) -> str:
        return "test-model"

    async def predict(self, entity: Entity, documents: Sequence[PredictorDocument]) -> Optional[PredictionValue]:
        self.calls.append(documents)
        return self._values.pop(0)


async def _history(db, entity=MATCH):
    async with db.session() as session:
        return await PredictionRepository(session).list_history(entity.entity_key, "test-model", SCOPE)


@pytest.mark.asyncio
async def test_normal_mode_creates_then_reuses(db, store):
    await store.put("recent-history-fcb.csv", SCOPE, "v0", T0)
    predictor = ScriptedPredictor(ScorePrediction(2, 1))
    cycle = PredictionCycle(db, store, predictor)

    first = await cycle.run([MATCH], SCOPE, T0 + timedelta(hours=1))
    second = await cycle.run([MATCH], SCOPE, T0 + timedelta(hours=2))

    assert first.outcomes[0].action == ACTION_CREATED
    assert first.outcomes[0].value == "2:1"
    assert second.outcomes[0].action == ACTION_REUSED
    assert len(predictor.calls) == 1
    history = await _history(db)
    assert len(history) == 1
    assert history[0].context_documents == (DocumentReference("recent-history-fcb.csv"),)


@pytest.mark.asyncio
async def test_predictor_sees_latest_document_versions(db, store):
    await store.put("x.csv", SCOPE, "old", T0)
    await store.put("x.csv", SCOPE, "new", T0 + timedelta(minutes=1))
    predictor = ScriptedPredictor(ScorePrediction(1, 0))
    await PredictionCycle(db, store, predictor).run([MATCH], SCOPE, T0 + timedelta(hours=1))
    shown = predictor.calls[0]
    assert [(d.reference.canonical_name, d.version, d.content) for d in shown] == [("x.csv", 1, "new")]


@pytest.mark.asyncio
async def test_override_replaces_existing_prediction(db, store):
    predictor = ScriptedPredictor(ScorePrediction(2, 1), ScorePrediction(0, 0))
    cycle = PredictionCycle(db, store, predictor)
    await cycle.run([MATCH], SCOPE, T0)
    summary = await cycle.run([MATCH], SCOPE, T0 + timedelta(days=1), override=True)
    assert summary.outcomes[0].action == ACTION_OVERRIDDEN
    history = await _history(db)
    assert [h.value for h in history] == [ScorePrediction(0, 0)]
    assert history[0].created_at == T0 + timedelta(days=1)


@pytest.mark.asyncio
async def test_repredict_skips_up_to_date_prediction(db, store):
    await store.put("x.csv", SCOPE, "v0", T0)
    predictor = ScriptedPredictor(ScorePrediction(2, 1))
    cycle = PredictionCycle(db, store, predictor)
    await cycle.run([MATCH], SCOPE, T0 + timedelta(hours=1))
    summary = await cycle.run([MATCH], SCOPE, T0 + timedelta(hours=2), repredict=True)
    assert summary.outcomes[0].action == ACTION_UP_TO_DATE
    assert len(predictor.calls) == 1


@pytest.mark.asyncio
async def test_repredict_outdated_prediction_appends_next_index(db, store):
    await store.put("x.csv", SCOPE, "v0", T0)
    predictor = ScriptedPredictor(ScorePrediction(2, 1), ScorePrediction(3, 1))
    cycle = PredictionCycle(db, store, predictor)
    await cycle.run([MATCH], SCOPE, T0 + timedelta(hours=1))
    await store.put("x.csv", SCOPE, "v1", T0 + timedelta(hours=2))

    summary = await cycle.run([MATCH], SCOPE, T0 + timedelta(hours=3), repredict=True)
    outcome = summary.outcomes[0]
    assert outcome.action == ACTION_REPREDICTED
    assert outcome.reprediction_index == 1
    assert "x.csv" in outcome.detail
    history = await _history(db)
    assert [(h.reprediction_index, h.value) for h in history] == [
        (0, ScorePrediction(2, 1)),
        (1, ScorePrediction(3, 1)),
    ]


@pytest.mark.asyncio
async def test_repredict_stops_at_limit(db, store):
    await store.put("x.csv", SCOPE, "v0", T0)
    predictor = ScriptedPredictor(ScorePrediction(2, 1))
    cycle = PredictionCycle(db, store, predictor)
    await cycle.run([MATCH], SCOPE, T0 + timedelta(hours=1), max_repredictions=0)
    await store.put("x.csv", SCOPE, "v1", T0 + timedelta(hours=2))

    summary = await cycle.run([MATCH], SCOPE, T0 + timedelta(hours=3), max_repredictions=0)
    assert summary.outcomes[0].action == ACTION_AT_LIMIT
    assert summary.mode == "repredict"
    assert len(predictor.calls) == 1


@pytest.mark.asyncio
async def test_repredict_without_existing_prediction_creates_first(db, store):
    predictor = ScriptedPredictor(ScorePrediction(1, 1))
    summary = await PredictionCycle(db, store, predictor).run([MATCH], SCOPE, T0, repredict=True)
    assert summary.outcomes[0].action == ACTION_CREATED
    assert summary.outcomes[0].reprediction_index == 0


@pytest.mark.asyncio
async def test_none_from_predictor_is_a_logged_failure_and_cycle_continues(db, store):
    predictor = ScriptedPredictor(None, ScorePrediction(1, 0))
    summary = await PredictionCycle(db, store, predictor).run([MATCH, OTHER], SCOPE, T0)
    assert [o.action for o in summary.outcomes] == [ACTION_FAILED, ACTION_CREATED]
    assert summary.failed[0].entity_key == MATCH.entity_key
    assert await _history(db) == []


@pytest.mark.asyncio
async def test_invalid_prediction_is_not_stored(db, store):
    predictor = ScriptedPredictor(ScorePrediction(-1, 0))
    summary = await PredictionCycle(db, store, predictor).run([MATCH], SCOPE, T0)
    assert summary.outcomes[0].action == ACTION_FAILED
    assert "non-negative" in summary.outcomes[0].detail
    assert await _history(db) == []


@pytest.mark.asyncio
async def test_dry_run_calls_no_predictor_and_writes_nothing(db, store):
    predictor = ScriptedPredictor()
    summary = await PredictionCycle(db, store, predictor).run([MATCH], SCOPE, T0, dry_run=True)
    assert summary.outcomes[0].action == ACTION_CREATED
    assert summary.to_dict()["dry_run"] is True
    assert predictor.calls == []
    assert await _history(db) == []


@pytest.mark.asyncio
async def test_override_with_repredict_is_rejected(db, store):
    cycle = PredictionCycle(db, store, ScriptedPredictor())
    with pytest.raises(InvalidRequestError):
        await cycle.run([MATCH], SCOPE, T0, override=True, repredict=True)
