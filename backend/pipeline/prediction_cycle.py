"""
Prediction cycle: for each entity, reuse, create, override or repredict a
stored prediction from the latest evidence documents.

Modes:
  normal     existing prediction is reused; otherwise a first one is created
  override   the latest prediction is replaced in place (value, documents, time)
  repredict  a new reprediction is appended, but only while under the limit and
             only when the current prediction is outdated

Entities are processed one at a time in the given order. A failure for one
entity is recorded in the summary and the cycle moves on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from core.database import DatabaseManager
from core.errors import InvalidPredictionError
from domain.documents import DocumentReference
from domain.entities import Entity
from domain.predictions import NO_REPREDICTION, PredictionValue
from evaluation.staleness import StalenessEvaluator
from pipeline.predictor_base import Predictor, PredictorDocument
from pipeline.reprediction import next_action, validate_write_mode
from repositories.prediction_repo import PredictionRepository
from services.document_store import VersionedDocumentStore

logger = logging.getLogger(__name__)

ACTION_REUSED = "reused"
ACTION_CREATED = "created"
ACTION_OVERRIDDEN = "overridden"
ACTION_REPREDICTED = "repredicted"
ACTION_UP_TO_DATE = "up_to_date"
ACTION_AT_LIMIT = "skipped_at_limit"
ACTION_FAILED = "failed"

DocumentSelector = Callable[[Entity, Sequence[str]], Sequence[DocumentReference]]


def select_all_documents(entity: Entity, names: Sequence[str]) -> List[DocumentReference]:
    """Default selection: every document in the scope."""
    return [DocumentReference(canonical_name=n) for n in names]


@dataclass
class EntityOutcome:
    entity_key: str
    display_name: str
    action: str
    reprediction_index: Optional[int] = None
    value: Optional[str] = None
    detail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_key": self.entity_key,
            "display_name": self.display_name,
            "action": self.action,
            "reprediction_index": self.reprediction_index,
            "value": self.value,
            "detail": self.detail,
        }


@dataclass
class PredictionCycleSummary:
    scope: str
    model: str
    mode: str
    dry_run: bool
    outcomes: List[EntityOutcome] = field(default_factory=list)

    @property
    def failed(self) -> List[EntityOutcome]:
        return [o for o in self.outcomes if o.action == ACTION_FAILED]

    def counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for o in self.outcomes:
            counts[o.action] = counts.get(o.action, 0) + 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scope": self.scope,
            "model": self.model,
            "mode": self.mode,
            "dry_run": self.dry_run,
            "counts": self.counts(),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


class PredictionCycle:
    def __init__(
        self,
        db: DatabaseManager,
        store: VersionedDocumentStore,
        predictor: Predictor,
        staleness: Optional[StalenessEvaluator] = None,
        select_documents: DocumentSelector = select_all_documents,
    ) -> None:
        self._db = db
        self._store = store
        self._predictor = predictor
        self._staleness = staleness or StalenessEvaluator(store)
        self._select_documents = select_documents

    async def _gather_documents(self, entity: Entity, scope: str) -> List[PredictorDocument]:
        names = sorted(await self._store.list_names(scope))
        documents: List[PredictorDocument] = []
        for ref in self._select_documents(entity, names):
            latest = await self._store.get_latest(ref.canonical_name, scope)
            if latest is None:
                logger.warning("Document %s not found in scope %s; predicting without it", ref.canonical_name, scope)
                continue
            documents.append(PredictorDocument(reference=ref, version=latest.version, content=latest.content))
        return documents

    async def _predict(
        self, entity: Entity, scope: str
    ) -> Tuple[Optional[PredictionValue], List[DocumentReference]]:
        documents = await self._gather_documents(entity, scope)
        value = await self._predictor.predict(entity, documents)
        if value is None:
            return None, []
        problems = entity.validate_prediction(value)
        if problems:
            raise InvalidPredictionError(
                f"predictor returned an invalid prediction for {entity.display_name}: {'; '.join(problems)}"
            )
        return value, [d.reference for d in documents]

    async def _process(
        self,
        entity: Entity,
        scope: str,
        now: datetime,
        *,
        override: bool,
        repredict: bool,
        max_repredictions: Optional[int],
        excluded: Sequence[str],
        dry_run: bool,
    ) -> EntityOutcome:
        model = self._predictor.model
        outcome = EntityOutcome(entity_key=entity.entity_key, display_name=entity.display_name, action="")

        async with self._db.session() as session:
            repo = PredictionRepository(session)
            existing = await repo.get_latest(entity.entity_key, model, scope)

        if repredict:
            current = existing.reprediction_index if existing is not None else NO_REPREDICTION
            action = next_action(current, max_repredictions)
            if not action.should_write:
                outcome.action = ACTION_AT_LIMIT
                outcome.reprediction_index = current
                outcome.value = str(existing.value) if existing is not None else None
                outcome.detail = action.describe()
                return outcome
            if existing is not None:
                verdict = await self._staleness.evaluate(existing, scope, excluded)
                if not verdict.outdated:
                    outcome.action = ACTION_UP_TO_DATE
                    outcome.reprediction_index = current
                    outcome.value = str(existing.value)
                    return outcome
                outcome.detail = f"{verdict.document_name} changed after prediction"
            outcome.action = ACTION_REPREDICTED if existing is not None else ACTION_CREATED
            outcome.reprediction_index = action.index
        elif existing is not None and not override:
            outcome.action = ACTION_REUSED
            outcome.reprediction_index = existing.reprediction_index
            outcome.value = str(existing.value)
            return outcome
        else:
            outcome.action = ACTION_OVERRIDDEN if existing is not None else ACTION_CREATED
            outcome.reprediction_index = existing.reprediction_index if existing is not None else 0

        if dry_run:
            logger.info("[dry-run] %s: %s (not written)", entity.display_name, outcome.action)
            return outcome

        value, references = await self._predict(entity, scope)
        if value is None:
            logger.warning("Predictor returned no prediction for %s", entity.display_name)
            outcome.action = ACTION_FAILED
            outcome.value = None
            outcome.detail = "predictor returned no prediction"
            return outcome
        async with self._db.session() as session:
            repo = PredictionRepository(session)
            if repredict:
                await repo.save_reprediction(
                    entity, value, model, scope, references, now, outcome.reprediction_index
                )
            else:
                await repo.save_prediction(entity, value, model, scope, references, now, override=override)
        outcome.value = str(value)
        logger.info(
            "Prediction for %s %s: %s (index %s)",
            entity.display_name,
            outcome.action,
            outcome.value,
            outcome.reprediction_index,
        )
        return outcome

    async def run(
        self,
        entities: Iterable[Entity],
        scope: str,
        now: datetime,
        *,
        override: bool = False,
        repredict: bool = False,
        max_repredictions: Optional[int] = None,
        excluded_documents: Iterable[str] = (),
        dry_run: bool = False,
    ) -> PredictionCycleSummary:
        """Run one prediction cycle. Invalid option combinations raise InvalidRequestError."""
        repredict_mode = validate_write_mode(override, repredict, max_repredictions)
        mode = "repredict" if repredict_mode else "override" if override else "normal"
        excluded = tuple(excluded_documents)
        summary = PredictionCycleSummary(
            scope=scope, model=self._predictor.model, mode=mode, dry_run=dry_run
        )
        for entity in entities:
            try:
                outcome = await self._process(
                    entity,
                    scope,
                    now,
                    override=override,
                    repredict=repredict_mode,
                    max_repredictions=max_repredictions,
                    excluded=excluded,
                    dry_run=dry_run,
                )
            except Exception as exc:
                logger.exception("Prediction failed for %s", entity.display_name)
                outcome = EntityOutcome(
                    entity_key=entity.entity_key,
                    display_name=entity.display_name,
                    action=ACTION_FAILED,
                    detail=str(exc) or type(exc).__name__,
                )
            summary.outcomes.append(outcome)
        return summary
