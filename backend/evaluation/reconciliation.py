"""
Reconciliation of live platform state against the local prediction store.

The platform enumeration decides which entities exist in a run. Every entity is
classified on its own; a failure while classifying one entity is recorded as
ERROR and never stops the rest. Nothing here writes.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from domain.entities import Entity, ExternalEntityState
from domain.predictions import PredictionRecord
from evaluation.staleness import StalenessEvaluator

logger = logging.getLogger(__name__)


class Classification(str, Enum):
    IN_SYNC = "IN_SYNC"
    MISMATCHED = "MISMATCHED"
    MISSING_LOCALLY = "MISSING_LOCALLY"
    MISSING_EXTERNALLY = "MISSING_EXTERNALLY"
    OUTDATED = "OUTDATED"
    ERROR = "ERROR"


class Verdict(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    # No entity has a local prediction yet: full generation is needed.
    INIT = "INIT"


LocalLookup = Union[
    Mapping[str, PredictionRecord],
    Callable[[Entity], Awaitable[Optional[PredictionRecord]]],
]


@dataclass
class EntityResult:
    entity_key: str
    display_name: str
    kind: str
    classification: Classification
    external_value: Optional[str] = None
    local_value: Optional[str] = None
    outdated_document: Optional[str] = None
    problems: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_key": self.entity_key,
            "display_name": self.display_name,
            "kind": self.kind,
            "classification": self.classification.value,
            "external_value": self.external_value,
            "local_value": self.local_value,
            "outdated_document": self.outdated_document,
            "problems": list(self.problems),
            "error": self.error,
        }


@dataclass
class ReconciliationReport:
    scope: str
    results: List[EntityResult] = field(default_factory=list)
    local_count: int = 0
    external_count: int = 0

    @property
    def counts(self) -> Dict[str, int]:
        counts = {c.value: 0 for c in Classification}
        for r in self.results:
            counts[r.classification.value] += 1
        return counts

    @property
    def has_discrepancies(self) -> bool:
        return any(r.classification is not Classification.IN_SYNC for r in self.results)

    @property
    def verdict(self) -> Verdict:
        # A failed lookup says nothing about whether predictions exist.
        errored = any(r.classification is Classification.ERROR for r in self.results)
        if self.local_count == 0 and not errored:
            return Verdict.INIT
        return Verdict.FAIL if self.has_discrepancies else Verdict.PASS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scope": self.scope,
            "verdict": self.verdict.value,
            "has_discrepancies": self.has_discrepancies,
            "total": len(self.results),
            "with_local_prediction": self.local_count,
            "with_external_value": self.external_count,
            "counts": self.counts,
            "results": [r.to_dict() for r in self.results],
        }


class ReconciliationEngine:
    """Classifies each externally enumerated entity against its local prediction."""

    def __init__(self, staleness: StalenessEvaluator) -> None:
        self._staleness = staleness

    async def _lookup(self, local: LocalLookup, entity: Entity) -> Optional[PredictionRecord]:
        if isinstance(local, Mapping):
            return local.get(entity.entity_key)
        result = local(entity)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _classify(
        self,
        state: ExternalEntityState,
        record: Optional[PredictionRecord],
        scope: str,
        excluded: Iterable[str],
        check_outdated: bool,
    ) -> EntityResult:
        entity = state.entity
        external = state.external_value
        result = EntityResult(
            entity_key=entity.entity_key,
            display_name=entity.display_name,
            kind=entity.kind,
            classification=Classification.IN_SYNC,
            external_value=str(external) if external is not None else None,
            local_value=str(record.value) if record is not None else None,
        )
        if record is None:
            if external is not None:
                result.classification = Classification.MISSING_LOCALLY
            return result

        problems = entity.validate_prediction(record.value)
        if problems:
            result.problems = problems
            result.classification = Classification.MISMATCHED
            return result

        if external is None:
            result.classification = Classification.MISSING_EXTERNALLY
            return result

        if not entity.values_equal(record.value, external):
            result.classification = Classification.MISMATCHED
            return result

        if check_outdated:
            verdict = await self._staleness.evaluate(record, scope, excluded)
            if verdict.outdated:
                result.classification = Classification.OUTDATED
                result.outdated_document = verdict.document_name
        return result

    async def reconcile(
        self,
        external_state: Sequence[ExternalEntityState],
        local_lookup: LocalLookup,
        scope: str,
        excluded_documents: Iterable[str] = (),
        *,
        check_outdated: bool = True,
    ) -> ReconciliationReport:
        """Classify every entity in external_state, in the order given."""
        excluded = tuple(excluded_documents)
        report = ReconciliationReport(scope=scope)
        for state in external_state:
            entity = state.entity
            if state.external_value is not None:
                report.external_count += 1
            try:
                record = await self._lookup(local_lookup, entity)
                if record is not None:
                    report.local_count += 1
                result = await self._classify(state, record, scope, excluded, check_outdated)
            except Exception as exc:
                logger.exception("Error reconciling %s", entity.display_name)
                result = EntityResult(
                    entity_key=entity.entity_key,
                    display_name=entity.display_name,
                    kind=entity.kind,
                    classification=Classification.ERROR,
                    error=str(exc) or type(exc).__name__,
                )
            report.results.append(result)
        return report
