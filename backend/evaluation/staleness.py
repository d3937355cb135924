"""
Prediction staleness: a prediction is outdated once any evidence document it
was built from has a newer version than the prediction itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from core.clock import as_utc
from domain.predictions import PredictionRecord
from services.document_store import VersionedDocumentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StalenessVerdict:
    """Result of one staleness check.

    document_name names the first document found to be newer (None when not
    outdated); missing lists referenced documents absent from the store.
    """

    outdated: bool
    document_name: Optional[str] = None
    missing: Tuple[str, ...] = ()


class StalenessEvaluator:
    """Judges a stored prediction against the latest versions of its evidence."""

    def __init__(self, store: VersionedDocumentStore) -> None:
        self._store = store

    async def evaluate(
        self,
        record: PredictionRecord,
        scope: str,
        excluded_documents: Iterable[str] = (),
    ) -> StalenessVerdict:
        excluded = {name.lower() for name in excluded_documents}
        predicted_at = as_utc(record.created_at)
        missing = []
        for reference in record.context_documents:
            name = reference.canonical_name
            if name.lower() in excluded:
                logger.debug("Skipping staleness check for excluded document %s", name)
                continue
            latest = await self._store.get_latest(name, scope)
            if latest is None:
                logger.warning(
                    "Document %s referenced by %s not found in scope %s",
                    name,
                    record.entity_key,
                    scope,
                )
                missing.append(name)
                continue
            if latest.created_at > predicted_at:
                logger.info(
                    "Prediction for %s is outdated: %s version %d created %s after prediction at %s",
                    record.entity_key,
                    name,
                    latest.version,
                    latest.created_at.isoformat(),
                    predicted_at.isoformat(),
                )
                return StalenessVerdict(outdated=True, document_name=name, missing=tuple(missing))
        return StalenessVerdict(outdated=False, missing=tuple(missing))
