"""
Verification runner: reconcile live platform state (matchday or bonus questions)
against stored predictions and produce a report plus a process exit code.

Exit codes: 0 all in sync, 1 discrepancies, 2 no local predictions at all (init).
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from core.database import DatabaseManager
from domain.entities import Entity
from domain.predictions import PredictionRecord
from evaluation.reconciliation import (
    Classification,
    ReconciliationEngine,
    ReconciliationReport,
    Verdict,
)
from evaluation.staleness import StalenessEvaluator
from ingestion.connectors.platform_base import PlatformClient
from repositories.prediction_repo import PredictionRepository
from services.document_store import VersionedDocumentStore

logger = logging.getLogger(__name__)

KIND_MATCHDAY = "matchday"
KIND_BONUS = "bonus"

VERDICT_EXIT_CODES: Dict[Verdict, int] = {
    Verdict.PASS: 0,
    Verdict.FAIL: 1,
    Verdict.INIT: 2,
}


def exit_code_for(report: ReconciliationReport) -> int:
    return VERDICT_EXIT_CODES[report.verdict]


async def run_verification(
    db: DatabaseManager,
    platform: PlatformClient,
    kind: str,
    scope: str,
    model: str,
    *,
    excluded_documents: Iterable[str] = (),
    check_outdated: bool = True,
    store: Optional[VersionedDocumentStore] = None,
) -> ReconciliationReport:
    """
    Read external state for `kind` from the platform and reconcile it against the
    latest stored prediction of each entity for (model, scope). Read-only.
    """
    if kind == KIND_MATCHDAY:
        external = await platform.get_submitted_values(scope)
    elif kind == KIND_BONUS:
        external = await platform.get_bonus_states(scope)
    else:
        raise ValueError(f"unknown verification kind: {kind!r}")

    store = store or VersionedDocumentStore(db)
    engine = ReconciliationEngine(StalenessEvaluator(store))

    async def lookup(entity: Entity) -> Optional[PredictionRecord]:
        async with db.session() as session:
            return await PredictionRepository(session).get_latest(entity.entity_key, model, scope)

    logger.info(
        "Verifying %d %s entities from %s for scope %s, model %s (outdated check %s)",
        len(external),
        kind,
        platform.name,
        scope,
        model,
        "on" if check_outdated else "off",
    )
    report = await engine.reconcile(
        external,
        lookup,
        scope,
        excluded_documents,
        check_outdated=check_outdated,
    )
    logger.info("Verification verdict for %s/%s: %s", scope, kind, report.verdict.value)
    return report


_MARKS = {
    Classification.IN_SYNC: "ok",
    Classification.MISMATCHED: "MISMATCH",
    Classification.MISSING_LOCALLY: "MISSING LOCALLY",
    Classification.MISSING_EXTERNALLY: "MISSING EXTERNALLY",
    Classification.OUTDATED: "OUTDATED",
    Classification.ERROR: "ERROR",
}


def render_text(report: ReconciliationReport) -> str:
    """Plain-text summary of a report, one line per entity."""
    lines: List[str] = [f"Verification for scope {report.scope}"]
    for r in report.results:
        line = f"  [{_MARKS[r.classification]}] {r.display_name}"
        details = []
        if r.external_value is not None or r.local_value is not None:
            details.append(f"platform={r.external_value or '-'} local={r.local_value or '-'}")
        if r.outdated_document:
            details.append(f"changed: {r.outdated_document}")
        if r.problems:
            details.append("; ".join(r.problems))
        if r.error:
            details.append(f"error: {r.error}")
        if details:
            line += " (" + ", ".join(details) + ")"
        lines.append(line)
    lines.append(
        f"Total: {len(report.results)}, with platform value: {report.external_count}, "
        f"with local prediction: {report.local_count}"
    )
    counts = report.counts
    lines.append(
        "Counts: " + ", ".join(f"{name}={n}" for name, n in counts.items() if n)
    )
    if report.verdict is Verdict.INIT:
        lines.append("Verdict: INIT (no local predictions exist)")
    elif report.verdict is Verdict.FAIL:
        lines.append("Verdict: FAIL (discrepancies found)")
    else:
        lines.append("Verdict: PASS")
    return "\n".join(lines)
