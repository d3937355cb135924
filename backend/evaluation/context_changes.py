"""
Context changes report: what changed between the latest and the previous version
of evidence documents in a scope.
"""

from __future__ import annotations

import difflib
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from services.document_store import VersionedDocumentStore

logger = logging.getLogger(__name__)

DEFAULT_CHANGES_COUNT = 10


def select_documents(names: Sequence[str], count: int, seed: Optional[int] = None) -> List[str]:
    """All names (sorted) when there are at most `count`; otherwise a seeded random sample."""
    ordered = sorted(names)
    if len(ordered) <= count:
        return ordered
    return random.Random(seed).sample(ordered, count)


@dataclass
class DocumentChange:
    name: str
    previous_version: int
    latest_version: int
    previous_created_at: str
    latest_created_at: str
    diff: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "previous_version": self.previous_version,
            "latest_version": self.latest_version,
            "previous_created_at": self.previous_created_at,
            "latest_created_at": self.latest_created_at,
            "diff": list(self.diff),
        }


@dataclass
class ContextChangesReport:
    scope: str
    total_documents: int
    checked: List[str] = field(default_factory=list)
    changes: List[DocumentChange] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scope": self.scope,
            "total_documents": self.total_documents,
            "checked": list(self.checked),
            "changed": len(self.changes),
            "changes": [c.to_dict() for c in self.changes],
        }


async def build_context_changes(
    store: VersionedDocumentStore,
    scope: str,
    count: int = DEFAULT_CHANGES_COUNT,
    seed: Optional[int] = None,
) -> ContextChangesReport:
    """Diff latest against previous version for up to `count` documents of the scope."""
    if count < 0:
        raise ValueError("count must be >= 0")
    names = await store.list_names(scope)
    report = ContextChangesReport(scope=scope, total_documents=len(names))
    for name in select_documents(list(names), count, seed):
        report.checked.append(name)
        latest = await store.get_latest(name, scope)
        if latest is None or latest.version == 0:
            continue
        previous = await store.get_version(name, scope, latest.version - 1)
        if previous.content == latest.content:
            continue
        diff = list(
            difflib.unified_diff(
                previous.content.splitlines(),
                latest.content.splitlines(),
                fromfile=f"{name}@v{previous.version}",
                tofile=f"{name}@v{latest.version}",
                lineterm="",
            )
        )
        report.changes.append(
            DocumentChange(
                name=name,
                previous_version=previous.version,
                latest_version=latest.version,
                previous_created_at=previous.created_at.isoformat(),
                latest_created_at=latest.created_at.isoformat(),
                diff=diff,
            )
        )
    logger.debug("Context changes for %s: %d of %d checked changed", scope, len(report.changes), len(report.checked))
    return report
