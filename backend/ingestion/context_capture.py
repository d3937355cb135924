"""
Capture cycle: store a batch of freshly collected evidence documents.

History documents (matched by name prefix) are stamped with provenance against
their latest stored version before the put; every other document is stored as
collected. Unchanged content never creates a new version.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from domain.documents import VersionedDocument
from ingestion.history_merge import add_data_collected_at
from services.document_store import VersionedDocumentStore

logger = logging.getLogger(__name__)

STATUS_SAVED = "saved"
STATUS_UNCHANGED = "unchanged"
STATUS_WOULD_SAVE = "would_save"
STATUS_FAILED = "failed"


def is_history_document(name: str, prefixes: Sequence[str]) -> bool:
    lowered = name.lower()
    return any(lowered.startswith(p.lower()) for p in prefixes)


def load_documents_from_dir(directory: str | Path, pattern: str = "*.csv") -> List[Tuple[str, bytes]]:
    """Read (file name, raw bytes) pairs from a directory in name order.

    Bytes are kept as stored on disk (no newline translation); decoding happens
    per document in the capture so one bad file fails alone.
    """
    root = Path(directory)
    if not root.is_dir():
        raise FileNotFoundError(f"Context directory not found: {root}")
    return [(p.name, p.read_bytes()) for p in sorted(root.glob(pattern)) if p.is_file()]


@dataclass
class DocumentOutcome:
    name: str
    status: str
    version: Optional[int] = None
    based_on_version: Optional[int] = None
    stamped: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "version": self.version,
            "based_on_version": self.based_on_version,
            "stamped": self.stamped,
            "error": self.error,
        }


@dataclass
class CaptureSummary:
    scope: str
    dry_run: bool
    documents: List[DocumentOutcome] = field(default_factory=list)

    def _count(self, status: str) -> int:
        return sum(1 for d in self.documents if d.status == status)

    @property
    def saved(self) -> int:
        return self._count(STATUS_SAVED)

    @property
    def unchanged(self) -> int:
        return self._count(STATUS_UNCHANGED)

    @property
    def failed(self) -> int:
        return self._count(STATUS_FAILED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scope": self.scope,
            "dry_run": self.dry_run,
            "saved": self.saved,
            "unchanged": self.unchanged,
            "would_save": self._count(STATUS_WOULD_SAVE),
            "failed": self.failed,
            "documents": [d.to_dict() for d in self.documents],
        }


class ContextCapture:
    def __init__(self, store: VersionedDocumentStore, history_prefixes: Sequence[str]) -> None:
        self._store = store
        self._history_prefixes = tuple(history_prefixes)

    async def _capture_one(
        self, name: str, content: Union[str, bytes], scope: str, now: datetime, dry_run: bool
    ) -> DocumentOutcome:
        if isinstance(content, bytes):
            content = content.decode("utf-8")
        outcome = DocumentOutcome(name=name, status="")
        history = is_history_document(name, self._history_prefixes)

        def build(latest: Optional[VersionedDocument]) -> str:
            if not history:
                return content
            previous = latest.content if latest is not None else None
            return add_data_collected_at(content, previous, now)

        if dry_run:
            latest = await self._store.get_latest(name, scope)
            final_content = build(latest)
            outcome.stamped = final_content != content
            if latest is not None:
                outcome.based_on_version = latest.version
            if latest is not None and latest.content == final_content:
                outcome.status = STATUS_UNCHANGED
                outcome.version = latest.version
            else:
                outcome.status = STATUS_WOULD_SAVE
                outcome.version = 0 if latest is None else latest.version + 1
            return outcome

        # The merge runs inside the store's critical section so it always sees
        # the version it is written on top of.
        result = await self._store.put_derived(name, scope, build, now)
        outcome.based_on_version = result.based_on_version
        outcome.stamped = result.content != content
        outcome.version = result.version
        outcome.status = STATUS_SAVED if result.created else STATUS_UNCHANGED
        return outcome

    async def capture(
        self,
        documents: Iterable[Tuple[str, Union[str, bytes]]],
        scope: str,
        now: datetime,
        *,
        dry_run: bool = False,
    ) -> CaptureSummary:
        """Capture (name, content) pairs into scope; one failed document does not stop the rest."""
        summary = CaptureSummary(scope=scope, dry_run=dry_run)
        for name, content in documents:
            try:
                outcome = await self._capture_one(name, content, scope, now, dry_run)
            except Exception as exc:
                logger.exception("Failed to capture document %s in scope %s", name, scope)
                outcome = DocumentOutcome(name=name, status=STATUS_FAILED, error=str(exc) or type(exc).__name__)
            summary.documents.append(outcome)
        logger.info(
            "Capture for scope %s: %d saved, %d unchanged, %d failed%s",
            scope,
            summary.saved,
            summary.unchanged,
            summary.failed,
            " (dry-run)" if dry_run else "",
        )
        return summary
