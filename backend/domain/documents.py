"""
Versioned evidence documents and the references predictions keep to them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Union


@dataclass(frozen=True)
class VersionedDocument:
    """One immutable version of a named document within a scope."""

    name: str
    scope: str
    version: int
    content: str
    created_at: datetime


@dataclass(frozen=True)
class DocumentReference:
    """
    A document used to build a prediction.

    canonical_name is the key in the document store; display_label is what the
    predictor was shown (e.g. "team-data.csv (kpi-context)"). Lookups only ever
    use canonical_name.
    """

    canonical_name: str
    display_label: str = ""

    @property
    def label(self) -> str:
        return self.display_label or self.canonical_name

    def to_dict(self) -> Dict[str, str]:
        return {"canonical_name": self.canonical_name, "display_label": self.display_label}

    @classmethod
    def from_stored(cls, raw: Union[str, Dict[str, Any]]) -> "DocumentReference":
        """Rebuild a reference from storage.

        Dicts carry both names. Plain strings come from records written before
        references were split and hold only the display label, so the canonical
        name is recovered with strip_display_suffix.
        """
        if isinstance(raw, dict):
            canonical = str(raw.get("canonical_name") or "")
            if not canonical:
                raise ValueError("stored document reference has no canonical_name")
            return cls(canonical_name=canonical, display_label=str(raw.get("display_label") or ""))
        return cls(canonical_name=strip_display_suffix(raw), display_label=raw)


def strip_display_suffix(display_name: str) -> str:
    """Remove a trailing " (...)" display suffix, e.g. "x.csv (kpi-context)" -> "x.csv".

    Only used for legacy string references. A real document name that itself
    ends in " (...)" would be mis-normalised, which is why new references store
    the canonical name explicitly.
    """
    idx = display_name.rfind(" (")
    if idx > 0 and display_name.endswith(")"):
        return display_name[:idx]
    return display_name
