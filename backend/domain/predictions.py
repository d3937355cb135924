"""
Prediction values and stored prediction records.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple, Union

from domain.documents import DocumentReference

# Stored reprediction_index sentinel: no prediction exists for the entity yet.
NO_REPREDICTION = -1


@dataclass(frozen=True)
class ScorePrediction:
    """Predicted (or placed) final score of a match."""

    home_goals: int
    away_goals: int

    def to_dict(self) -> Dict[str, Any]:
        return {"home_goals": self.home_goals, "away_goals": self.away_goals}

    def __str__(self) -> str:
        return f"{self.home_goals}:{self.away_goals}"


@dataclass(frozen=True)
class SelectionPrediction:
    """Selected option ids for a bonus question. Order is kept as given."""

    option_ids: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {"option_ids": list(self.option_ids)}

    def __str__(self) -> str:
        return ", ".join(self.option_ids)


PredictionValue = Union[ScorePrediction, SelectionPrediction]


def value_to_json(value: PredictionValue) -> str:
    return json.dumps(value.to_dict(), sort_keys=True, separators=(",", ":"))


def value_from_dict(raw: Dict[str, Any]) -> PredictionValue:
    """Parse a stored or fixture value dict into a prediction value."""
    if "option_ids" in raw:
        return SelectionPrediction(option_ids=tuple(str(o) for o in raw["option_ids"]))
    if "home_goals" in raw and "away_goals" in raw:
        return ScorePrediction(home_goals=int(raw["home_goals"]), away_goals=int(raw["away_goals"]))
    raise ValueError(f"unrecognised prediction value: {raw!r}")


def value_from_json(payload: str) -> PredictionValue:
    return value_from_dict(json.loads(payload))


@dataclass(frozen=True)
class PredictionRecord:
    """A persisted prediction, as read back from the prediction store."""

    entity_key: str
    model: str
    scope: str
    created_at: datetime
    value: PredictionValue
    context_documents: Tuple[DocumentReference, ...] = field(default_factory=tuple)
    reprediction_index: int = 0
    entity_text: Optional[str] = None
