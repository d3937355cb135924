"""
Reconcilable entities: matches and bonus questions.

Both variants expose the same capability (entity_key, values_equal,
validate_prediction) so callers dispatch once on the entity instead of checking
the value type ad hoc.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple, Union

from domain.predictions import PredictionValue, ScorePrediction, SelectionPrediction

ENTITY_KIND_MATCH = "match"
ENTITY_KIND_BONUS = "bonus"


@dataclass(frozen=True)
class MatchEntity:
    """A fixture on the platform, identified by teams and kickoff."""

    home_team: str
    away_team: str
    starts_at: datetime
    matchday: int = 0
    is_cancelled: bool = False

    kind = ENTITY_KIND_MATCH

    @property
    def entity_key(self) -> str:
        return f"{self.home_team}|{self.away_team}|{self.starts_at.isoformat()}"

    @property
    def display_name(self) -> str:
        return f"{self.home_team} vs {self.away_team}"

    def values_equal(self, local: PredictionValue, external: PredictionValue) -> bool:
        if not isinstance(local, ScorePrediction) or not isinstance(external, ScorePrediction):
            return False
        return local.home_goals == external.home_goals and local.away_goals == external.away_goals

    def validate_prediction(self, value: PredictionValue) -> List[str]:
        if not isinstance(value, ScorePrediction):
            return [f"expected a score prediction, got {type(value).__name__}"]
        if value.home_goals < 0 or value.away_goals < 0:
            return ["goals must be non-negative"]
        return []


@dataclass(frozen=True)
class BonusOption:
    id: str
    text: str


@dataclass(frozen=True)
class BonusQuestionEntity:
    """
    A bonus question with a fixed option list and selection bounds.

    The platform's form ids change between page loads, so the question text is
    the stable identity.
    """

    question_id: str
    text: str
    options: Tuple[BonusOption, ...]
    max_selections: int = 1
    min_selections: int = 1
    form_field_name: Optional[str] = None
    deadline: Optional[datetime] = None

    kind = ENTITY_KIND_BONUS

    @property
    def entity_key(self) -> str:
        return self.text

    @property
    def display_name(self) -> str:
        return self.text

    def option_texts(self, value: PredictionValue) -> List[str]:
        if not isinstance(value, SelectionPrediction):
            return []
        selected = set(value.option_ids)
        return [o.text for o in self.options if o.id in selected]

    def values_equal(self, local: PredictionValue, external: PredictionValue) -> bool:
        if not isinstance(local, SelectionPrediction) or not isinstance(external, SelectionPrediction):
            return False
        # Multi-select answers compare as sets.
        return set(local.option_ids) == set(external.option_ids)

    def validate_prediction(self, value: PredictionValue) -> List[str]:
        if not isinstance(value, SelectionPrediction):
            return [f"expected a selection prediction, got {type(value).__name__}"]
        problems: List[str] = []
        valid_ids = {o.id for o in self.options}
        unknown = [oid for oid in value.option_ids if oid not in valid_ids]
        if unknown:
            problems.append(f"unknown option ids: {', '.join(unknown)}")
        count = len(value.option_ids)
        if count < self.min_selections or count > self.max_selections:
            problems.append(
                f"selection count {count} outside [{self.min_selections}, {self.max_selections}]"
            )
        if len(set(value.option_ids)) != count:
            problems.append("duplicate selections")
        return problems


Entity = Union[MatchEntity, BonusQuestionEntity]


@dataclass(frozen=True)
class ExternalEntityState:
    """One entity as enumerated by the platform, with its submitted value if any."""

    entity: Entity
    external_value: Optional[PredictionValue] = None

    @property
    def entity_key(self) -> str:
        return self.entity.entity_key

