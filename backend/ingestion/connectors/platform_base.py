"""
Platform client contract: enumerates entities open on the tipping platform with
whatever value is currently submitted there.

Scraping and authentication live outside this package; the recorded client
reads fixture files and performs no network I/O.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from domain.entities import BonusOption, BonusQuestionEntity, ExternalEntityState, MatchEntity
from domain.predictions import ScorePrediction, SelectionPrediction


class PlatformClient(ABC):
    """Abstract live platform client."""

    @property
    @abstractmethod
    def name(self) -> str:
        raise NotImplementedError

    @abstractmethod
    async def get_submitted_values(self, scope: str) -> List[ExternalEntityState]:
        """Matches of the current matchday with the placed score, if any."""
        raise NotImplementedError

    @abstractmethod
    async def get_bonus_states(self, scope: str) -> List[ExternalEntityState]:
        """Open bonus questions with the submitted selection, if any."""
        raise NotImplementedError


def parse_datetime_utc(value: Any, field_name: str) -> datetime:
    """Parse ISO8601 to aware UTC. Raises ValueError if missing or invalid."""
    if not value or not isinstance(value, str):
        raise ValueError(f"{field_name} is required and must be a non-empty string")
    s = value.strip().replace("Z", "+00:00")
    try:
        dt = datetime.fromisoformat(s)
    except ValueError as e:
        raise ValueError(f"{field_name} must be ISO8601: {e!s}") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _require(raw: Dict[str, Any], key: str, kind: str) -> Any:
    if key not in raw or raw[key] in (None, ""):
        raise ValueError(f"{kind} missing required field: {key!r}")
    return raw[key]


def parse_match_state(raw: Dict[str, Any]) -> ExternalEntityState:
    """Parse one match record: teams, starts_at, optional placed {home_goals, away_goals}."""
    entity = MatchEntity(
        home_team=str(_require(raw, "home_team", "match")),
        away_team=str(_require(raw, "away_team", "match")),
        starts_at=parse_datetime_utc(raw.get("starts_at"), "starts_at"),
        matchday=int(raw.get("matchday") or 0),
        is_cancelled=bool(raw.get("is_cancelled", False)),
    )
    placed = raw.get("placed")
    value: Optional[ScorePrediction] = None
    if placed is not None:
        if not isinstance(placed, dict):
            raise ValueError("placed must be an object with home_goals and away_goals")
        value = ScorePrediction(
            home_goals=int(_require(placed, "home_goals", "placed")),
            away_goals=int(_require(placed, "away_goals", "placed")),
        )
    return ExternalEntityState(entity=entity, external_value=value)


def parse_bonus_state(raw: Dict[str, Any]) -> ExternalEntityState:
    """Parse one bonus question record: text, options, bounds, optional selected ids."""
    raw_options = raw.get("options")
    if not isinstance(raw_options, list) or not raw_options:
        raise ValueError("bonus question requires a non-empty options list")
    options = tuple(
        BonusOption(id=str(_require(o, "id", "option")), text=str(_require(o, "text", "option")))
        for o in raw_options
    )
    deadline = raw.get("deadline")
    entity = BonusQuestionEntity(
        question_id=str(raw.get("question_id") or ""),
        text=str(_require(raw, "text", "bonus question")),
        options=options,
        max_selections=int(raw.get("max_selections") or 1),
        min_selections=int(raw.get("min_selections") or 1),
        form_field_name=raw.get("form_field_name"),
        deadline=parse_datetime_utc(deadline, "deadline") if deadline else None,
    )
    selected = raw.get("selected")
    value: Optional[SelectionPrediction] = None
    if selected:
        value = SelectionPrediction(option_ids=tuple(str(s) for s in selected))
    return ExternalEntityState(entity=entity, external_value=value)
