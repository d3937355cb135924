"""
Recorded platform client: serves platform state from JSON fixture files.

One file per scope, <fixtures_dir>/<scope>.json:

    {
      "matches": [
        {"home_team": "...", "away_team": "...", "starts_at": "2025-08-22T18:30:00Z",
         "matchday": 1, "is_cancelled": false, "placed": {"home_goals": 2, "away_goals": 1}}
      ],
      "bonus_questions": [
        {"question_id": "q1", "text": "...", "options": [{"id": "o1", "text": "..."}],
         "max_selections": 1, "selected": ["o1"]}
      ]
    }

"placed" and "selected" are omitted (or null) when nothing is submitted.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List

from core.errors import UnavailableError
from domain.entities import ExternalEntityState
from ingestion.connectors.platform_base import PlatformClient, parse_bonus_state, parse_match_state

logger = logging.getLogger(__name__)


class RecordedPlatformClient(PlatformClient):
    """Fixture-only platform client. Never performs network requests."""

    def __init__(self, fixtures_dir: str | Path) -> None:
        self._fixtures_dir = Path(fixtures_dir)

    @property
    def name(self) -> str:
        return "recorded"

    def fixture_path(self, scope: str) -> Path:
        return self._fixtures_dir / f"{scope}.json"

    def _load(self, scope: str) -> Dict[str, Any]:
        path = self.fixture_path(scope)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise UnavailableError(f"No recorded platform fixture for scope {scope!r}: {path}") from exc
        except (OSError, json.JSONDecodeError) as exc:
            raise UnavailableError(f"Recorded platform fixture unreadable: {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise UnavailableError(f"Recorded platform fixture must be a JSON object: {path}")
        return data

    def _parse_all(
        self,
        scope: str,
        key: str,
        parse: Callable[[Dict[str, Any]], ExternalEntityState],
    ) -> List[ExternalEntityState]:
        raw_items = self._load(scope).get(key) or []
        states: List[ExternalEntityState] = []
        for i, raw in enumerate(raw_items):
            try:
                states.append(parse(raw))
            except (ValueError, TypeError) as exc:
                # A malformed record is a broken fixture, not a missing entity.
                raise UnavailableError(f"{key}[{i}] in {self.fixture_path(scope)}: {exc}") from exc
        logger.debug("Loaded %d %s for scope %s from fixture", len(states), key, scope)
        return states

    async def get_submitted_values(self, scope: str) -> List[ExternalEntityState]:
        return self._parse_all(scope, "matches", parse_match_state)

    async def get_bonus_states(self, scope: str) -> List[ExternalEntityState]:
        return self._parse_all(scope, "bonus_questions", parse_bonus_state)
