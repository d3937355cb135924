"""
Schema for match-history CSV documents (recent-history-*, home-history-*, away-history-*).

Rows are identified by their natural key; the provenance column records the
date a row was first observed and is fixed once set.
"""

from __future__ import annotations

from typing import Dict, List, NamedTuple, Optional

from pydantic import BaseModel, Field

COL_COMPETITION = "Competition"
COL_DATA_COLLECTED_AT = "Data_Collected_At"
COL_HOME_TEAM = "Home_Team"
COL_AWAY_TEAM = "Away_Team"
COL_SCORE = "Score"
COL_ANNOTATION = "Annotation"

REQUIRED_COLUMNS = (COL_COMPETITION, COL_HOME_TEAM, COL_AWAY_TEAM, COL_SCORE)

# Wire order of the stamped document; extra descriptive columns follow.
STAMPED_COLUMNS: List[str] = [
    COL_COMPETITION,
    COL_DATA_COLLECTED_AT,
    COL_HOME_TEAM,
    COL_AWAY_TEAM,
    COL_SCORE,
    COL_ANNOTATION,
]

KNOWN_COLUMNS = frozenset(STAMPED_COLUMNS)

STAMP_DATE_FORMAT = "%Y-%m-%d"


class NaturalMatchKey(NamedTuple):
    """Identity of a historical match result row."""

    competition: str
    home_team: str
    away_team: str
    score: str
    annotation: str


class MatchResultRow(BaseModel):
    """One historical result. Score is empty for matches not yet played."""

    competition: str = Field(..., description="Competition name")
    home_team: str = Field(..., description="Home team name")
    away_team: str = Field(..., description="Away team name")
    score: str = Field("", description="Final score 'h:a', empty when pending")
    annotation: str = Field("", description="Free-form annotation (e.g. 'n.E.')")
    data_collected_at: Optional[str] = Field(
        None, description="Date (yyyy-MM-dd) the row was first observed"
    )
    extra: Dict[str, str] = Field(default_factory=dict, description="Additional descriptive columns")

    @property
    def natural_key(self) -> NaturalMatchKey:
        return NaturalMatchKey(
            self.competition, self.home_team, self.away_team, self.score, self.annotation
        )

    @classmethod
    def from_csv_record(cls, record: Dict[str, str]) -> "MatchResultRow":
        """Build from a csv.DictReader record; missing Annotation reads as empty."""
        extra = {k: v for k, v in record.items() if k not in KNOWN_COLUMNS}
        stamp = record.get(COL_DATA_COLLECTED_AT)
        return cls(
            competition=record[COL_COMPETITION],
            home_team=record[COL_HOME_TEAM],
            away_team=record[COL_AWAY_TEAM],
            score=record[COL_SCORE],
            annotation=record.get(COL_ANNOTATION) or "",
            data_collected_at=stamp if stamp is not None else None,
            extra=extra,
        )

    def to_csv_record(self) -> Dict[str, str]:
        record = {
            COL_COMPETITION: self.competition,
            COL_DATA_COLLECTED_AT: self.data_collected_at or "",
            COL_HOME_TEAM: self.home_team,
            COL_AWAY_TEAM: self.away_team,
            COL_SCORE: self.score,
            COL_ANNOTATION: self.annotation,
        }
        record.update(self.extra)
        return record
