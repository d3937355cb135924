"""Ingestion: history CSV schema, provenance merge and the capture cycle."""

from .history_schema import MatchResultRow, NaturalMatchKey

__all__ = [
    "MatchResultRow",
    "NaturalMatchKey",
]
