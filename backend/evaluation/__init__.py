"""Evaluation: staleness of predictions, reconciliation against the platform, context changes."""

from .reconciliation import (
    Classification,
    ReconciliationEngine,
    ReconciliationReport,
    Verdict,
)
from .staleness import StalenessEvaluator, StalenessVerdict

__all__ = [
    "Classification",
    "ReconciliationEngine",
    "ReconciliationReport",
    "StalenessEvaluator",
    "StalenessVerdict",
    "Verdict",
]
