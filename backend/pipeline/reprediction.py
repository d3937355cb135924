"""
Reprediction sequencing: decides the next reprediction index for an entity.

Pure functions; the caller reads the current index from the prediction store
and performs the write.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from core.errors import InvalidRequestError
from domain.predictions import NO_REPREDICTION


class RepredictionKind(str, Enum):
    CREATE_FIRST = "CREATE_FIRST"
    CREATE_REPREDICTION = "CREATE_REPREDICTION"
    SKIP_AT_LIMIT = "SKIP_AT_LIMIT"


@dataclass(frozen=True)
class RepredictionAction:
    kind: RepredictionKind
    index: int
    max_repredictions: Optional[int] = None

    @property
    def should_write(self) -> bool:
        return self.kind is not RepredictionKind.SKIP_AT_LIMIT

    def describe(self) -> str:
        if self.kind is RepredictionKind.CREATE_FIRST:
            return "create first prediction"
        if self.kind is RepredictionKind.CREATE_REPREDICTION:
            return f"create reprediction {self.index}"
        return f"skip, at reprediction limit ({self.index}/{self.max_repredictions})"


def next_action(current_index: int, max_repredictions: Optional[int] = None) -> RepredictionAction:
    """
    current_index is the stored reprediction index (NO_REPREDICTION when none).
    max_repredictions=None means unlimited. For SKIP_AT_LIMIT, index is the
    current index.
    """
    if max_repredictions is not None and max_repredictions < 0:
        raise InvalidRequestError("max_repredictions must be >= 0")
    if current_index == NO_REPREDICTION:
        return RepredictionAction(RepredictionKind.CREATE_FIRST, 0, max_repredictions)
    if current_index < 0:
        raise InvalidRequestError(f"invalid reprediction index {current_index}")
    nxt = current_index + 1
    if max_repredictions is None or nxt <= max_repredictions:
        return RepredictionAction(RepredictionKind.CREATE_REPREDICTION, nxt, max_repredictions)
    return RepredictionAction(RepredictionKind.SKIP_AT_LIMIT, current_index, max_repredictions)


def validate_write_mode(
    override: bool,
    repredict: bool,
    max_repredictions: Optional[int] = None,
) -> bool:
    """
    Check a combination of write options and return whether reprediction mode
    is active. Setting max_repredictions implies reprediction mode.
    """
    if max_repredictions is not None and max_repredictions < 0:
        raise InvalidRequestError("max_repredictions must be >= 0")
    repredict_mode = repredict or max_repredictions is not None
    if override and repredict_mode:
        raise InvalidRequestError("override cannot be combined with reprediction mode")
    return repredict_mode
