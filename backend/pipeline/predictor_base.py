"""
Predictor contract. The generative model call lives behind this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from domain.documents import DocumentReference
from domain.entities import Entity
from domain.predictions import PredictionValue


@dataclass(frozen=True)
class PredictorDocument:
    """An evidence document as handed to the predictor."""

    reference: DocumentReference
    version: int
    content: str


class Predictor(ABC):
    @property
    @abstractmethod
    def model(self) -> str:
        raise NotImplementedError

    @abstractmethod
    async def predict(
        self, entity: Entity, documents: Sequence[PredictorDocument]
    ) -> Optional[PredictionValue]:
        """Return a prediction for the entity, or None when no prediction could be produced."""
        raise NotImplementedError
