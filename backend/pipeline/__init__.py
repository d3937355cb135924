"""Prediction pipeline: predictor contract, reprediction sequencing and the prediction cycle."""

from .predictor_base import Predictor, PredictorDocument
from .reprediction import RepredictionAction, RepredictionKind, next_action, validate_write_mode

__all__ = [
    "Predictor",
    "PredictorDocument",
    "RepredictionAction",
    "RepredictionKind",
    "next_action",
    "validate_write_mode",
]
