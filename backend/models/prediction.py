from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Prediction(Base):
    """Stored prediction for one entity (match or bonus question).

    A reprediction is an additional row with the next reprediction_index; the
    override path rewrites value_json and created_at_utc of an existing row.
    """

    __tablename__ = "predictions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_key: Mapped[str] = mapped_column(String(256), nullable=False)
    entity_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    model: Mapped[str] = mapped_column(String(128), nullable=False)
    scope: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at_utc: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    # {"home_goals": 2, "away_goals": 1} or {"option_ids": ["a", "b"]}
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    # [{"canonical_name": ..., "display_label": ...}, ...] in reference order
    context_documents_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    reprediction_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    entity_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "entity_key", "model", "scope", "reprediction_index",
            name="uq_prediction_reprediction",
        ),
        Index("ix_predictions_scope_model", "scope", "model"),
    )
