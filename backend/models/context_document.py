"""
Versioned context documents: one immutable row per (name, scope, version).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ContextDocument(Base):
    """One written version of an evidence document. Rows are append-only."""

    __tablename__ = "context_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    scope: Mapped[str] = mapped_column(String(128), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at_utc: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    __table_args__ = (
        # Expected-version guard: two writers racing for the same next version
        # cannot both commit.
        UniqueConstraint("name", "scope", "version", name="uq_context_document_version"),
        Index("ix_context_documents_scope_name", "scope", "name"),
    )
