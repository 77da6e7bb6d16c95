"""SQLAlchemy models for persisted analysis runs.

Hybrid storage: queryable columns for filtering plus the full pydantic
model as JSON.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from relinfer.storage.base import Base


class AnalysisRun(Base):
    """One execution of the inference engine."""

    __tablename__ = "analysis_runs"

    analysis_id: Mapped[str] = mapped_column(String, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=lambda: datetime.now(UTC)
    )
    source: Mapped[str] = mapped_column(String, nullable=False)

    # STRUCTURED: summary counters
    total_candidates: Mapped[int] = mapped_column(Integer, default=0)
    accepted: Mapped[int] = mapped_column(Integer, default=0)
    errors: Mapped[int] = mapped_column(Integer, default=0)
    cancelled: Mapped[bool] = mapped_column(Boolean, default=False)
    duration_seconds: Mapped[float | None] = mapped_column(Float)

    # JSON: full RelationshipProposalReport
    report_json: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    proposals: Mapped[list[ProposalRecord]] = relationship(
        back_populates="run", cascade="all, delete-orphan"
    )


class ProposalRecord(Base):
    """One accepted relationship of a run."""

    __tablename__ = "relationship_proposals"
    __table_args__ = (
        UniqueConstraint("analysis_id", "relationship_key", name="uq_proposal_run_key"),
    )

    record_id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    analysis_id: Mapped[str] = mapped_column(
        ForeignKey("analysis_runs.analysis_id", ondelete="CASCADE"), nullable=False
    )
    relationship_key: Mapped[str] = mapped_column(String, nullable=False)  # rel-<src>-<field>-<tgt>

    source_table: Mapped[str] = mapped_column(String, nullable=False)
    source_field: Mapped[str] = mapped_column(String, nullable=False)
    target_table: Mapped[str] = mapped_column(String, nullable=False)
    target_field: Mapped[str] = mapped_column(String, nullable=False)

    relationship_type: Mapped[str] = mapped_column(String, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    confidence_bucket: Mapped[str] = mapped_column(String, nullable=False)
    review_required: Mapped[bool] = mapped_column(Boolean, nullable=False)
    origin_evidence: Mapped[str] = mapped_column(String, nullable=False)

    # JSON: full RelationshipProposal
    proposal_json: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    run: Mapped[AnalysisRun] = relationship(back_populates="proposals")


Index("idx_proposals_source", ProposalRecord.source_table, ProposalRecord.source_field)
Index("idx_proposals_confidence", ProposalRecord.confidence)
