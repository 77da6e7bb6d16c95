"""Persist and reload analysis reports."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from relinfer.analysis.relationships.db_models import AnalysisRun, ProposalRecord
from relinfer.analysis.relationships.models import RelationshipProposalReport
from relinfer.core.logging import get_logger

logger = get_logger(__name__)


def save_report(session: Session, report: RelationshipProposalReport) -> AnalysisRun:
    """Store a report and one row per accepted proposal.

    The caller owns the transaction.

    Args:
        session: SQLAlchemy session
        report: Report to store

    Returns:
        The added AnalysisRun (flushed, not committed)
    """
    run = AnalysisRun(
        analysis_id=report.analysis_id,
        created_at=report.created_at,
        source=report.source,
        total_candidates=report.summary.total_candidates,
        accepted=report.summary.accepted,
        errors=report.summary.errors,
        cancelled=report.cancelled,
        duration_seconds=report.summary.duration_seconds,
        report_json=report.to_json_dict(),
    )
    for proposal in report.relationships:
        run.proposals.append(
            ProposalRecord(
                relationship_key=proposal.id,
                source_table=proposal.source_table,
                source_field=proposal.source_field,
                target_table=proposal.target_table,
                target_field=proposal.target_field,
                relationship_type=proposal.relationship_type.value,
                confidence=proposal.confidence,
                confidence_bucket=proposal.confidence_bucket.value,
                review_required=proposal.review_required,
                origin_evidence=proposal.origin_evidence.value,
                proposal_json=proposal.to_json_dict(),
            )
        )
    session.add(run)
    session.flush()
    logger.info("report_saved", analysis_id=report.analysis_id, proposals=len(run.proposals))
    return run


def load_report(session: Session, analysis_id: str) -> RelationshipProposalReport | None:
    """Load a stored report, or None if the id is unknown."""
    run = session.get(AnalysisRun, analysis_id)
    if run is None:
        return None
    return RelationshipProposalReport.model_validate(run.report_json)


def list_runs(session: Session, limit: int = 50) -> list[AnalysisRun]:
    """Most recent runs first."""
    stmt = select(AnalysisRun).order_by(AnalysisRun.created_at.desc()).limit(limit)
    return list(session.execute(stmt).scalars().all())


def find_proposals(
    session: Session,
    source_table: str | None = None,
    min_confidence: float | None = None,
) -> list[ProposalRecord]:
    """Query stored proposals across runs."""
    stmt = select(ProposalRecord)
    if source_table is not None:
        stmt = stmt.where(ProposalRecord.source_table == source_table)
    if min_confidence is not None:
        stmt = stmt.where(ProposalRecord.confidence >= min_confidence)
    stmt = stmt.order_by(ProposalRecord.confidence.desc())
    return list(session.execute(stmt).scalars().all())
