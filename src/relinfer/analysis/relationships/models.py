"""Relationship inference models.

Models for:
- SchemaEvidence / NamingMatch: evidence gathered before touching the data
- CandidateRelationship: a (source column -> target table) pair to test
- ConfidenceFactors: named contributions to a confidence score
- CandidateResult: one entry of the raw candidate trail
- RelationshipProposal: an accepted, scored, deduplicated relationship
- RelationshipProposalReport: the JSON-serializable output of an analysis
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from relinfer.core.models import (
    AnalysisIssue,
    ConfidenceBucket,
    EvidenceOrigin,
    FieldShape,
    RelationshipType,
    ReportModel,
)
from relinfer.sources.models import LinkDescriptor


class SchemaEvidence(ReportModel):
    """A declared link resolved against the known tables."""

    link: LinkDescriptor
    source_table: str
    source_field: str
    target_table: str
    confidence: float
    declared_type: RelationshipType


class NamingMatch(ReportModel):
    """A target table proposed from the column name alone."""

    target_table: str
    similarity: float
    rule: Literal["exact", "suffix", "similarity"]


class CandidateRelationship(ReportModel):
    """A source column to test against a target table.

    target_table is None until data-driven discovery resolves it.
    """

    source_table: str
    source_column: str
    target_table: str | None
    field_shape: FieldShape
    origin_evidence: EvidenceOrigin
    schema_evidence: SchemaEvidence | None = None
    naming_match: NamingMatch | None = None

    @property
    def key(self) -> tuple[str, str, str | None]:
        return (self.source_table, self.source_column, self.target_table)


class ConfidenceFactors(ReportModel):
    """Named contributions to a confidence score.

    Without schema evidence the confidence is the clamped sum of the data
    factors. With schema evidence it is the clamped blend of schema_evidence
    and the data factors, plus schema_agreement.
    """

    schema_evidence: float = 0.0
    referential_integrity: float = 0.0
    naming_similarity: float = 0.0
    data_volume: float = 0.0
    cardinality_clarity: float = 0.0
    shape_match: float = 0.0
    schema_agreement: float = 0.0

    @property
    def data_total(self) -> float:
        return (
            self.referential_integrity
            + self.naming_similarity
            + self.data_volume
            + self.cardinality_clarity
            + self.shape_match
        )


class CardinalityResult(ReportModel):
    relationship_type: RelationshipType
    measured: bool
    max_links_from: int
    max_links_to: int | None = None


class CandidateMetrics(ReportModel):
    """Counts measured for one candidate."""

    total_rows: int = 0
    non_null_count: int = 0
    distinct_source_values: int = 0
    matched: int = 0
    integrity_percent: float = 0.0
    max_links_from: int = 0
    max_links_to: int | None = None
    avg_links_from: float = 0.0
    cardinality_measured: bool = False
    target_row_count: int | None = None


class CandidateResult(ReportModel):
    """One analysed candidate, accepted or not.

    has_relationship=False entries carry no relationship_type and a reason.
    error_message is set when a query failed for this candidate.
    """

    source_table: str
    source_field: str
    target_table: str | None
    target_field: str | None = None
    field_shape: FieldShape
    origin_evidence: EvidenceOrigin
    has_relationship: bool
    relationship_type: RelationshipType | None = None
    confidence: float | None = None
    confidence_factors: ConfidenceFactors | None = None
    reason: str | None = None
    error_message: str | None = None
    evidence: list[str] = Field(default_factory=list)
    metadata: CandidateMetrics = Field(default_factory=CandidateMetrics)

    @property
    def key(self) -> tuple[str, str, str | None]:
        return (self.source_table, self.source_field, self.target_table)


class RelationshipProposal(ReportModel):
    """An accepted relationship with its DDL preview."""

    id: str
    source_table: str
    source_field: str
    target_table: str
    target_field: str
    relationship_type: RelationshipType
    confidence: float = Field(ge=0.0, le=1.0)
    confidence_bucket: ConfidenceBucket
    confidence_factors: ConfidenceFactors
    review_required: bool
    origin_evidence: EvidenceOrigin
    field_shape: FieldShape
    evidence: list[str] = Field(default_factory=list)
    proposed_action: str = ""
    sql_preview: str = ""
    sql_statements: list[str] = Field(default_factory=list)
    metadata: CandidateMetrics = Field(default_factory=CandidateMetrics)

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.source_table, self.source_field, self.target_table)


def proposal_id(source_table: str, source_field: str, target_table: str) -> str:
    return f"rel-{source_table}-{source_field}-{target_table}"


class ReportSummary(ReportModel):
    total_candidates: int = 0
    accepted: int = 0
    rejected: int = 0
    errors: int = 0
    tables_analyzed: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
    by_confidence_bucket: dict[str, int] = Field(default_factory=dict)
    duration_seconds: float = 0.0


class RelationshipProposalReport(ReportModel):
    """Output of one analysis run."""

    analysis_id: str
    created_at: datetime
    source: str
    summary: ReportSummary
    relationships: list[RelationshipProposal] = Field(default_factory=list)
    candidates: list[CandidateResult] = Field(default_factory=list)
    issues: list[AnalysisIssue] = Field(default_factory=list)
    cancelled: bool = False

    def by_bucket(self) -> dict[ConfidenceBucket, list[RelationshipProposal]]:
        """Proposals grouped by confidence bucket, each group in report order."""
        groups: dict[ConfidenceBucket, list[RelationshipProposal]] = {b: [] for b in ConfidenceBucket}
        for proposal in self.relationships:
            groups[proposal.confidence_bucket].append(proposal)
        return groups

    def get(self, source_table: str, source_field: str) -> list[RelationshipProposal]:
        return [
            p
            for p in self.relationships
            if p.source_table == source_table and p.source_field == source_field
        ]
