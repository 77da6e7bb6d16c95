"""Relationship inference between flatly-imported tables.

Tests candidate (column -> table) pairs for referential integrity, classifies
their cardinality, scores confidence from all available evidence, and renders
DDL previews for the accepted ones.
"""

from relinfer.analysis.relationships.candidates import CandidateGenerator, is_identifier_type
from relinfer.analysis.relationships.cardinality import CardinalityClassifier
from relinfer.analysis.relationships.db_models import AnalysisRun, ProposalRecord
from relinfer.analysis.relationships.ddl import DDLPreview, DDLPreviewGenerator
from relinfer.analysis.relationships.dedup import ProposalDeduplicator
from relinfer.analysis.relationships.engine import (
    RelationshipInferenceEngine,
    infer_relationships,
)
from relinfer.analysis.relationships.integrity import ReferentialIntegrityAnalyzer
from relinfer.analysis.relationships.models import (
    CandidateMetrics,
    CandidateRelationship,
    CandidateResult,
    CardinalityResult,
    ConfidenceFactors,
    NamingMatch,
    RelationshipProposal,
    RelationshipProposalReport,
    ReportSummary,
    SchemaEvidence,
)
from relinfer.analysis.relationships.naming import NamingPatternMatcher
from relinfer.analysis.relationships.schema_evidence import SchemaEvidenceCollector
from relinfer.analysis.relationships.scoring import (
    CardinalityEvidence,
    DataVolumeEvidence,
    EvidenceCollector,
    NamingEvidence,
    ReferentialIntegrityEvidence,
    ScoringContext,
    ScoringStrategy,
    ShapeMatchEvidence,
)

__all__ = [
    # Main entry points
    "RelationshipInferenceEngine",
    "infer_relationships",
    # Components
    "CandidateGenerator",
    "CardinalityClassifier",
    "DDLPreviewGenerator",
    "NamingPatternMatcher",
    "ProposalDeduplicator",
    "ReferentialIntegrityAnalyzer",
    "SchemaEvidenceCollector",
    "ScoringStrategy",
    "is_identifier_type",
    # Evidence collectors
    "CardinalityEvidence",
    "DataVolumeEvidence",
    "EvidenceCollector",
    "NamingEvidence",
    "ReferentialIntegrityEvidence",
    "ShapeMatchEvidence",
    # Models
    "CandidateMetrics",
    "CandidateRelationship",
    "CandidateResult",
    "CardinalityResult",
    "ConfidenceFactors",
    "DDLPreview",
    "NamingMatch",
    "RelationshipProposal",
    "RelationshipProposalReport",
    "ReportSummary",
    "SchemaEvidence",
    "ScoringContext",
    # DB Models
    "AnalysisRun",
    "ProposalRecord",
]
