"""relinfer - relationship inference for flatly-imported tables.

Proposes foreign keys and many-to-many junction tables, with confidence
scores and DDL previews, from declared link metadata and the data itself.

Example:
    from relinfer import DuckDBDataSource, RelationshipInferenceEngine

    with DuckDBDataSource(path="import.duckdb") as source:
        report = RelationshipInferenceEngine(source).analyze()

    for proposal in report.relationships:
        print(proposal.id, proposal.relationship_type, proposal.confidence)
"""

__version__ = "0.1.0"

from relinfer.analysis.relationships import (
    RelationshipInferenceEngine,
    RelationshipProposal,
    RelationshipProposalReport,
    infer_relationships,
)
from relinfer.core import InferenceConfig, Result, SchemaCache
from relinfer.sources import DuckDBDataSource, StaticSchemaMetadataSource

__all__ = [
    "DuckDBDataSource",
    "InferenceConfig",
    "RelationshipInferenceEngine",
    "RelationshipProposal",
    "RelationshipProposalReport",
    "Result",
    "SchemaCache",
    "StaticSchemaMetadataSource",
    "infer_relationships",
    "__version__",
]
