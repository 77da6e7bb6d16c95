"""Candidate generation.

Combines declared links and naming matches into (source column -> target
table) pairs to test. Link-like columns with neither get a candidate with no
target, resolved later by scanning the data.
"""

from __future__ import annotations

import re

from relinfer.analysis.relationships.models import CandidateRelationship, SchemaEvidence
from relinfer.analysis.relationships.naming import NamingPatternMatcher
from relinfer.core.config import InferenceConfig
from relinfer.core.logging import get_logger
from relinfer.core.models import EvidenceOrigin, FieldShape
from relinfer.sources.models import Column, Table

logger = get_logger(__name__)

# Element types that can hold opaque record identifiers
_IDENTIFIER_TYPE = re.compile(
    r"^(VARCHAR|TEXT|STRING|CHAR|BPCHAR|UUID|"
    r"TINYINT|SMALLINT|INTEGER|INT|BIGINT|HUGEINT|UTINYINT|USMALLINT|UINTEGER|UBIGINT)"
    r"(\(\d+\))?(\[\d*\])?$",
    re.IGNORECASE,
)


def is_identifier_type(data_type: str) -> bool:
    return bool(_IDENTIFIER_TYPE.match(data_type.strip()))


class CandidateGenerator:
    """Builds the list of candidates to analyse."""

    def __init__(self, matcher: NamingPatternMatcher, config: InferenceConfig | None = None):
        self.matcher = matcher
        self.config = config or InferenceConfig()

    def _is_link_like(self, column: Column) -> bool:
        return column.shape == FieldShape.ARRAY or self.matcher.has_identifier_suffix(column.name)

    def for_column(
        self,
        table: Table,
        column: Column,
        target_names: list[str],
        schema: SchemaEvidence | None,
    ) -> list[CandidateRelationship]:
        """Candidates for one column, at most one per target table."""
        if column.name == table.key_column:
            return []
        if schema is None and not is_identifier_type(column.data_type):
            return []

        naming = self.matcher.match(column.name, target_names)
        candidates: list[CandidateRelationship] = []

        if schema is not None and (
            schema.target_table != table.name or self.config.allow_self_references
        ):
            both = naming is not None and naming.target_table == schema.target_table
            candidates.append(
                CandidateRelationship(
                    source_table=table.name,
                    source_column=column.name,
                    target_table=schema.target_table,
                    field_shape=column.shape,
                    origin_evidence=EvidenceOrigin.BOTH if both else EvidenceOrigin.SCHEMA,
                    schema_evidence=schema,
                    naming_match=naming if both else None,
                )
            )
            if both:
                return candidates

        if naming is not None:
            candidates.append(
                CandidateRelationship(
                    source_table=table.name,
                    source_column=column.name,
                    target_table=naming.target_table,
                    field_shape=column.shape,
                    origin_evidence=EvidenceOrigin.NAMING,
                    naming_match=naming,
                )
            )
        elif not candidates and self.config.target_discovery and self._is_link_like(column):
            candidates.append(
                CandidateRelationship(
                    source_table=table.name,
                    source_column=column.name,
                    target_table=None,
                    field_shape=column.shape,
                    origin_evidence=EvidenceOrigin.DATA,
                )
            )
        return candidates

    def generate(
        self,
        tables: list[Table],
        schema_evidence: dict[tuple[str, str], SchemaEvidence] | None = None,
    ) -> list[CandidateRelationship]:
        """Generate candidates for every column of every table.

        Args:
            tables: Profiled tables
            schema_evidence: Resolved declared links keyed by (table, field)

        Returns:
            Candidates ordered by source table, column position, target
        """
        schema_evidence = schema_evidence or {}
        keyed = [t.name for t in tables if t.key_column is not None]
        candidates: list[CandidateRelationship] = []

        for table in sorted(tables, key=lambda t: t.name):
            target_names = [
                name for name in keyed if name != table.name or self.config.allow_self_references
            ]
            for column in table.columns:
                candidates.extend(
                    self.for_column(
                        table, column, target_names, schema_evidence.get((table.name, column.name))
                    )
                )

        logger.info(
            "candidates_generated",
            total=len(candidates),
            schema=sum(1 for c in candidates if c.origin_evidence == EvidenceOrigin.SCHEMA),
            naming=sum(1 for c in candidates if c.origin_evidence == EvidenceOrigin.NAMING),
            both=sum(1 for c in candidates if c.origin_evidence == EvidenceOrigin.BOTH),
            discovery=sum(1 for c in candidates if c.origin_evidence == EvidenceOrigin.DATA),
        )
        return candidates
