"""Schema evidence - declared links from source system metadata.

A declared link is worth a baseline confidence, raised when the link is
symmetric or has an inverse field, and capped for schema-only evidence.
"""

from __future__ import annotations

from collections.abc import Mapping

from relinfer.analysis.relationships.models import SchemaEvidence
from relinfer.core.config import SchemaEvidenceConfig
from relinfer.core.errors import SchemaResolutionError
from relinfer.core.logging import get_logger
from relinfer.core.models import AnalysisIssue, IssueKind
from relinfer.core.naming import to_snake_case
from relinfer.sources.models import LinkDescriptor, Table

logger = get_logger(__name__)


class _TableIndex:
    """Resolves table references by exact name, case-insensitive name,
    snake_case name, or source-system table id."""

    def __init__(self, tables: list[Table]):
        self._by_key: dict[str, Table] = {}
        for table in tables:
            if table.table_id:
                self._by_key.setdefault(f"id:{table.table_id}", table)
        for table in tables:
            self._by_key.setdefault(table.name, table)
        for table in tables:
            self._by_key.setdefault(table.name.lower(), table)
            self._by_key.setdefault(to_snake_case(table.name), table)

    def find(self, ref: str) -> Table | None:
        for key in (f"id:{ref}", ref, ref.lower(), to_snake_case(ref)):
            table = self._by_key.get(key)
            if table is not None:
                return table
        return None


def _find_column(table: Table, field: str) -> str | None:
    if table.get_column(field) is not None:
        return field
    wanted = to_snake_case(field)
    for col in table.columns:
        if col.name.lower() == field.lower() or to_snake_case(col.name) == wanted:
            return col.name
    return None


class SchemaEvidenceCollector:
    """Resolves declared links against the profiled tables."""

    def __init__(self, config: SchemaEvidenceConfig | None = None):
        self.config = config or SchemaEvidenceConfig()

    def confidence_for(self, link: LinkDescriptor) -> float:
        confidence = self.config.base_confidence
        if link.is_symmetric:
            confidence += self.config.symmetric_bonus
        if link.has_inverse_field:
            confidence += self.config.inverse_field_bonus
        return round(min(confidence, self.config.max_confidence), 3)

    def resolve(
        self,
        link: LinkDescriptor,
        index: _TableIndex,
        table_ids: Mapping[str, str],
    ) -> SchemaEvidence:
        """Resolve one link.

        Raises:
            SchemaResolutionError: If the source or target cannot be found
        """
        source = index.find(link.source_table)
        if source is None:
            raise SchemaResolutionError(
                link.source_table,
                link.source_field,
                link.target_table_id,
                f"Declared link source table '{link.source_table}' does not exist",
            )
        source_field = _find_column(source, link.source_field)
        if source_field is None:
            raise SchemaResolutionError(
                link.source_table,
                link.source_field,
                link.target_table_id,
                f"Declared link field {source.name}.{link.source_field} does not exist",
            )

        target_name = table_ids.get(link.target_table_id, link.target_table_id)
        target = index.find(target_name) or index.find(link.target_table_id)
        if target is None:
            raise SchemaResolutionError(link.source_table, link.source_field, link.target_table_id)

        return SchemaEvidence(
            link=link,
            source_table=source.name,
            source_field=source_field,
            target_table=target.name,
            confidence=self.confidence_for(link),
            declared_type=link.declared_type,
        )

    def collect(
        self,
        links: list[LinkDescriptor],
        tables: list[Table],
        table_ids: Mapping[str, str] | None = None,
    ) -> tuple[dict[tuple[str, str], SchemaEvidence], list[AnalysisIssue]]:
        """Resolve all declared links.

        Args:
            links: Declared link descriptors
            tables: Profiled tables
            table_ids: Source-system table id -> table name

        Returns:
            Evidence keyed by (source_table, source_field), and one issue per
            unresolvable link
        """
        index = _TableIndex(tables)
        evidence: dict[tuple[str, str], SchemaEvidence] = {}
        issues: list[AnalysisIssue] = []

        for link in links:
            try:
                resolved = self.resolve(link, index, table_ids or {})
            except SchemaResolutionError as e:
                logger.warning(
                    "schema_link_unresolved",
                    table=link.source_table,
                    field=link.source_field,
                    target=link.target_table_id,
                )
                issues.append(
                    AnalysisIssue(
                        kind=IssueKind.SCHEMA_RESOLUTION_ERROR,
                        message=str(e),
                        table=link.source_table,
                        column=link.source_field,
                    )
                )
                continue

            key = (resolved.source_table, resolved.source_field)
            existing = evidence.get(key)
            if existing is None or resolved.confidence > existing.confidence:
                evidence[key] = resolved

        logger.info("schema_evidence_collected", links=len(links), resolved=len(evidence))
        return evidence, issues
