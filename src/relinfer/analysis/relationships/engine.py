"""Relationship inference engine.

Pipeline:
    list tables -> profile columns -> resolve declared links
    -> generate candidates (declared links, naming, data discovery)
    -> per candidate, in a bounded worker pool:
           referential integrity -> cardinality -> confidence
    -> deduplicate -> DDL preview -> report

Candidate analysis only reads the dataset. Workers append to the shared
candidate trail under a lock; nothing else is shared. A caller-supplied
threading.Event cancels the remaining candidates; results already scored are
still reported.
"""

from __future__ import annotations

import contextvars
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from relinfer.analysis.profiling import DatasetProfiler
from relinfer.analysis.relationships.candidates import CandidateGenerator
from relinfer.analysis.relationships.cardinality import CardinalityClassifier
from relinfer.analysis.relationships.ddl import DDLPreviewGenerator
from relinfer.analysis.relationships.dedup import ProposalDeduplicator
from relinfer.analysis.relationships.integrity import ReferentialIntegrityAnalyzer
from relinfer.analysis.relationships.models import (
    CandidateMetrics,
    CandidateRelationship,
    CandidateResult,
    RelationshipProposal,
    RelationshipProposalReport,
    ReportSummary,
    proposal_id,
)
from relinfer.analysis.relationships.naming import NamingPatternMatcher
from relinfer.analysis.relationships.schema_evidence import SchemaEvidenceCollector
from relinfer.analysis.relationships.scoring import ScoringContext, ScoringStrategy
from relinfer.core.cache import SchemaCache
from relinfer.core.config import InferenceConfig, load_inference_config
from relinfer.core.errors import AnalysisError, ConfigurationError, InsufficientEvidence
from relinfer.core.logging import (
    end_analysis_metrics,
    get_logger,
    increment_cache_hit,
    log_context,
    start_analysis_metrics,
)
from relinfer.core.models import AnalysisIssue, ConfidenceBucket, EvidenceOrigin, IssueKind
from relinfer.core.naming import to_snake_case
from relinfer.core.progress import NullProgressSink, ProgressEvent, ProgressSink, ProgressStage
from relinfer.sources.base import DataSource, SchemaMetadataSource
from relinfer.sources.models import OverlapResult, Table, TableInfo

logger = get_logger(__name__)

REASON_NO_VALUES = "no non-null values"
REASON_TARGET_NOT_FOUND = "target table not found"
REASON_INSUFFICIENT = "insufficient evidence"
REASON_LOW_INTEGRITY = "referential integrity below threshold"
REASON_NO_TARGET_KEY = "target table has no identifier column"
REASON_ANALYSIS_ERROR = "analysis error"


class RelationshipInferenceEngine:
    """Infers foreign keys and many-to-many junctions from a dataset.

    Args:
        source: Read-only dataset access
        metadata: Optional declared link metadata
        config: Inference parameters (defaults to config/relationships.yaml)
        cache: Cache for table listings and column profiles, owned by the caller
        progress: Receiver of progress events
        max_workers: Worker pool size (defaults to config.max_workers)
    """

    def __init__(
        self,
        source: DataSource,
        metadata: SchemaMetadataSource | None = None,
        config: InferenceConfig | None = None,
        cache: SchemaCache | None = None,
        progress: ProgressSink | None = None,
        max_workers: int | None = None,
    ):
        if not isinstance(source, DataSource):
            raise ConfigurationError(
                f"A DataSource is required, got {type(source).__name__}"
            )
        if metadata is not None and not isinstance(metadata, SchemaMetadataSource):
            raise ConfigurationError(
                f"metadata must implement SchemaMetadataSource, got {type(metadata).__name__}"
            )
        if max_workers is not None and max_workers < 1:
            raise ConfigurationError("max_workers must be >= 1")

        self.source = source
        self.metadata = metadata
        self.config = config or load_inference_config()
        self.cache = cache
        self.progress = progress or NullProgressSink()
        self.max_workers = max_workers or self.config.max_workers

        self.schema_collector = SchemaEvidenceCollector(self.config.schema_evidence)
        self.matcher = NamingPatternMatcher(self.config.naming)
        self.generator = CandidateGenerator(self.matcher, self.config)
        self.integrity = ReferentialIntegrityAnalyzer(source, self.config)
        self.classifier = CardinalityClassifier(self.config.cardinality)
        self.scoring = ScoringStrategy.from_config(self.config)
        self.deduplicator = ProposalDeduplicator(self.config.buckets)
        self.ddl = DDLPreviewGenerator(self.config.ddl_dialect)

        self._issues: list[AnalysisIssue] = []
        self._lock = threading.Lock()

    # === Stages ===

    def _emit(self, stage: ProgressStage, message: str, **kwargs: Any) -> None:
        # A failing sink never stops the analysis
        try:
            self.progress.emit(ProgressEvent(stage=stage, message=message, **kwargs))
        except Exception as e:
            logger.warning("progress_sink_failed", stage=stage.value, error=str(e))

    def _list_tables(self) -> list[TableInfo]:
        if self.cache is None:
            return self.source.list_tables()
        key = f"{self.source.name}:tables"
        tables = self.cache.get(key)
        if tables is not None:
            increment_cache_hit()
            return tables
        tables = self.source.list_tables()
        self.cache.set(key, tables)
        return tables

    def _attach_table_ids(self, tables: list[TableInfo]) -> list[TableInfo]:
        if self.metadata is None:
            return tables
        by_name = {to_snake_case(name): tid for tid, name in self.metadata.table_ids().items()}
        return [
            t.model_copy(update={"table_id": by_name[to_snake_case(t.name)]})
            if t.table_id is None and to_snake_case(t.name) in by_name
            else t
            for t in tables
        ]

    def _add_issue(self, issue: AnalysisIssue) -> None:
        with self._lock:
            self._issues.append(issue)

    def _evaluate(
        self,
        candidate: CandidateRelationship,
        tables: dict[str, Table],
        measured: dict[str, Any],
    ) -> CandidateResult:
        """Analyse one candidate.

        Raises:
            InsufficientEvidence: When the candidate is not promoted (message is the reason)
            AnalysisError: When a query fails
        """
        source = tables[candidate.source_table]
        column = source.get_column(candidate.source_column)
        assert column is not None

        if column.profile_error:
            raise AnalysisError(column.profile_error, source.name, column.name)
        if column.non_null_count == 0:
            raise InsufficientEvidence(REASON_NO_VALUES)

        overlap: OverlapResult
        fallback_note: str | None = None
        if candidate.target_table is None:
            found = self.integrity.discover_target(source.name, column.name, list(tables.values()))
            if not found.success:
                raise AnalysisError(found.error or "target discovery failed", source.name, column.name)
            if found.value is None:
                measured["evidence"] = self._sample_note(source.name, column.name)
                raise InsufficientEvidence(REASON_TARGET_NOT_FOUND)
            target, overlap = found.value
            measured["target_table"] = target.name
        else:
            target = tables[candidate.target_table]
            if target.key_column is None:
                raise InsufficientEvidence(REASON_NO_TARGET_KEY)
            result = self.integrity.measure(source.name, column.name, target)
            if not result.success:
                raise AnalysisError(result.error or "overlap query failed", source.name, column.name)
            overlap = result.unwrap()
            if candidate.origin_evidence == EvidenceOrigin.NAMING and not self._passes(overlap):
                alternative = self._rediscover(candidate, tables)
                if alternative is not None:
                    logger.info(
                        "naming_target_replaced",
                        table=source.name,
                        column=column.name,
                        named=target.name,
                        discovered=alternative[0].name,
                    )
                    fallback_note = (
                        f"Name suggested {target.name}, but its keys matched only "
                        f"{overlap.matched} of {overlap.distinct_source_values} distinct values"
                    )
                    target, overlap = alternative
                    candidate = candidate.model_copy(
                        update={
                            "target_table": target.name,
                            "origin_evidence": EvidenceOrigin.DATA,
                            "naming_match": None,
                        }
                    )
                    measured["target_table"] = target.name

        measured["target_field"] = target.key_column
        measured["distinct_source_values"] = overlap.distinct_source_values
        measured["matched"] = overlap.matched
        measured["integrity_percent"] = round(overlap.integrity_percent, 2)
        measured["target_row_count"] = target.row_count
        measured["evidence"] = [
            f"{overlap.matched} of {overlap.distinct_source_values} distinct values "
            f"({overlap.integrity_percent:.1f}%) found in {target.name}.{target.key_column}"
        ]
        if fallback_note is not None:
            measured["evidence"].insert(0, fallback_note)

        if not self.integrity.passes_sample_guard(overlap):
            raise InsufficientEvidence(REASON_INSUFFICIENT)
        if not self.integrity.passes_integrity_threshold(overlap):
            raise InsufficientEvidence(REASON_LOW_INTEGRITY)

        try:
            max_links_to = self.source.max_references_per_value(
                source.name, column.name, target.name, target.key_column
            )
        except AnalysisError as e:
            logger.warning("max_links_to_unavailable", table=source.name, column=column.name, error=str(e))
            max_links_to = None

        cardinality = self.classifier.classify(
            column.max_elements_per_record,
            max_links_to,
            candidate.field_shape,
            column.avg_elements_per_record,
        )
        measured["max_links_to"] = cardinality.max_links_to
        measured["cardinality_measured"] = cardinality.measured

        resolved = candidate.model_copy(update={"target_table": target.name})
        score = self.scoring.score(
            ScoringContext(
                candidate=resolved,
                source=source,
                column=column,
                target=target,
                overlap=overlap,
                cardinality=cardinality,
            )
        )

        return CandidateResult(
            source_table=source.name,
            source_field=column.name,
            target_table=target.name,
            target_field=target.key_column,
            field_shape=candidate.field_shape,
            origin_evidence=candidate.origin_evidence,
            has_relationship=True,
            relationship_type=cardinality.relationship_type,
            confidence=score.confidence,
            confidence_factors=score.factors,
            evidence=[fallback_note, *score.evidence] if fallback_note else score.evidence,
            metadata=self._metrics(source, column.name, measured),
        )

    def _sample_note(self, table: str, column: str) -> list[str]:
        try:
            values = self.source.sample_values(table, column, limit=5)
        except AnalysisError as e:
            logger.warning("sample_values_failed", table=table, column=column, error=str(e))
            return []
        if not values:
            return []
        return [f"No table holds any of these values (sample: {', '.join(values)})"]

    def _passes(self, overlap: OverlapResult) -> bool:
        return self.integrity.passes_sample_guard(overlap) and self.integrity.passes_integrity_threshold(
            overlap
        )

    def _rediscover(
        self, candidate: CandidateRelationship, tables: dict[str, Table]
    ) -> tuple[Table, OverlapResult] | None:
        """Search the other tables when the name-suggested target fails the data checks."""
        if not self.config.target_discovery:
            return None
        others = [t for t in tables.values() if t.name != candidate.target_table]
        found = self.integrity.discover_target(candidate.source_table, candidate.source_column, others)
        if not found.success or found.value is None:
            return None
        return found.value if self._passes(found.value[1]) else None

    @staticmethod
    def _metrics(source: Table, column_name: str, measured: dict[str, Any]) -> CandidateMetrics:
        column = source.get_column(column_name)
        assert column is not None
        return CandidateMetrics(
            total_rows=source.row_count,
            non_null_count=column.non_null_count,
            max_links_from=column.max_elements_per_record,
            avg_links_from=column.avg_elements_per_record,
            **{
                k: v
                for k, v in measured.items()
                if k in CandidateMetrics.model_fields
            },
        )

    def _analyze_candidate(
        self, candidate: CandidateRelationship, tables: dict[str, Table]
    ) -> CandidateResult:
        """Analyse one candidate, turning every failure into a trail entry."""
        measured: dict[str, Any] = {}
        source = tables[candidate.source_table]

        def rejected(reason: str, error: str | None = None) -> CandidateResult:
            return CandidateResult(
                source_table=candidate.source_table,
                source_field=candidate.source_column,
                target_table=measured.get("target_table", candidate.target_table),
                target_field=measured.get("target_field"),
                field_shape=candidate.field_shape,
                origin_evidence=candidate.origin_evidence,
                has_relationship=False,
                reason=reason,
                error_message=error,
                evidence=measured.get("evidence", []),
                metadata=self._metrics(source, candidate.source_column, measured),
            )

        try:
            result = self._evaluate(candidate, tables, measured)
        except InsufficientEvidence as e:
            result = rejected(str(e))
        except AnalysisError as e:
            self._add_issue(
                AnalysisIssue(
                    kind=IssueKind.ANALYSIS_ERROR,
                    message=str(e),
                    table=candidate.source_table,
                    column=candidate.source_column,
                )
            )
            result = rejected(REASON_ANALYSIS_ERROR, str(e))
        except Exception as e:
            logger.exception(
                "candidate_analysis_crashed",
                table=candidate.source_table,
                column=candidate.source_column,
            )
            self._add_issue(
                AnalysisIssue(
                    kind=IssueKind.ANALYSIS_ERROR,
                    message=f"{type(e).__name__}: {e}",
                    table=candidate.source_table,
                    column=candidate.source_column,
                )
            )
            result = rejected(REASON_ANALYSIS_ERROR, f"{type(e).__name__}: {e}")

        logger.debug(
            "candidate_analyzed",
            table=result.source_table,
            column=result.source_field,
            target=result.target_table,
            has_relationship=result.has_relationship,
            reason=result.reason,
            confidence=result.confidence,
        )
        return result

    def _analyze_all(
        self,
        candidates: list[CandidateRelationship],
        tables: dict[str, Table],
        cancel_event: threading.Event | None,
    ) -> tuple[list[CandidateResult], bool]:
        trail: list[CandidateResult] = []
        total = len(candidates)
        skipped = 0
        metrics_lock = threading.Lock()

        def run(candidate: CandidateRelationship) -> None:
            nonlocal skipped
            if cancel_event is not None and cancel_event.is_set():
                with metrics_lock:
                    skipped += 1
                return

            result = self._analyze_candidate(candidate, tables)
            with self._lock:
                trail.append(result)
                done = len(trail)

            self._emit(
                ProgressStage.ANALYZING,
                f"Analyzed {candidate.source_table}.{candidate.source_column} "
                f"-> {result.target_table or '?'}",
                table_name=candidate.source_table,
                percent_complete=round(100.0 * done / total, 1),
            )

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            # Each task gets its own context copy so log context and metrics follow it
            futures = [
                pool.submit(contextvars.copy_context().run, run, candidate)
                for candidate in candidates
            ]
            for future in futures:
                future.result()

        return trail, skipped > 0

    def _to_proposal(self, result: CandidateResult, tables: dict[str, Table]) -> RelationshipProposal:
        assert result.target_table is not None
        assert result.target_field is not None
        assert result.relationship_type is not None
        assert result.confidence is not None
        assert result.confidence_factors is not None

        source = tables[result.source_table]
        target = tables[result.target_table]
        preview = self.ddl.generate(
            result.relationship_type,
            source,
            result.source_field,
            result.field_shape,
            target,
            result.target_field,
        )
        return RelationshipProposal(
            id=proposal_id(result.source_table, result.source_field, result.target_table),
            source_table=result.source_table,
            source_field=result.source_field,
            target_table=result.target_table,
            target_field=result.target_field,
            relationship_type=result.relationship_type,
            confidence=result.confidence,
            confidence_bucket=self.deduplicator.bucket(result.confidence),
            confidence_factors=result.confidence_factors,
            review_required=self.deduplicator.review_required(result.confidence),
            origin_evidence=result.origin_evidence,
            field_shape=result.field_shape,
            evidence=[*result.evidence, *preview.notes],
            proposed_action=preview.proposed_action,
            sql_preview=preview.sql,
            sql_statements=preview.statements,
            metadata=result.metadata,
        )

    def _summarize(
        self,
        trail: list[CandidateResult],
        proposals: list[RelationshipProposal],
        tables: list[Table],
        duration: float,
    ) -> ReportSummary:
        by_type: dict[str, int] = {}
        for p in proposals:
            by_type[p.relationship_type.value] = by_type.get(p.relationship_type.value, 0) + 1
        by_bucket = {b.value: 0 for b in ConfidenceBucket}
        for p in proposals:
            by_bucket[p.confidence_bucket.value] += 1

        errors = sum(1 for r in trail if r.error_message)
        return ReportSummary(
            total_candidates=len(trail),
            accepted=len(proposals),
            rejected=sum(1 for r in trail if not r.has_relationship and not r.error_message),
            errors=errors,
            tables_analyzed=len(tables),
            by_type=by_type,
            by_confidence_bucket=by_bucket,
            duration_seconds=round(duration, 3),
        )

    # === Entry point ===

    def analyze(self, cancel_event: threading.Event | None = None) -> RelationshipProposalReport:
        """Run the full pipeline.

        Args:
            cancel_event: Set it to stop analysing further candidates

        Returns:
            Report with accepted proposals, the full candidate trail and issues

        Raises:
            ConfigurationError: Invalid configuration
            TableEnumerationError: The data source cannot list its tables
        """
        analysis_id = str(uuid4())
        created_at = datetime.now(UTC)
        start = time.perf_counter()
        self._issues = []
        metrics = start_analysis_metrics(analysis_id)

        with log_context(analysis_id=analysis_id):
            try:
                self._emit(ProgressStage.STARTED, f"Analysis {analysis_id} started")

                self._emit(ProgressStage.LISTING_TABLES, "Listing tables")
                table_infos = self._attach_table_ids(self._list_tables())

                profiler = DatasetProfiler(self.source, self.cache, self.progress)
                snapshot = profiler.profile(table_infos)
                self._issues.extend(profiler.issues)
                tables = {t.name: t for t in snapshot}

                schema_evidence = {}
                if self.metadata is not None:
                    self._emit(ProgressStage.SCHEMA_EVIDENCE, "Resolving declared links")
                    schema_evidence, schema_issues = self.schema_collector.collect(
                        self.metadata.list_declared_links(),
                        snapshot,
                        self.metadata.table_ids(),
                    )
                    self._issues.extend(schema_issues)

                candidates = self.generator.generate(snapshot, schema_evidence)
                self._emit(ProgressStage.CANDIDATES, f"{len(candidates)} candidates to analyze")

                trail, cancelled = self._analyze_all(candidates, tables, cancel_event)
                metrics.increment("candidates_analyzed", len(trail))
                trail.sort(
                    key=lambda r: (
                        r.source_table,
                        r.source_field,
                        r.target_table or "",
                        r.origin_evidence.value,
                    )
                )

                self._emit(ProgressStage.REPORTING, "Building report")
                proposals = self.deduplicator.deduplicate(
                    self._to_proposal(r, tables) for r in trail if r.has_relationship
                )

                report = RelationshipProposalReport(
                    analysis_id=analysis_id,
                    created_at=created_at,
                    source=self.source.name,
                    summary=self._summarize(
                        trail, proposals, snapshot, time.perf_counter() - start
                    ),
                    relationships=proposals,
                    candidates=trail,
                    issues=list(self._issues),
                    cancelled=cancelled,
                )
            finally:
                end_analysis_metrics()

            for issue in report.issues:
                metrics.record_error(issue.message)
            logger.info(
                "analysis_completed",
                accepted=report.summary.accepted,
                candidates=report.summary.total_candidates,
                errors=report.summary.errors,
                cancelled=cancelled,
                **metrics.to_dict(),
            )

        self._emit(
            ProgressStage.CANCELLED if cancelled else ProgressStage.COMPLETED,
            f"{report.summary.accepted} relationships proposed",
            percent_complete=100.0,
        )
        return report


def infer_relationships(
    source: DataSource,
    metadata: SchemaMetadataSource | None = None,
    config: InferenceConfig | None = None,
    **kwargs: Any,
) -> RelationshipProposalReport:
    """Run a one-off analysis with a fresh engine."""
    return RelationshipInferenceEngine(source, metadata, config, **kwargs).analyze()
