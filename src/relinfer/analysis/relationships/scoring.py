"""Confidence scoring.

Each EvidenceCollector contributes one named factor and an evidence note.
ScoringStrategy sums the data factors, blends in schema evidence when the
candidate has any, and clamps the result.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from relinfer.analysis.relationships.models import (
    CandidateRelationship,
    CardinalityResult,
    ConfidenceFactors,
)
from relinfer.core.config import InferenceConfig, ScoringWeights
from relinfer.core.models import FieldShape, RelationshipType
from relinfer.sources.models import Column, OverlapResult, Table


@dataclass(frozen=True)
class ScoringContext:
    """Everything measured for one candidate."""

    candidate: CandidateRelationship
    source: Table
    column: Column
    target: Table
    overlap: OverlapResult
    cardinality: CardinalityResult


@dataclass
class ScoreResult:
    confidence: float
    factors: ConfidenceFactors
    evidence: list[str] = field(default_factory=list)


class EvidenceCollector(Protocol):
    """Contributes one named factor to the confidence."""

    factor: str

    def evaluate(self, ctx: ScoringContext) -> tuple[float, str | None]: ...


class ReferentialIntegrityEvidence:
    factor = "referential_integrity"

    def __init__(self, weights: ScoringWeights):
        self.weights = weights

    def evaluate(self, ctx: ScoringContext) -> tuple[float, str | None]:
        o = ctx.overlap
        return self.weights.referential_integrity, (
            f"Referential integrity {o.integrity_percent:.1f}%: {o.matched} of "
            f"{o.distinct_source_values} distinct values found in "
            f"{ctx.target.name}.{ctx.target.key_column}"
        )


class CardinalityEvidence:
    factor = "cardinality_clarity"

    def __init__(self, weights: ScoringWeights):
        self.weights = weights

    def evaluate(self, ctx: ScoringContext) -> tuple[float, str | None]:
        card = ctx.cardinality
        rel = card.relationship_type.value
        if not card.measured:
            return self.weights.fallback_cardinality, (
                f"Cardinality {rel} assumed from {ctx.candidate.field_shape.value} shape "
                f"(max {card.max_links_from} links per record, references per target unknown)"
            )

        bonus = (
            self.weights.many_to_many_bonus
            if card.relationship_type == RelationshipType.MANY_TO_MANY
            else self.weights.clean_pattern_bonus
        )
        return self.weights.measured_cardinality + bonus, (
            f"Cardinality {rel} measured: max {card.max_links_from} links per source record, "
            f"max {card.max_links_to} source records per target value"
        )


class ShapeMatchEvidence:
    """Array columns should back a "many" source side, scalars a "one" side."""

    factor = "shape_match"

    def __init__(self, weights: ScoringWeights):
        self.weights = weights

    def evaluate(self, ctx: ScoringContext) -> tuple[float, str | None]:
        is_array = ctx.candidate.field_shape == FieldShape.ARRAY
        source_many = ctx.cardinality.relationship_type.source_links_many
        if is_array == source_many:
            return self.weights.shape_match, (
                f"{'Array' if is_array else 'Scalar'} column matches "
                f"{ctx.cardinality.relationship_type.value} cardinality"
            )
        return self.weights.shape_mismatch, (
            f"{'Array' if is_array else 'Scalar'} column does not match "
            f"{ctx.cardinality.relationship_type.value} cardinality"
        )


class DataVolumeEvidence:
    factor = "data_volume"

    def __init__(self, weights: ScoringWeights, min_total_rows: int, min_non_null: int):
        self.weights = weights
        self.min_total_rows = min_total_rows
        self.min_non_null = min_non_null

    def evaluate(self, ctx: ScoringContext) -> tuple[float, str | None]:
        if (
            ctx.overlap.matched > 0
            and ctx.source.row_count >= self.min_total_rows
            and ctx.column.non_null_count >= self.min_non_null
        ):
            return self.weights.data_volume, (
                f"Sample size {ctx.source.row_count} rows, {ctx.column.non_null_count} non-null"
            )
        return 0.0, None


class NamingEvidence:
    factor = "naming_similarity"

    def __init__(self, weight: float):
        self.weight = weight

    def evaluate(self, ctx: ScoringContext) -> tuple[float, str | None]:
        match = ctx.candidate.naming_match
        if match is None or match.target_table != ctx.target.name:
            return 0.0, None
        note = f"Column name matches table {match.target_table} ({match.rule}, {match.similarity:.2f})"
        return self.weight * match.similarity, note


def _families_agree(declared: RelationshipType, measured: RelationshipType) -> bool:
    return (
        declared.source_links_many == measured.source_links_many
        and declared.target_referenced_many == measured.target_referenced_many
    )


class ScoringStrategy:
    """Weighted-sum confidence from a list of evidence collectors."""

    def __init__(self, collectors: Sequence[EvidenceCollector], weights: ScoringWeights):
        self.collectors = list(collectors)
        self.weights = weights

    @classmethod
    def from_config(cls, config: InferenceConfig) -> ScoringStrategy:
        weights = config.scoring
        return cls(
            [
                ReferentialIntegrityEvidence(weights),
                CardinalityEvidence(weights),
                ShapeMatchEvidence(weights),
                DataVolumeEvidence(
                    weights, config.volume.min_total_rows, config.volume.min_non_null
                ),
                NamingEvidence(config.naming.weight),
            ],
            weights,
        )

    def clamp(self, value: float) -> float:
        return round(
            min(self.weights.max_confidence, max(self.weights.min_confidence, value)), 3
        )

    def score(self, ctx: ScoringContext) -> ScoreResult:
        contributions: dict[str, float] = {}
        evidence: list[str] = []

        schema = ctx.candidate.schema_evidence
        if schema is not None and schema.target_table == ctx.target.name:
            link = schema.link
            flags = [
                name
                for name, on in (
                    ("symmetric", link.is_symmetric),
                    ("inverse field", link.has_inverse_field),
                )
                if on
            ]
            evidence.append(
                f"Declared link to {schema.target_table} "
                f"({', '.join(flags) or 'one-way'}), schema confidence {schema.confidence:.2f}"
            )
        else:
            schema = None

        for collector in self.collectors:
            value, note = collector.evaluate(ctx)
            contributions[collector.factor] = contributions.get(collector.factor, 0.0) + value
            if note:
                evidence.append(note)

        factors = ConfidenceFactors(**{k: round(v, 4) for k, v in contributions.items()})
        data_confidence = min(1.0, factors.data_total)

        if schema is None:
            return ScoreResult(self.clamp(data_confidence), factors, evidence)

        agreement = 0.0
        if _families_agree(schema.declared_type, ctx.cardinality.relationship_type):
            agreement = self.weights.agreement_bonus
            evidence.append(
                f"Declared type {schema.declared_type.value} agrees with measured "
                f"{ctx.cardinality.relationship_type.value}"
            )
        else:
            evidence.append(
                f"Declared type {schema.declared_type.value} differs from measured "
                f"{ctx.cardinality.relationship_type.value}"
            )

        factors = factors.model_copy(
            update={"schema_evidence": schema.confidence, "schema_agreement": agreement}
        )
        blended = (
            self.weights.schema_blend * schema.confidence
            + self.weights.data_blend * data_confidence
            + agreement
        )
        return ScoreResult(self.clamp(blended), factors, evidence)
