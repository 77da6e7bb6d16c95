"""Cardinality classification.

Relationship types are named from the source table's point of view:

    max_links_from <= 1, max_links_to <= 1  -> one-to-one
    max_links_from <= 1, max_links_to >  1  -> many-to-one
    max_links_from >  1, max_links_to <= 1  -> one-to-many
    max_links_from >  1, max_links_to >  1  -> many-to-many

max_links_from is the max number of elements in one source record;
max_links_to is the max number of source records referencing one value.
When max_links_to is unknown the field shape decides: scalar columns are
many-to-one, array columns one-to-many.
"""

from __future__ import annotations

from relinfer.analysis.relationships.models import CardinalityResult
from relinfer.core.config import CardinalityConfig
from relinfer.core.models import FieldShape, RelationshipType


class CardinalityClassifier:
    def __init__(self, config: CardinalityConfig | None = None):
        self.config = config or CardinalityConfig()

    def _source_many(self, max_links_from: int, avg_links_from: float, shape: FieldShape) -> bool:
        if max_links_from <= self.config.from_many_threshold:
            return False
        cutoff = self.config.avg_links_cutoff
        if cutoff is not None and shape == FieldShape.ARRAY and avg_links_from < cutoff:
            return False
        return True

    def classify(
        self,
        max_links_from: int,
        max_links_to: int | None,
        shape: FieldShape,
        avg_links_from: float = 0.0,
    ) -> CardinalityResult:
        """Classify a candidate from its measured link counts.

        Args:
            max_links_from: Max elements per source record
            max_links_to: Max source records per referenced value (None if unknown)
            shape: Physical shape of the source column
            avg_links_from: Average elements per non-empty source record

        Returns:
            CardinalityResult; measured=False when the shape fallback was used
        """
        if max_links_to is None:
            fallback = (
                RelationshipType.ONE_TO_MANY
                if shape == FieldShape.ARRAY
                else RelationshipType.MANY_TO_ONE
            )
            return CardinalityResult(
                relationship_type=fallback,
                measured=False,
                max_links_from=max_links_from,
                max_links_to=None,
            )

        source_many = self._source_many(max_links_from, avg_links_from, shape)
        target_many = max_links_to > self.config.to_many_threshold
        return CardinalityResult(
            relationship_type=RelationshipType.from_sides(source_many, target_many),
            measured=True,
            max_links_from=max_links_from,
            max_links_to=max_links_to,
        )
