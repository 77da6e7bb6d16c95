"""Proposal deduplication and bucketing."""

from __future__ import annotations

from collections.abc import Iterable

from relinfer.analysis.relationships.models import RelationshipProposal
from relinfer.core.config import BucketConfig
from relinfer.core.models import ConfidenceBucket


class ProposalDeduplicator:
    """Keeps one proposal per (source_table, source_field, target_table).

    The highest confidence wins; on ties the first one seen is kept. The
    survivors are stable-sorted by descending confidence.
    """

    def __init__(self, config: BucketConfig | None = None):
        self.config = config or BucketConfig()

    def bucket(self, confidence: float) -> ConfidenceBucket:
        if confidence >= self.config.high:
            return ConfidenceBucket.HIGH
        if confidence >= self.config.medium:
            return ConfidenceBucket.MEDIUM
        return ConfidenceBucket.LOW

    def review_required(self, confidence: float) -> bool:
        return confidence < self.config.review_threshold

    def deduplicate(self, proposals: Iterable[RelationshipProposal]) -> list[RelationshipProposal]:
        best: dict[tuple[str, str, str], RelationshipProposal] = {}
        for proposal in proposals:
            current = best.get(proposal.key)
            if current is None or proposal.confidence > current.confidence:
                best[proposal.key] = proposal
        return sorted(best.values(), key=lambda p: p.confidence, reverse=True)

    def group(
        self, proposals: Iterable[RelationshipProposal]
    ) -> dict[ConfidenceBucket, list[RelationshipProposal]]:
        groups: dict[ConfidenceBucket, list[RelationshipProposal]] = {b: [] for b in ConfidenceBucket}
        for proposal in proposals:
            groups[self.bucket(proposal.confidence)].append(proposal)
        return groups
