"""Naming heuristics - propose a target table from a column name.

Works without data. Rules in priority order:
1. The column name is a table name (singular/plural tolerant)
2. The column name is <base> + an identifier suffix (_id, _ref, _key, ...)
   and <base> is a table name (singular/plural tolerant)
3. Normalized edit-distance similarity to a table name meets the threshold

A match only proposes a target to test; it never creates a relationship.
"""

from __future__ import annotations

from collections.abc import Iterable
from functools import lru_cache

import inflect
from rapidfuzz.distance import Levenshtein

from relinfer.analysis.relationships.models import NamingMatch
from relinfer.core.config import NamingConfig
from relinfer.core.naming import to_snake_case

_inflect = inflect.engine()


@lru_cache(maxsize=4096)
def name_forms(name: str) -> frozenset[str]:
    """Normalized name plus its singular and plural forms.

    Only the last underscore-separated word is inflected, so
    "order_items" yields "order_item" and vice versa.
    """
    normalized = to_snake_case(name)
    if not normalized:
        return frozenset()

    head, _, last = normalized.rpartition("_")
    prefix = f"{head}_" if head else ""
    forms = {normalized}
    if len(last) > 2 and not last.isdigit():
        singular = _inflect.singular_noun(last)
        if singular:
            forms.add(prefix + singular)
        else:
            forms.add(prefix + _inflect.plural_noun(last))
    return frozenset(forms)


def similarity(a: str, b: str) -> float:
    """Normalized edit-distance similarity in [0, 1]."""
    return Levenshtein.normalized_similarity(to_snake_case(a), to_snake_case(b))


class NamingPatternMatcher:
    """Proposes a target table for a column from names alone."""

    def __init__(self, config: NamingConfig | None = None):
        self.config = config or NamingConfig()

    def strip_suffix(self, column_name: str) -> str | None:
        """Return the base of a suffixed identifier column, or None."""
        normalized = to_snake_case(column_name)
        for suffix in self.config.suffixes:
            if normalized.endswith(suffix) and len(normalized) > len(suffix):
                base = normalized[: -len(suffix)].rstrip("_")
                if base:
                    return base
        return None

    def has_identifier_suffix(self, column_name: str) -> bool:
        return self.strip_suffix(column_name) is not None

    def match(self, column_name: str, table_names: Iterable[str]) -> NamingMatch | None:
        """Find the best target table for a column.

        Args:
            column_name: Source column name
            table_names: Candidate target tables (caller excludes the source table
                when self references are not allowed)

        Returns:
            Best NamingMatch, or None when no rule applies
        """
        tables = sorted(set(table_names))
        if not tables:
            return None

        column_forms = name_forms(column_name)
        for table in tables:
            if column_forms & name_forms(table):
                return NamingMatch(target_table=table, similarity=1.0, rule="exact")

        base = self.strip_suffix(column_name)
        if base is not None:
            base_forms = name_forms(base)
            for table in tables:
                if base_forms & name_forms(table):
                    return NamingMatch(
                        target_table=table,
                        similarity=self.config.suffix_match_similarity,
                        rule="suffix",
                    )

        compare = column_forms | (name_forms(base) if base else frozenset())
        best: tuple[float, str] | None = None
        for table in tables:
            score = max(
                Levenshtein.normalized_similarity(a, b)
                for a in compare
                for b in name_forms(table)
            )
            if best is None or score > best[0]:
                best = (score, table)

        if best is not None and best[0] >= self.config.similarity_threshold:
            return NamingMatch(
                target_table=best[1], similarity=round(best[0], 3), rule="similarity"
            )
        return None
