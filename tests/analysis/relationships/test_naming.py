"""Tests for naming heuristics."""

import pytest

from relinfer.analysis.relationships.naming import NamingPatternMatcher, name_forms, similarity
from relinfer.core.config import NamingConfig


@pytest.fixture
def matcher():
    return NamingPatternMatcher()


class TestNameForms:
    """Tests for singular/plural tolerance."""

    def test_plural_to_singular(self):
        assert "tag" in name_forms("tags")
        assert "order_item" in name_forms("order_items")

    def test_singular_to_plural(self):
        assert "categories" in name_forms("category")

    def test_short_words_are_not_inflected(self):
        assert name_forms("customer_id") == frozenset({"customer_id"})

    def test_similarity_normalizes_case(self):
        assert similarity("CustomerRef", "customer_ref") == 1.0


class TestSuffixes:
    """Tests for identifier suffix handling."""

    @pytest.mark.parametrize(
        "column,base",
        [
            ("customer_id", "customer"),
            ("tag_ids", "tag"),
            ("customerRef", "customer"),
            ("account_key", "account"),
            ("id", None),
            ("amount", None),
        ],
    )
    def test_strip_suffix(self, matcher, column, base):
        assert matcher.strip_suffix(column) == base

    def test_custom_suffixes(self):
        matcher = NamingPatternMatcher(NamingConfig(suffixes=["_fk"]))
        assert matcher.strip_suffix("customer_fk") == "customer"
        assert matcher.strip_suffix("customer_id") is None


class TestMatch:
    """Tests for target table proposals."""

    def test_exact_match(self, matcher):
        match = matcher.match("tags", ["customers", "tags"])
        assert match.target_table == "tags"
        assert match.rule == "exact"
        assert match.similarity == 1.0

    def test_singular_column_matches_plural_table(self, matcher):
        match = matcher.match("customer", ["customers"])
        assert match.rule == "exact"

    def test_suffix_match(self, matcher):
        match = matcher.match("customer_ref", ["customers", "orders"])
        assert match.target_table == "customers"
        assert match.rule == "suffix"
        assert match.similarity == 0.9

    def test_camel_case_suffix(self, matcher):
        match = matcher.match("customerId", ["customers"])
        assert match.target_table == "customers"
        assert match.rule == "suffix"

    def test_similarity_match(self, matcher):
        match = matcher.match("custmer", ["customers", "tags"])
        assert match.target_table == "customers"
        assert match.rule == "similarity"
        assert 0.8 <= match.similarity < 1.0

    def test_below_threshold(self, matcher):
        assert matcher.match("amount", ["customers", "orders"]) is None

    def test_no_tables(self, matcher):
        assert matcher.match("customer_id", []) is None

    def test_ties_go_to_first_table_by_name(self, matcher):
        """The same input always yields the same target."""
        assert matcher.match("tag_id", ["tags", "tag"]).target_table == "tag"
        assert matcher.match("tag_id", ["tag", "tags"]).target_table == "tag"
