"""Tests for candidate generation."""

import pytest

from relinfer.analysis.relationships.candidates import CandidateGenerator, is_identifier_type
from relinfer.analysis.relationships.models import SchemaEvidence
from relinfer.analysis.relationships.naming import NamingPatternMatcher
from relinfer.core.config import InferenceConfig
from relinfer.core.models import EvidenceOrigin, FieldShape, RelationshipType
from relinfer.sources.models import LinkDescriptor


def _generator(**overrides):
    config = InferenceConfig(**overrides)
    return CandidateGenerator(NamingPatternMatcher(config.naming), config)


def _evidence(source_table, source_field, target_table):
    return SchemaEvidence(
        link=LinkDescriptor(
            source_table=source_table, source_field=source_field, target_table_id=target_table
        ),
        source_table=source_table,
        source_field=source_field,
        target_table=target_table,
        confidence=0.65,
        declared_type=RelationshipType.ONE_TO_MANY,
    )


@pytest.fixture
def tables(make_table):
    return [
        make_table("customers", [("id", "VARCHAR"), ("name", "VARCHAR")]),
        make_table(
            "orders",
            [
                ("id", "VARCHAR"),
                ("customer_ref", "VARCHAR"),
                ("amount", "DOUBLE"),
                ("notes", "VARCHAR"),
                ("legacy_ids", "VARCHAR[]"),
            ],
        ),
        make_table("audit_log", [("message", "VARCHAR")], key_column=None),
    ]


class TestIdentifierTypes:
    @pytest.mark.parametrize(
        "data_type,expected",
        [
            ("VARCHAR", True),
            ("BIGINT", True),
            ("UUID", True),
            ("VARCHAR[]", True),
            ("INTEGER[4]", True),
            ("DOUBLE", False),
            ("TIMESTAMP", False),
            ("BOOLEAN", False),
            ("STRUCT(a INTEGER)", False),
        ],
    )
    def test_is_identifier_type(self, data_type, expected):
        assert is_identifier_type(data_type) == expected


class TestGenerate:
    """Tests for the candidate list."""

    def test_naming_and_discovery_candidates(self, tables):
        candidates = _generator().generate(tables)
        keys = {(c.source_table, c.source_column): c for c in candidates}

        assert set(keys) == {("orders", "customer_ref"), ("orders", "legacy_ids")}
        assert keys[("orders", "customer_ref")].target_table == "customers"
        assert keys[("orders", "customer_ref")].origin_evidence == EvidenceOrigin.NAMING
        assert keys[("orders", "legacy_ids")].target_table is None
        assert keys[("orders", "legacy_ids")].origin_evidence == EvidenceOrigin.DATA
        assert keys[("orders", "legacy_ids")].field_shape == FieldShape.ARRAY

    def test_discovery_can_be_disabled(self, tables):
        candidates = _generator(target_discovery=False).generate(tables)
        assert [(c.source_table, c.source_column) for c in candidates] == [("orders", "customer_ref")]

    def test_schema_and_naming_agree(self, tables):
        evidence = {("orders", "customer_ref"): _evidence("orders", "customer_ref", "customers")}
        (candidate, *_) = _generator().generate(tables, evidence)
        assert candidate.source_column == "customer_ref"
        assert candidate.origin_evidence == EvidenceOrigin.BOTH
        assert candidate.schema_evidence is not None
        assert candidate.naming_match is not None

    def test_schema_only(self, tables):
        """A declared link makes any column a candidate, whatever its name or type."""
        evidence = {("orders", "amount"): _evidence("orders", "amount", "customers")}
        candidates = _generator().generate(tables, evidence)
        amount = [c for c in candidates if c.source_column == "amount"]
        assert len(amount) == 1
        assert amount[0].origin_evidence == EvidenceOrigin.SCHEMA

    def test_schema_and_naming_disagree(self, make_table, tables):
        tables = [*tables, make_table("clients", [("id", "VARCHAR")])]
        evidence = {("orders", "customer_ref"): _evidence("orders", "customer_ref", "clients")}
        candidates = [c for c in _generator().generate(tables, evidence) if c.source_column == "customer_ref"]
        assert {(c.target_table, c.origin_evidence) for c in candidates} == {
            ("clients", EvidenceOrigin.SCHEMA),
            ("customers", EvidenceOrigin.NAMING),
        }

    def test_keyless_tables_are_never_targets(self, make_table):
        tables = [
            make_table("events", [("id", "VARCHAR"), ("audit_log_id", "VARCHAR")]),
            make_table("audit_log", [("message", "VARCHAR")], key_column=None),
        ]
        candidates = _generator(target_discovery=False).generate(tables)
        assert candidates == []

    def test_self_references(self, make_table):
        tables = [make_table("employees", [("id", "VARCHAR"), ("employee_ref", "VARCHAR")])]
        assert _generator(target_discovery=False).generate(tables) == []

        (candidate,) = _generator(target_discovery=False, allow_self_references=True).generate(tables)
        assert candidate.target_table == "employees"

    def test_deterministic_order(self, tables):
        first = _generator().generate(tables)
        second = _generator().generate(list(reversed(tables)))
        assert [c.key for c in first] == [c.key for c in second]
