"""Tests for declared link resolution."""

import pytest

from relinfer.analysis.relationships.schema_evidence import SchemaEvidenceCollector
from relinfer.core.config import SchemaEvidenceConfig
from relinfer.core.models import IssueKind, RelationshipType
from relinfer.sources.models import LinkDescriptor


def _link(**kwargs):
    values = {
        "source_table": "orders",
        "source_field": "customer_ref",
        "target_table_id": "tblCustomers",
    }
    values.update(kwargs)
    return LinkDescriptor(**values)


@pytest.fixture
def tables(make_table):
    return [
        make_table("orders", [("id", "VARCHAR"), ("customer_ref", "VARCHAR")]),
        make_table("customers", [("id", "VARCHAR")], table_id="tblCustomers"),
        make_table("order_items", [("id", "VARCHAR"), ("order_ref", "VARCHAR")]),
    ]


class TestConfidence:
    """Tests for schema confidence."""

    @pytest.mark.parametrize(
        "symmetric,inverse,expected",
        [
            (False, False, 0.65),
            (True, False, 0.75),
            (False, True, 0.75),
            (True, True, 0.8),
        ],
    )
    def test_confidence_for(self, symmetric, inverse, expected):
        collector = SchemaEvidenceCollector()
        link = _link(is_symmetric=symmetric, has_inverse_field=inverse)
        assert collector.confidence_for(link) == pytest.approx(expected)

    def test_cap_is_configurable(self):
        collector = SchemaEvidenceCollector(SchemaEvidenceConfig(max_confidence=0.7))
        assert collector.confidence_for(_link(is_symmetric=True, has_inverse_field=True)) == 0.7


class TestCollect:
    """Tests for resolving links against tables."""

    def test_resolves_by_table_id(self, tables):
        evidence, issues = SchemaEvidenceCollector().collect([_link()], tables)
        resolved = evidence[("orders", "customer_ref")]
        assert resolved.target_table == "customers"
        assert resolved.declared_type == RelationshipType.ONE_TO_MANY
        assert issues == []

    def test_resolves_through_id_map(self, make_table):
        tables = [
            make_table("orders", [("id", "VARCHAR"), ("customer_ref", "VARCHAR")]),
            make_table("customers", [("id", "VARCHAR")]),
        ]
        evidence, _ = SchemaEvidenceCollector().collect(
            [_link()], tables, {"tblCustomers": "Customers"}
        )
        assert evidence[("orders", "customer_ref")].target_table == "customers"

    def test_display_names_are_normalized(self, tables):
        link = _link(source_table="Order Items", source_field="Order Ref", target_table_id="Orders")
        evidence, issues = SchemaEvidenceCollector().collect([link], tables)
        assert evidence[("order_items", "order_ref")].target_table == "orders"
        assert issues == []

    def test_unknown_target_is_an_issue(self, tables):
        evidence, issues = SchemaEvidenceCollector().collect(
            [_link(target_table_id="tblMissing")], tables
        )
        assert evidence == {}
        (issue,) = issues
        assert issue.kind == IssueKind.SCHEMA_RESOLUTION_ERROR
        assert "tblMissing" in issue.message
        assert (issue.table, issue.column) == ("orders", "customer_ref")

    def test_unknown_source_field_is_an_issue(self, tables):
        _, issues = SchemaEvidenceCollector().collect([_link(source_field="nope")], tables)
        assert "orders.nope does not exist" in issues[0].message

    def test_unknown_source_table_is_an_issue(self, tables):
        _, issues = SchemaEvidenceCollector().collect([_link(source_table="invoices")], tables)
        assert "'invoices' does not exist" in issues[0].message

    def test_strongest_link_per_field_wins(self, tables):
        links = [_link(), _link(is_symmetric=True, has_inverse_field=True)]
        evidence, _ = SchemaEvidenceCollector().collect(links, tables)
        assert evidence[("orders", "customer_ref")].confidence == 0.8
