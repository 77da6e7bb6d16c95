"""Factories for relationship analysis tests."""

import pytest

from relinfer.analysis.relationships.models import ConfidenceFactors, RelationshipProposal
from relinfer.core.models import (
    ConfidenceBucket,
    EvidenceOrigin,
    FieldShape,
    RelationshipType,
)
from relinfer.sources.duckdb_source import shape_for_type
from relinfer.sources.models import Column, Table


@pytest.fixture
def make_table():
    """Build a profiled Table from (name, data_type, non_null) tuples."""

    def _make(name, columns, row_count=100, key_column="id", table_id=None, max_elements=None):
        cols = []
        for col in columns:
            col_name, data_type, *rest = col
            non_null = rest[0] if rest else row_count
            shape = shape_for_type(data_type)
            elements = (max_elements or 3) if shape == FieldShape.ARRAY else 1
            cols.append(
                Column(
                    name=col_name,
                    data_type=data_type,
                    shape=shape,
                    nullable=True,
                    non_null_count=non_null,
                    distinct_count=non_null,
                    max_elements_per_record=elements if non_null else 0,
                    avg_elements_per_record=float(elements) if non_null else 0.0,
                )
            )
        return Table(
            name=name,
            row_count=row_count,
            columns=cols,
            key_column=key_column,
            table_id=table_id,
        )

    return _make


@pytest.fixture
def make_proposal():
    """Build a RelationshipProposal with only the interesting fields set."""

    def _make(
        source_table="orders",
        source_field="customer_ref",
        target_table="customers",
        confidence=0.9,
        relationship_type=RelationshipType.MANY_TO_ONE,
    ):
        return RelationshipProposal(
            id=f"rel-{source_table}-{source_field}-{target_table}",
            source_table=source_table,
            source_field=source_field,
            target_table=target_table,
            target_field="id",
            relationship_type=relationship_type,
            confidence=confidence,
            confidence_bucket=ConfidenceBucket.HIGH,
            confidence_factors=ConfidenceFactors(),
            review_required=False,
            origin_evidence=EvidenceOrigin.NAMING,
            field_shape=FieldShape.SCALAR,
        )

    return _make
