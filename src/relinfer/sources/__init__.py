"""Data sources - read-only dataset access and declared link metadata."""

from relinfer.sources.base import DataSource, SchemaMetadataSource
from relinfer.sources.duckdb_source import DuckDBDataSource, quote_identifier, shape_for_type
from relinfer.sources.models import (
    Column,
    ColumnInfo,
    ColumnProfile,
    LinkDescriptor,
    OverlapResult,
    QueryResult,
    Table,
    TableInfo,
)
from relinfer.sources.schema import (
    StaticSchemaMetadataSource,
    from_airtable_schema,
    load_link_descriptors,
)

__all__ = [
    "Column",
    "ColumnInfo",
    "ColumnProfile",
    "DataSource",
    "DuckDBDataSource",
    "LinkDescriptor",
    "OverlapResult",
    "QueryResult",
    "SchemaMetadataSource",
    "StaticSchemaMetadataSource",
    "Table",
    "TableInfo",
    "from_airtable_schema",
    "load_link_descriptors",
    "quote_identifier",
    "shape_for_type",
]
