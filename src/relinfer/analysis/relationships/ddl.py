"""DDL preview generation.

Foreign-key relationships (one-to-one, one-to-many, many-to-one):
    1. add a foreign key column
    2. backfill it from the raw column (first element for arrays)
    3. add the foreign key constraint
    4. drop the raw column

Many-to-many relationships:
    1. create a junction table with a composite unique key
    2. backfill one junction row per array element
    3. drop the raw column

Backfills only copy values present in the target, so the constraint can
always be added. Statements are text only; nothing is executed here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from sqlalchemy.dialects import postgresql

from relinfer.core.models import FieldShape, RelationshipType
from relinfer.sources.models import Table

Dialect = Literal["postgresql", "duckdb"]

_preparer = postgresql.dialect().identifier_preparer

# DuckDB types without a PostgreSQL equivalent
_POSTGRES_TYPES = {
    "HUGEINT": "NUMERIC(38)",
    "UBIGINT": "NUMERIC(20)",
    "UINTEGER": "BIGINT",
    "USMALLINT": "INTEGER",
    "UTINYINT": "SMALLINT",
    "TINYINT": "SMALLINT",
    "DOUBLE": "DOUBLE PRECISION",
}


def quote(name: str) -> str:
    """Always-quoted identifier (reserved words and mixed case are safe)."""
    return _preparer.quote_identifier(name)


@dataclass
class DDLPreview:
    proposed_action: str
    statements: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    @property
    def sql(self) -> str:
        return "\n".join([*(f"-- {n}" for n in self.notes), *self.statements])


class DDLPreviewGenerator:
    """Renders SQL text for accepted proposals."""

    def __init__(self, dialect: Dialect = "postgresql"):
        if dialect not in ("postgresql", "duckdb"):
            raise ValueError(f"Unsupported DDL dialect: {dialect}")
        self.dialect = dialect

    def _type(self, table: Table, column: str | None) -> str:
        col = table.get_column(column) if column else None
        data_type = col.data_type.upper() if col else "VARCHAR"
        if self.dialect == "postgresql":
            return _POSTGRES_TYPES.get(data_type, data_type)
        return data_type

    def generate(
        self,
        relationship_type: RelationshipType,
        source: Table,
        source_field: str,
        shape: FieldShape,
        target: Table,
        target_field: str,
    ) -> DDLPreview:
        if relationship_type == RelationshipType.MANY_TO_MANY:
            return self.junction_table(source, source_field, shape, target, target_field)
        return self.foreign_key(source, source_field, shape, target, target_field)

    def foreign_key(
        self,
        source: Table,
        source_field: str,
        shape: FieldShape,
        target: Table,
        target_field: str,
    ) -> DDLPreview:
        fk_column = f"{source_field}_fk"
        src, tgt = quote(source.name), quote(target.name)
        raw = f"{src}.{quote(source_field)}"
        if shape == FieldShape.ARRAY:
            raw = f"{raw}[1]"
        constraint = quote(f"fk_{source.name}_{fk_column}_{target.name}")

        statements = [
            f"ALTER TABLE {src} ADD COLUMN {quote(fk_column)} {self._type(target, target_field)};",
            (
                f"UPDATE {src} SET {quote(fk_column)} = t.{quote(target_field)} "
                f"FROM {tgt} AS t "
                f"WHERE CAST(t.{quote(target_field)} AS VARCHAR) = CAST({raw} AS VARCHAR);"
            ),
        ]
        constraint_sql = (
            f"ALTER TABLE {src} ADD CONSTRAINT {constraint} "
            f"FOREIGN KEY ({quote(fk_column)}) REFERENCES {tgt} ({quote(target_field)});"
        )
        if self.dialect == "duckdb":
            # DuckDB cannot add constraints to an existing table
            statements.append(f"-- {constraint_sql}")
        else:
            statements.append(constraint_sql)
        statements.append(f"ALTER TABLE {src} DROP COLUMN {quote(source_field)};")

        notes = []
        if shape == FieldShape.ARRAY:
            notes.append(f"{source.name}.{source_field} is an array; only the first element is kept")
        return DDLPreview(
            proposed_action=(
                f'Add foreign key column "{fk_column}" to "{source.name}" table '
                f'referencing "{target.name}"'
            ),
            statements=statements,
            notes=notes,
        )

    def junction_table(
        self,
        source: Table,
        source_field: str,
        shape: FieldShape,
        target: Table,
        target_field: str,
    ) -> DDLPreview:
        junction = f"{source.name}_{source_field}_links"
        action = f'Create junction table "{junction}" for many-to-many relationship'

        source_key = source.key_column
        if source_key is None:
            return DDLPreview(
                proposed_action=action,
                notes=[f"{source.name} has no identifier column; junction table cannot be backfilled"],
            )

        left = f"{source.name}_{source_key}"
        right = f"{target.name}_{target_field}"
        if right == left:
            right = f"{right}_target"

        src, tgt, jt = quote(source.name), quote(target.name), quote(junction)
        left_type = self._type(source, source_key)
        right_type = self._type(target, target_field)

        if self.dialect == "postgresql":
            left_def = f"{quote(left)} {left_type} NOT NULL REFERENCES {src} ({quote(source_key)})"
            right_def = f"{quote(right)} {right_type} NOT NULL REFERENCES {tgt} ({quote(target_field)})"
        else:
            left_def = f"{quote(left)} {left_type} NOT NULL"
            right_def = f"{quote(right)} {right_type} NOT NULL"

        create = (
            f"CREATE TABLE {jt} (\n"
            f"    {left_def},\n"
            f"    {right_def},\n"
            f"    CONSTRAINT {quote(f'uq_{junction}')} UNIQUE ({quote(left)}, {quote(right)})\n"
            f");"
        )

        ref_expr = (
            f"UNNEST({quote(source_field)})" if shape == FieldShape.ARRAY else quote(source_field)
        )
        backfill = (
            f"INSERT INTO {jt} ({quote(left)}, {quote(right)})\n"
            f"SELECT DISTINCT s.{quote(source_key)}, t.{quote(target_field)}\n"
            f"FROM (SELECT {quote(source_key)}, {ref_expr} AS ref FROM {src}) AS s\n"
            f"JOIN {tgt} AS t ON CAST(t.{quote(target_field)} AS VARCHAR) = CAST(s.ref AS VARCHAR);"
        )
        drop = f"ALTER TABLE {src} DROP COLUMN {quote(source_field)};"

        return DDLPreview(proposed_action=action, statements=[create, backfill, drop])
