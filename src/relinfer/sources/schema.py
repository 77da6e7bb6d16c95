"""Declared link metadata sources.

Links can be supplied directly, loaded from a YAML/JSON descriptor file, or
derived from an Airtable-style base schema export.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from relinfer.core.errors import ConfigurationError
from relinfer.core.naming import to_snake_case
from relinfer.sources.models import LinkDescriptor

LINK_FIELD_TYPE = "multipleRecordLinks"


class StaticSchemaMetadataSource:
    """SchemaMetadataSource backed by an in-memory list of descriptors."""

    def __init__(
        self,
        links: Iterable[LinkDescriptor],
        table_ids: Mapping[str, str] | None = None,
    ):
        self._links = list(links)
        self._table_ids = dict(table_ids or {})

    def list_declared_links(self) -> list[LinkDescriptor]:
        return list(self._links)

    def table_ids(self) -> dict[str, str]:
        return dict(self._table_ids)

    def __len__(self) -> int:
        return len(self._links)


def _read_structured_file(path: Path) -> Any:
    if not path.exists():
        raise ConfigurationError(f"Schema file not found: {path}")
    try:
        with open(path) as f:
            if path.suffix.lower() == ".json":
                return json.load(f)
            return yaml.safe_load(f)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read schema file {path}: {e}") from e


def load_link_descriptors(path: str | Path) -> StaticSchemaMetadataSource:
    """Load link descriptors from a YAML or JSON file.

    Accepted layouts:
        links: [{sourceTable, sourceField, targetTableId, ...}, ...]
        tableIds: {tblXXXX: customers}

    or a bare list of descriptors. Keys may be camelCase or snake_case.

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    path = Path(path)
    raw = _read_structured_file(path)

    if isinstance(raw, list):
        raw_links, raw_ids = raw, {}
    elif isinstance(raw, dict):
        raw_links = raw.get("links", [])
        raw_ids = raw.get("tableIds", raw.get("table_ids", {})) or {}
    else:
        raise ConfigurationError(f"Unexpected content in {path}: expected a list or mapping")

    try:
        links = [LinkDescriptor.model_validate(item) for item in raw_links]
    except ValidationError as e:
        raise ConfigurationError(f"Invalid link descriptor in {path}: {e}") from e

    return StaticSchemaMetadataSource(links, {str(k): str(v) for k, v in raw_ids.items()})


def from_airtable_schema(schema: Mapping[str, Any] | str | Path) -> StaticSchemaMetadataSource:
    """Convert an Airtable-style base schema into link descriptors.

    Table and field names are converted to snake_case, matching how the
    records were imported.

    Args:
        schema: Parsed schema ({"tables": [...]}) or a path to a JSON/YAML export

    Returns:
        Metadata source with one descriptor per linked-record field
    """
    if isinstance(schema, (str, Path)):
        schema = _read_structured_file(Path(schema))
    if not isinstance(schema, Mapping):
        raise ConfigurationError("Airtable schema must be a mapping with a 'tables' list")

    tables = schema.get("tables", [])
    table_ids = {t["id"]: to_snake_case(t["name"]) for t in tables if "id" in t and "name" in t}

    links: list[LinkDescriptor] = []
    for table in tables:
        source_table = to_snake_case(table.get("name", ""))
        for fld in table.get("fields", []):
            if fld.get("type") != LINK_FIELD_TYPE:
                continue
            options = fld.get("options") or {}
            linked_table_id = options.get("linkedTableId")
            if not linked_table_id:
                continue
            links.append(
                LinkDescriptor(
                    source_table=source_table,
                    source_field=to_snake_case(fld["name"]),
                    target_table_id=linked_table_id,
                    is_symmetric=bool(options.get("isReversed", False)),
                    has_inverse_field=bool(options.get("inverseLinkFieldId")),
                    prefers_single_record=bool(options.get("prefersSingleRecordLink", False)),
                )
            )

    return StaticSchemaMetadataSource(links, table_ids)
