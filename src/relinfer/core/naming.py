"""Name normalization shared by schema import and naming heuristics."""

from __future__ import annotations

import re

_SEPARATORS = re.compile(r"[\s\-.]+")
_LOWER_UPPER = re.compile(r"([a-z])([A-Z])")
_DIGIT_UPPER = re.compile(r"([0-9])([A-Z])")
_ACRONYM = re.compile(r"([A-Z]+)([A-Z][a-z])")
_INVALID = re.compile(r"[^a-zA-Z0-9_]")
_UNDERSCORES = re.compile(r"_+")


def to_snake_case(name: str) -> str:
    """Convert a display name to a snake_case identifier.

    Examples:
        >>> to_snake_case("Customer Ref")
        'customer_ref'
        >>> to_snake_case("customerId")
        'customer_id'
        >>> to_snake_case("XMLHttpRequest")
        'xml_http_request'
    """
    if not name:
        return name
    result = _SEPARATORS.sub("_", name)
    result = _LOWER_UPPER.sub(r"\1_\2", result)
    result = _DIGIT_UPPER.sub(r"\1_\2", result)
    result = _ACRONYM.sub(r"\1_\2", result)
    result = _INVALID.sub("_", result).lower()
    result = _UNDERSCORES.sub("_", result).strip("_")
    if result and result[0].isdigit():
        result = f"table_{result}"
    return result
