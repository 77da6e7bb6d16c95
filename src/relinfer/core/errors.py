"""Error taxonomy for relationship inference.

Only ConfigurationError and TableEnumerationError escape the engine. Every
other error is isolated to the candidate it belongs to and recorded on the
report as an AnalysisIssue.
"""

from __future__ import annotations


class RelinferError(Exception):
    """Base class for all relinfer errors."""


class ConfigurationError(RelinferError):
    """Invalid or missing dataset handle or configuration. Fatal."""


class TableEnumerationError(RelinferError):
    """The data source could not list its tables. Fatal."""


class SchemaResolutionError(RelinferError):
    """A declared link references a table that does not exist."""

    def __init__(
        self,
        source_table: str,
        source_field: str,
        target_table_id: str,
        message: str | None = None,
    ):
        self.source_table = source_table
        self.source_field = source_field
        self.target_table_id = target_table_id
        super().__init__(
            message
            or f"Declared link {source_table}.{source_field} references unknown table "
            f"'{target_table_id}'"
        )


class AnalysisError(RelinferError):
    """A profiling or integrity query failed for one candidate."""

    def __init__(self, message: str, table: str | None = None, column: str | None = None):
        self.table = table
        self.column = column
        super().__init__(message)


class InsufficientEvidence(RelinferError):
    """A candidate failed the minimum-sample guard.

    Not an error: used to carry the reason for a candidate that is not promoted
    to a proposal.
    """
