"""Core module - configuration, logging, errors, and shared models."""

from relinfer.core.cache import SchemaCache
from relinfer.core.config import (
    InferenceConfig,
    Settings,
    clear_config_cache,
    get_settings,
    load_inference_config,
)
from relinfer.core.errors import (
    AnalysisError,
    ConfigurationError,
    InsufficientEvidence,
    RelinferError,
    SchemaResolutionError,
    TableEnumerationError,
)
from relinfer.core.models import (
    AnalysisIssue,
    ConfidenceBucket,
    EvidenceOrigin,
    FieldShape,
    IssueKind,
    RelationshipType,
    Result,
)
from relinfer.core.progress import (
    CallbackProgressSink,
    LoggingProgressSink,
    NullProgressSink,
    ProgressEvent,
    ProgressSink,
    ProgressStage,
    QueueProgressSink,
)

__all__ = [
    # Config
    "InferenceConfig",
    "Settings",
    "clear_config_cache",
    "get_settings",
    "load_inference_config",
    # Errors
    "AnalysisError",
    "ConfigurationError",
    "InsufficientEvidence",
    "RelinferError",
    "SchemaResolutionError",
    "TableEnumerationError",
    # Models
    "AnalysisIssue",
    "ConfidenceBucket",
    "EvidenceOrigin",
    "FieldShape",
    "IssueKind",
    "RelationshipType",
    "Result",
    # Cache
    "SchemaCache",
    # Progress
    "CallbackProgressSink",
    "LoggingProgressSink",
    "NullProgressSink",
    "ProgressEvent",
    "ProgressSink",
    "ProgressStage",
    "QueueProgressSink",
]
