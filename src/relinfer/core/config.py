"""Configuration management.

Two layers:
- Settings: process-level settings from environment variables (pydantic-settings).
- InferenceConfig: thresholds and weights for the inference pipeline, loaded
  from config/relationships.yaml.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from relinfer.core.errors import ConfigurationError

CONFIG_FILENAME = "relationships.yaml"


def _find_config_dir() -> Path:
    """Find the config directory by walking up from the package location.

    Falls back to relative Path("config") if not found.
    """
    # src/relinfer/core/config.py -> project root is 4 levels up
    package_dir = Path(__file__).resolve().parent.parent.parent.parent
    candidate = package_dir / "config"
    if candidate.is_dir():
        return candidate

    return Path("config")


class Settings(BaseSettings):
    """Application settings.

    All settings can be overridden via environment variables.
    Prefix: RELINFER_
    """

    model_config = SettingsConfigDict(
        env_prefix="RELINFER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Report store (SQLAlchemy)
    database_url: str = Field(
        default="sqlite:///./relinfer.db",
        description="SQLAlchemy database URL for persisted reports",
    )

    # DuckDB
    duckdb_path: Path | None = Field(
        default=None,
        description="DuckDB database analysed when the CLI is given no path",
    )

    # Configuration paths
    config_path: Path = Field(
        default_factory=_find_config_dir,
        description="Directory holding relationships.yaml",
    )

    max_workers: int | None = Field(
        default=None,
        description="Worker pool size override (None = use relationships.yaml)",
    )

    # Logging
    log_level: str = Field(default="WARNING")
    log_format: str = Field(default="console")  # 'json' or 'console'


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# === Inference configuration ===


class SchemaEvidenceConfig(BaseModel):
    """Confidence for declared links."""

    base_confidence: float = 0.65
    symmetric_bonus: float = 0.10
    inverse_field_bonus: float = 0.10
    max_confidence: float = 0.80


class NamingConfig(BaseModel):
    """Naming heuristic parameters."""

    similarity_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    # Longest first so "_ids" is stripped before "_id"
    suffixes: list[str] = Field(
        default_factory=lambda: ["_ids", "_id", "_refs", "_ref", "_keys", "_key"]
    )
    suffix_match_similarity: float = 0.9
    # Contribution of naming similarity to the data confidence
    weight: float = 0.0


class CardinalityConfig(BaseModel):
    """Thresholds for the one/many decision on each side.

    A side is "many" when its measured maximum exceeds the threshold.
    When avg_links_cutoff is set, an array column whose average links per
    record is below the cutoff is treated as a "one" source side.
    """

    from_many_threshold: int = Field(default=1, ge=1)
    to_many_threshold: int = Field(default=1, ge=1)
    avg_links_cutoff: float | None = None


class VolumeConfig(BaseModel):
    min_total_rows: int = 100
    min_non_null: int = 50


class ScoringWeights(BaseModel):
    """Weighted-sum contributions for data confidence."""

    referential_integrity: float = 0.30
    measured_cardinality: float = 0.40
    fallback_cardinality: float = 0.15
    clean_pattern_bonus: float = 0.10
    many_to_many_bonus: float = 0.05
    shape_match: float = 0.20
    shape_mismatch: float = 0.10
    data_volume: float = 0.10
    schema_blend: float = 0.3
    data_blend: float = 0.7
    agreement_bonus: float = 0.10
    min_confidence: float = 0.1
    max_confidence: float = 0.99

    @model_validator(mode="after")
    def _check_clamp(self) -> ScoringWeights:
        if not 0.0 <= self.min_confidence <= self.max_confidence <= 1.0:
            raise ValueError("confidence clamp must satisfy 0 <= min <= max <= 1")
        return self


class BucketConfig(BaseModel):
    high: float = 0.8
    medium: float = 0.6
    review_threshold: float = 0.8


class InferenceConfig(BaseModel):
    """All tunable parameters of the inference pipeline."""

    # Minimum-sample guard
    min_distinct_source_values: int = 5
    min_matched_values: int = 3
    min_integrity_percent: float = Field(default=50.0, ge=0.0, le=100.0)

    schema_evidence: SchemaEvidenceConfig = Field(default_factory=SchemaEvidenceConfig)
    naming: NamingConfig = Field(default_factory=NamingConfig)
    cardinality: CardinalityConfig = Field(default_factory=CardinalityConfig)
    volume: VolumeConfig = Field(default_factory=VolumeConfig)
    scoring: ScoringWeights = Field(default_factory=ScoringWeights)
    buckets: BucketConfig = Field(default_factory=BucketConfig)

    max_workers: int = Field(default=4, ge=1)
    target_discovery: bool = True
    allow_self_references: bool = False
    identifier_columns: list[str] = Field(
        default_factory=lambda: ["id", "airtable_id", "record_id"]
    )
    ddl_dialect: Literal["postgresql", "duckdb"] = "postgresql"

    def with_overrides(self, **overrides: Any) -> InferenceConfig:
        """Return a copy with top-level fields replaced (None values are ignored)."""
        update = {k: v for k, v in overrides.items() if v is not None}
        if not update:
            return self
        try:
            return InferenceConfig.model_validate({**self.model_dump(), **update})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration override: {e}") from e


def _resolve_config_file(path: Path | None) -> Path | None:
    if path is not None:
        if path.is_dir():
            path = path / CONFIG_FILENAME
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")
        return path

    search_paths = [
        get_settings().config_path / CONFIG_FILENAME,
        Path.cwd() / "config" / CONFIG_FILENAME,
    ]
    for candidate in search_paths:
        if candidate.exists():
            return candidate
    return None


@lru_cache
def load_inference_config(path: Path | None = None) -> InferenceConfig:
    """Load the inference configuration.

    Searches for config/relationships.yaml in:
    1. The explicit path (file or directory), if given
    2. Settings.config_path
    3. Current working directory

    Args:
        path: Optional explicit config file or directory

    Returns:
        InferenceConfig (defaults when no file is found)

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    config_file = _resolve_config_file(path)
    if config_file is None:
        return InferenceConfig()

    try:
        with open(config_file) as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read {config_file}: {e}") from e

    try:
        return InferenceConfig.model_validate(raw.get("relationships", raw))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_file}: {e}") from e


def clear_config_cache() -> None:
    """Clear the configuration caches (useful for testing)."""
    get_settings.cache_clear()
    load_inference_config.cache_clear()
