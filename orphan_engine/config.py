"""
Configuration loading for the Orphan Engine.

Settings are read from a YAML (or JSON) file and validated into an
EngineConfig model. Command-line flags are applied on top with
EngineConfig.with_overrides.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

NOT_FOUND_SENTINEL = "Identity not found"


class EngineConfig(BaseModel):
    """Runtime settings for a sweep."""
    provider: str = Field("azure", description="Provider backend: azure or mock")
    tenant_id: Optional[str] = Field(None, description="Directory tenant to authenticate against")
    export_dir: str = Field("exports", description="Directory for the orphaned-bindings CSV export")
    audit_dir: str = Field("audit", description="Directory for the JSONL remediation audit log")
    max_workers: int = Field(1, description="Worker threads used to classify bindings within a scope")
    max_scope_workers: int = Field(1, description="Worker threads used to process scopes")
    strict_resolution: bool = Field(
        False, description="Report subjects whose lookups errored as indeterminate instead of orphaned"
    )
    not_found_sentinel: str = NOT_FOUND_SENTINEL
    graph_base_url: str = "https://graph.microsoft.com/v1.0"
    graph_timeout: float = 30.0
    mock_data: Optional[str] = Field(None, description="YAML fixture used by the mock provider")

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        v = v.lower()
        if v not in ("azure", "mock"):
            raise ValueError(f"Unsupported provider: {v}")
        return v

    @field_validator("max_workers", "max_scope_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Worker count must be at least 1")
        return v

    def with_overrides(self, **overrides: Any) -> "EngineConfig":
        """Return a copy with every non-None override applied and re-validated."""
        values = self.model_dump()
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return EngineConfig(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration override: {e}") from e


def load_config(path: Optional[Union[str, Path]] = None) -> EngineConfig:
    """
    Load engine configuration from a YAML or JSON file.

    Args:
        path: Path to the configuration file. When omitted or missing,
              defaults are used.

    Returns:
        Validated EngineConfig

    Raises:
        ConfigurationError: If the file cannot be parsed or validated
    """
    if path is None:
        return EngineConfig()

    config_path = Path(path)
    if not config_path.exists():
        logger.warning(f"Configuration file not found: {config_path}, using defaults")
        return EngineConfig()

    try:
        with open(config_path, encoding="utf-8") as f:
            data: Dict[str, Any] = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to read configuration {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration {config_path} must be a mapping")

    try:
        config = EngineConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e

    logger.info(f"Loaded configuration from {config_path}")
    return config
