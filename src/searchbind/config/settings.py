"""Application settings — Pydantic-based configuration with YAML and env var support.

Configuration is loaded from (in order of precedence):
  1. Environment variables (SEARCHBIND_ prefix)
  2. YAML config file (if specified)
  3. Default values
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

EPHEMERAL_STORE_TYPES = frozenset({"mmapfs"})


class OpenSearchSettings(BaseModel):
    """OpenSearch cluster connection."""

    hosts: list[str] = Field(default_factory=list, description="Cluster node URLs")
    connect_string: str = Field(
        default="",
        description="Comma separated 'host:port' pairs, used when hosts is empty",
    )
    username: str | None = Field(default=None, description="HTTP basic-auth username")
    password: str | None = Field(default=None, description="HTTP basic-auth password")
    use_ssl: bool = Field(default=False, description="Connect over TLS when hosts come from connect_string")
    verify_certs: bool = Field(default=True, description="Verify TLS certificates")
    extra: dict[str, Any] = Field(default_factory=dict, description="Extra AsyncOpenSearch keyword arguments")

    @field_validator("hosts", mode="before")
    @classmethod
    def _parse_hosts(cls, v: Any) -> list[str]:
        """Parse hosts from JSON string (env var) or list."""
        if isinstance(v, str):
            import json

            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return [str(h) for h in parsed]
            except (json.JSONDecodeError, TypeError):
                pass
            # Single host as plain string
            return [v] if v else []
        return list(v)


class IndexSettings(BaseModel):
    """Index naming and creation settings."""

    prefix: str = Field(default="index_", description="Prefix prepended to the document type name")
    number_of_shards: int = Field(default=1, ge=1)
    number_of_replicas: int = Field(default=0, ge=0)
    store_type: str | None = Field(default=None, description="index.store.type for created indices")
    rebuild_on_startup: bool = Field(default=False, description="Rebuild every index when the engine starts")
    segmentation_analyzer: str = Field(
        default="smartcn",
        description="Analyzer applied to text fields that do not name one",
    )

    @property
    def ephemeral(self) -> bool:
        """Whether index storage is local and lost on restart."""
        return self.store_type in EPHEMERAL_STORE_TYPES

    @property
    def auto_rebuild(self) -> bool:
        return self.rebuild_on_startup or self.ephemeral


class ReindexSettings(BaseModel):
    """Bulk reindex behaviour."""

    batch_size: int = Field(default=20, ge=1, description="Records per bulk request")
    max_concurrent_batches: int = Field(default=4, ge=1, description="Bulk requests in flight per type")


class QuerySettings(BaseModel):
    """Search request defaults."""

    timeout: str = Field(default="10s", description="Request-level search timeout")
    max_page_size: int = Field(default=1000, ge=1, description="Result ceiling for unpaged searches")


class LockSettings(BaseModel):
    """Rebuild lock backend."""

    backend: Literal["local", "redis"] = Field(default="local")
    redis_url: str = Field(default="redis://localhost:6379/0")
    key_prefix: str = Field(default="searchbind:lock:")
    # The rebuild restarts the TTL between phases and before each type is
    # reindexed; a single phase must finish within it.
    timeout: float = Field(default=3600.0, gt=0, description="Lock TTL in seconds")


class ObservabilitySettings(BaseModel):
    """Observability configuration."""

    log_level: str = Field(default="info", description="Log level: debug, info, warning, error")
    log_format: str = Field(default="json", description="Log format: json, console")


class Settings(BaseSettings):
    """Root application settings.

    Configuration is loaded from environment variables with the SEARCHBIND_ prefix.
    Nested settings use double underscores: SEARCHBIND_INDEX__PREFIX=idx_

    Example:
        SEARCHBIND_OPENSEARCH__HOSTS='["https://search:9200"]'
        SEARCHBIND_LOCK__BACKEND=redis
        SEARCHBIND_INDEX__STORE_TYPE=mmapfs
    """

    model_config = {
        "env_prefix": "SEARCHBIND_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    app_name: str = Field(default="searchbind", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")

    opensearch: OpenSearchSettings = Field(default_factory=OpenSearchSettings)
    index: IndexSettings = Field(default_factory=IndexSettings)
    reindex: ReindexSettings = Field(default_factory=ReindexSettings)
    search: QuerySettings = Field(default_factory=QuerySettings)
    lock: LockSettings = Field(default_factory=LockSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Settings:
        """Load settings from a YAML configuration file.

        Args:
            path: Path to the YAML config file.

        Returns:
            Populated Settings instance.
        """
        import yaml  # type: ignore[import-untyped]

        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)
