"""
Configuration management using Pydantic Settings.

Provides the configuration sections used by the import pipeline.
Supports environment variables, .env files, and programmatic configuration.
"""

from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ImportConfig(BaseSettings):
    """Configuration for a release import run."""

    status: str = Field(default="cpan", description="Status of the indexed releases")
    detect_backpan: bool = Field(default=False, description="Enable when indexing from a backpan")
    skip: bool = Field(default=False, description="Skip already indexed releases")
    age: Optional[int] = Field(None, ge=1, description="Index releases no older than x hours")
    latest: bool = Field(default=False, description="Recompute 'latest' after each release")
    bulk_size: int = Field(default=10, ge=1, description="Documents per bulk commit")
    throttle_seconds: float = Field(default=0.0, ge=0.0, description="Pause after each import")

    model_config = SettingsConfigDict(
        env_prefix="RELEASE_IMPORT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow"
    )


class MirrorConfig(BaseSettings):
    """Configuration for the local mirror and remote archive downloads."""

    cpan_root: Path = Field(default=Path("~/CPAN"), description="Local CPAN mirror root")
    http_cache_dir: Path = Field(
        default=Path("var/tmp/http/authors"),
        description="Download cache for archives given as URLs"
    )
    testing: bool = Field(default=False, description="Use the 't' download cache segment")
    user_agent: str = Field(default="release-indexer", description="HTTP User-Agent")
    timeout: int = Field(default=30, ge=1, description="Download timeout (seconds)")
    max_retries: int = Field(default=3, ge=1, description="Download attempts on transport errors")

    model_config = SettingsConfigDict(
        env_prefix="MIRROR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow"
    )

    @property
    def mirror_root(self) -> Path:
        return self.cpan_root.expanduser()


class StorageConfig(BaseSettings):
    """Configuration for the search index."""

    index_path: Path = Field(default=Path("./data/release-index.db"), description="SQLite index path")

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow"
    )


class PurgeConfig(BaseSettings):
    """Configuration for CDN cache purging."""

    enabled: bool = Field(default=False, description="Send purge requests to the CDN")
    api_url: str = Field(default="https://api.fastly.com", description="Purge API base URL")
    service_id: str = Field(default="", description="CDN service identifier")
    api_key_env: str = Field(default="PURGE_API_KEY", description="Environment variable for API key")
    timeout: int = Field(default=10, ge=1, description="Request timeout (seconds)")

    model_config = SettingsConfigDict(
        env_prefix="PURGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow"
    )


class ReleaseIndexerSettings(BaseSettings):
    """
    Unified configuration for release-indexer.

    Combines all sub-configurations into a single settings object.
    """

    importer: ImportConfig = Field(default_factory=ImportConfig)
    mirror: MirrorConfig = Field(default_factory=MirrorConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    purge: PurgeConfig = Field(default_factory=PurgeConfig)

    # General settings
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow"
    )


# Singleton instance
_settings: Optional[ReleaseIndexerSettings] = None


def get_settings() -> ReleaseIndexerSettings:
    """Get global settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = ReleaseIndexerSettings()
    return _settings


def load_config_from_dict(config_dict: Dict[str, Any]) -> ReleaseIndexerSettings:
    """
    Load configuration from a dictionary.

    Keys are the section names ("import", "mirror", "storage", "purge");
    missing sections fall back to environment/defaults.
    """
    return ReleaseIndexerSettings(
        importer=ImportConfig(**config_dict.get("import", {})),
        mirror=MirrorConfig(**config_dict.get("mirror", {})),
        storage=StorageConfig(**config_dict.get("storage", {})),
        purge=PurgeConfig(**config_dict.get("purge", {})),
        debug=config_dict.get("debug", False),
        log_level=config_dict.get("log_level", "INFO"),
    )
