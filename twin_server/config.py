"""
Configuration for the Twin Server.

Provides settings for twin reconciliation, reliable object sync,
the HTTP surface and manifest locations.
"""
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReconcileSettings(BaseSettings):
    """Defaults for per-property reconciliation tasks."""

    model_config = SettingsConfigDict(
        env_prefix="TWIN_RECONCILE_",
        env_file=".env",
        extra="ignore",
    )

    default_collect_cycle: float = Field(default=10.0, description="Collect interval (seconds)")
    default_report_cycle: float = Field(default=30.0, description="Report interval (seconds)")
    default_collect_retry_times: int = Field(default=3, description="Retries before a property degrades")
    collect_timeout: float = Field(default=5.0, description="Wait for a device answer (seconds)")
    retry_delay: float = Field(default=0.5, description="First retry delay (seconds)")
    backoff_multiplier: float = Field(default=2.0, description="Backoff multiplier")
    max_backoff: float = Field(default=30.0, description="Maximum backoff time (seconds)")
    min_cycle: float = Field(default=0.1, description="Lower bound for any cycle (seconds)")


class SyncSettings(BaseSettings):
    """Reliable object sync configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TWIN_SYNC_",
        env_file=".env",
        extra="ignore",
    )

    ack_timeout: float = Field(default=10.0, description="Wait for an edge acknowledgement (seconds)")
    replay_concurrency: int = Field(default=8, description="Parallel sends during reconnect replay")


class APISettings(BaseSettings):
    """HTTP surface configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TWIN_API_",
        env_file=".env",
        extra="ignore",
    )

    enabled: bool = Field(default=True, description="Serve the HTTP API")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    prefix: str = Field(default="/api/v1", description="Route prefix")
    title: str = Field(default="Twin Server API")


class TwinServerSettings(BaseSettings):
    """Main configuration for the Twin Server."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Twin Server")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # Paths
    manifests_dir: Path = Field(
        default=Path("manifests"),
        description="Directory holding device model and device YAML manifests",
    )

    # Sub-settings
    reconcile: ReconcileSettings = Field(default_factory=ReconcileSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    api: APISettings = Field(default_factory=APISettings)

    @property
    def models_file(self) -> Path:
        """Path to devicemodels.yaml."""
        return self.manifests_dir / "devicemodels.yaml"

    @property
    def devices_file(self) -> Path:
        """Path to devices.yaml."""
        return self.manifests_dir / "devices.yaml"

    def validate_paths(self) -> List[str]:
        """
        Validate that manifest paths exist.

        Returns:
            List of error messages for missing paths.
        """
        errors = []

        if not self.manifests_dir.exists():
            errors.append(f"Manifests directory not found: {self.manifests_dir}")

        if not self.models_file.exists():
            errors.append(f"Device models file not found: {self.models_file}")

        return errors


@lru_cache()
def get_twin_server_settings() -> TwinServerSettings:
    """
    Get cached twin server settings.

    Uses LRU cache to avoid re-reading environment variables on every access.
    """
    return TwinServerSettings()
