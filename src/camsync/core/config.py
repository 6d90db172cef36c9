"""
Dynaconf-powered configuration loader with Pydantic validation.

Settings come from ``config.yaml``/``secrets.yaml`` in a configuration
directory and from ``CAMSYNC_*`` environment variables (for example
``CAMSYNC_DEVICE__BASE_URL``). The service validates them into an immutable
:class:`ConfigSnapshot`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from dynaconf import Dynaconf
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .contracts import CamsyncError
from .gateway import API_PREFIX

CONFIG_FILENAMES = ("config.yaml", "secrets.yaml")


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    """Case-insensitive dictionary lookup helper."""
    value = raw.get(key) or raw.get(key.upper()) or raw.get(key.lower())
    if isinstance(value, dict):
        return {str(k).lower(): v for k, v in value.items()}
    return {}


class ConfigError(CamsyncError):
    """Raised when configuration files are missing or invalid."""


class DeviceSettings(BaseModel):
    """Where the camera's configuration API lives."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    base_url: str = Field(default="http://192.168.1.1")
    api_prefix: str = Field(default=API_PREFIX)
    request_timeout: float | None = Field(
        default=None, description="Seconds; unset means requests wait indefinitely."
    )

    @field_validator("base_url")
    @classmethod
    def _require_scheme(cls, value: str) -> str:
        if not value.lower().startswith(("http://", "https://")):
            raise ValueError("device.base_url must start with http:// or https://")
        return value.rstrip("/")


class SessionSettings(BaseModel):
    """Timing of the session loop and the values sent during time sync."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    timezone: str | None = Field(
        default=None, description="POSIX TZ string; derived from the host clock when unset."
    )
    notification_clear_seconds: float = Field(default=5.0, gt=0)
    mqtt_status_interval: float = Field(default=2.0, gt=0)
    upgrade_settle_seconds: float = Field(default=5.0, ge=0)


class CredentialSettings(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    max_file_mb: int = Field(default=512, gt=0)

    @property
    def max_file_bytes(self) -> int:
        return self.max_file_mb * 1024 * 1024


class PreferenceSettings(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    language: str | None = Field(default=None)
    state_file: Path | None = Field(
        default=None, description="JSON file that keeps the language choice."
    )


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    level: str = Field(default="INFO")
    file: Path | None = Field(default=None)
    max_mb: int = Field(default=10, gt=0)
    backup_count: int = Field(default=3, ge=0)


class ConfigSnapshot(BaseModel):
    """Validated view of every configuration section."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    device: DeviceSettings = Field(default_factory=DeviceSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    credentials: CredentialSettings = Field(default_factory=CredentialSettings)
    preferences: PreferenceSettings = Field(default_factory=PreferenceSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


class ConfigService:
    """
    Runtime facade for loading and validating configuration.

    Without a configuration directory only defaults and environment
    variables apply. An explicit directory must contain at least one of
    :data:`CONFIG_FILENAMES`.
    """

    def __init__(
        self,
        *,
        config_dir: str | Path | None = None,
        settings: Dynaconf | None = None,
        overrides: dict[str, Any] | None = None,
    ) -> None:
        self._config_dir = Path(config_dir) if config_dir else None
        existing_files: list[str] = []
        if self._config_dir is not None:
            settings_files = [self._config_dir / name for name in CONFIG_FILENAMES]
            existing_files = [str(path) for path in settings_files if path.exists()]
            if not existing_files:
                raise ConfigError(
                    f"No configuration files found in {self._config_dir}. "
                    "Expected at least config.yaml."
                )
        self._settings = settings or Dynaconf(
            envvar_prefix="CAMSYNC",
            settings_files=existing_files,
            load_dotenv=True,
            environments=False,
        )
        self._overrides = overrides or {}
        self._snapshot = self._build_snapshot()

    @property
    def snapshot(self) -> ConfigSnapshot:
        """Latest validated configuration snapshot."""
        return self._snapshot

    def refresh(self) -> ConfigSnapshot:
        """Reload configuration files and rebuild the snapshot."""
        self._settings.reload()
        self._snapshot = self._build_snapshot()
        return self._snapshot

    def _build_snapshot(self) -> ConfigSnapshot:
        raw = self._settings.as_dict()
        data = {
            name: {**_section(raw, name), **self._overrides.get(name, {})}
            for name in ("device", "session", "credentials", "preferences", "logging")
        }
        try:
            return ConfigSnapshot.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Configuration validation failed: {exc}") from exc


__all__ = [
    "ConfigError",
    "ConfigService",
    "ConfigSnapshot",
    "CredentialSettings",
    "DeviceSettings",
    "LoggingSettings",
    "PreferenceSettings",
    "SessionSettings",
]
