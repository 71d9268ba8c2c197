import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core import (
    BackendSettings,
    CatalogSettings,
    LoggingSettings,
    ServerSettings,
    StreamingSettings,
)


__all__ = ["Settings", "ConfigurationError", "get_settings", "find_toml_config_file"]


CONFIG_FILE_NAME = ".falproxy.toml"

# Flat environment variables kept for compatibility with existing deployments
LEGACY_ENV_KEYS: dict[str, tuple[str, str]] = {
    "PORT": ("server", "port"),
    "MODEL_MAPPING": ("backend", "model_mapping"),
}


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def find_toml_config_file() -> Path | None:
    """Return the TOML config file in the current directory, if any."""
    candidate = Path.cwd() / CONFIG_FILE_NAME
    if candidate.is_file():
        return candidate
    return None


def _merge_section(current: BaseModel, values: dict[str, Any], prefer: str) -> BaseModel:
    """Merge ``values`` into a nested settings section and re-validate it.

    With ``prefer="current"`` fields explicitly set on ``current`` (from the
    environment) win over ``values``; with ``prefer="values"`` the reverse.
    """
    explicit = current.model_dump(exclude_unset=True)
    base = current.model_dump()
    if prefer == "current":
        merged = {**base, **values, **explicit}
    else:
        merged = {**base, **values}
    return type(current).model_validate(merged)


class Settings(BaseSettings):
    """
    Configuration settings for the fal proxy API server.

    Settings are loaded from environment variables, .env files and an optional
    TOML configuration file. Environment variables take precedence over the
    TOML file; CLI overrides take precedence over both.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    server: ServerSettings = Field(
        default_factory=ServerSettings,
        description="Server configuration settings",
    )

    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration",
    )

    backend: BackendSettings = Field(
        default_factory=BackendSettings,
        description="Inference backend configuration",
    )

    streaming: StreamingSettings = Field(
        default_factory=StreamingSettings,
        description="Simulated streaming configuration",
    )

    catalog: CatalogSettings = Field(
        default_factory=CatalogSettings,
        description="Advertised model catalog",
    )

    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="CORS allowed origins",
    )

    @property
    def server_url(self) -> str:
        """Get the complete server URL."""
        return f"http://{self.server.host}:{self.server.port}"

    @classmethod
    def load_toml_config(cls, toml_path: Path) -> dict[str, Any]:
        """Load configuration from a TOML file."""
        try:
            with toml_path.open("rb") as f:
                return tomllib.load(f)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot read TOML config file {toml_path}: {e}"
            ) from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML syntax in {toml_path}: {e}") from e

    @classmethod
    def from_config(
        cls,
        config_path: Path | str | None = None,
        **overrides: Any,
    ) -> "Settings":
        """Create a Settings instance from environment, TOML file and overrides.

        Args:
            config_path: Explicit TOML file; falls back to ``CONFIG_FILE`` and
                then ``.falproxy.toml`` in the working directory
            **overrides: Section dictionaries (e.g. ``server={"port": 9000}``)
                applied last

        Returns:
            Validated settings
        """
        if config_path is None:
            config_path_env = os.environ.get("CONFIG_FILE")
            if config_path_env:
                config_path = Path(config_path_env)

        if isinstance(config_path, str):
            config_path = Path(config_path)

        if config_path is None:
            config_path = find_toml_config_file()

        config_data: dict[str, Any] = {}
        if config_path is not None:
            if not config_path.exists():
                raise ConfigurationError(f"Config file not found: {config_path}")
            config_data = cls.load_toml_config(config_path)

        try:
            settings = cls()

            for key, value in config_data.items():
                current = getattr(settings, key, None)
                if isinstance(current, BaseModel) and isinstance(value, dict):
                    setattr(settings, key, _merge_section(current, value, "current"))
                elif hasattr(settings, key) and os.getenv(key.upper()) is None:
                    setattr(settings, key, value)

            for env_key, (section, field) in LEGACY_ENV_KEYS.items():
                env_value = os.environ.get(env_key)
                nested_key = f"{section.upper()}__{field.upper()}"
                if env_value is not None and os.getenv(nested_key) is None:
                    current = getattr(settings, section)
                    setattr(
                        settings,
                        section,
                        _merge_section(current, {field: env_value}, "values"),
                    )

            for key, value in overrides.items():
                current = getattr(settings, key, None)
                if isinstance(current, BaseModel) and isinstance(value, dict):
                    cleaned = {k: v for k, v in value.items() if v is not None}
                    setattr(settings, key, _merge_section(current, cleaned, "values"))
                elif value is not None:
                    setattr(settings, key, value)
        except ValueError as e:
            raise ConfigurationError(f"Configuration error: {e}") from e

        if config_path is not None:
            # Imported lazily: settings are loaded before logging is configured
            from falproxy.core.logging import get_logger

            get_logger(__name__).info(
                "config_file_loaded", path=str(config_path), category="config"
            )

        return settings


@lru_cache
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings.from_config()
