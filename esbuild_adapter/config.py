"""Configuration settings for esbuild_adapter.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_workspace_root() -> Path:
    """Return the default workspace root (the current directory)."""
    return Path.cwd()


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the ESBUILD_ADAPTER_
    prefix. CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="ESBUILD_ADAPTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Bundler
    esbuild_binary: str = Field(
        default="esbuild",
        description="Name or path of the esbuild executable",
    )
    workspace_root: Path = Field(
        default_factory=_default_workspace_root,
        description="Root directory that output paths are made relative to",
    )
    tmp_dir: Path | None = Field(
        default=None,
        description="Directory for in-memory build staging (system default if not set)",
    )

    # Timeouts (in seconds)
    build_timeout: int | None = Field(
        default=None,
        ge=1,
        description="Timeout for a single esbuild invocation (no timeout if not set)",
    )

    # Output
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    color: bool = Field(
        default=True,
        description="Colorize formatted diagnostics",
    )


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
