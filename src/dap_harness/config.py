"""Harness configuration."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings
from pydantic_settings import PydanticBaseSettingsSource
from pydantic_settings import SettingsConfigDict
from pydantic_settings import TomlConfigSettingsSource


class HarnessSettings(BaseSettings):
    """How the harness reaches the adapter under test.

    Configuration is loaded from (in order of precedence):
    1. Environment variables (prefixed with DAP_HARNESS_)
    2. Config file (./dap-harness.toml or ~/.config/dap-harness/config.toml)
    3. Default values

    Environment variable examples:
        DAP_HARNESS_ADAPTER_PATH=./out/src/nodeDebug.js
        DAP_HARNESS_RUNTIME_VERSION=v6.2.1
        DAP_HARNESS_LOG_LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="DAP_HARNESS_",
        toml_file=[
            Path("dap-harness.toml"),
            Path.home() / ".config" / "dap-harness" / "config.toml",
        ],
        extra="ignore",
    )

    # Adapter under test
    runtime: str = Field(
        default="node",
        description="Executable that runs the debug adapter.",
    )
    adapter_path: str = Field(
        default="./out/src/nodeDebug.js",
        description="Adapter entry point passed to the runtime.",
    )
    adapter_id: str = Field(
        default="node2",
        description="Adapter ID sent with the initialize request.",
    )
    port: int | None = Field(
        default=None,
        description="Port of an already running adapter; spawn one over stdio when unset.",
    )
    timeout: float = Field(
        default=5.0,
        description="Seconds to wait for adapter responses and events.",
    )
    project_root: str | None = Field(
        default=None,
        description="Root of the adapter project under test; the working directory when unset.",
    )

    # Debuggee runtime
    runtime_version: str | None = Field(
        default=None,
        description="Debuggee runtime version; detected with '<runtime> --version' when unset.",
    )
    nightly_version_prefix: str = Field(
        default="v6.2",
        description="Runtime versions with this prefix launch the nightly executable.",
    )
    nightly_executable: str = Field(
        default="node-nightly",
        description="Nightly runtime executable name, without platform suffix.",
    )

    log_level: str = Field(
        default="INFO",
        description="Level of the adapter output logger (DEBUG, INFO, WARNING, ERROR).",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include TOML config files."""
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls),
        )


# Global settings instance (lazily loaded)
_settings: HarnessSettings | None = None


def get_settings() -> HarnessSettings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = HarnessSettings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings (for testing)."""
    global _settings
    _settings = None
