"""Configuration loading and schema.

- YAML files under configs/*.yaml (optional; defaults apply without them)
- Strict ${ENV_VAR} expansion (missing/empty env vars are errors)
- Legacy MCP_* environment variables override the YAML values
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Sequence

from dotenv import load_dotenv

from jewel_assist.config.errors import ConfigError
from jewel_assist.config.loader import load_config, resolve_profile_configs
from jewel_assist.config.model import (
    DEFAULT_TOOL_TIMEOUT_S,
    AppConfig,
    DiscordConfig,
    HttpTransportConfig,
    McpClientConfig,
    StdioTransportConfig,
    build_app_config,
)

__all__ = [
    "AppConfig",
    "ConfigError",
    "DEFAULT_TOOL_TIMEOUT_S",
    "DiscordConfig",
    "HttpTransportConfig",
    "McpClientConfig",
    "StdioTransportConfig",
    "build_app_config",
    "load_app_config",
    "load_config",
    "resolve_profile_configs",
]


def load_app_config(
    paths: Path | Sequence[Path] | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    load_dotenv_file: bool = True,
) -> AppConfig:
    """Load YAML (when given) and build the typed application config."""

    if paths is None:
        if load_dotenv_file:
            load_dotenv(Path.cwd() / ".env", override=False)
        raw = {}
    else:
        raw = load_config(paths, load_dotenv_file=load_dotenv_file)
    return build_app_config(raw, environ=environ)
