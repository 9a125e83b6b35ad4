from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping

from jewel_assist.config.errors import ConfigError

__all__ = [
    "AppConfig",
    "DEFAULT_TOOL_TIMEOUT_S",
    "DiscordConfig",
    "HttpTransportConfig",
    "McpClientConfig",
    "StdioTransportConfig",
    "TransportKind",
    "build_app_config",
]

TransportKind = Literal["stdio", "streamable_http"]

# Base for every derived network timeout.
DEFAULT_TOOL_TIMEOUT_S = 20 * 60

_TRANSPORT_ALIASES: dict[str, TransportKind] = {
    "stdio": "stdio",
    "streamable_http": "streamable_http",
    "streamablehttp": "streamable_http",
    "http": "streamable_http",
}


@dataclass(frozen=True)
class StdioTransportConfig:
    """How to launch the tool server as a child process."""

    command: str = "python"
    args: list[str] = field(default_factory=lambda: ["main.py"])
    env: dict[str, str] | None = None
    cwd: str | None = None


@dataclass(frozen=True)
class HttpTransportConfig:
    """Streamable HTTP endpoint and its envelope limits.

    The defaults are multiples of the tool timeout so a slow tool never
    starves the HTTP envelope before the call-level deadline fires.
    """

    url: str = "http://127.0.0.1:12001/mcp"
    timeout_s: float = DEFAULT_TOOL_TIMEOUT_S * 3
    sse_read_timeout_s: float = DEFAULT_TOOL_TIMEOUT_S * 3
    headers_timeout_s: float = DEFAULT_TOOL_TIMEOUT_S * 2
    body_timeout_s: float = DEFAULT_TOOL_TIMEOUT_S * 3
    max_retries: int = 10
    max_reconnection_delay_s: float = 0.6
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class McpClientConfig:
    transport: TransportKind = "streamable_http"
    client_name: str = "JewelAssistClient"
    client_version: str = "1.0.0"
    tool_timeout_s: float = DEFAULT_TOOL_TIMEOUT_S
    connect_timeout_s: float = 60.0
    stdio: StdioTransportConfig = field(default_factory=StdioTransportConfig)
    http: HttpTransportConfig = field(default_factory=HttpTransportConfig)


@dataclass(frozen=True)
class DiscordConfig:
    application_id: str | None = None
    bot_token: str | None = None
    public_key: str | None = None
    api_base_url: str = "https://discord.com/api/v10"


@dataclass(frozen=True)
class AppConfig:
    mcp: McpClientConfig = field(default_factory=McpClientConfig)
    discord: DiscordConfig = field(default_factory=DiscordConfig)
    log_level: str = "INFO"


def _section(raw: Mapping[str, Any], key: str, *, path: str) -> Mapping[str, Any]:
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError("must be a mapping", path=f"{path}.{key}" if path else key)
    return value


def _number(d: Mapping[str, Any], key: str, default: float, *, path: str, minimum: float = 0.0) -> float:
    value = d.get(key, default)
    try:
        out = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"must be a number, got {value!r}", path=f"{path}.{key}") from e
    if out <= minimum:
        raise ConfigError(f"must be > {minimum:g}", path=f"{path}.{key}")
    return out


def _string_list(value: Any, *, path: str) -> list[str]:
    if isinstance(value, str):
        return [a.strip() for a in value.split(",") if a.strip()]
    if not isinstance(value, list) or not all(isinstance(x, str) for x in value):
        raise ConfigError("must be a list of strings", path=path)
    return list(value)


def _normalize_transport(value: Any, *, path: str) -> TransportKind:
    key = str(value or "").strip().lower()
    if key not in _TRANSPORT_ALIASES:
        raise ConfigError(f"unsupported transport: {value!r}", path=path)
    return _TRANSPORT_ALIASES[key]


def _env_overrides(raw: Mapping[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Apply the legacy MCP_* / APP_ID / DISCORD_TOKEN environment variables."""

    mcp = dict(_section(raw, "mcp", path=""))
    stdio = dict(_section(mcp, "stdio", path="mcp"))
    http = dict(_section(mcp, "http", path="mcp"))
    discord = dict(_section(raw, "discord", path=""))

    def env(name: str) -> str | None:
        value = environ.get(name)
        return value if value else None

    if (v := env("MCP_TRANSPORT")) is not None:
        mcp["transport"] = v
    if (v := env("MCP_CLIENT_NAME")) is not None:
        mcp["client_name"] = v
    if (v := env("MCP_CLIENT_VERSION")) is not None:
        mcp["client_version"] = v
    if (v := env("MCP_STREAMABLEHTTP_URL")) is not None:
        http["url"] = v
    if (v := env("MCP_STDIO_COMMAND")) is not None:
        stdio["command"] = v
    if (v := env("MCP_STDIO_ARGS")) is not None:
        stdio["args"] = v
    if (v := env("APP_ID")) is not None:
        discord["application_id"] = v
    if (v := env("DISCORD_TOKEN")) is not None:
        discord["bot_token"] = v
    if (v := env("PUBLIC_KEY")) is not None:
        discord["public_key"] = v

    mcp["stdio"] = stdio
    mcp["http"] = http
    out = dict(raw)
    out["mcp"] = mcp
    out["discord"] = discord
    return out


def _build_http(raw: Mapping[str, Any], *, base_timeout_s: float) -> HttpTransportConfig:
    path = "mcp.http"
    url = raw.get("url", HttpTransportConfig.url)
    if not isinstance(url, str) or not url.strip():
        raise ConfigError("streamable_http needs a url", path=f"{path}.url")

    headers = raw.get("headers") or {}
    if not isinstance(headers, Mapping):
        raise ConfigError("must be dict[str,str]", path=f"{path}.headers")

    max_retries = raw.get("max_retries", HttpTransportConfig.max_retries)
    if not isinstance(max_retries, int) or isinstance(max_retries, bool) or max_retries < 0:
        raise ConfigError("must be an integer >= 0", path=f"{path}.max_retries")

    return HttpTransportConfig(
        url=url.strip(),
        timeout_s=_number(raw, "timeout_s", base_timeout_s * 3, path=path),
        sse_read_timeout_s=_number(raw, "sse_read_timeout_s", base_timeout_s * 3, path=path),
        headers_timeout_s=_number(raw, "headers_timeout_s", base_timeout_s * 2, path=path),
        body_timeout_s=_number(raw, "body_timeout_s", base_timeout_s * 3, path=path),
        max_retries=max_retries,
        max_reconnection_delay_s=_number(
            raw, "max_reconnection_delay_s", HttpTransportConfig.max_reconnection_delay_s, path=path
        ),
        headers={str(k): str(v) for k, v in headers.items()},
    )


def _build_stdio(raw: Mapping[str, Any]) -> StdioTransportConfig:
    path = "mcp.stdio"
    command = raw.get("command", StdioTransportConfig.command)
    if not isinstance(command, str) or not command.strip():
        raise ConfigError("stdio needs a command", path=f"{path}.command")

    args = _string_list(raw["args"], path=f"{path}.args") if "args" in raw else ["main.py"]

    env = raw.get("env")
    if env is not None and not isinstance(env, Mapping):
        raise ConfigError("must be dict[str,str]", path=f"{path}.env")

    cwd = raw.get("cwd")
    return StdioTransportConfig(
        command=command.strip(),
        args=args,
        env={str(k): str(v) for k, v in env.items()} if env else None,
        cwd=str(cwd) if cwd is not None else None,
    )


def build_app_config(raw: Mapping[str, Any], *, environ: Mapping[str, str] | None = None) -> AppConfig:
    """Build the typed config from a loaded mapping plus environment overrides."""

    merged = _env_overrides(raw, os.environ if environ is None else environ)

    mcp_raw = merged["mcp"]
    transport = _normalize_transport(mcp_raw.get("transport", McpClientConfig.transport), path="mcp.transport")
    tool_timeout_s = _number(mcp_raw, "tool_timeout_s", DEFAULT_TOOL_TIMEOUT_S, path="mcp")

    mcp = McpClientConfig(
        transport=transport,
        client_name=str(mcp_raw.get("client_name", McpClientConfig.client_name)),
        client_version=str(mcp_raw.get("client_version", McpClientConfig.client_version)),
        tool_timeout_s=tool_timeout_s,
        connect_timeout_s=_number(mcp_raw, "connect_timeout_s", McpClientConfig.connect_timeout_s, path="mcp"),
        stdio=_build_stdio(mcp_raw["stdio"]),
        http=_build_http(mcp_raw["http"], base_timeout_s=tool_timeout_s),
    )

    discord_raw = merged["discord"]
    discord = DiscordConfig(
        application_id=(str(discord_raw["application_id"]) if discord_raw.get("application_id") else None),
        bot_token=(str(discord_raw["bot_token"]) if discord_raw.get("bot_token") else None),
        public_key=(str(discord_raw["public_key"]) if discord_raw.get("public_key") else None),
        api_base_url=str(discord_raw.get("api_base_url", DiscordConfig.api_base_url)).rstrip("/"),
    )

    log_level = str(merged.get("log_level", AppConfig.log_level)).upper()
    return AppConfig(mcp=mcp, discord=discord, log_level=log_level)
