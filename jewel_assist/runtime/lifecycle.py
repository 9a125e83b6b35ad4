from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

from jewel_assist.config import AppConfig, ConfigError, load_app_config, resolve_profile_configs
from jewel_assist.mcp_client import ProgressEvent, ToolClient, ToolClientError, decode_design_result
from jewel_assist.bot.design import DESIGN_TOOL
from jewel_assist.observability import configure_logging


logger = logging.getLogger(__name__)

_SECRET_KEYS = ("api_key", "token", "secret", "password", "authorization")


def _redact_secrets(obj: Any) -> Any:
    """Best-effort redaction for human-facing config dumps."""

    if isinstance(obj, dict):
        out = {}
        for k, v in obj.items():
            if isinstance(k, str) and any(p in k.lower() for p in _SECRET_KEYS) and v:
                out[k] = "<redacted>"
            else:
                out[k] = _redact_secrets(v)
        return out
    if isinstance(obj, list):
        return [_redact_secrets(x) for x in obj]
    return obj


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jewel-assist",
        description="Jewel Assist bot: MCP design tool client",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (e.g. DEBUG, INFO, WARNING)")

    group = parser.add_mutually_exclusive_group()
    group.add_argument("--config", type=Path, help="Path to a YAML config file (skips profile resolution)")
    group.add_argument(
        "--profile",
        choices=["app", "dev"],
        default=None,
        help="Config profile under ./configs (app loads app.yaml; dev overlays dev.yaml)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("print-config", help="Load and print the effective config")
    sub.add_parser("tools", help="Connect to the MCP server and list its tools")

    call_p = sub.add_parser("call", help="Call one MCP tool")
    call_p.add_argument("tool", help="Tool name")
    call_p.add_argument("--args", default="{}", help="Tool arguments as a JSON object")
    call_p.add_argument("--timeout", type=float, default=None, help="Call timeout in seconds")

    design_p = sub.add_parser("design", help="Run the design tool for a prompt")
    design_p.add_argument("prompt")
    design_p.add_argument("--timeout", type=float, default=None, help="Call timeout in seconds")

    return parser


def _config_paths(ns: argparse.Namespace) -> list[Path] | None:
    if ns.config is not None:
        return [ns.config]
    if ns.profile is not None:
        return resolve_profile_configs(profile=ns.profile, configs_dir=Path.cwd() / "configs")
    default = Path.cwd() / "configs" / "app.yaml"
    return [default] if default.exists() else None


def _print_json(obj: Any) -> None:
    sys.stdout.write(json.dumps(obj, ensure_ascii=False, indent=2))
    sys.stdout.write("\n")


def _print_progress(event: ProgressEvent) -> None:
    total = f"/{event.total:g}" if event.total is not None else ""
    suffix = f" {event.message}" if event.message else ""
    sys.stderr.write(f"[progress] {event.progress:g}{total}{suffix}\n")


async def _run_command(ns: argparse.Namespace, cfg: AppConfig) -> int:
    client = ToolClient.from_config(cfg.mcp)
    try:
        if ns.command == "tools":
            await client.connect()
            _print_json([dataclasses.asdict(t) for t in client.list_tools()])
            return 0

        if ns.command == "call":
            try:
                arguments = json.loads(ns.args)
            except json.JSONDecodeError as e:
                sys.stderr.write(f"--args is not valid JSON: {e}\n")
                return 2
            if not isinstance(arguments, dict):
                sys.stderr.write("--args must be a JSON object\n")
                return 2
            result = await client.call_tool(ns.tool, arguments, on_progress=_print_progress, timeout_s=ns.timeout)
            _print_json(result.model_dump(mode="json", exclude_none=True))
            return 0

        result = await client.call_tool(
            DESIGN_TOOL, {"prompt": ns.prompt}, on_progress=_print_progress, timeout_s=ns.timeout
        )
        design = decode_design_result(result)
        sys.stdout.write(f"{design.rendered_image}\n")
        return 0
    finally:
        await client.close()


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint referenced by pyproject.toml."""

    parser = _build_parser()
    try:
        ns = parser.parse_args(list(argv) if argv is not None else None)
    except SystemExit as e:
        code = e.code
        return int(code) if isinstance(code, int) else 1

    try:
        cfg = load_app_config(_config_paths(ns))
    except ConfigError as e:
        configure_logging(level=ns.log_level or "INFO")
        logger.error("config_error", extra={"error": str(e)})
        sys.stderr.write(f"ConfigError: {e}\n")
        return 2

    configure_logging(level=ns.log_level or cfg.log_level)

    if ns.command == "print-config":
        _print_json(_redact_secrets(dataclasses.asdict(cfg)))
        return 0

    try:
        return asyncio.run(_run_command(ns, cfg))
    except ToolClientError as e:
        sys.stderr.write(f"{e.error_type}: {e.message}\n")
        return 1
    except Exception as e:  # noqa: BLE001
        logger.exception("fatal_error")
        sys.stderr.write(f"Fatal error: {e}\n")
        return 1
