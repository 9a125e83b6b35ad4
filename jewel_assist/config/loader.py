"""YAML config files with strict ${ENV_VAR} expansion.

Each file is expanded on its own before the overlay merge, so an unresolved
reference is reported against the file that actually contains it.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Sequence

import yaml
from dotenv import load_dotenv

from jewel_assist.config.errors import ConfigError

_PLACEHOLDER = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass
class _EnvExpander:
    """Substitutes ${VAR} in every string of a YAML tree, recording failures."""

    source: Path
    problems: list[str] = field(default_factory=list)

    def walk(self, node: Any, where: str = "") -> Any:
        if isinstance(node, str):
            return _PLACEHOLDER.sub(lambda m: self._lookup(m, where), node)
        if isinstance(node, Mapping):
            return {str(k): self.walk(v, f"{where}.{k}" if where else str(k)) for k, v in node.items()}
        if isinstance(node, list):
            return [self.walk(v, f"{where}[{i}]") for i, v in enumerate(node)]
        return node

    def _lookup(self, match: re.Match[str], where: str) -> str:
        name = match.group(1)
        value = os.environ.get(name)
        if value:
            return value
        state = "missing" if value is None else "empty"
        self.problems.append(f"- {name} ({state}) at {where or '<root>'} in {self.source}")
        return match.group(0)


def _overlay(base: dict[str, Any], top: Mapping[str, Any]) -> dict[str, Any]:
    """Nested mappings merge key by key; anything else in `top` replaces."""

    out = dict(base)
    for key, value in top.items():
        below = out.get(key)
        if isinstance(value, Mapping) and isinstance(below, Mapping):
            out[key] = _overlay(dict(below), value)
        else:
            out[key] = value
    return out


def _read_mapping(path: Path) -> Mapping[str, Any]:
    if not path.exists():
        raise ConfigError("config file not found", path=str(path))
    try:
        text = path.read_text(encoding="utf-8")
        data = yaml.safe_load(text) if text.strip() else None
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"failed to read YAML config: {e}", path=str(path)) from e

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigError("top-level YAML must be a mapping", path=str(path))
    return data


def load_config(
    paths: Path | Sequence[Path],
    *,
    load_dotenv_file: bool = True,
    dotenv_path: Path | None = None,
) -> dict[str, Any]:
    """Load and merge YAML config files, later files winning.

    A `.env` file (cwd by default) is loaded first without overriding the
    real environment. Every unresolved or empty ${VAR} is collected and
    reported in a single ConfigError.
    """

    files = [paths] if isinstance(paths, Path) else list(paths)

    if load_dotenv_file:
        load_dotenv(dotenv_path or Path.cwd() / ".env", override=False)

    merged: dict[str, Any] = {}
    problems: list[str] = []
    for path in files:
        expander = _EnvExpander(path)
        merged = _overlay(merged, expander.walk(_read_mapping(path)))
        problems.extend(expander.problems)

    if problems:
        raise ConfigError("\n".join(["Unresolved environment variables in config:", *problems]))
    return merged


def resolve_profile_configs(*, profile: str, configs_dir: Path) -> list[Path]:
    """app -> app.yaml; dev -> app.yaml overlaid with dev.yaml."""

    profiles = {
        "app": ["app.yaml"],
        "dev": ["app.yaml", "dev.yaml"],
    }
    if profile not in profiles:
        raise ConfigError(f"unknown profile: {profile}")
    return [configs_dir / name for name in profiles[profile]]
