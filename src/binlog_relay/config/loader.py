"""YAML + environment variable config loader."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, cast

import yaml
from pydantic import ValidationError

from binlog_relay.config.models import RelayConfig

DEFAULTS_DIR = Path(__file__).parent / "defaults"

# Matches ${VAR} or ${VAR:-default}
_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-((?:[^}\\]|\\.)*))?}")


def _resolve_env_str(value: str) -> str:
    """Replace all ${VAR} / ${VAR:-default} references in a string."""

    def _replace(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default = match.group(2)
        env_val = os.environ.get(var_name)
        if env_val is not None:
            return env_val
        if default is not None:
            return default.replace("\\}", "}")
        msg = f"Environment variable '{var_name}' is not set and no default provided"
        raise ValueError(msg)

    return _ENV_PATTERN.sub(_replace, value)


def resolve_env_vars(data: Any) -> Any:
    """Recursively resolve ${VAR} and ${VAR:-default} in parsed YAML data."""
    if isinstance(data, str):
        return _resolve_env_str(data)
    if isinstance(data, dict):
        return {k: resolve_env_vars(v) for k, v in data.items()}
    if isinstance(data, list):
        return [resolve_env_vars(item) for item in data]
    return data


def load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict."""
    p = Path(path)
    if not p.exists():
        msg = f"Config file not found: {p}"
        raise FileNotFoundError(msg)
    try:
        with p.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        msg = f"Failed to parse YAML in {p}"
        if hasattr(exc, "problem_mark") and exc.problem_mark is not None:
            mark = exc.problem_mark
            msg += f" at line {mark.line + 1}, column {mark.column + 1}"
        msg += f": {exc}"
        raise ValueError(msg) from exc
    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping at top level in {p}, got {type(data).__name__}"
        raise TypeError(msg)
    return cast(dict[str, Any], resolve_env_vars(data))


def merge_configs(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively deep-merge *overrides* into *base* (non-mutating)."""
    merged: dict[str, Any] = {**base}
    for key, value in overrides.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value
    return merged


def _split_source_addr(data: dict[str, Any]) -> dict[str, Any]:
    """Expand ``source.addr`` (host:port, as in DB_ADDR) into host and port."""
    source = data.get("source")
    if not isinstance(source, dict) or "addr" not in source:
        return data
    source = dict(source)
    addr = str(source.pop("addr"))
    host, sep, port = addr.rpartition(":")
    if not sep or not host or not port.isdigit():
        msg = f"source.addr '{addr}' must be in host:port form (e.g. '127.0.0.1:3306')"
        raise ValueError(msg)
    source.setdefault("host", host)
    source.setdefault("port", int(port))
    return {**data, "source": source}


def load_relay_config(path: str | Path | None = None) -> RelayConfig:
    """Load relay config from built-in defaults, optionally merged with overrides."""
    base = load_yaml(DEFAULTS_DIR / "relay.yaml")
    if path is not None:
        overrides = load_yaml(path)
        base = merge_configs(base, overrides)
    try:
        return RelayConfig.model_validate(_split_source_addr(base))
    except ValidationError as exc:
        source = path or "built-in defaults"
        msg = f"Invalid relay config ({source}):\n{exc}"
        raise ValueError(msg) from exc
