"""
filecrm — runtime config loader.

File: src/filecrm/config/loader.py

Purpose
- Build the effective runtime config from four layers, lowest first: built-in
  defaults, ``filecrm.toml``, ``FILECRM_<SECTION>_<FIELD>`` environment
  variables and CLI overrides.

Notes
- The file layer is validated on its own so a typo is reported against the
  file rather than against a later override.
- Relative paths resolve against the directory holding the config file, or the
  working directory when no file exists.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from filecrm.config.schema import (
    PATH_FIELDS,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
)

DEFAULT_CONFIG_FILE: Final[str] = "filecrm.toml"
ENV_PREFIX: Final[str] = "FILECRM_"

_TRUE_WORDS: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSE_WORDS: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})


class ConfigLoadError(ValueError):
    """Raised when the config file or an override cannot be read or coerced."""


def load_config(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return the validated, path-normalized effective config."""

    if config_path is None:
        source = (Path.cwd() / DEFAULT_CONFIG_FILE).resolve()
        from_file = _read_toml(source) if source.exists() else {}
    else:
        source = Path(config_path).expanduser().resolve()
        if not source.exists():
            raise ConfigLoadError(f"config file not found: {source}")
        from_file = _read_toml(source)

    config = assert_valid_config(merge_config(default_config(), from_file))
    config = merge_config(
        config, _env_layer(config, os.environ if environ is None else environ)
    )
    config = merge_config(config, _cli_layer(cli_overrides or {}))
    return normalize_paths(assert_valid_config(config), base_dir=source.parent)


def normalize_paths(config: Mapping[str, object], *, base_dir: Path) -> dict[str, Any]:
    """Resolve configured path fields against ``base_dir``; empty paths stay empty."""

    normalized = merge_config({}, config)
    for section, field in PATH_FIELDS:
        table = normalized.get(section)
        if not isinstance(table, dict):
            continue
        raw = table.get(field)
        if isinstance(raw, str) and raw:
            candidate = Path(os.path.expandvars(raw)).expanduser()
            if not candidate.is_absolute():
                candidate = base_dir / candidate
            table[field] = Path(os.path.normpath(candidate)).as_posix()
    return normalized


def dump_effective_config(config: Mapping[str, object]) -> str:
    """Serialize the redacted config as stable, compact JSON."""

    return json.dumps(
        redact_config(config), sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _env_layer(config: Mapping[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    # Every field already present in the validated config can be overridden and
    # takes the type of its current value.
    layer: dict[str, Any] = {}
    for section, table in config.items():
        if not isinstance(table, Mapping):
            continue
        for field, current in table.items():
            name = f"{ENV_PREFIX}{section.upper()}_{field.upper()}"
            raw = environ.get(name)
            if raw is not None:
                layer.setdefault(section, {})[field] = _coerce(name, raw, current)
    return layer


def _coerce(name: str, raw: str, current: object) -> object:
    if isinstance(current, bool):
        word = raw.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
        raise ConfigLoadError(f"{name} must be a boolean (true/false/1/0/yes/no/on/off)")
    if isinstance(current, int):
        try:
            return int(raw.strip())
        except ValueError as exc:
            raise ConfigLoadError(f"{name} must be an integer") from exc
    if isinstance(current, float):
        try:
            return float(raw.strip())
        except ValueError as exc:
            raise ConfigLoadError(f"{name} must be a number") from exc
    # Delimiters and markers are whitespace-sensitive; only line endings go.
    return raw.rstrip("\r\n")


def _cli_layer(overrides: Mapping[str, object]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        section, dot, field = key.partition(".")
        if not dot or not section or not field or "." in field:
            raise ConfigLoadError(f"invalid CLI override key {key!r}; expected section.field")
        layer.setdefault(section, {})[field] = value
    return layer


__all__ = [
    "ConfigLoadError",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "dump_effective_config",
    "load_config",
    "normalize_paths",
]
