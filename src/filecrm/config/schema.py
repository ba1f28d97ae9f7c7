"""
filecrm — configuration schema and validation.

File: src/filecrm/config/schema.py

Purpose
- Hold the built-in defaults and the strict rules every effective config must pass.

Functional requirements
- Report every problem at once as (dotted path, message) pairs.
- Unknown keys are errors, so a misspelled field never silently keeps its default.
"""

from __future__ import annotations

import copy
import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from filecrm.constants import CONFIG_SCHEMA_VERSION, DEFAULT_MAX_WORKERS, FIELD_DELIMITER

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION

_SENSITIVE_KEY_TERMS: Final[tuple[str, ...]] = ("password", "secret", "token", "credential")

# These characters appear inside formatted dates, times and amounts.
_RESERVED_DELIMITERS: Final[str] = "-:.+"

# (section, field) pairs resolved relative to the config file by the loader.
PATH_FIELDS: Final[tuple[tuple[str, str], ...]] = (
    ("storage", "data_dir"),
    ("documents", "template_path"),
    ("documents", "output_dir"),
    ("observability", "log_dir"),
)


class MetaConfig(TypedDict):
    schema_version: int


class StorageConfig(TypedDict):
    data_dir: str
    delimiter: str


class WorkersConfig(TypedDict):
    max_workers: int
    shutdown_timeout_seconds: float


class DocumentsConfig(TypedDict):
    template_path: str
    output_dir: str


class NotificationsConfig(TypedDict):
    failure_marker: str


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_dir: str
    log_to_stdout: bool
    redact_secrets: bool


class FileCrmConfig(TypedDict):
    meta: MetaConfig
    storage: StorageConfig
    workers: WorkersConfig
    documents: DocumentsConfig
    notifications: NotificationsConfig
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[FileCrmConfig] = {
    "meta": {"schema_version": ConfigSchemaVersion},
    "storage": {"data_dir": "data", "delimiter": FIELD_DELIMITER},
    "workers": {"max_workers": DEFAULT_MAX_WORKERS, "shutdown_timeout_seconds": 10.0},
    "documents": {"template_path": "", "output_dir": "contracts"},
    "notifications": {"failure_marker": "error"},
    "observability": {
        "log_level": "INFO",
        "log_dir": "logs",
        "log_to_stdout": False,
        "redact_secrets": True,
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Outcome of :func:`validate_config`; ``config`` is set only when there are no issues."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised by :func:`assert_valid_config`; carries every issue found."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        lines = [f"- {issue.path}: {issue.message}" for issue in self.issues]
        super().__init__("invalid config:\n" + ("\n".join(lines) or "- unknown failure"))


class _InvalidValue(ValueError):
    pass


# ---------------------------------------------------------------------------
# Field checks: each returns the normalized value or raises _InvalidValue.
# ---------------------------------------------------------------------------


def _type_name(value: object) -> str:
    return type(value).__name__


def _text(value: object) -> str:
    if not isinstance(value, str):
        raise _InvalidValue(f"expected string, got {_type_name(value)}")
    stripped = value.strip()
    if not stripped:
        raise _InvalidValue("must not be empty")
    return stripped


def _path_text(value: object) -> str:
    text = _text(value)
    if "\x00" in text:
        raise _InvalidValue("must not contain NUL bytes")
    return text


def _optional_path_text(value: object) -> str:
    return "" if value == "" else _path_text(value)


def _flag(value: object) -> bool:
    if not isinstance(value, bool):
        raise _InvalidValue(f"expected boolean, got {_type_name(value)}")
    return value


def _delimiter(value: object) -> str:
    if not isinstance(value, str):
        raise _InvalidValue(f"expected string, got {_type_name(value)}")
    if len(value) != 1 or value.isspace() or value.isalnum():
        raise _InvalidValue("must be a single punctuation character")
    if value in _RESERVED_DELIMITERS:
        raise _InvalidValue("must not occur in formatted dates, times or amounts")
    return value


def _int_at_least(minimum: int) -> Callable[[object], int]:
    def check(value: object) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise _InvalidValue(f"expected integer, got {_type_name(value)}")
        if value < minimum:
            raise _InvalidValue(f"must be >= {minimum}")
        return value

    return check


def _positive_seconds(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _InvalidValue(f"expected number, got {_type_name(value)}")
    seconds = float(value)
    if not math.isfinite(seconds):
        raise _InvalidValue("must be finite")
    if seconds <= 0.0:
        raise _InvalidValue("must be > 0")
    return seconds


def _one_of(*choices: str) -> Callable[[object], str]:
    def check(value: object) -> str:
        text = _text(value)
        if text not in choices:
            raise _InvalidValue(f"invalid value {text!r}; expected one of: {', '.join(choices)}")
        return text

    return check


def _schema_version(value: object) -> int:
    version = _int_at_least(1)(value)
    if version != ConfigSchemaVersion:
        raise _InvalidValue(migration_guidance(version))
    return version


_SCHEMA: Final[dict[str, dict[str, Callable[[object], object]]]] = {
    "meta": {"schema_version": _schema_version},
    "storage": {"data_dir": _path_text, "delimiter": _delimiter},
    "workers": {
        "max_workers": _int_at_least(1),
        "shutdown_timeout_seconds": _positive_seconds,
    },
    "documents": {"template_path": _optional_path_text, "output_dir": _path_text},
    "notifications": {"failure_marker": _text},
    "observability": {
        "log_level": _one_of("DEBUG", "INFO", "WARNING", "ERROR"),
        "log_dir": _path_text,
        "log_to_stdout": _flag,
        "redact_secrets": _flag,
    },
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def default_config() -> FileCrmConfig:
    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    """Explain what to upgrade when the file's schema version is not the supported one."""

    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade filecrm.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade filecrm"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto a copy of ``base``; neither input is modified."""

    merged: dict[str, Any] = {
        key: merge_config(value, {}) if isinstance(value, Mapping) else copy.deepcopy(value)
        for key, value in base.items()
    }
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(value, Mapping):
            merged[key] = merge_config(current if isinstance(current, Mapping) else {}, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    if not isinstance(config, Mapping):
        issue = ConfigValidationIssue("<root>", f"expected object, got {_type_name(config)}")
        return ConfigValidationResult(config=None, issues=(issue,))

    issues: list[ConfigValidationIssue] = []
    issues.extend(_unknown_keys(config, _SCHEMA, prefix=""))

    normalized: dict[str, Any] = {}
    for section, checks in _SCHEMA.items():
        if section not in config:
            issues.append(ConfigValidationIssue(section, "missing required field"))
            continue
        table = config[section]
        if not isinstance(table, Mapping):
            issues.append(
                ConfigValidationIssue(section, f"expected object, got {_type_name(table)}")
            )
            continue
        issues.extend(_unknown_keys(table, checks, prefix=f"{section}."))

        parsed: dict[str, object] = {}
        for field, check in checks.items():
            path = f"{section}.{field}"
            if field not in table:
                issues.append(ConfigValidationIssue(path, "missing required field"))
                continue
            try:
                parsed[field] = check(table[field])
            except _InvalidValue as exc:
                issues.append(ConfigValidationIssue(path, str(exc)))
        normalized[section] = parsed

    if issues:
        return ConfigValidationResult(config=None, issues=tuple(issues))
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def redact_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Copy of ``config`` with sensitive keys masked, for ``doctor`` output and logs."""

    if not isinstance(config, Mapping):
        return {}
    redacted: dict[str, Any] = {}
    for key in sorted(config, key=str):
        value = config[key]
        if any(term in str(key).lower() for term in _SENSITIVE_KEY_TERMS):
            redacted[key] = "<redacted>"
        elif isinstance(value, Mapping):
            redacted[key] = redact_config(value)
        else:
            redacted[key] = copy.deepcopy(value)
    return redacted


def _unknown_keys(
    payload: Mapping[object, object], known: Mapping[str, object], *, prefix: str
) -> list[ConfigValidationIssue]:
    return [
        ConfigValidationIssue(f"{prefix}{key}", "unknown field")
        for key in sorted(payload, key=str)
        if key not in known
    ]


__all__ = [
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "FileCrmConfig",
    "PATH_FIELDS",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "redact_config",
    "validate_config",
]
