"""Checker configuration.

Two sources are supported:

- an explicit ``--config`` file in the line-oriented ``key = value`` format::

      # comment
      rule.R-CAST-STYLE.enabled = false
      rule.R-NAMING-MEMBER.severity = warning
      rule.R-NULLPTR.priority = 5
      include.system-headers = QObject,QString
      naming.allow-files = third_party/*,*.pb.h
      cast.allow-files = legacy/*
      indent.size = 2

- otherwise the ``[tool.cpp-style]`` table of ``pyproject.toml`` in the
  working directory, if there is one.
"""

from __future__ import annotations

import fnmatch
import logging
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path, PurePath
from typing import Any

from .includes import STANDARD_HEADERS
from .rules._base import Severity

__all__ = ["Config", "ConfigError", "RuleSettings", "load_config", "parse_config"]

logger = logging.getLogger("config")

PYPROJECT_TABLE = "cpp-style"
INDENT_SIZE = 2


class ConfigError(Exception):
    """Raised for malformed configuration."""


@dataclass(frozen=True)
class RuleSettings:
    enabled: bool | None = None
    severity: Severity | None = None
    priority: int | None = None


@dataclass(frozen=True)
class Config:
    rules: dict[str, RuleSettings] = field(default_factory=dict)
    system_headers: frozenset[str] = STANDARD_HEADERS
    naming_allow_files: tuple[str, ...] = ()
    cast_allow_files: tuple[str, ...] = ()
    indent_size: int = INDENT_SIZE

    def settings(self, rule_id: str) -> RuleSettings:
        return self.rules.get(rule_id, RuleSettings())

    def rule_enabled(self, rule_id: str) -> bool:
        enabled = self.settings(rule_id).enabled
        return True if enabled is None else enabled

    def severity_for(self, rule_id: str, default: Severity) -> Severity:
        return self.settings(rule_id).severity or default

    def priority_for(self, rule_id: str, default: int) -> int:
        priority = self.settings(rule_id).priority
        return default if priority is None else priority

    def naming_allowed(self, path: Path) -> bool:
        return _matches_any(path, self.naming_allow_files)

    def cast_allowed(self, path: Path) -> bool:
        return _matches_any(path, self.cast_allow_files)


def _matches_any(path: Path, patterns: tuple[str, ...]) -> bool:
    posix = PurePath(path).as_posix()
    return any(
        fnmatch.fnmatchcase(posix, pattern) or fnmatch.fnmatchcase(path.name, pattern)
        for pattern in patterns
    )


def _parse_bool(value: str, key: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "yes", "on", "1"):
        return True
    if lowered in ("false", "no", "off", "0"):
        return False
    raise ConfigError(f"{key}: expected true or false, got {value!r}")


def _parse_severity(value: str, key: str) -> Severity:
    try:
        severity = Severity(value.strip().lower())
    except ValueError:
        raise ConfigError(f"{key}: expected style or warning, got {value!r}") from None
    if severity is Severity.ERROR:
        raise ConfigError(f"{key}: expected style or warning, got {value!r}")
    return severity


def _parse_int(value: str, key: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        raise ConfigError(f"{key}: expected an integer, got {value!r}") from None


def _split_list(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _with_indent(config: Config, size: int, origin: str) -> Config:
    if size != INDENT_SIZE:
        logger.warning(
            "%s: indent.size = %d is not supported, using %d", origin, size, INDENT_SIZE
        )
        return config
    return replace(config, indent_size=size)


def _update_rule(config: Config, rule_id: str, **changes: Any) -> Config:
    rules = dict(config.rules)
    rules[rule_id] = replace(config.settings(rule_id), **changes)
    return replace(config, rules=rules)


def parse_config(text: str, origin: str = "<config>") -> Config:
    """Parse the line-oriented configuration format.

    Raises:
        ConfigError: on a malformed line, unknown key or bad value
    """
    config = Config()
    for number, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            raise ConfigError(f"{origin}:{number}: expected 'key = value'")
        key, value = (part.strip() for part in line.split("=", 1))
        where = f"{origin}:{number}: {key}"

        if key.startswith("rule."):
            rule_id, _, setting = key[len("rule.") :].rpartition(".")
            if not rule_id:
                raise ConfigError(f"{where}: expected rule.<id>.<setting>")
            if setting == "enabled":
                config = _update_rule(
                    config, rule_id, enabled=_parse_bool(value, where)
                )
            elif setting == "severity":
                config = _update_rule(
                    config, rule_id, severity=_parse_severity(value, where)
                )
            elif setting == "priority":
                config = _update_rule(
                    config, rule_id, priority=_parse_int(value, where)
                )
            else:
                raise ConfigError(f"{where}: unknown rule setting {setting!r}")
        elif key == "include.system-headers":
            config = replace(
                config, system_headers=STANDARD_HEADERS | frozenset(_split_list(value))
            )
        elif key == "naming.allow-files":
            config = replace(config, naming_allow_files=_split_list(value))
        elif key == "cast.allow-files":
            config = replace(config, cast_allow_files=_split_list(value))
        elif key == "indent.size":
            config = _with_indent(config, _parse_int(value, where), origin)
        else:
            raise ConfigError(f"{where}: unknown key")
    return config


def _as_list(value: Any, key: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return _split_list(value)
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return tuple(value)
    raise ConfigError(f"pyproject.toml: {key} must be a list of strings")


def config_from_pyproject(table: dict[str, Any]) -> Config:
    """Build a configuration from a ``[tool.cpp-style]`` table."""
    config = Config()
    for key, value in table.items():
        if key == "rules":
            if not isinstance(value, dict):
                raise ConfigError("pyproject.toml: rules must be a table")
            for rule_id, settings in value.items():
                if not isinstance(settings, dict):
                    raise ConfigError(
                        f"pyproject.toml: rules.{rule_id} must be a table"
                    )
                where = f"pyproject.toml: rules.{rule_id}"
                for setting, setting_value in settings.items():
                    text = str(setting_value)
                    if setting == "enabled":
                        config = _update_rule(
                            config, rule_id, enabled=_parse_bool(text, where)
                        )
                    elif setting == "severity":
                        config = _update_rule(
                            config, rule_id, severity=_parse_severity(text, where)
                        )
                    elif setting == "priority":
                        config = _update_rule(
                            config, rule_id, priority=_parse_int(text, where)
                        )
                    else:
                        raise ConfigError(f"{where}: unknown setting {setting!r}")
        elif key == "system-headers":
            headers = frozenset(_as_list(value, key))
            config = replace(config, system_headers=STANDARD_HEADERS | headers)
        elif key == "naming-allow-files":
            config = replace(config, naming_allow_files=_as_list(value, key))
        elif key == "cast-allow-files":
            config = replace(config, cast_allow_files=_as_list(value, key))
        elif key == "indent-size":
            config = _with_indent(config, _parse_int(str(value), key), "pyproject.toml")
        else:
            raise ConfigError(f"pyproject.toml: unknown key {key!r}")
    return config


def load_config(path: Path | None = None, search_dir: Path | None = None) -> Config:
    """Load configuration from ``path`` or from ``pyproject.toml``.

    Args:
        path: Explicit configuration file (line-oriented format)
        search_dir: Directory searched for ``pyproject.toml`` when ``path``
            is not given (default: current directory)

    Returns:
        The loaded configuration, or the defaults when nothing is configured

    Raises:
        ConfigError: when the file cannot be read or is malformed
    """
    if path is not None:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as error:
            raise ConfigError(f"cannot read {path}: {error}") from error
        return parse_config(text, origin=str(path))

    pyproject_path = (search_dir or Path.cwd()) / "pyproject.toml"
    if not pyproject_path.exists():
        return Config()

    try:
        with open(pyproject_path, "rb") as f:
            pyproject_data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as error:
        raise ConfigError(f"cannot read {pyproject_path}: {error}") from error

    table = pyproject_data.get("tool", {}).get(PYPROJECT_TABLE)
    if table is None:
        return Config()
    logger.debug("Using [tool.%s] from %s", PYPROJECT_TABLE, pyproject_path)
    return config_from_pyproject(table)
