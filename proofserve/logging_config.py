"""Log configuration and installation of the log handler."""

from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, StrEnum
from pathlib import Path
from typing import Any, Self

__all__ = [
    "LOG_ENV_VAR",
    "LogFormat",
    "LogLevel",
    "LogOutput",
    "Log",
    "setup_logging",
]

LOG_ENV_VAR = "PROOFSERVE_LOG"
"""Environment variable whose filter directives take precedence over the config."""

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_OFF = logging.CRITICAL + 10

_DIRECTIVE_LEVELS = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "off": _OFF,
}


class LogFormat(StrEnum):
    """How log records are rendered."""

    PRETTY = "pretty"
    JSON = "json"


class LogLevel(StrEnum):
    """The configured log level."""

    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"

    def env_filter(self) -> str:
        """Filter directives for this level applied to the prover's own loggers."""
        return f"warn,agglayer={self},pessimistic_proof={self}"


@dataclass(frozen=True)
class LogOutput:
    """Where logs go: standard output, standard error or a file."""

    class Kind(Enum):
        STDOUT = "Stdout"
        STDERR = "Stderr"
        FILE = "File"

    kind: LogOutput.Kind = Kind.STDOUT
    path: Path | None = None

    def __post_init__(self) -> None:
        if (self.kind is LogOutput.Kind.FILE) != (self.path is not None):
            raise ValueError("a path is given exactly when the output is a file")

    @classmethod
    def parse(cls, value: str) -> Self:
        """Read an output: ``stdout``, ``stderr`` or, for anything else, a file path."""
        if not isinstance(value, str):
            raise ValueError(f"a log output must be a string, got {type(value).__name__}")
        if value == "stdout":
            return cls(cls.Kind.STDOUT)
        if value == "stderr":
            return cls(cls.Kind.STDERR)
        return cls(cls.Kind.FILE, Path(value))

    def to_value(self) -> str | dict[str, str]:
        """The serialized form: the kind's name, or a one-key table for a file."""
        if self.kind is LogOutput.Kind.FILE:
            return {self.kind.value: str(self.path)}
        return self.kind.value

    def make_handler(self) -> logging.Handler:
        """A handler writing to this output; files are appended to, never rotated."""
        match self.kind:
            case LogOutput.Kind.STDOUT:
                return logging.StreamHandler(sys.stdout)
            case LogOutput.Kind.STDERR:
                return logging.StreamHandler(sys.stderr)
            case _:
                assert self.path is not None
                return logging.FileHandler(
                    Path(".") / self.path, mode="a", encoding="utf-8", delay=True
                )


@dataclass
class Log:
    """The log configuration."""

    level: LogLevel = LogLevel.INFO
    outputs: list[LogOutput] = field(default_factory=list)
    format: LogFormat = LogFormat.PRETTY

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Build the configuration from a kebab-case table."""
        if not isinstance(data, Mapping):
            raise ValueError(f"log must be a table, got {type(data).__name__}")
        config = cls()
        if "level" in data:
            config.level = _parse_enum(LogLevel, data["level"], "log level")
        if "outputs" in data:
            outputs = data["outputs"]
            if not isinstance(outputs, list):
                raise ValueError("log outputs must be a list")
            config.outputs = [LogOutput.parse(item) for item in outputs]
        if "format" in data:
            config.format = _parse_enum(LogFormat, data["format"], "log format")
        return config

    def to_dict(self) -> dict[str, Any]:
        """The configuration as a table."""
        return {
            "level": str(self.level),
            "outputs": [output.to_value() for output in self.outputs],
            "format": str(self.format),
        }


def _parse_enum(kind: type[StrEnum], value: Any, what: str) -> Any:
    try:
        return kind(value)
    except ValueError:
        choices = ", ".join(member.value for member in kind)
        raise ValueError(f"unknown {what} {value!r}, expected one of {choices}") from None


class _DirectiveFilter(logging.Filter):
    """Passes records at or above the level of the longest matching target prefix."""

    def __init__(self, default: int, targets: list[tuple[str, int]]) -> None:
        super().__init__()
        self._default = default
        self._targets = sorted(targets, key=lambda item: len(item[0]), reverse=True)

    @classmethod
    def parse(cls, text: str, *, strict: bool) -> _DirectiveFilter:
        """Parse ``level`` and ``target=level`` directives separated by commas.

        When not strict, invalid directives are skipped; otherwise they raise.
        """
        default = _OFF
        targets: list[tuple[str, int]] = []
        for raw in text.split(","):
            directive = raw.strip()
            if not directive:
                continue
            target, sep, level_name = directive.rpartition("=")
            level = _DIRECTIVE_LEVELS.get(level_name.strip().lower())
            if level is None:
                if strict:
                    raise ValueError(f"invalid filter directive {directive!r}")
                continue
            if sep:
                targets.append((target.strip(), level))
            else:
                default = level
        return cls(default, targets)

    def filter(self, record: logging.LogRecord) -> bool:
        threshold = self._default
        for target, level in self._targets:
            if record.name.startswith(target):
                threshold = level
                break
        return record.levelno >= threshold


def _level_label(levelno: int) -> str:
    if levelno <= TRACE:
        return "TRACE"
    if levelno <= logging.DEBUG:
        return "DEBUG"
    if levelno <= logging.INFO:
        return "INFO"
    if levelno <= logging.WARNING:
        return "WARN"
    return "ERROR"


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": _level_label(record.levelno),
            "fields": {"message": record.getMessage()},
            "target": record.name,
        }
        if record.exc_info:
            entry["fields"]["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


class _PrettyFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__("%(asctime)s %(level_label)5s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        record.level_label = _level_label(record.levelno)
        return super().format(record)


_installed: logging.Handler | None = None


def _make_filter(config: Log) -> _DirectiveFilter:
    from_env = os.environ.get(LOG_ENV_VAR)
    if from_env is not None:
        try:
            return _DirectiveFilter.parse(from_env, strict=True)
        except ValueError:
            pass
    return _DirectiveFilter.parse(config.level.env_filter(), strict=False)


def setup_logging(config: Log) -> logging.Handler:
    """Install a root handler for the first configured output and return it.

    The filter in the environment variable named by ``LOG_ENV_VAR`` takes
    precedence over the configured level when it is valid.
    """
    global _installed

    output = config.outputs[0] if config.outputs else LogOutput()
    handler = output.make_handler()
    if config.format is LogFormat.JSON:
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(_PrettyFormatter())
    handler.addFilter(_make_filter(config))

    root = logging.getLogger()
    if _installed is not None:
        root.removeHandler(_installed)
        _installed.close()
    root.addHandler(handler)
    root.setLevel(TRACE)
    _installed = handler
    return handler