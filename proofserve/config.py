"""Configuration of the pessimistic proof prover service."""

from __future__ import annotations

import ipaddress
import re
import tomllib
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, ClassVar, Self, TypeAlias

import tomli_w

from proofserve.humanduration import deserialize_duration, serialize_duration
from proofserve.logging_config import Log
from proofserve.prover_types import (
    ProverType,
    default_max_concurrency_limit,
    default_prover_type,
    parse_prover_type,
    prover_type_to_dict,
)

__all__ = [
    "IPAddress",
    "SocketAddress",
    "DEFAULT_MAX_MESSAGE_SIZE",
    "ConfigurationError",
    "UnableToReadConfigFile",
    "DeserializationError",
    "GrpcConfig",
    "ClientProverConfig",
    "ShutdownConfig",
    "TelemetryConfig",
    "ProverConfig",
    "parse_socket_addr",
    "format_socket_addr",
]

IPAddress: TypeAlias = ipaddress.IPv4Address | ipaddress.IPv6Address
SocketAddress: TypeAlias = tuple[IPAddress, int]

DEFAULT_MAX_MESSAGE_SIZE = 4 * 1024 * 1024
"""Default limit, in bytes, on gRPC messages in either direction."""

_UNSPECIFIED_IP = ipaddress.IPv4Address("0.0.0.0")
_LOCALHOST = ipaddress.IPv4Address("127.0.0.1")
_PORT = re.compile(r"[0-9]+")
_MISSING = object()


class ConfigurationError(Exception):
    """The configuration could not be loaded."""


class UnableToReadConfigFile(ConfigurationError):
    """The configuration file could not be read."""

    def __init__(self, path: str | Path, source: Exception) -> None:
        super().__init__(f"Unable to read the configuration file: {source}")
        self.path = Path(path)
        self.source = source


class DeserializationError(ConfigurationError):
    """The configuration file was read but its contents are invalid."""

    def __init__(self, reason: Exception | str) -> None:
        super().__init__(f"Failed to deserialize the configuration: {reason}")
        self.reason = reason


def parse_socket_addr(value: str) -> SocketAddress:
    """Parse ``"a.b.c.d:port"`` or ``"[v6]:port"`` into an address and port."""
    if not isinstance(value, str):
        raise TypeError(f"a socket address must be a string, got {type(value).__name__}")
    host, sep, port_text = value.rpartition(":")
    if not sep or not _PORT.fullmatch(port_text):
        raise ValueError(f"invalid socket address syntax: {value!r}")
    port = int(port_text)
    if port > 0xFFFF:
        raise ValueError(f"port out of range in {value!r}")
    try:
        if host.startswith("[") and host.endswith("]"):
            ip: IPAddress = ipaddress.IPv6Address(host[1:-1])
        else:
            ip = ipaddress.IPv4Address(host)
    except ValueError:
        raise ValueError(f"invalid socket address syntax: {value!r}") from None
    return ip, port


def format_socket_addr(address: SocketAddress) -> str:
    """Write an address and port the way :func:`parse_socket_addr` reads it."""
    ip, port = address
    if isinstance(ip, ipaddress.IPv6Address):
        return f"[{ip}]:{port}"
    return f"{ip}:{port}"


def _expect_table(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be a table, got {type(data).__name__}")
    return data


def _read_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"expected a non-negative integer, got {value!r}")
    return value


def _read_socket_addr(value: Any) -> SocketAddress:
    if not isinstance(value, str):
        raise ValueError(f"expected a socket address string, got {value!r}")
    return parse_socket_addr(value)


_Reader: TypeAlias = tuple[str, tuple[str, ...], Callable[[Any], Any]]


def _collect(table: Mapping[str, Any], readers: Iterable[_Reader]) -> dict[str, Any]:
    """Read the keys that are present; a key and its aliases may not appear together."""
    kwargs: dict[str, Any] = {}
    for attr, names, parse in readers:
        found = [name for name in names if name in table]
        if len(found) > 1:
            raise ValueError(f"duplicate field {names[0]!r}")
        if not found:
            continue
        try:
            kwargs[attr] = parse(table[found[0]])
        except (ValueError, TypeError) as error:
            raise ValueError(f"{names[0]}: {error}") from error
    return kwargs


def _parse_toml(text: str, build: Callable[[Mapping[str, Any]], Any]) -> Any:
    try:
        return build(tomllib.loads(text))
    except (ValueError, TypeError) as error:
        raise DeserializationError(error) from error


def _read_config_file(path: str | Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as error:
        raise UnableToReadConfigFile(path, error) from error


@dataclass
class GrpcConfig:
    """Limits on gRPC message sizes, in bytes."""

    max_decoding_message_size: int = DEFAULT_MAX_MESSAGE_SIZE
    max_encoding_message_size: int = DEFAULT_MAX_MESSAGE_SIZE

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        table = _expect_table(data, "grpc")
        return cls(
            **_collect(
                table,
                (
                    ("max_decoding_message_size", ("max-decoding-message-size",), _read_count),
                    ("max_encoding_message_size", ("max-encoding-message-size",), _read_count),
                ),
            )
        )

    def to_dict(self) -> dict[str, Any]:
        """The table of the limits; a limit left at its default is omitted."""
        result: dict[str, Any] = {}
        if self.max_decoding_message_size != DEFAULT_MAX_MESSAGE_SIZE:
            result["max-decoding-message-size"] = self.max_decoding_message_size
        if self.max_encoding_message_size != DEFAULT_MAX_MESSAGE_SIZE:
            result["max-encoding-message-size"] = self.max_encoding_message_size
        return result


@dataclass
class ClientProverConfig:
    """Settings for a client talking to the prover."""

    grpc: GrpcConfig = field(default_factory=GrpcConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        table = _expect_table(data, "client configuration")
        return cls(**_collect(table, (("grpc", ("grpc",), GrpcConfig.from_dict),)))

    def to_dict(self) -> dict[str, Any]:
        return {"grpc": self.grpc.to_dict()}


@dataclass
class ShutdownConfig:
    """Settings used while shutting down."""

    runtime_timeout: timedelta = timedelta(seconds=5)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        table = _expect_table(data, "shutdown")
        return cls(
            **_collect(
                table, (("runtime_timeout", ("runtime-timeout",), deserialize_duration),)
            )
        )

    def to_dict(self) -> dict[str, Any]:
        return {"runtime-timeout": serialize_duration(self.runtime_timeout)}


@dataclass
class TelemetryConfig:
    """Where the metrics endpoint listens."""

    _ADDR_KEYS: ClassVar[tuple[str, ...]] = ("prometheus-addr", "PrometheusAddr")

    addr: SocketAddress = (_UNSPECIFIED_IP, 3000)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        table = _expect_table(data, "telemetry")
        return cls(**_collect(table, (("addr", cls._ADDR_KEYS, _read_socket_addr),)))

    def to_dict(self) -> dict[str, Any]:
        return {"prometheus-addr": format_socket_addr(self.addr)}


@dataclass
class ProverConfig:
    """The prover service configuration."""

    grpc_endpoint: SocketAddress = (_LOCALHOST, 8080)
    grpc: GrpcConfig = field(default_factory=GrpcConfig)
    log: Log = field(default_factory=Log)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    shutdown: ShutdownConfig = field(default_factory=ShutdownConfig)
    max_concurrency_limit: int = field(default_factory=default_max_concurrency_limit)
    max_request_duration: timedelta = timedelta(minutes=5)
    max_buffered_queries: int = 100
    primary_prover: ProverType = field(default_factory=default_prover_type)
    fallback_prover: ProverType | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Build the configuration from a kebab-case table; unknown keys are ignored."""
        table = _expect_table(data, "configuration")
        return cls(
            **_collect(
                table,
                (
                    ("grpc_endpoint", ("grpc-endpoint",), _read_socket_addr),
                    ("grpc", ("grpc",), GrpcConfig.from_dict),
                    ("log", ("log", "Log"), Log.from_dict),
                    ("telemetry", ("telemetry", "Telemetry"), TelemetryConfig.from_dict),
                    ("shutdown", ("shutdown",), ShutdownConfig.from_dict),
                    ("max_concurrency_limit", ("max-concurrency-limit",), _read_count),
                    ("max_request_duration", ("max-request-duration",), deserialize_duration),
                    ("max_buffered_queries", ("max-buffered-queries",), _read_count),
                    ("primary_prover", ("primary-prover",), parse_prover_type),
                    ("fallback_prover", ("fallback-prover",), parse_prover_type),
                ),
            )
        )

    def to_dict(self) -> dict[str, Any]:
        """The configuration as a table; default gRPC limits and no fallback are omitted."""
        result: dict[str, Any] = {"grpc-endpoint": format_socket_addr(self.grpc_endpoint)}
        if self.grpc != GrpcConfig():
            result["grpc"] = self.grpc.to_dict()
        result["log"] = self.log.to_dict()
        result["telemetry"] = self.telemetry.to_dict()
        result["shutdown"] = self.shutdown.to_dict()
        result["max-concurrency-limit"] = self.max_concurrency_limit
        result["max-request-duration"] = serialize_duration(self.max_request_duration)
        result["max-buffered-queries"] = self.max_buffered_queries
        result["primary-prover"] = prover_type_to_dict(self.primary_prover)
        if self.fallback_prover is not None:
            result["fallback-prover"] = prover_type_to_dict(self.fallback_prover)
        return result

    @classmethod
    def from_toml(cls, text: str) -> Self:
        """Parse a TOML document; raises :class:`DeserializationError`."""
        return _parse_toml(text, cls.from_dict)

    def to_toml(self) -> str:
        return tomli_w.dumps(self.to_dict())

    @classmethod
    def load(cls, path: str | Path) -> Self:
        """Read and parse a TOML configuration file."""
        return cls.from_toml(_read_config_file(path))