"""Configuration of the aggkit prover service."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from ipaddress import IPv4Address
from pathlib import Path
from typing import Any, ClassVar, Self

import tomli_w

from proofserve.config import (
    GrpcConfig,
    ShutdownConfig,
    SocketAddress,
    TelemetryConfig,
    _collect,
    _expect_table,
    _parse_toml,
    _read_config_file,
    _read_socket_addr,
    format_socket_addr,
)
from proofserve.logging_config import Log
from proofserve.prover_types import (
    ProverType,
    default_prover_type,
    parse_prover_type,
    prover_type_to_dict,
)

__all__ = ["AggkitTelemetryConfig", "AggkitProverConfig"]


@dataclass
class AggkitTelemetryConfig(TelemetryConfig):
    """Where the aggkit prover's metrics endpoint listens."""

    _ADDR_KEYS: ClassVar[tuple[str, ...]] = ("prometheus-addr",)

    addr: SocketAddress = (IPv4Address("0.0.0.0"), 3001)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return super().from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        return super().to_dict()


@dataclass
class AggkitProverConfig:
    """The aggkit prover service configuration."""

    grpc_endpoint: SocketAddress = (IPv4Address("127.0.0.1"), 8081)
    grpc: GrpcConfig = field(default_factory=GrpcConfig)
    log: Log = field(default_factory=Log)
    telemetry: AggkitTelemetryConfig = field(default_factory=AggkitTelemetryConfig)
    shutdown: ShutdownConfig = field(default_factory=ShutdownConfig)
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
                    ("log", ("log",), Log.from_dict),
                    ("telemetry", ("telemetry",), AggkitTelemetryConfig.from_dict),
                    ("shutdown", ("shutdown",), ShutdownConfig.from_dict),
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
        result["primary-prover"] = prover_type_to_dict(self.primary_prover)
        if self.fallback_prover is not None:
            result["fallback-prover"] = prover_type_to_dict(self.fallback_prover)
        return result

    @classmethod
    def from_toml(cls, text: str) -> Self:
        """Parse a TOML document; raises ``DeserializationError``."""
        return _parse_toml(text, cls.from_dict)

    def to_toml(self) -> str:
        return tomli_w.dumps(self.to_dict())

    @classmethod
    def load(cls, path: str | Path) -> Self:
        """Read and parse a TOML configuration file."""
        return cls.from_toml(_read_config_file(path))