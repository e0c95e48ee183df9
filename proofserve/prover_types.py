"""Settings for the provers that generate pessimistic proofs."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, ClassVar, Self, TypeAlias

from proofserve.humanduration import deserialize_duration, serialize_duration

__all__ = [
    "NetworkProverConfig",
    "CpuProverConfig",
    "GpuProverConfig",
    "MockProverConfig",
    "ProverType",
    "default_max_concurrency_limit",
    "parse_prover_type",
    "prover_type_to_dict",
    "default_prover_type",
]

_DEFAULT_LOCAL_PROVING_TIMEOUT = timedelta(minutes=5)
_DEFAULT_NETWORK_PROVING_TIMEOUT = timedelta(minutes=5)
_PROVING_TIMEOUT_PADDING = timedelta(seconds=1)


def default_max_concurrency_limit() -> int:
    """Default number of proofs a local prover works on at once."""
    return 100


def _expect_table(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be a table, got {type(data).__name__}")
    return data


def _read_count(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{key} must be a non-negative integer, got {value!r}")
    return value


def _effective(request_timeout: timedelta | None, proving_timeout: timedelta) -> timedelta:
    if request_timeout is not None:
        return request_timeout
    return proving_timeout + _PROVING_TIMEOUT_PADDING


def _read_timeouts(table: Mapping[str, Any]) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    request_timeout = table.get("proving-request-timeout")
    if request_timeout is not None:
        fields["proving_request_timeout"] = deserialize_duration(request_timeout)
    if "proving-timeout" in table:
        fields["proving_timeout"] = deserialize_duration(table["proving-timeout"])
    return fields


def _read_local(table: Mapping[str, Any]) -> dict[str, Any]:
    fields = _read_timeouts(table)
    if "max-concurrency-limit" in table:
        fields["max_concurrency_limit"] = _read_count(
            table["max-concurrency-limit"], "max-concurrency-limit"
        )
    return fields


def _timeouts_to_dict(
    request_timeout: timedelta | None, proving_timeout: timedelta
) -> dict[str, Any]:
    result: dict[str, Any] = {}
    if request_timeout is not None:
        result["proving-request-timeout"] = serialize_duration(request_timeout)
    result["proving-timeout"] = serialize_duration(proving_timeout)
    return result


@dataclass(kw_only=True)
class NetworkProverConfig:
    """A prover that sends proving requests to a remote proving network."""

    DEFAULT_PROVING_TIMEOUT_PADDING: ClassVar[timedelta] = _PROVING_TIMEOUT_PADDING

    proving_request_timeout: timedelta | None = None
    proving_timeout: timedelta = _DEFAULT_NETWORK_PROVING_TIMEOUT

    def effective_request_timeout(self) -> timedelta:
        """The request timeout, or the proving timeout plus a second of padding."""
        return _effective(self.proving_request_timeout, self.proving_timeout)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Build the settings from a kebab-case table; missing keys take defaults."""
        return cls(**_read_timeouts(_expect_table(data, cls.__name__)))

    def to_dict(self) -> dict[str, Any]:
        """Kebab-case table of the settings; an unset request timeout is left out."""
        return _timeouts_to_dict(self.proving_request_timeout, self.proving_timeout)


@dataclass(kw_only=True)
class CpuProverConfig:
    """A prover that runs locally on the CPU."""

    DEFAULT_PROVING_TIMEOUT_PADDING: ClassVar[timedelta] = _PROVING_TIMEOUT_PADDING

    max_concurrency_limit: int = field(default_factory=default_max_concurrency_limit)
    proving_request_timeout: timedelta | None = None
    proving_timeout: timedelta = _DEFAULT_LOCAL_PROVING_TIMEOUT

    def effective_request_timeout(self) -> timedelta:
        """The request timeout, or the proving timeout plus a second of padding."""
        return _effective(self.proving_request_timeout, self.proving_timeout)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Build the settings from a kebab-case table; missing keys take defaults."""
        return cls(**_read_local(_expect_table(data, cls.__name__)))

    def to_dict(self) -> dict[str, Any]:
        """Kebab-case table of the settings; an unset request timeout is left out."""
        return {
            "max-concurrency-limit": self.max_concurrency_limit,
            **_timeouts_to_dict(self.proving_request_timeout, self.proving_timeout),
        }


@dataclass(kw_only=True)
class GpuProverConfig:
    """A prover that runs locally on a GPU."""

    DEFAULT_PROVING_TIMEOUT_PADDING: ClassVar[timedelta] = _PROVING_TIMEOUT_PADDING

    max_concurrency_limit: int = field(default_factory=default_max_concurrency_limit)
    proving_request_timeout: timedelta | None = None
    proving_timeout: timedelta = _DEFAULT_LOCAL_PROVING_TIMEOUT

    def effective_request_timeout(self) -> timedelta:
        """The request timeout, or the proving timeout plus a second of padding."""
        return _effective(self.proving_request_timeout, self.proving_timeout)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Build the settings from a kebab-case table; missing keys take defaults."""
        return cls(**_read_local(_expect_table(data, cls.__name__)))

    def to_dict(self) -> dict[str, Any]:
        """Kebab-case table of the settings; an unset request timeout is left out."""
        return {
            "max-concurrency-limit": self.max_concurrency_limit,
            **_timeouts_to_dict(self.proving_request_timeout, self.proving_timeout),
        }


@dataclass(kw_only=True)
class MockProverConfig:
    """A local prover that produces mock proofs."""

    DEFAULT_PROVING_TIMEOUT_PADDING: ClassVar[timedelta] = _PROVING_TIMEOUT_PADDING

    max_concurrency_limit: int = field(default_factory=default_max_concurrency_limit)
    proving_request_timeout: timedelta | None = None
    proving_timeout: timedelta = _DEFAULT_LOCAL_PROVING_TIMEOUT

    def effective_request_timeout(self) -> timedelta:
        """The request timeout, or the proving timeout plus a second of padding."""
        return _effective(self.proving_request_timeout, self.proving_timeout)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Build the settings from a kebab-case table; missing keys take defaults."""
        return cls(**_read_local(_expect_table(data, cls.__name__)))

    def to_dict(self) -> dict[str, Any]:
        """Kebab-case table of the settings; an unset request timeout is left out."""
        return {
            "max-concurrency-limit": self.max_concurrency_limit,
            **_timeouts_to_dict(self.proving_request_timeout, self.proving_timeout),
        }


ProverType: TypeAlias = (
    NetworkProverConfig | CpuProverConfig | GpuProverConfig | MockProverConfig
)

_TAGS: dict[str, type] = {
    "network-prover": NetworkProverConfig,
    "cpu-prover": CpuProverConfig,
    "gpu-prover": GpuProverConfig,
    "mock-prover": MockProverConfig,
}


def parse_prover_type(data: Mapping[str, Any]) -> ProverType:
    """Read a prover from a table holding exactly one key naming its kind."""
    table = _expect_table(data, "prover")
    if len(table) != 1:
        raise ValueError(
            f"a prover table must name exactly one of {', '.join(_TAGS)}, "
            f"got {len(table)} keys"
        )
    ((tag, settings),) = table.items()
    try:
        kind = _TAGS[tag]
    except KeyError:
        raise ValueError(
            f"unknown prover {tag!r}, expected one of {', '.join(_TAGS)}"
        ) from None
    return kind.from_dict(settings)


def prover_type_to_dict(prover: ProverType) -> dict[str, Any]:
    """Write a prover as a table keyed by its kind."""
    for tag, kind in _TAGS.items():
        if type(prover) is kind:
            return {tag: prover.to_dict()}
    raise TypeError(f"not a prover configuration: {prover!r}")


def default_prover_type() -> ProverType:
    """The prover used when none is configured: the network prover."""
    return NetworkProverConfig()