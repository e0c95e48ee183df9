from datetime import timedelta
from ipaddress import IPv4Address, IPv6Address

import pytest

from proofserve.config import (
    ClientProverConfig,
    ConfigurationError,
    DeserializationError,
    GrpcConfig,
    ProverConfig,
    ShutdownConfig,
    TelemetryConfig,
    UnableToReadConfigFile,
    format_socket_addr,
    parse_socket_addr,
)
from proofserve.logging_config import LogLevel
from proofserve.prover_types import CpuProverConfig, NetworkProverConfig


def write(tmp_path, text, name="config.toml"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults():
    config = ProverConfig()
    assert config.grpc_endpoint == (IPv4Address("127.0.0.1"), 8080)
    assert config.telemetry.addr == (IPv4Address("0.0.0.0"), 3000)
    assert config.shutdown.runtime_timeout == timedelta(seconds=5)
    assert config.max_concurrency_limit == 100
    assert config.max_request_duration == timedelta(minutes=5)
    assert config.max_buffered_queries == 100
    assert config.primary_prover == NetworkProverConfig()
    assert config.fallback_prover is None
    assert config.grpc.max_decoding_message_size == 4 * 1024 * 1024


def test_empty_rpcs(tmp_path):
    path = write(tmp_path, "[rpc]\n")
    assert ProverConfig.load(path) == ProverConfig()


def test_prover_grpc_max_decoding_message_size(tmp_path):
    path = write(tmp_path, "[grpc]\nmax-decoding-message-size = 104857600\n")
    config = ProverConfig.load(path)
    assert config.grpc.max_decoding_message_size == 100 * 1024 * 1024
    assert config.grpc.max_encoding_message_size == 4 * 1024 * 1024
    assert config.to_dict()["grpc"] == {"max-decoding-message-size": 104857600}


def test_default_to_dict():
    assert ProverConfig().to_dict() == {
        "grpc-endpoint": "127.0.0.1:8080",
        "log": {"level": "info", "outputs": [], "format": "pretty"},
        "telemetry": {"prometheus-addr": "0.0.0.0:3000"},
        "shutdown": {"runtime-timeout": "5s"},
        "max-concurrency-limit": 100,
        "max-request-duration": "5m",
        "max-buffered-queries": 100,
        "primary-prover": {"network-prover": {"proving-timeout": "5m"}},
    }


def test_toml_round_trip():
    config = ProverConfig(
        grpc_endpoint=(IPv6Address("::1"), 9000),
        grpc=GrpcConfig(max_decoding_message_size=100 * 1024 * 1024),
        telemetry=TelemetryConfig(addr=(IPv4Address("10.0.0.1"), 4000)),
        shutdown=ShutdownConfig(runtime_timeout=timedelta(seconds=30)),
        max_concurrency_limit=3,
        max_request_duration=timedelta(minutes=10, seconds=1),
        max_buffered_queries=7,
        fallback_prover=CpuProverConfig(
            max_concurrency_limit=10,
            proving_request_timeout=timedelta(seconds=300),
            proving_timeout=timedelta(seconds=600),
        ),
    )
    assert ProverConfig.from_toml(config.to_toml()) == config


def test_provers_from_toml():
    text = (
        "[primary-prover.network-prover]\n"
        'proving-request-timeout = "5m"\n'
        'proving-timeout = "10m"\n'
        "[fallback-prover.cpu-prover]\n"
        "max-concurrency-limit = 10\n"
        'proving-request-timeout = "5m"\n'
        'proving-timeout = "10m"\n'
    )
    config = ProverConfig.from_toml(text)
    assert config.primary_prover == NetworkProverConfig(
        proving_request_timeout=timedelta(seconds=300),
        proving_timeout=timedelta(seconds=600),
    )
    assert config.fallback_prover == CpuProverConfig(
        max_concurrency_limit=10,
        proving_request_timeout=timedelta(seconds=300),
        proving_timeout=timedelta(seconds=600),
    )


def test_aliases_accepted():
    text = '[Log]\nlevel = "debug"\n[Telemetry]\nPrometheusAddr = "0.0.0.0:9100"\n'
    config = ProverConfig.from_toml(text)
    assert config.log.level is LogLevel.DEBUG
    assert config.telemetry.addr == (IPv4Address("0.0.0.0"), 9100)


def test_key_and_alias_together_rejected():
    text = '[log]\nlevel = "debug"\n[Log]\nlevel = "warn"\n'
    with pytest.raises(DeserializationError):
        ProverConfig.from_toml(text)


def test_durations_as_seconds_or_text():
    config = ProverConfig.from_toml('max-request-duration = 70\n[shutdown]\nruntime-timeout = "1min 10s"\n')
    assert config.max_request_duration == timedelta(seconds=70)
    assert config.shutdown.runtime_timeout == timedelta(seconds=70)


def test_unknown_keys_ignored():
    assert ProverConfig.from_toml("something-else = 1\n") == ProverConfig()


@pytest.mark.parametrize(
    "text",
    [
        "not toml = = =",
        'grpc-endpoint = "localhost:80"',
        "max-buffered-queries = -1",
        'max-request-duration = "soon"',
        "[primary-prover.quantum-prover]\n",
    ],
)
def test_invalid_content(text):
    with pytest.raises(DeserializationError) as info:
        ProverConfig.from_toml(text)
    assert str(info.value).startswith("Failed to deserialize the configuration: ")
    assert isinstance(info.value, ConfigurationError)


def test_missing_file(tmp_path):
    path = tmp_path / "absent.toml"
    with pytest.raises(UnableToReadConfigFile) as info:
        ProverConfig.load(path)
    assert info.value.path == path
    assert str(info.value).startswith("Unable to read the configuration file: ")


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("127.0.0.1:8080", (IPv4Address("127.0.0.1"), 8080)),
        ("[::1]:9000", (IPv6Address("::1"), 9000)),
        ("0.0.0.0:0", (IPv4Address("0.0.0.0"), 0)),
    ],
)
def test_socket_addr_round_trip(text, expected):
    assert parse_socket_addr(text) == expected
    assert format_socket_addr(expected) == text


@pytest.mark.parametrize(
    "text", ["localhost:80", "1.2.3.4", "1.2.3.4:70000", "::1:80", "1.2.3.4:", "[1.2.3.4]:80"]
)
def test_socket_addr_invalid(text):
    with pytest.raises(ValueError):
        parse_socket_addr(text)


def test_grpc_config_to_dict_omits_defaults():
    assert GrpcConfig().to_dict() == {}
    config = GrpcConfig.from_dict({"max-encoding-message-size": 1024})
    assert config == GrpcConfig(max_encoding_message_size=1024)
    assert config.to_dict() == {"max-encoding-message-size": 1024}


def test_client_prover_config():
    config = ClientProverConfig.from_dict({"grpc": {"max-decoding-message-size": 10}})
    assert config.grpc.max_decoding_message_size == 10
    assert ClientProverConfig.from_dict(config.to_dict()) == config
    assert ClientProverConfig.from_dict({}) == ClientProverConfig()


def test_shutdown_config():
    assert ShutdownConfig.from_dict({"runtime-timeout": 10}).runtime_timeout == timedelta(seconds=10)
    assert ShutdownConfig().to_dict() == {"runtime-timeout": "5s"}