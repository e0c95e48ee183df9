import tomllib
from datetime import timedelta

import pytest

from proofserve.prover_types import (
    CpuProverConfig,
    GpuProverConfig,
    MockProverConfig,
    NetworkProverConfig,
    default_max_concurrency_limit,
    default_prover_type,
    parse_prover_type,
    prover_type_to_dict,
)

NETWORK_PROVER = """
[primary-prover.network-prover]
proving-request-timeout = "5m"
proving-timeout = "10m"
"""

CPU_PROVER = """
[primary-prover.cpu-prover]
max-concurrency-limit = 10
proving-request-timeout = "5m"
proving-timeout = "10m"
"""

PRIMARY_FALLBACK_PROVER = """
[primary-prover.network-prover]
proving-request-timeout = "5m"
proving-timeout = "10m"

[fallback-prover.cpu-prover]
max-concurrency-limit = 10
proving-request-timeout = "5m"
proving-timeout = "10m"
"""

MOCK_PROVER = """
[primary-prover.mock-prover]
max-concurrency-limit = 10
proving-request-timeout = "5m"
proving-timeout = "10m"
"""


def _load(text):
    document = tomllib.loads(text)
    primary = parse_prover_type(document["primary-prover"])
    fallback = document.get("fallback-prover")
    return primary, (parse_prover_type(fallback) if fallback is not None else None)


def test_network_prover():
    primary, _ = _load(NETWORK_PROVER)
    assert primary == NetworkProverConfig(
        proving_request_timeout=timedelta(seconds=300),
        proving_timeout=timedelta(seconds=600),
    )


def test_cpu_prover():
    primary, _ = _load(CPU_PROVER)
    assert primary == CpuProverConfig(
        max_concurrency_limit=10,
        proving_request_timeout=timedelta(seconds=300),
        proving_timeout=timedelta(seconds=600),
    )


def test_network_and_cpu_prover():
    primary, fallback = _load(PRIMARY_FALLBACK_PROVER)
    assert primary == NetworkProverConfig(
        proving_request_timeout=timedelta(seconds=300),
        proving_timeout=timedelta(seconds=600),
    )
    assert fallback == CpuProverConfig(
        max_concurrency_limit=10,
        proving_request_timeout=timedelta(seconds=300),
        proving_timeout=timedelta(seconds=600),
    )


def test_mock_prover():
    primary, _ = _load(MOCK_PROVER)
    assert primary == MockProverConfig(
        max_concurrency_limit=10,
        proving_request_timeout=timedelta(seconds=300),
        proving_timeout=timedelta(seconds=600),
    )


def test_gpu_prover_is_parsed():
    prover = parse_prover_type({"gpu-prover": {"max-concurrency-limit": 4}})
    assert prover == GpuProverConfig(max_concurrency_limit=4)


def test_defaults():
    assert default_max_concurrency_limit() == 100
    assert default_prover_type() == NetworkProverConfig()
    cpu = CpuProverConfig()
    assert cpu.max_concurrency_limit == 100
    assert cpu.proving_timeout == timedelta(seconds=300)
    assert cpu.proving_request_timeout is None


def test_empty_table_takes_defaults():
    assert parse_prover_type({"mock-prover": {}}) == MockProverConfig()


def test_request_timeout_falls_back_to_padded_proving_timeout():
    config = NetworkProverConfig(proving_timeout=timedelta(seconds=600))
    assert config.effective_request_timeout() == timedelta(seconds=601)


def test_explicit_request_timeout_wins():
    config = CpuProverConfig(
        proving_request_timeout=timedelta(seconds=30),
        proving_timeout=timedelta(seconds=600),
    )
    assert config.effective_request_timeout() == timedelta(seconds=30)


def test_integer_seconds_are_accepted():
    prover = parse_prover_type({"network-prover": {"proving-timeout": 600}})
    assert prover.proving_timeout == timedelta(seconds=600)


@pytest.mark.parametrize(
    "prover",
    [
        NetworkProverConfig(),
        NetworkProverConfig(proving_request_timeout=timedelta(seconds=300)),
        CpuProverConfig(max_concurrency_limit=3),
        GpuProverConfig(proving_timeout=timedelta(minutes=7)),
        MockProverConfig(proving_request_timeout=timedelta(seconds=5)),
    ],
)
def test_round_trip(prover):
    assert parse_prover_type(prover_type_to_dict(prover)) == prover


def test_unset_request_timeout_is_not_written():
    written = prover_type_to_dict(NetworkProverConfig())
    assert "proving-request-timeout" not in written["network-prover"]


def test_unknown_prover_kind():
    with pytest.raises(ValueError):
        parse_prover_type({"quantum-prover": {}})


@pytest.mark.parametrize(
    "bad",
    [
        {},
        {"network-prover": {}, "cpu-prover": {}},
        "network-prover",
        {"network-prover": "fast"},
    ],
)
def test_malformed_prover_table(bad):
    with pytest.raises(ValueError):
        parse_prover_type(bad)


@pytest.mark.parametrize("bad", [-1, "ten", True, 1.5])
def test_bad_concurrency_limit(bad):
    with pytest.raises(ValueError):
        parse_prover_type({"cpu-prover": {"max-concurrency-limit": bad}})


def test_bad_timeout():
    with pytest.raises(ValueError):
        parse_prover_type({"cpu-prover": {"proving-timeout": "soon"}})