# proofserve

Building blocks for a proof-generation service:

- TOML configuration with defaults for every key (`proofserve.config`,
  `proofserve.aggkit_config`, `proofserve.prover_types`)
- human-readable durations (`proofserve.humanduration`)
- a logging setup driven by that configuration (`proofserve.logging_config`)
- a prover error model that maps onto gRPC status codes (`proofserve.errors`)
- an asynchronous executor that runs a primary prover and retries on a
  fallback prover when the primary fails (`proofserve.executor`)

## Installation

```
pip install proofserve
```

To run the tests:

```
pip install "proofserve[test]"
pytest
```

## Configuration

`ProverConfig` reads a kebab-case TOML document. Every key is optional and
unknown keys are ignored. Defaults:

| key | default |
| --- | --- |
| `grpc-endpoint` | `127.0.0.1:8080` |
| `grpc.max-decoding-message-size` / `max-encoding-message-size` | 4 MiB |
| `telemetry.prometheus-addr` | `0.0.0.0:3000` |
| `shutdown.runtime-timeout` | 5 seconds |
| `max-concurrency-limit` | 100 |
| `max-request-duration` | 5 minutes |
| `max-buffered-queries` | 100 |
| `primary-prover` | a network prover |
| `fallback-prover` | none |

The sections `log` and `telemetry` may also be spelled `Log` and `Telemetry`,
and `prometheus-addr` may be spelled `PrometheusAddr`; giving both spellings
at once is an error.

```toml
grpc-endpoint = "127.0.0.1:8080"
max-request-duration = "5m"

[grpc]
max-decoding-message-size = 104857600

[log]
level = "debug"
format = "json"
outputs = ["stderr"]

[telemetry]
prometheus-addr = "0.0.0.0:3000"

[primary-prover.network-prover]
proving-timeout = "10m"
proving-request-timeout = 300

[fallback-prover.cpu-prover]
max-concurrency-limit = 10
proving-timeout = "10m"
```

```python
from proofserve.config import ProverConfig

config = ProverConfig.load("prover.toml")
print(config.grpc.max_decoding_message_size)
print(config.to_toml())
```

`ProverConfig.from_toml` parses a string, `from_dict` a table already read,
and `to_dict` / `to_toml` write the configuration back; gRPC limits left at
their defaults and an unset fallback prover are omitted. Socket addresses are
`(ipaddress, port)` tuples; `parse_socket_addr` and `format_socket_addr`
convert them from and to `"1.2.3.4:80"` or `"[::1]:80"`.

Loading errors are raised as `UnableToReadConfigFile` (the file could not be
read) or `DeserializationError` (its contents are invalid), both subclasses of
`ConfigurationError`.

`AggkitProverConfig` in `proofserve.aggkit_config` has the same shape without
the concurrency, request-duration and buffering keys, with endpoint
`127.0.0.1:8081` and Prometheus address `0.0.0.0:3001`, and without the
capitalised spellings.

### Provers

A prover table names exactly one kind: `network-prover`, `cpu-prover`,
`gpu-prover` or `mock-prover`, read into `NetworkProverConfig`,
`CpuProverConfig`, `GpuProverConfig` or `MockProverConfig`. Each has
`proving-timeout` (default 5 minutes) and an optional
`proving-request-timeout`; the local kinds also have `max-concurrency-limit`
(default 100). `effective_request_timeout()` returns the request timeout, or
the proving timeout plus one second when none is set. `parse_prover_type` and
`prover_type_to_dict` convert between tables and these classes.

### Durations

Durations may be written as a whole number of seconds (`300`) or as a
human-readable string (`"5m"`, `"1min 10s"`, `"1h30min"`); they are always
written back in the human form (`"10m 1s"`). `parse_duration`,
`format_duration`, `deserialize_duration` and `serialize_duration` in
`proofserve.humanduration` do the conversion to and from `timedelta`.

## Logging

```python
from proofserve.logging_config import Log, setup_logging

handler = setup_logging(Log.from_dict({"level": "debug", "format": "json", "outputs": ["stderr"]}))
```

`setup_logging` installs one handler on the root logger for the first
configured output (standard output when none is given; any value other than
`stdout` or `stderr` is a file path, appended to). Records from loggers named
`agglayer…` and `pessimistic_proof…` pass at the configured level, all others
at `warn`. Filter directives in the `PROOFSERVE_LOG` environment variable,
such as `info,mymodule=debug`, take precedence when they are valid. Calling
it again replaces the handler it installed before.

## Errors

`ProverError` has four subclasses: `UnableToExecuteProver`, `ProverFailed`,
`ProofVerificationFailed` (wrapping a `ProofVerificationError` with a
`VerificationFailure` kind) and `ExecutorFailed`. `status()` returns a
`(StatusCode, message, details)` tuple: `INTERNAL` for the first two,
`INVALID_ARGUMENT` for the others. The details are big-endian bytes with
fixed-width integers: the length-prefixed encoded inner error followed by
the `ErrorKind`.

## Executor

```python
import asyncio
from datetime import timedelta
from proofserve.executor import (
    Executor, Request, Response, build_local_service, build_network_service,
)

async def network(request):
    return Response(proof="network-proof")

async def local(request):
    return Response(proof="local-proof")

executor = Executor(
    build_network_service(timedelta(seconds=1), network),
    build_local_service(timedelta(seconds=1), 1, local),
)
response = asyncio.run(executor(Request(initial_state=None, batch_header=None)))
```

`build_network_service` wraps a coroutine function in a timeout;
`build_local_service` also limits how many calls run at once. The wrapped
`ProvingService` raises `ProverFailed("request timed out")` when the timeout
elapses and turns any other non-`ProverError` exception into `ProverFailed`.
`Executor` repeats a request on its fallback when the primary raises a
`ProverError`; without a fallback the primary's error is raised.
`with_timeout` bounds any service with a plain `TimeoutError`.

## What this package does not do

It has no command to run and no gRPC server: it does not listen on the
configured endpoint or expose metrics. It contains no prover either; the
services given to the executor are coroutine functions you supply, and
requests and proofs are passed through without being encoded or checked.