"""Proving services with timeouts, concurrency limits and a fallback prover."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, TypeAlias

from proofserve.errors import ProverError, ProverFailed

__all__ = [
    "Request",
    "Response",
    "ServiceFn",
    "ProvingService",
    "Executor",
    "build_network_service",
    "build_local_service",
    "with_timeout",
]

_log = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "request timed out"


@dataclass
class Request:
    """A proving request: the initial network state and the batch to prove."""

    initial_state: Any
    batch_header: Any


@dataclass
class Response:
    """A generated proof."""

    proof: Any


ServiceFn: TypeAlias = Callable[[Request], Awaitable[Response]]


def _seconds(timeout: timedelta | float) -> float:
    if isinstance(timeout, timedelta):
        seconds = timeout.total_seconds()
    else:
        seconds = float(timeout)
    if seconds < 0:
        raise ValueError(f"a timeout cannot be negative: {timeout!r}")
    return seconds


@dataclass
class ProvingService:
    """A prover wrapped in a timeout and, optionally, a concurrency limit.

    Errors that are not :class:`ProverError` are turned into
    :class:`ProverFailed`; an elapsed timeout fails with ``"request timed out"``.
    Waiting for a concurrency slot does not count against the timeout.
    """

    timeout: timedelta | float
    service: ServiceFn
    concurrency: int | None = None
    _slots: asyncio.Semaphore | None = field(init=False, repr=False, default=None)

    def __post_init__(self) -> None:
        self._timeout_seconds = _seconds(self.timeout)
        if self.concurrency is not None:
            if isinstance(self.concurrency, bool) or self.concurrency < 0:
                raise ValueError(
                    f"concurrency must be a non-negative integer, got {self.concurrency!r}"
                )
            self._slots = asyncio.Semaphore(self.concurrency)

    async def __call__(self, request: Request) -> Response:
        if self._slots is None:
            return await self._run(request)
        async with self._slots:
            return await self._run(request)

    async def _run(self, request: Request) -> Response:
        try:
            return await asyncio.wait_for(self.service(request), self._timeout_seconds)
        except ProverError:
            raise
        except asyncio.TimeoutError:
            raise ProverFailed(TIMEOUT_MESSAGE) from None
        except Exception as error:
            raise ProverFailed(str(error)) from error


def build_network_service(timeout: timedelta | float, service: ServiceFn) -> ProvingService:
    """Wrap a remote prover in a request timeout."""
    return ProvingService(timeout, service)


def build_local_service(
    timeout: timedelta | float, concurrency: int, service: ServiceFn
) -> ProvingService:
    """Wrap a local prover in a request timeout and a limit on concurrent proofs."""
    return ProvingService(timeout, service, concurrency)


def with_timeout(timeout: timedelta | float, service: ServiceFn) -> ServiceFn:
    """Bound every call of ``service``; raises :class:`TimeoutError` when it elapses."""
    seconds = _seconds(timeout)

    async def bounded(request: Request) -> Response:
        try:
            return await asyncio.wait_for(service(request), seconds)
        except asyncio.TimeoutError:
            raise TimeoutError(TIMEOUT_MESSAGE) from None

    return bounded


class Executor:
    """Runs requests on the primary prover and retries failures on the fallback."""

    def __init__(self, primary: ServiceFn, fallback: ServiceFn | None = None) -> None:
        self.primary = primary
        self.fallback = fallback

    def has_fallback(self) -> bool:
        """Whether a fallback prover is configured."""
        return self.fallback is not None

    async def __call__(self, request: Request) -> Response:
        try:
            return await self.primary(request)
        except ProverError as error:
            _log.error("Primary prover failed: %r", error)
            if self.fallback is None:
                raise
            _log.info("Repeating proving request with fallback prover...")
            return await self.fallback(request)