"""Prover errors and their mapping onto RPC statuses."""

from __future__ import annotations

import struct
from enum import IntEnum
from typing import ClassVar

__all__ = [
    "ErrorKind",
    "StatusCode",
    "VerificationFailure",
    "ProofVerificationError",
    "ProverError",
    "UnableToExecuteProver",
    "ProverFailed",
    "ProofVerificationFailed",
    "ExecutorFailed",
]


class ErrorKind(IntEnum):
    """The kind of prover failure carried in a status's details."""

    UNSPECIFIED = 0
    UNABLE_TO_EXECUTE_PROVER = 1
    PROVER_FAILED = 2
    PROOF_VERIFICATION_FAILED = 3
    EXECUTOR_FAILED = 4


class StatusCode(IntEnum):
    """gRPC status codes."""

    OK = 0
    CANCELLED = 1
    UNKNOWN = 2
    INVALID_ARGUMENT = 3
    DEADLINE_EXCEEDED = 4
    NOT_FOUND = 5
    ALREADY_EXISTS = 6
    PERMISSION_DENIED = 7
    RESOURCE_EXHAUSTED = 8
    FAILED_PRECONDITION = 9
    ABORTED = 10
    OUT_OF_RANGE = 11
    UNIMPLEMENTED = 12
    INTERNAL = 13
    UNAVAILABLE = 14
    DATA_LOSS = 15
    UNAUTHENTICATED = 16


def _encode_bytes(data: bytes) -> bytes:
    return struct.pack(">Q", len(data)) + data


class VerificationFailure(IntEnum):
    """Why a proof failed verification; the value is its index on the wire."""

    VERSION_MISMATCH = 0
    CORE = 1
    RECURSION = 2
    PLONK = 3
    GROTH16 = 4
    INVALID_PUBLIC_VALUES = 5


_LABELS = {
    VerificationFailure.VERSION_MISMATCH: "Version mismatch",
    VerificationFailure.CORE: "Core machine verification error",
    VerificationFailure.RECURSION: "Recursion verification error",
    VerificationFailure.PLONK: "Plonk verification error",
    VerificationFailure.GROTH16: "Groth16 verification error",
    VerificationFailure.INVALID_PUBLIC_VALUES: "Invalid public values",
}


class ProofVerificationError(Exception):
    """A generated proof did not verify.

    Every kind but ``INVALID_PUBLIC_VALUES`` carries a detail message.
    """

    def __init__(self, kind: VerificationFailure, detail: str | None = None) -> None:
        kind = VerificationFailure(kind)
        if kind is VerificationFailure.INVALID_PUBLIC_VALUES:
            if detail is not None:
                raise ValueError("invalid public values carry no detail")
        elif not isinstance(detail, str):
            raise ValueError(f"{kind.name} needs a detail message")
        self.kind = kind
        self.detail = detail
        super().__init__(self.describe())

    def describe(self) -> str:
        """The human-readable message, e.g. ``"Version mismatch: v1"``."""
        label = _LABELS[self.kind]
        return label if self.detail is None else f"{label}: {self.detail}"

    def __str__(self) -> str:
        return self.describe()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.name}, {self.detail!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProofVerificationError):
            return NotImplemented
        return (self.kind, self.detail) == (other.kind, other.detail)

    def __hash__(self) -> int:
        return hash((self.kind, self.detail))

    def _encode(self) -> bytes:
        encoded = struct.pack(">I", self.kind)
        if self.detail is not None:
            encoded += _encode_bytes(self.detail.encode("utf-8"))
        return encoded


class ProverError(Exception):
    """A failure while generating a proof."""

    kind: ClassVar[ErrorKind] = ErrorKind.UNSPECIFIED
    code: ClassVar[StatusCode] = StatusCode.INTERNAL

    def _payload(self) -> bytes:
        return b""

    def status(self) -> tuple[StatusCode, str, bytes]:
        """The RPC status for this error as ``(code, message, details)``.

        The details hold the length-prefixed encoded inner error followed by
        the error kind, all big-endian with fixed-width integers.
        """
        details = _encode_bytes(self._payload()) + struct.pack(">i", self.kind)
        return self.code, str(self), details


class UnableToExecuteProver(ProverError):
    """The prover could not be started."""

    kind = ErrorKind.UNABLE_TO_EXECUTE_PROVER

    def __init__(self) -> None:
        super().__init__("Unable to execute prover")


class ProverFailed(ProverError):
    """The prover ran but failed to produce a proof."""

    kind = ErrorKind.PROVER_FAILED

    def __init__(self, reason: str) -> None:
        super().__init__(f"Prover failed: {reason}")
        self.reason = reason


class ProofVerificationFailed(ProverError):
    """The produced proof did not verify."""

    kind = ErrorKind.PROOF_VERIFICATION_FAILED
    code = StatusCode.INVALID_ARGUMENT

    def __init__(self, error: ProofVerificationError) -> None:
        super().__init__(f"Prover verification failed: {error}")
        self.error = error

    def _payload(self) -> bytes:
        return self.error._encode()


class ExecutorFailed(ProverError):
    """The proof program rejected its input.

    ``encoded`` is the program's own encoding of the error and is passed on
    in the status details unchanged.
    """

    kind = ErrorKind.EXECUTOR_FAILED
    code = StatusCode.INVALID_ARGUMENT

    def __init__(self, reason: str, encoded: bytes = b"") -> None:
        super().__init__(f"Prover executor failed: {reason}")
        self.reason = reason
        self.encoded = bytes(encoded)

    def _payload(self) -> bytes:
        return self.encoded