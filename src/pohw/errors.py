"""Error taxonomy shared by the claim-construction and claim-verification paths.

Canonicalization and signing errors are fatal to the operation that raised them.
Network errors (``NetworkFailure``, ``Timeout``) are kept distinct from logical
invalidity (``NotFound``, ``MerkleMismatch``) so callers never mistake an unreachable
registry for a failed proof.
"""
from __future__ import annotations


class PohwError(Exception):
    kind = "PohwError"


class InvalidInput(PohwError):
    kind = "InvalidInput"


class InvalidKeyLength(PohwError):
    kind = "InvalidKeyLength"

    def __init__(self, length: int):
        super().__init__(
            f"Invalid private key length: got {length} bytes, expected 32 (64 hex characters)"
        )
        self.length = length


class NoIdentity(PohwError):
    kind = "NoIdentity"

    def __init__(self, message: str = "No keys loaded. Generate or import keys first."):
        super().__init__(message)


class NetworkFailure(PohwError):
    kind = "NetworkFailure"


class Timeout(NetworkFailure):
    kind = "Timeout"


class RegistryRejected(PohwError):
    kind = "RegistryRejected"

    def __init__(self, status_code: int, error: str | None = None):
        super().__init__(error or f"HTTP {status_code}")
        self.status_code = status_code
        self.error = error


class NotFound(PohwError):
    kind = "NotFound"


class MerkleMismatch(PohwError):
    kind = "MerkleMismatch"


__all__ = [
    "PohwError",
    "InvalidInput",
    "InvalidKeyLength",
    "NoIdentity",
    "NetworkFailure",
    "Timeout",
    "RegistryRejected",
    "NotFound",
    "MerkleMismatch",
]
