"""Ingestion error taxonomy.

Each error class maps to exactly one HTTP outcome at the orchestrator boundary:

- AuthenticationError  -> 401 (never retried here)
- ValidationError      -> 400 (never retried here)
- TransientWriteError  -> 500 (sender redelivers; duplicate check protects us)
- anything else        -> 500 (logged with traceback)
"""

from __future__ import annotations

__all__ = [
    "AuthenticationError",
    "IngestError",
    "TransientWriteError",
    "ValidationError",
    "WarehouseError",
]


class IngestError(Exception):
    """Base exception for webhook ingestion errors."""

    __slots__ = ("message",)

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationError(IngestError):
    """Raised when the webhook signature is missing or does not match."""

    __slots__ = ()


class ValidationError(IngestError):
    """Raised when the order payload is structurally malformed."""

    __slots__ = ()


class WarehouseError(IngestError):
    """Raised by a warehouse client when a query or insert call fails."""

    __slots__ = ()


class TransientWriteError(IngestError):
    """Raised when a table insert still fails after every retry attempt."""

    __slots__ = ("table", "attempts")

    def __init__(self, message: str, table: str, attempts: int) -> None:
        super().__init__(message)
        self.table = table
        self.attempts = attempts
