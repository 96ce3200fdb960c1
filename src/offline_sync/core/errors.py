from __future__ import annotations

from typing import Optional


class SyncError(Exception):
    """Base class for every failure the sync core classifies."""


class TransportError(SyncError):
    """
    A request did not produce a usable response.

    Covers connection failures, timeouts, rate limiting (429), server errors (5xx) and
    bodies that could not be decoded. These are retried with backoff.
    """

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class NetworkUnreachable(TransportError):
    """A transport failure observed while the device is offline. Never retried."""


class AuthRequired(SyncError):
    """No valid credentials are available. Terminal for the current operation."""


class ServerRejected(SyncError):
    """The server refused the request with a non-auth 4xx status."""

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class SerializationFault(SyncError):
    """A cached payload could not be encoded or decoded."""


def is_retryable(error: BaseException) -> bool:
    """Everything except the terminal classes is worth another attempt."""
    return not isinstance(error, (NetworkUnreachable, AuthRequired, ServerRejected, SerializationFault))


def classify_status(status: int, message: str) -> Optional[SyncError]:
    """Map an HTTP status onto the error taxonomy. Returns None for 2xx."""
    if 200 <= status < 300:
        return None
    if status in (401, 403):
        return AuthRequired(message)
    if status == 429 or 500 <= status < 600:
        return TransportError(message, status=status)
    return ServerRejected(message, status=status)


__all__ = [
    "AuthRequired",
    "NetworkUnreachable",
    "SerializationFault",
    "ServerRejected",
    "SyncError",
    "TransportError",
    "classify_status",
    "is_retryable",
]
