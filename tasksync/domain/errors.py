"""Error taxonomy shared by the transport, loader and store."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    SERVER = "server"
    MALFORMED = "malformed"


class SyncError(Exception):
    """Base class for every failure this layer reports."""

    kind: ErrorKind = ErrorKind.SERVER
    default_message = "Unexpected sync failure."

    def __init__(self, message: str | None = None, *, status: int | None = None):
        super().__init__(message or self.default_message)
        self.status = status


class ValidationError(SyncError):
    kind = ErrorKind.VALIDATION
    default_message = "The request was rejected as invalid."


class AuthenticationError(SyncError):
    """Raised when the stored credential is missing, invalid or expired."""

    kind = ErrorKind.AUTHENTICATION
    default_message = "Your session has expired. Please sign in again."


class RateLimitError(SyncError):
    kind = ErrorKind.RATE_LIMIT
    default_message = "Too many requests. Please try again later."


class NetworkError(SyncError):
    kind = ErrorKind.NETWORK
    default_message = "Network error. Please check your connection."


class ServerError(SyncError):
    kind = ErrorKind.SERVER
    default_message = "Server error. Please try again later."


class MalformedRecordError(SyncError):
    kind = ErrorKind.MALFORMED
    default_message = "Received a malformed record."
