"""Backend-tagged errors shared by every adapter."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """What went wrong, independent of which backend reported it."""

    NOT_FOUND = "not_found"
    BACKEND_UNREACHABLE = "backend_unreachable"
    VALIDATION_FAILED = "validation_failed"
    DECODE_FAILED = "decode_failed"
    UNAUTHORIZED = "unauthorized"
    CONFLICT = "conflict"


class BackendError(Exception):
    """Error raised by an adapter, tagged with the backend that produced it."""

    kind: ErrorKind = ErrorKind.BACKEND_UNREACHABLE

    def __init__(self, message: str, backend: str, kind: ErrorKind | None = None):
        super().__init__(message)
        self.message = message
        self.backend = backend
        if kind is not None:
            self.kind = kind

    def __str__(self) -> str:
        return f"[{self.backend}] {self.message}"

    def to_dict(self) -> dict[str, str]:
        return {"detail": str(self), "backend": self.backend, "kind": self.kind.value}


class NotFoundError(BackendError):
    kind = ErrorKind.NOT_FOUND


class BackendUnreachableError(BackendError):
    kind = ErrorKind.BACKEND_UNREACHABLE


class ValidationFailedError(BackendError):
    kind = ErrorKind.VALIDATION_FAILED


class DecodeFailedError(BackendError):
    kind = ErrorKind.DECODE_FAILED


class UnauthorizedError(BackendError):
    kind = ErrorKind.UNAUTHORIZED


class ConflictError(BackendError):
    kind = ErrorKind.CONFLICT


# Same text for unknown email and wrong password.
INVALID_CREDENTIALS = "Invalid credentials"
