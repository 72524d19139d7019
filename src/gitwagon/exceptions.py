"""Exceptions for gitwagon.

Every error raised by the library is a :class:`WagonError` tagged with an
:class:`ErrorKind`, so callers can either catch a concrete subclass or
dispatch on ``exc.kind``.  The low-level failure, when there is one, is
preserved as ``__cause__``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class ErrorKind(enum.Enum):
    RESOLUTION = "resolution"
    REPOSITORY_UNAVAILABLE = "repository-unavailable"
    NOT_FOUND = "not-found"
    ACCESS_DENIED = "access-denied"
    TRANSFER_FAILED = "transfer-failed"
    FINALIZE = "finalize"


class WagonError(Exception):
    """Base class for all gitwagon errors."""

    kind: ErrorKind


class ResolutionError(WagonError, ValueError):
    """Raised when a locator is malformed or a path traverses too far up."""

    kind = ErrorKind.RESOLUTION


class RepositoryUnavailable(WagonError):
    """Raised when a repository cannot be cloned (network, auth, missing)."""

    kind = ErrorKind.REPOSITORY_UNAVAILABLE

    def __init__(self, address: str, reason: str = ""):
        self.address = address
        msg = f"Repository unavailable: {address}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class NotFound(WagonError, FileNotFoundError):
    """Raised when a resource or directory does not exist."""

    kind = ErrorKind.NOT_FOUND


class AccessDenied(WagonError, PermissionError):
    """Raised when the materialized file cannot be read or written."""

    kind = ErrorKind.ACCESS_DENIED


class TransferFailed(WagonError):
    """Raised on a generic I/O failure while reading or writing a resource."""

    kind = ErrorKind.TRANSFER_FAILED


class PushRejected(Exception):
    """Raised by the git plumbing when the remote refuses a branch update."""

    def __init__(self, ref: str, reason: str):
        self.ref = ref
        self.reason = reason
        super().__init__(f"Push of {ref} rejected: {reason}")


@dataclass
class RepositoryFailure:
    """One repository that could not be finalized.

    ``local_directory`` is left on disk so uncommitted or unpushed work
    can be recovered.
    """
    address: str
    local_directory: str
    error: BaseException

    def __str__(self) -> str:
        return f"{self.address}: {self.error}"


class FinalizeError(WagonError):
    """Raised by session close when one or more repositories failed."""

    kind = ErrorKind.FINALIZE

    def __init__(self, failures: list[RepositoryFailure]):
        self.failures = list(failures)
        lines = [f"Failed to finalize {len(self.failures)} repository(ies):"]
        lines.extend(f"  {f}" for f in self.failures)
        super().__init__("\n".join(lines))

    @property
    def addresses(self) -> list[str]:
        return [f.address for f in self.failures]
