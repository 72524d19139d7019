from .wagon import GitWagon
from .session import Session
from .locator import Locator, ResolvedLocation, parse_locator, resolve, DEFAULT_BRANCH
from .cache import WorkingCopy, WorkingCopyCache
from .credentials import Credentials, resolve_credentials
from .finalize import close_session, DEFAULT_COMMIT_MESSAGE
from .exceptions import (
    ErrorKind, WagonError, ResolutionError, RepositoryUnavailable, NotFound,
    AccessDenied, TransferFailed, FinalizeError, RepositoryFailure,
)

__all__ = [
    "GitWagon", "Session",
    "Locator", "ResolvedLocation", "parse_locator", "resolve", "DEFAULT_BRANCH",
    "WorkingCopy", "WorkingCopyCache",
    "Credentials", "resolve_credentials",
    "close_session", "DEFAULT_COMMIT_MESSAGE",
    "ErrorKind", "WagonError", "ResolutionError", "RepositoryUnavailable", "NotFound",
    "AccessDenied", "TransferFailed", "FinalizeError", "RepositoryFailure",
]
