"""Session close: stage, commit, push and dispose every working copy."""

from __future__ import annotations

import logging

from dulwich.repo import Repo

from . import _git
from .cache import WorkingCopy, WorkingCopyCache, dispose
from .credentials import Credentials, transport_url
from .exceptions import FinalizeError, RepositoryFailure

__all__ = ["DEFAULT_COMMIT_MESSAGE", "close_session", "finalize_working_copy", "identity"]

logger = logging.getLogger(__name__)

DEFAULT_COMMIT_MESSAGE = "Update from gitwagon"


def identity(author: str, email: str) -> bytes:
    """Return a git ``Name <email>`` identity line."""
    return f"{author} <{email}>".encode()


def finalize_working_copy(wc: WorkingCopy, *, message: str, committer: bytes,
                          credentials: Credentials | None = None) -> bytes | None:
    """Stage everything in *wc*, commit it and push its branch.

    Returns the pushed commit SHA, or ``None`` when there was nothing to
    commit (in which case nothing is pushed).
    """
    repo = Repo(wc.local_directory)
    try:
        _git.stage_all(repo)
        sha = _git.commit_staged(repo, wc.branch, message, committer)
        if sha is None:
            logger.info("Nothing to commit in %s", wc.repository_address)
            return None
        logger.info("Committed %s on %s of %s", sha.decode()[:7], wc.branch,
                    wc.repository_address)
        _git.push(repo, wc.branch, transport_url(wc.repository_address, credentials),
                  created=wc.created_branch)
        logger.info("Pushed %s to %s", wc.branch, wc.repository_address)
        return sha
    finally:
        repo.close()


def close_session(cache: WorkingCopyCache, *, message: str = DEFAULT_COMMIT_MESSAGE,
                  committer: bytes = identity("gitwagon", "gitwagon@localhost"),
                  credentials: Credentials | None = None) -> list[str]:
    """Finalize and release every working copy in *cache*.

    Every repository is attempted.  Those that finalize cleanly have their
    local directories deleted; a directory that cannot be deleted is only
    logged.  Failed repositories keep their directories for recovery.  The
    cache is empty afterwards, so a second call is a no-op.

    Returns the addresses finalized successfully.

    Raises:
        FinalizeError: Listing every repository that failed.
    """
    done: list[str] = []
    failures: list[RepositoryFailure] = []
    for wc in cache:
        cache.release(wc.repository_address)
        try:
            finalize_working_copy(wc, message=message, committer=committer,
                                  credentials=credentials)
        except Exception as exc:
            logger.warning("Could not finalize %s; keeping %s: %s",
                           wc.repository_address, wc.local_directory, exc)
            failures.append(RepositoryFailure(wc.repository_address,
                                              wc.local_directory, exc))
            continue
        dispose(wc)
        done.append(wc.repository_address)

    if failures:
        raise FinalizeError(failures)
    return done
