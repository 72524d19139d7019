"""Session: the context every store operation runs in.

A session owns the base locator, the working-copy cache and the
credentials used for every clone and push.  Nothing is shared between
sessions; each one starts with an empty cache.
"""

from __future__ import annotations

import logging
import os
import threading

from .cache import WorkingCopy, WorkingCopyCache, dispose
from .credentials import Credentials
from .finalize import DEFAULT_COMMIT_MESSAGE, close_session, identity
from .locator import DEFAULT_BRANCH, Locator, ResolvedLocation, parse_locator, resolve

__all__ = ["Session"]

logger = logging.getLogger(__name__)


class Session:
    """Resolution, cloning and finalization state for one connection."""

    def __init__(
        self,
        locator: Locator,
        *,
        credentials: Credentials | None = None,
        message: str = DEFAULT_COMMIT_MESSAGE,
        author: str = "gitwagon",
        email: str = "gitwagon@localhost",
        work_dir: str | os.PathLike[str] | None = None,
    ):
        self.locator = locator
        self.credentials = credentials
        self.message = message
        self._committer = identity(author, email)
        self._cache = WorkingCopyCache(work_dir)
        self._closed = False
        self._close_lock = threading.Lock()

    def __repr__(self) -> str:
        state = "closed" if self._closed else f"{len(self._cache)} working copies"
        return f"Session({str(self.locator)!r}, {state})"

    @classmethod
    def open(
        cls,
        url: str,
        *,
        branch: str = DEFAULT_BRANCH,
        username: str | None = None,
        password: str | None = None,
        credentials: Credentials | None = None,
        message: str = DEFAULT_COMMIT_MESSAGE,
        author: str = "gitwagon",
        email: str = "gitwagon@localhost",
        work_dir: str | os.PathLike[str] | None = None,
    ) -> Session:
        """Open a session on a ``git:<address>[#<branch>]/<path>`` locator.

        Args:
            url: Locator string of the base location.
            branch: Branch used when the locator has no ``#<branch>``.
            username: Username for HTTP(S) remotes.
            password: Password for HTTP(S) remotes (default empty).
            credentials: Ready-made credentials; overrides *username* and
                *password*.
            message: Commit message used for every repository on close.
            author: Commit author and committer name.
            email: Commit author and committer email.
            work_dir: Parent directory for working copies (default: the
                system temporary directory).
        """
        if credentials is None and username:
            credentials = Credentials(username, password or "")
        locator = parse_locator(url, default_branch=branch)
        logger.debug("Opened session on %s", locator)
        return cls(locator, credentials=credentials, message=message,
                   author=author, email=email, work_dir=work_dir)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def cache(self) -> WorkingCopyCache:
        return self._cache

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError("Operation on closed session.")

    # --- Resource mapping ---

    def resolve(self, resource_name: str) -> ResolvedLocation:
        """Resolve *resource_name* against the session's base locator."""
        return resolve(self.locator, resource_name)

    def locate(self, resource_name: str) -> tuple[ResolvedLocation, WorkingCopy]:
        """Resolve *resource_name* and materialize its repository."""
        self._check_open()
        loc = self.resolve(resource_name)
        wc = self._cache.get(loc.repository_address, loc.branch, self.credentials)
        return loc, wc

    def local_path(self, resource_name: str) -> str:
        """Return the local file path backing *resource_name*.

        Clones the target repository on first use.

        Raises:
            ResolutionError: If the name cannot be resolved.
            RepositoryUnavailable: If the repository cannot be cloned.
        """
        return self.join(*self.locate(resource_name))

    @staticmethod
    def join(loc: ResolvedLocation, wc: WorkingCopy) -> str:
        """Join a working copy's directory with a resolved in-repo path."""
        if loc.is_root:
            return wc.local_directory
        return os.path.join(wc.local_directory, *loc.in_repo_path.split("/"))

    # --- Lifecycle ---

    def close(self) -> list[str]:
        """Commit and push every touched repository, then delete working copies.

        Returns the addresses finalized.  Closing a closed session is a
        no-op returning an empty list.

        Raises:
            FinalizeError: Aggregating every repository that failed.
        """
        with self._close_lock:
            self._closed = True
            return close_session(self._cache, message=self.message,
                                 committer=self._committer,
                                 credentials=self.credentials)

    def abort(self) -> None:
        """Delete every working copy without committing or pushing."""
        with self._close_lock:
            self._closed = True
            for wc in self._cache:
                self._cache.release(wc.repository_address)
                logger.info("Discarding working copy of %s", wc.repository_address)
                dispose(wc)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.close()
        else:
            self.abort()
        return False
