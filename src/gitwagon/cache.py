"""Working-copy cache: one clone per repository address per session."""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
import threading
from collections.abc import Iterator
from dataclasses import dataclass

from . import _git
from ._lock import KeyedLock
from .credentials import Credentials, transport_url
from .exceptions import RepositoryUnavailable

__all__ = ["WorkingCopy", "WorkingCopyCache", "dispose"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkingCopy:
    """A locally materialized checkout of one branch of one repository.

    Attributes:
        repository_address: Cache key; the remote the copy came from.
        local_directory: Working tree root, owned by the cache.
        branch: Branch HEAD points at.
        created_branch: True when *branch* did not exist on the remote and
            was started as an unborn branch.
    """
    repository_address: str
    local_directory: str
    branch: str
    created_branch: bool = False


def _dir_prefix(address: str) -> str:
    return re.sub(r"[^A-Za-z]", "_", address)[-40:] + "-"


class WorkingCopyCache:
    """Maps repository addresses to working copies, cloning on first use.

    The first caller's branch wins: later ``get`` calls for the same address
    return the existing copy whatever branch they ask for.  Concurrent first
    access to one address clones exactly once; different addresses never
    wait on each other.
    """

    def __init__(self, work_dir: str | os.PathLike[str] | None = None):
        self._work_dir = os.fspath(work_dir) if work_dir is not None else None
        self._copies: dict[str, WorkingCopy] = {}
        self._guard = threading.Lock()
        self._clone_locks = KeyedLock()

    def __repr__(self) -> str:
        return f"WorkingCopyCache(len={len(self)})"

    def __len__(self) -> int:
        with self._guard:
            return len(self._copies)

    def __contains__(self, address: str) -> bool:
        with self._guard:
            return address in self._copies

    def __iter__(self) -> Iterator[WorkingCopy]:
        with self._guard:
            copies = list(self._copies.values())
        return iter(copies)

    def _lookup(self, address: str) -> WorkingCopy | None:
        with self._guard:
            return self._copies.get(address)

    def get(self, address: str, branch: str,
            credentials: Credentials | None = None) -> WorkingCopy:
        """Return the working copy for *address*, cloning it on a miss.

        Raises:
            RepositoryUnavailable: When the clone fails.  Nothing is cached,
                so the next call retries.
        """
        wc = self._lookup(address)
        if wc is not None:
            logger.debug("Working copy hit for %s", address)
            return wc

        with self._clone_locks.hold(address):
            wc = self._lookup(address)
            if wc is not None:
                return wc
            wc = self._clone(address, branch, credentials)
            with self._guard:
                self._copies[address] = wc
            return wc

    def _clone(self, address: str, branch: str,
               credentials: Credentials | None) -> WorkingCopy:
        if self._work_dir is not None:
            os.makedirs(self._work_dir, exist_ok=True)
        local_dir = tempfile.mkdtemp(prefix=_dir_prefix(address), suffix=".wagon-git",
                                     dir=self._work_dir)
        logger.info("Cloning %s (branch %s) into %s", address, branch, local_dir)
        try:
            existed = _git.clone(
                address, local_dir, branch,
                url=transport_url(address, credentials),
            )
        except _git.TRANSPORT_ERRORS as exc:
            shutil.rmtree(local_dir, ignore_errors=True)
            raise RepositoryUnavailable(address, str(exc)) from exc
        if not existed:
            logger.info("Branch %s does not exist in %s; starting it unborn",
                        branch, address)
        return WorkingCopy(address, local_dir, branch, created_branch=not existed)

    def release(self, address: str) -> WorkingCopy | None:
        """Forget *address*; the caller takes over its local directory."""
        with self._guard:
            wc = self._copies.pop(address, None)
        self._clone_locks.discard(address)
        return wc


def dispose(wc: WorkingCopy) -> bool:
    """Delete *wc*'s local directory.  Returns False (and logs) on failure."""
    try:
        shutil.rmtree(wc.local_directory)
    except OSError as exc:
        logger.warning("Could not delete working copy %s of %s: %s",
                       wc.local_directory, wc.repository_address, exc)
        return False
    logger.info("Disposed working copy of %s", wc.repository_address)
    return True
