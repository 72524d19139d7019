"""GitWagon: a file-store interface backed by git branches."""

from __future__ import annotations

import os
import shutil

from ._fileobj import ResourceReader, ResourceWriter
from .exceptions import AccessDenied, NotFound, TransferFailed
from .session import Session

__all__ = ["GitWagon"]


class GitWagon:
    """Read, write and list resources addressed relative to a base locator.

    Resource names are slash-separated paths relative to the session's
    base location.  They may climb with ``..`` into sibling repositories.
    Changes are local until :meth:`close` commits and pushes them.

    Example::

        with GitWagon.connect("git:https://host/org/site.git#gh-pages/") as w:
            w.write("index.html", b"<h1>hi</h1>")
            w.write("../docs.git/index.html", b"docs")
    """

    supports_directory_copy = True

    def __init__(self, session: Session):
        self._session = session

    def __repr__(self) -> str:
        return f"GitWagon({self._session!r})"

    @classmethod
    def connect(cls, url: str, **kwargs) -> GitWagon:
        """Open a new session on *url*.  See :meth:`Session.open` for options."""
        return cls(Session.open(url, **kwargs))

    @property
    def session(self) -> Session:
        return self._session

    # --- Read operations ---

    def open(self, resource_name: str, mode: str = "rb") -> ResourceReader | ResourceWriter:
        """Open a resource as a binary file-like object.

        Args:
            resource_name: Resource path relative to the base location.
            mode: ``"rb"`` to read or ``"wb"`` to write.

        Raises:
            NotFound: Reading a resource that does not exist.
            AccessDenied: Reading a resource that is not readable.
            TransferFailed: On any other I/O failure.
        """
        if mode in ("rb", "r"):
            return self._reader(resource_name)
        if mode in ("wb", "w"):
            return ResourceWriter(self._session.local_path(resource_name), resource_name)
        raise ValueError(f"Unsupported mode {mode!r}; use 'rb' or 'wb'")

    def _reader(self, resource_name: str) -> ResourceReader:
        path = self._session.local_path(resource_name)
        if not os.path.exists(path):
            raise NotFound(f"Resource not found: {resource_name} ({path})")
        if not os.access(path, os.R_OK):
            raise AccessDenied(f"Cannot read resource: {resource_name} ({path})")
        try:
            return ResourceReader(path, resource_name)
        except PermissionError as exc:
            raise AccessDenied(f"Cannot read resource: {resource_name}: {exc}") from exc
        except OSError as exc:
            raise TransferFailed(f"Cannot read resource: {resource_name}: {exc}") from exc

    def read(self, resource_name: str) -> bytes:
        """Return the contents of a resource."""
        with self._reader(resource_name) as f:
            return f.read()

    def list(self, directory: str = "") -> list[str]:
        """List the immediate children of *directory*, sorted by name.

        Subdirectories carry exactly one trailing ``/``.  The repository's
        own ``.git`` directory is never listed.

        Raises:
            NotFound: If *directory* is not an existing directory.
        """
        loc, wc = self._session.locate(directory)
        path = self._session.join(loc, wc)
        if not os.path.isdir(path):
            raise NotFound(f"Directory not found: {directory} ({path})")
        try:
            entries = sorted(os.scandir(path), key=lambda e: e.name)
        except OSError as exc:
            raise TransferFailed(f"Cannot list {directory}: {exc}") from exc
        names = []
        for entry in entries:
            if loc.is_root and entry.name == ".git":
                continue
            name = entry.name
            if entry.is_dir() and not name.endswith("/"):
                name += "/"
            names.append(name)
        return names

    def exists(self, resource_name: str) -> bool:
        """Return True if the resource exists.

        A name ending in ``/`` only exists as a directory.
        """
        path = self._session.local_path(resource_name)
        if resource_name.endswith("/"):
            return os.path.isdir(path)
        return os.path.exists(path)

    # --- Write operations ---

    def write(self, resource_name: str, data: bytes) -> None:
        """Write *data* to a resource, creating parent directories."""
        with ResourceWriter(self._session.local_path(resource_name), resource_name) as f:
            f.write(data)

    def put_directory(self, source_directory: str | os.PathLike[str],
                      destination_directory: str) -> None:
        """Copy the tree under a local directory into *destination_directory*.

        Existing files at the destination are overwritten; others are kept.

        Raises:
            NotFound: If *source_directory* is not a directory.
            TransferFailed: If copying fails.
        """
        source = os.fspath(source_directory)
        if not os.path.isdir(source):
            raise NotFound(f"Directory not found: {source}")
        dest = self._session.local_path(destination_directory)
        try:
            shutil.copytree(source, dest, dirs_exist_ok=True)
        except OSError as exc:
            raise TransferFailed(f"Cannot copy {source} to {destination_directory}: {exc}") from exc

    # --- Lifecycle ---

    def close(self) -> list[str]:
        """Commit, push and dispose every repository touched in the session.

        Raises:
            FinalizeError: Aggregating every repository that failed.
        """
        return self._session.close()

    def abort(self) -> None:
        """Drop every working copy without pushing."""
        self._session.abort()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return self._session.__exit__(exc_type, exc_val, exc_tb)
