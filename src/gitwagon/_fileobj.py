"""File-like objects over working-copy files."""

from __future__ import annotations

import os

from .exceptions import AccessDenied, TransferFailed


class ResourceReader:
    """Read-only binary stream of a resource, with its length."""

    def __init__(self, path: str, name: str):
        self.name = name
        self.length = os.path.getsize(path)
        self._f = open(path, "rb")

    def __repr__(self) -> str:
        return f"ResourceReader({self.name!r}, length={self.length})"

    @property
    def closed(self) -> bool:
        return self._f.closed

    def readable(self) -> bool:
        return True

    def writable(self) -> bool:
        return False

    def seekable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        try:
            return self._f.read(size)
        except PermissionError as exc:
            raise AccessDenied(f"Cannot read {self.name}: {exc}") from exc
        except OSError as exc:
            raise TransferFailed(f"Cannot read {self.name}: {exc}") from exc

    def seek(self, offset: int, whence: int = 0) -> int:
        return self._f.seek(offset, whence)

    def tell(self) -> int:
        return self._f.tell()

    def close(self) -> None:
        self._f.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class ResourceWriter:
    """Write-only binary sink for a resource.

    Parent directories are created on open.  Data goes straight to the
    working copy; it is committed when the session closes.
    """

    def __init__(self, path: str, name: str):
        self.name = name
        parent = os.path.dirname(path)
        try:
            os.makedirs(parent, exist_ok=True)
        except OSError as exc:
            raise TransferFailed(f"Unable to create directories {parent}: {exc}") from exc
        try:
            self._f = open(path, "wb")
        except OSError as exc:
            raise TransferFailed(f"Cannot write {name}: {exc}") from exc

    def __repr__(self) -> str:
        return f"ResourceWriter({self.name!r})"

    @property
    def closed(self) -> bool:
        return self._f.closed

    def readable(self) -> bool:
        return False

    def writable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def write(self, data: bytes) -> int:
        try:
            return self._f.write(data)
        except OSError as exc:
            raise TransferFailed(f"Cannot write {self.name}: {exc}") from exc

    def close(self) -> None:
        if self._f.closed:
            return
        try:
            self._f.close()
        except OSError as exc:
            raise TransferFailed(f"Cannot write {self.name}: {exc}") from exc

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
