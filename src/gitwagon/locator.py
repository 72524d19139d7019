"""Locator parsing and resolution.

A locator names a location inside a branch of a remote repository::

    git:<repository-address>[#<branch>]/<in-repo-path...>

Resolution is pure string manipulation: no filesystem or network access.
A relative resource name may walk above the repository root with ``..``,
in which case the walk continues on the repository address itself::

    git:https://host/org/site.git + ../docs.git/index.html
        == https://host/org/docs.git + index.html
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from .exceptions import ResolutionError

__all__ = [
    "DEFAULT_BRANCH",
    "SCHEME",
    "Locator",
    "ResolvedLocation",
    "parse_locator",
    "resolve",
    "split_address",
    "join_address",
]

logger = logging.getLogger(__name__)

SCHEME = "git"
DEFAULT_BRANCH = "master"
# In-repo paths may not enter the working copy's git directory.
METADATA_DIR = ".git"

_URL_AUTHORITY = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://[^/]*")
_SCP_AUTHORITY = re.compile(r"^[^/:]+:")


@dataclass(frozen=True)
class Locator:
    """A branch of a repository plus a path inside it."""
    repository_address: str
    branch: str = DEFAULT_BRANCH
    resource_path: str = ""

    def __post_init__(self):
        if not self.repository_address:
            raise ResolutionError("Repository address must not be empty")
        if not self.branch:
            object.__setattr__(self, "branch", DEFAULT_BRANCH)

    def __str__(self) -> str:
        s = f"{SCHEME}:{self.repository_address}#{self.branch}"
        if self.resource_path:
            s += "/" + self.resource_path
        return s


@dataclass(frozen=True)
class ResolvedLocation:
    """Where a resource name lands: a repository, a branch, and a path in it."""
    repository_address: str
    branch: str
    in_repo_path: str

    @property
    def is_root(self) -> bool:
        return self.in_repo_path == ""


# ---------------------------------------------------------------------------
# Address helpers
# ---------------------------------------------------------------------------

def split_address(address: str) -> tuple[str, list[str]]:
    """Split *address* into an authority prefix and its path components.

    The prefix is never popped by ``..``::

        https://host/a/b.git  -> ("https://host/", ["a", "b.git"])
        git@host:/a/b.git     -> ("git@host:/", ["a", "b.git"])
        /srv/git/b.git        -> ("/", ["srv", "git", "b.git"])
    """
    m = _URL_AUTHORITY.match(address) or _SCP_AUTHORITY.match(address)
    prefix = m.group(0) if m else ""
    rest = address[len(prefix):]
    stripped = rest.lstrip("/")
    prefix += rest[:len(rest) - len(stripped)]
    return prefix, [c for c in stripped.split("/") if c]


def join_address(prefix: str, components: list[str]) -> str:
    """Inverse of :func:`split_address`, dropping any trailing slash."""
    if components and "://" in prefix and not prefix.endswith("/"):
        prefix += "/"
    return prefix + "/".join(components)


def _path_segments(path: str) -> list[str]:
    return [s for s in path.split("/") if s and s != "."]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_locator(url: str, *, default_branch: str = DEFAULT_BRANCH) -> Locator:
    """Parse a ``git:<address>[#<branch>]/<path>`` locator string.

    Without ``#<branch>`` the address ends after the first path component
    ending in ``.git``; when there is none, the whole remainder is the
    address and the resource path is the repository root.

    Raises:
        ResolutionError: On a missing scheme, an empty address, or a base
            path that climbs with ``..``.
    """
    head = f"{SCHEME}:"
    if not url.startswith(head):
        raise ResolutionError(f"Locator must start with {head!r}: {url!r}")
    rest = url[len(head):]

    if "#" in rest:
        address, _, fragment = rest.partition("#")
        branch, _, path = fragment.partition("/")
        prefix, components = split_address(address)
    else:
        branch, path = "", ""
        prefix, components = split_address(rest)
        for i, comp in enumerate(components):
            if comp.endswith(".git"):
                path = "/".join(components[i + 1:])
                components = components[:i + 1]
                break

    address = join_address(prefix, components)
    if not address.strip("/"):
        raise ResolutionError(f"Locator has no repository address: {url!r}")

    segments = _path_segments(path)
    if ".." in segments:
        raise ResolutionError(f"Locator path must not contain '..': {url!r}")
    if segments and segments[0] == METADATA_DIR:
        raise ResolutionError(f"Locator path points into .git: {url!r}")
    return Locator(address, branch or default_branch, "/".join(segments))


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def resolve(base: Locator, resource_name: str) -> ResolvedLocation:
    """Resolve *resource_name* relative to *base*.

    ``..`` at the repository root pops a component off the repository
    address.  While outside a repository, plain segments extend the address
    until a repository name closes it.  When the base address's last
    component ends in ``.git`` the closing segment must end in ``.git`` too;
    otherwise the first appended segment names the new repository.  The
    branch is kept across repository switches.

    Raises:
        ResolutionError: When ``..`` climbs past the first address component,
            or the walk ends outside any repository, or
            into the repository's own ``.git`` directory.
    """
    prefix, address = split_address(base.repository_address)
    dot_git = bool(address) and address[-1].endswith(".git")
    path = _path_segments(base.resource_path)
    switched = False
    inside = True

    for seg in resource_name.split("/"):
        if seg in ("", "."):
            continue
        if seg == "..":
            if inside and path:
                path.pop()
                continue
            if not address:
                raise ResolutionError(
                    f"{resource_name!r} climbs above {base.repository_address!r}"
                )
            address.pop()
            inside = False
            switched = True
        elif inside:
            path.append(seg)
        else:
            address.append(seg)
            if not dot_git or seg.endswith(".git"):
                inside = True
                path = []

    if not inside:
        raise ResolutionError(
            f"{resource_name!r} resolves outside of any repository "
            f"(from {base.repository_address!r})"
        )
    if path and path[0] == METADATA_DIR:
        raise ResolutionError(
            f"{resource_name!r} resolves into repository metadata "
            f"of {base.repository_address!r}"
        )

    repo = join_address(prefix, address) if switched else base.repository_address
    resolved = ResolvedLocation(repo, base.branch, "/".join(path))
    logger.debug("Resolved %r against %s to %s", resource_name, base, resolved)
    return resolved
