"""Working-copy git plumbing on top of dulwich.

Everything that touches git objects or a transport lives here: clone into
a fresh directory, stage the whole working tree, commit, and push one
branch.  Callers deal in plain paths and strings.
"""

from __future__ import annotations

import os
import time as _time

from dulwich.client import HTTPUnauthorized, get_transport_and_path
from dulwich.errors import GitProtocolError, NotGitRepository
from dulwich.graph import can_fast_forward
from dulwich.objects import Commit
from dulwich.protocol import ZERO_SHA
from dulwich.repo import Repo

from .exceptions import PushRejected

# Errors a transport may raise for an unreachable, missing or forbidden remote.
TRANSPORT_ERRORS = (
    GitProtocolError,
    NotGitRepository,
    HTTPUnauthorized,
    OSError,
    ValueError,
)

ORIGIN = b"origin"


def _worktree(repo: Repo):
    """Object carrying index operations (the repo itself before dulwich 0.23)."""
    get_worktree = getattr(repo, "get_worktree", None)
    return get_worktree() if get_worktree is not None else repo


def branch_ref(branch: str) -> bytes:
    return f"refs/heads/{branch}".encode()


def _tracking_ref(branch: bytes) -> bytes:
    return b"refs/remotes/origin/" + branch


# ---------------------------------------------------------------------------
# Clone
# ---------------------------------------------------------------------------

def _set_origin(repo: Repo, address: str) -> None:
    config = repo.get_config()
    config.set((b"remote", ORIGIN), b"url", address.encode())
    config.set((b"remote", ORIGIN), b"fetch", b"+refs/heads/*:refs/remotes/origin/*")
    config.write_to_path()


def clone(address: str, local_dir: str, branch: str, *, url: str | None = None,
          progress=None) -> bool:
    """Clone *address* into the empty directory *local_dir* and check out *branch*.

    *url* is the transport URL (e.g. with credentials injected); it is never
    written to the repository config.  When the remote has no *branch*, HEAD
    is pointed at an unborn ``refs/heads/<branch>`` and the working tree is
    left empty.

    Returns True if the branch existed on the remote.
    """
    repo = Repo.init(local_dir)
    try:
        _set_origin(repo, address)
        client, path = get_transport_and_path(url or address)
        result = client.fetch(path, repo, progress=progress)

        heads = {
            ref: sha
            for ref, sha in result.refs.items()
            if sha is not None and ref.startswith(b"refs/heads/")
        }
        for ref, sha in heads.items():
            repo.refs[_tracking_ref(ref[len(b"refs/heads/"):])] = sha

        ref = branch_ref(branch)
        repo.refs.set_symbolic_ref(b"HEAD", ref)
        sha = heads.get(ref)
        if sha is None:
            return False
        repo.refs[ref] = sha
        _worktree(repo).reset_index(repo[sha].tree)
        return True
    finally:
        repo.close()


# ---------------------------------------------------------------------------
# Stage / commit
# ---------------------------------------------------------------------------

def _worktree_files(root: str):
    """Yield slash-separated paths of every file under *root*, minus .git."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d != ".git")
        rel = os.path.relpath(dirpath, root)
        for name in sorted(filenames):
            p = name if rel == "." else os.path.join(rel, name)
            yield p.replace(os.sep, "/")


def stage_all(repo: Repo) -> None:
    """Stage every addition, modification and deletion in the working tree."""
    index = repo.open_index()
    tracked = {p.decode() for p in index}
    paths = sorted(tracked | set(_worktree_files(repo.path)))
    if paths:
        _worktree(repo).stage(paths)


def commit_staged(repo: Repo, branch: str, message: str, identity: bytes) -> bytes | None:
    """Commit the index onto *branch*.

    Returns the new commit SHA, or ``None`` when there is nothing to commit:
    the staged tree equals HEAD's tree, or the branch is unborn and the
    index is empty.
    """
    index = repo.open_index()
    tree_id = index.commit(repo.object_store)
    ref = branch_ref(branch)
    try:
        head = repo.refs[ref]
    except KeyError:
        head = None

    if head is None:
        if len(index) == 0:
            return None
        parents = []
    else:
        if repo[head].tree == tree_id:
            return None
        parents = [head]

    c = Commit()
    c.tree = tree_id
    c.parents = parents
    c.author = c.committer = identity
    now = int(_time.time())
    c.author_time = c.commit_time = now
    c.author_timezone = c.commit_timezone = 0
    msg = message.encode()
    if not msg.endswith(b"\n"):
        msg += b"\n"
    c.message = msg
    c.encoding = b"UTF-8"
    repo.object_store.add_object(c)
    repo.refs[ref] = c.id
    return c.id


# ---------------------------------------------------------------------------
# Push
# ---------------------------------------------------------------------------

def push(repo: Repo, branch: str, url: str, *, created: bool = False,
         progress=None) -> bytes:
    """Push *branch* to *url* as a fast-forward.

    Raises:
        PushRejected: When the remote branch is not an ancestor of the local
            one, or the remote reports an error for the ref.
    """
    ref = branch_ref(branch)
    local_sha = repo.refs[ref]
    client, path = get_transport_and_path(url)

    def update_refs(remote_refs):
        remote_sha = remote_refs.get(ref)
        if remote_sha in (None, ZERO_SHA, local_sha):
            return {ref: local_sha}
        if remote_sha not in repo.object_store:
            reason = ("branch was created on the remote meanwhile" if created
                      else "remote branch has commits not in the working copy")
            raise PushRejected(ref.decode(), reason)
        if not can_fast_forward(repo, remote_sha, local_sha):
            raise PushRejected(ref.decode(), "remote branch has diverged")
        return {ref: local_sha}

    def gen_pack(have, want, *, ofs_delta=False, progress=progress):
        return repo.object_store.generate_pack_data(
            have, want, ofs_delta=ofs_delta, progress=progress,
        )

    result = client.send_pack(path, update_refs, gen_pack, progress=progress)
    status = getattr(result, "ref_status", None) or {}
    error = status.get(ref)
    if error:
        raise PushRejected(ref.decode(), str(error))
    repo.refs[_tracking_ref(branch.encode())] = local_sha
    return local_sha
