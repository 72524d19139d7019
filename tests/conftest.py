"""Shared fixtures for gitwagon tests."""

import time

import pytest
from dulwich.index import commit_tree
from dulwich.object_store import tree_lookup_path
from dulwich.objects import Blob, Commit
from dulwich.repo import Repo

from gitwagon import Session


# ---------------------------------------------------------------------------
# Remote helpers
# ---------------------------------------------------------------------------

def commit_files(repo_path, branch, files, message="seed"):
    """Commit *files* ({path: bytes}) as the whole tree of *branch*."""
    repo = Repo(str(repo_path))
    try:
        blobs = []
        for name, data in files.items():
            blob = Blob.from_string(data)
            repo.object_store.add_object(blob)
            blobs.append((name.encode(), blob.id, 0o100644))
        ref = f"refs/heads/{branch}".encode()
        try:
            parents = [repo.refs[ref]]
        except KeyError:
            parents = []
        c = Commit()
        c.tree = commit_tree(repo.object_store, blobs)
        c.parents = parents
        c.author = c.committer = b"test <t@t.com>"
        c.author_time = c.commit_time = int(time.time())
        c.author_timezone = c.commit_timezone = 0
        c.message = message.encode() + b"\n"
        repo.object_store.add_object(c)
        repo.refs[ref] = c.id
        return c.id
    finally:
        repo.close()


def make_remote(path, files=None, branch="master"):
    """Create a bare repository at *path*, optionally seeded with *files*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    Repo.init_bare(str(path), mkdir=True).close()
    if files:
        commit_files(path, branch, files)
    return str(path)


def remote_head(repo_path, branch="master"):
    """Return the SHA of *branch* in a bare repo, or None if absent."""
    repo = Repo(str(repo_path))
    try:
        return repo.refs[f"refs/heads/{branch}".encode()]
    except KeyError:
        return None
    finally:
        repo.close()


def remote_files(repo_path, branch="master"):
    """Return {path: bytes} for every file on *branch*."""
    repo = Repo(str(repo_path))
    try:
        commit = repo[repo.refs[f"refs/heads/{branch}".encode()]]
        return {
            entry.path.decode(): repo[entry.sha].data
            for entry in repo.object_store.iter_tree_contents(commit.tree)
        }
    finally:
        repo.close()


def remote_read(repo_path, name, branch="master"):
    repo = Repo(str(repo_path))
    try:
        commit = repo[repo.refs[f"refs/heads/{branch}".encode()]]
        _, sha = tree_lookup_path(repo.__getitem__, commit.tree, name.encode())
        return repo[sha].data
    finally:
        repo.close()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def remotes(tmp_path):
    """Directory holding sibling bare repositories."""
    d = tmp_path / "remotes"
    d.mkdir()
    return d


@pytest.fixture
def site(remotes):
    """Bare repo site.git with index.html and docs/guide.txt on master."""
    return make_remote(remotes / "site.git", {
        "index.html": b"<h1>home</h1>",
        "docs/guide.txt": b"guide",
    })


@pytest.fixture
def docs(remotes):
    """Bare repo docs.git, a sibling of site.git, with readme.txt on master."""
    return make_remote(remotes / "docs.git", {"readme.txt": b"readme"})


@pytest.fixture
def work_dir(tmp_path):
    return tmp_path / "work"


@pytest.fixture
def session(site, work_dir):
    s = Session.open(f"git:{site}#master/", work_dir=work_dir)
    yield s
    s.abort()
