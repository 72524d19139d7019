"""Tests for the working-copy cache."""

import os
import threading
import time

import pytest
from dulwich.repo import Repo

from gitwagon import RepositoryUnavailable, WorkingCopyCache
from gitwagon import _git
from gitwagon.exceptions import ErrorKind

from conftest import make_remote


@pytest.fixture
def clone_calls(monkeypatch):
    """Record every clone the cache performs (still cloning for real)."""
    calls = []
    real = _git.clone

    def counting(address, local_dir, branch, **kwargs):
        calls.append((address, branch))
        return real(address, local_dir, branch, **kwargs)

    monkeypatch.setattr(_git, "clone", counting)
    return calls


class TestClone:
    def test_materializes_branch(self, site, work_dir):
        cache = WorkingCopyCache(work_dir)
        wc = cache.get(site, "master")
        assert wc.repository_address == site
        assert wc.branch == "master"
        assert not wc.created_branch
        with open(os.path.join(wc.local_directory, "index.html"), "rb") as f:
            assert f.read() == b"<h1>home</h1>"
        assert os.path.isfile(os.path.join(wc.local_directory, "docs", "guide.txt"))

    def test_directory_under_work_dir(self, site, work_dir):
        wc = WorkingCopyCache(work_dir).get(site, "master")
        assert os.path.dirname(wc.local_directory) == str(work_dir)
        assert wc.local_directory.endswith(".wagon-git")

    def test_head_on_branch(self, site, work_dir):
        wc = WorkingCopyCache(work_dir).get(site, "master")
        repo = Repo(wc.local_directory)
        try:
            assert repo.refs.get_symrefs()[b"HEAD"] == b"refs/heads/master"
        finally:
            repo.close()

    def test_contains_and_len(self, site, work_dir):
        cache = WorkingCopyCache(work_dir)
        assert site not in cache
        cache.get(site, "master")
        assert site in cache
        assert len(cache) == 1
        assert [wc.repository_address for wc in cache] == [site]


class TestMissingBranch:
    def test_unborn_branch(self, site, work_dir):
        wc = WorkingCopyCache(work_dir).get(site, "gh-pages")
        assert wc.created_branch
        assert wc.branch == "gh-pages"
        assert os.listdir(wc.local_directory) == [".git"]
        repo = Repo(wc.local_directory)
        try:
            assert repo.refs.get_symrefs()[b"HEAD"] == b"refs/heads/gh-pages"
            assert b"refs/heads/gh-pages" not in repo.refs
        finally:
            repo.close()

    def test_empty_remote(self, remotes, work_dir):
        empty = make_remote(remotes / "empty.git")
        wc = WorkingCopyCache(work_dir).get(empty, "master")
        assert wc.created_branch


class TestIdempotence:
    def test_same_working_copy(self, site, work_dir, clone_calls):
        cache = WorkingCopyCache(work_dir)
        wc1 = cache.get(site, "master")
        wc2 = cache.get(site, "master")
        assert wc1 is wc2
        assert len(clone_calls) == 1

    def test_first_branch_wins(self, site, work_dir, clone_calls):
        cache = WorkingCopyCache(work_dir)
        wc1 = cache.get(site, "master")
        wc2 = cache.get(site, "other")
        assert wc2 is wc1
        assert wc2.branch == "master"
        assert clone_calls == [(site, "master")]

    def test_different_addresses(self, site, docs, work_dir, clone_calls):
        cache = WorkingCopyCache(work_dir)
        a = cache.get(site, "master")
        b = cache.get(docs, "master")
        assert a.local_directory != b.local_directory
        assert len(clone_calls) == 2

    def test_release(self, site, work_dir, clone_calls):
        cache = WorkingCopyCache(work_dir)
        wc = cache.get(site, "master")
        assert cache.release(site) is wc
        assert site not in cache
        assert cache.release(site) is None


class TestFailure:
    def test_missing_remote(self, tmp_path, work_dir):
        cache = WorkingCopyCache(work_dir)
        missing = str(tmp_path / "nope.git")
        with pytest.raises(RepositoryUnavailable) as exc_info:
            cache.get(missing, "master")
        assert exc_info.value.kind is ErrorKind.REPOSITORY_UNAVAILABLE
        assert exc_info.value.address == missing
        assert exc_info.value.__cause__ is not None
        assert missing not in cache

    def test_failed_clone_cleans_up(self, tmp_path, work_dir):
        cache = WorkingCopyCache(work_dir)
        with pytest.raises(RepositoryUnavailable):
            cache.get(str(tmp_path / "nope.git"), "master")
        assert os.listdir(work_dir) == []

    def test_retry_after_failure(self, remotes, work_dir, clone_calls):
        address = str(remotes / "late.git")
        cache = WorkingCopyCache(work_dir)
        with pytest.raises(RepositoryUnavailable):
            cache.get(address, "master")
        make_remote(remotes / "late.git", {"a.txt": b"a"})
        wc = cache.get(address, "master")
        assert not wc.created_branch
        assert len(clone_calls) == 2


class TestConcurrency:
    def test_one_clone_per_address(self, monkeypatch, tmp_path):
        calls = []

        def slow_clone(address, local_dir, branch, **kwargs):
            calls.append(address)
            time.sleep(0.05)
            return True

        monkeypatch.setattr(_git, "clone", slow_clone)
        cache = WorkingCopyCache(tmp_path / "work")
        results = []

        def worker():
            results.append(cache.get("https://host/a.git", "master"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert calls == ["https://host/a.git"]
        assert len(results) == 8
        assert all(r is results[0] for r in results)
        assert len(os.listdir(tmp_path / "work")) == 1

    def test_addresses_do_not_block_each_other(self, monkeypatch, tmp_path):
        a_started = threading.Event()
        b_started = threading.Event()
        waited = []

        def fake_clone(address, local_dir, branch, **kwargs):
            if address.endswith("a.git"):
                a_started.set()
                waited.append(b_started.wait(timeout=5))
            else:
                b_started.set()
            return True

        monkeypatch.setattr(_git, "clone", fake_clone)
        cache = WorkingCopyCache(tmp_path / "work")
        t = threading.Thread(target=cache.get, args=("https://host/a.git", "master"))
        t.start()
        assert a_started.wait(timeout=5)
        cache.get("https://host/b.git", "master")
        t.join()
        assert waited == [True]
        assert len(cache) == 2


class TestGitPlumbing:
    def test_checkout_populates_index(self, site, tmp_path):
        local = tmp_path / "wc"
        local.mkdir()
        assert _git.clone(site, str(local), "master")
        repo = Repo(str(local))
        try:
            assert sorted(p.decode() for p in repo.open_index()) == [
                "docs/guide.txt", "index.html",
            ]
        finally:
            repo.close()

    def test_stage_and_commit_additions_and_deletions(self, site, tmp_path):
        local = tmp_path / "wc"
        local.mkdir()
        _git.clone(site, str(local), "master")
        os.remove(local / "index.html")
        (local / "added.txt").write_bytes(b"added")
        repo = Repo(str(local))
        try:
            _git.stage_all(repo)
            sha = _git.commit_staged(repo, "master", "change", b"t <t@t>")
            assert sha is not None
            assert sorted(p.decode() for p in repo.open_index()) == [
                "added.txt", "docs/guide.txt",
            ]
            _git.stage_all(repo)
            assert _git.commit_staged(repo, "master", "again", b"t <t@t>") is None
        finally:
            repo.close()
