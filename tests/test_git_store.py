"""Tests for the git-backed store — proves the store contract over real git."""

import shutil
from pathlib import Path

import pytest
from git import Repo

from govtree.errors import PreconditionError, PushConflictError
from govtree.persistence.git_store import GitStore, init_bare_remote
from govtree.persistence.records import Change, commit_if_changed, parse_commit_message

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git binary not available")


@pytest.fixture
def remote(tmp_path: Path) -> Path:
    path = tmp_path / "community.git"
    init_bare_remote(path)
    return path


@pytest.fixture
def store(remote: Path, tmp_path: Path) -> GitStore:
    workdir = tmp_path / "clones"
    workdir.mkdir()
    return GitStore(str(remote), workdir=workdir)


class TestGitStore:
    def test_first_push_creates_branch(self, store: GitStore, remote: Path) -> None:
        clone = store.clone("main")
        try:
            assert clone.read("community.json") is None
            clone.write("community.json", b'{"name": "x"}\n')
            assert clone.is_dirty()
            assert commit_if_changed(clone, Change("Initialize", {"name": "x"})) is True
        finally:
            clone.cleanup()
        head = Repo(remote).commit("main")
        assert parse_commit_message(head.message).record == {"name": "x"}

    def test_clone_sees_pushed_state(self, store: GitStore) -> None:
        first = store.clone("main")
        first.write("motion/c1.json", b"{}\n")
        commit_if_changed(first, Change("Create c1"))
        first.cleanup()

        second = store.clone("main")
        try:
            assert second.read("motion/c1.json") == b"{}\n"
            assert second.list("motion") == ["motion/c1.json"]
            assert not second.is_dirty()
            second.write("motion/c1.json", b"{}\n")
            assert commit_if_changed(second, Change("Rewrite c1")) is False
        finally:
            second.cleanup()

    def test_remove(self, store: GitStore) -> None:
        clone = store.clone("main")
        clone.write("a.json", b"1")
        commit_if_changed(clone, Change("add"))
        clone.remove("a.json")
        assert clone.read("a.json") is None
        assert clone.is_dirty()
        clone.cleanup()

    def test_stale_push_conflicts(self, store: GitStore) -> None:
        seed = store.clone("main")
        seed.write("seed.json", b"0")
        commit_if_changed(seed, Change("seed"))
        seed.cleanup()

        first = store.clone("main")
        second = store.clone("main")
        try:
            first.write("a.json", b"1")
            commit_if_changed(first, Change("first"))
            second.write("b.json", b"2")
            with pytest.raises(PushConflictError):
                commit_if_changed(second, Change("second"))
        finally:
            first.cleanup()
            second.cleanup()

    def test_init_bare_remote_refuses_existing_path(self, remote: Path) -> None:
        with pytest.raises(PreconditionError):
            init_bare_remote(remote)
