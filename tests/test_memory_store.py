"""Tests for the in-memory store and commit format — proves optimistic concurrency."""

import pytest

from govtree.errors import PushConflictError, ValidationError
from govtree.persistence import records
from govtree.persistence.records import Change, commit_if_changed, parse_commit_message
from govtree.persistence.store import MemoryStore


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


class TestClone:
    def test_new_branch_is_empty(self, store: MemoryStore) -> None:
        clone = store.clone("main")
        assert clone.read("motion/1.json") is None
        assert clone.list("motion") == []
        assert not clone.is_dirty()

    def test_write_read_list(self, store: MemoryStore) -> None:
        clone = store.clone("main")
        clone.write("motion/b.json", b"{}")
        clone.write("motion/a.json", b"{}")
        clone.write("ballot/x/ad.json", b"{}")
        assert clone.list("motion") == ["motion/a.json", "motion/b.json"]
        assert clone.exists("ballot/x/ad.json")
        assert clone.is_dirty()

    def test_rewriting_same_bytes_is_clean(self, store: MemoryStore) -> None:
        clone = store.clone("main")
        records.write_json(clone, "community.json", {"name": "x"})
        commit_if_changed(clone, Change("init", {}))
        records.write_json(clone, "community.json", {"name": "x"})
        assert not clone.is_dirty()

    def test_branches_are_independent(self, store: MemoryStore) -> None:
        main = store.clone("main")
        main.write("a.json", b"1")
        commit_if_changed(main, Change("a"))
        assert store.clone("other").read("a.json") is None


class TestCommitIfChanged:
    def test_clean_tree_makes_no_commit(self, store: MemoryStore) -> None:
        clone = store.clone("main")
        assert commit_if_changed(clone, Change("nothing")) is False
        assert store.log("main") == []

    def test_idempotent(self, store: MemoryStore) -> None:
        clone = store.clone("main")
        clone.write("a.json", b"1")
        assert commit_if_changed(clone, Change("write a")) is True
        assert commit_if_changed(clone, Change("write a")) is False
        assert len(store.log("main")) == 1

    def test_message_carries_record(self, store: MemoryStore) -> None:
        clone = store.clone("main")
        clone.write("a.json", b"1")
        commit_if_changed(clone, Change("Create motion c1", {"id": "c1", "title": "Ünïcode"}))
        message = store.head("main").message
        summary, blank, _ = message.split("\n", 2)
        assert summary == "Create motion c1"
        assert blank == ""
        parsed = parse_commit_message(message)
        assert parsed.summary == "Create motion c1"
        assert parsed.record == {"id": "c1", "title": "Ünïcode"}

    def test_history_is_append_only(self, store: MemoryStore) -> None:
        for value in (b"1", b"2", b"3"):
            clone = store.clone("main")
            clone.write("a.json", value)
            commit_if_changed(clone, Change(f"write {value!r}"))
        log = store.log("main")
        assert [c.files["a.json"] for c in log] == [b"1", b"2", b"3"]
        assert log[1].parent_id == log[0].commit_id


class TestOptimisticConcurrency:
    def test_stale_clone_push_conflicts(self, store: MemoryStore) -> None:
        first = store.clone("main")
        second = store.clone("main")
        first.write("a.json", b"1")
        commit_if_changed(first, Change("first"))
        second.write("b.json", b"2")
        with pytest.raises(PushConflictError):
            commit_if_changed(second, Change("second"))
        assert store.head("main").files == {"a.json": b"1"}

    def test_reclone_after_conflict_succeeds(self, store: MemoryStore) -> None:
        first = store.clone("main")
        second = store.clone("main")
        first.write("a.json", b"1")
        commit_if_changed(first, Change("first"))
        second.write("b.json", b"2")
        with pytest.raises(PushConflictError):
            commit_if_changed(second, Change("second"))
        retry = store.clone("main")
        retry.write("b.json", b"2")
        commit_if_changed(retry, Change("second"))
        assert store.head("main").files == {"a.json": b"1", "b.json": b"2"}


class TestPaths:
    def test_layout(self) -> None:
        assert records.motion_path("c1") == "motion/c1.json"
        assert records.vote_path("pmp/concern/c1/priority", "alice") == (
            "ballot/pmp/concern/c1/priority/votes/alice.json"
        )
        assert records.tally_path("poll") == "ballot/poll/tally.json"

    def test_bad_segment_rejected(self) -> None:
        with pytest.raises(ValidationError):
            records.motion_path("../etc")
        with pytest.raises(ValidationError):
            records.user_path("")

    def test_bad_namespace_rejected(self) -> None:
        with pytest.raises(ValidationError):
            records.normalize_namespace("a/../b")
