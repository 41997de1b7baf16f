"""Tests for the motion store — proves the reference graph stays mirrored."""

import pytest

from govtree.errors import ValidationError
from govtree.models.motion import (
    Motion,
    MotionState,
    MotionType,
    Ref,
    rank_by_attention,
    select_open,
)
from govtree.motion.store import MotionStore
from govtree.persistence.store import MemoryStore


@pytest.fixture
def motions() -> MotionStore:
    return MotionStore(MemoryStore().clone("main"))


def _make_motion(motion_id: str, motion_type: MotionType = MotionType.CONCERN) -> Motion:
    policy = "pmp-concern-v1" if motion_type == MotionType.CONCERN else "pmp-proposal-v1"
    return Motion(motion_id=motion_id, motion_type=motion_type, policy=policy, author="alice")


def _assert_mirrored(store: MotionStore) -> None:
    by_id = {m.motion_id: m for m in store.list()}
    for m in by_id.values():
        for ref in m.ref_to:
            assert ref in by_id[ref.to_id].ref_by
        for ref in m.ref_by:
            assert ref in by_id[ref.from_id].ref_to


class TestRecords:
    def test_create_and_get(self, motions: MotionStore) -> None:
        motions.create(_make_motion("c1"))
        m = motions.get("c1")
        assert m.motion_id == "c1"
        assert m.state == MotionState.OPEN
        assert m.opened_utc is not None

    def test_duplicate_id_rejected(self, motions: MotionStore) -> None:
        motions.create(_make_motion("c1"))
        with pytest.raises(ValidationError, match="already exists"):
            motions.create(_make_motion("c1"))

    def test_get_missing(self, motions: MotionStore) -> None:
        with pytest.raises(ValidationError, match="not found"):
            motions.get("nope")

    def test_update_meta_keeps_identity(self, motions: MotionStore) -> None:
        motions.create(_make_motion("c1"))
        m = motions.update_meta("c1", title="New title", labels=["b", "a", "b"])
        assert m.title == "New title"
        assert m.labels == ["a", "b"]
        assert m.author == "alice"
        assert m.policy == "pmp-concern-v1"

    def test_ranked_ascending_and_skips_closed(self, motions: MotionStore) -> None:
        for motion_id, attention in (("a", 3.0), ("b", 1.0), ("c", 2.0)):
            motions.create(_make_motion(motion_id))
            motions.set_attention(motion_id, attention)
        motions.transition("c", MotionState.CLOSED)
        assert [m.motion_id for m in motions.ranked()] == ["b", "a"]
        assert [m.motion_id for m in motions.ranked(include_closed=True)] == ["b", "c", "a"]

    def test_ranked_matches_select_open(self, motions: MotionStore) -> None:
        for motion_id in ("a", "b", "c", "d"):
            motions.create(_make_motion(motion_id))
        motions.transition("a", MotionState.FROZEN)
        motions.transition("b", MotionState.CANCELLED)
        motions.transition("c", MotionState.CLOSED)
        motions.transition("c", MotionState.ARCHIVED)
        ranked = [m.motion_id for m in motions.ranked()]
        assert ranked == ["a", "d"]
        assert ranked == [m.motion_id for m in rank_by_attention(select_open(motions.list()))]


class TestReferenceGraph:
    def test_add_ref_mirrors_both_sides(self, motions: MotionStore) -> None:
        motions.create(_make_motion("c1"))
        motions.create(_make_motion("p1", MotionType.PROPOSAL))
        motions.add_ref("p1", "c1", "resolves")
        ref = Ref("p1", "c1", "resolves")
        assert motions.get("p1").ref_to == [ref]
        assert motions.get("c1").ref_by == [ref]

    def test_add_ref_twice_same_sizes(self, motions: MotionStore) -> None:
        motions.create(_make_motion("c1"))
        motions.create(_make_motion("p1", MotionType.PROPOSAL))
        motions.add_ref("p1", "c1", "resolves")
        motions.add_ref("p1", "c1", "resolves")
        assert len(motions.get("p1").ref_to) == 1
        assert len(motions.get("c1").ref_by) == 1

    def test_remove_ref_mirrors_both_sides(self, motions: MotionStore) -> None:
        motions.create(_make_motion("c1"))
        motions.create(_make_motion("p1", MotionType.PROPOSAL))
        motions.add_ref("p1", "c1", "resolves")
        motions.remove_ref("p1", "c1", "resolves")
        assert motions.get("p1").ref_to == []
        assert motions.get("c1").ref_by == []

    def test_remove_missing_ref_rejected(self, motions: MotionStore) -> None:
        motions.create(_make_motion("c1"))
        motions.create(_make_motion("p1", MotionType.PROPOSAL))
        with pytest.raises(ValidationError, match="No resolves reference"):
            motions.remove_ref("p1", "c1", "resolves")

    def test_self_reference_rejected(self, motions: MotionStore) -> None:
        motions.create(_make_motion("c1"))
        with pytest.raises(ValidationError, match="itself"):
            motions.add_ref("c1", "c1", "duplicates")

    def test_ref_to_unknown_motion_rejected(self, motions: MotionStore) -> None:
        motions.create(_make_motion("p1", MotionType.PROPOSAL))
        with pytest.raises(ValidationError, match="not found"):
            motions.add_ref("p1", "ghost", "resolves")

    def test_cycles_are_allowed(self, motions: MotionStore) -> None:
        motions.create(_make_motion("c1"))
        motions.create(_make_motion("p1", MotionType.PROPOSAL))
        motions.add_ref("p1", "c1", "resolves")
        motions.add_ref("c1", "p1", "mentions")
        assert motions.get("c1").refers_to("p1", "mentions")
        _assert_mirrored(motions)

    def test_mirror_invariant_over_many_edges(self, motions: MotionStore) -> None:
        for motion_id in ("c1", "c2", "c3"):
            motions.create(_make_motion(motion_id))
        for motion_id in ("p1", "p2"):
            motions.create(_make_motion(motion_id, MotionType.PROPOSAL))
        motions.add_ref("p1", "c1", "resolves")
        motions.add_ref("p1", "c2", "resolves")
        motions.add_ref("p2", "c2", "resolves")
        motions.add_ref("p2", "c3", "resolves")
        motions.add_ref("c3", "c1", "duplicates")
        motions.remove_ref("p1", "c2", "resolves")
        _assert_mirrored(motions)
        assert [m.motion_id for m in motions.refs_from("p2", "resolves")] == ["c2", "c3"]
        assert [m.motion_id for m in motions.refs_to("c2", "resolves")] == ["p2"]
