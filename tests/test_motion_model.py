"""Tests for motion models — proves reference lists stay canonical."""

from govtree.models.motion import (
    Motion,
    MotionState,
    MotionType,
    Ref,
    Score,
    rank_by_attention,
    select_open,
)


def _make_motion(motion_id: str = "c1", attention: float = 0.0, **flags: bool) -> Motion:
    return Motion(
        motion_id=motion_id,
        motion_type=MotionType.CONCERN,
        policy="pmp-concern-v1",
        author="alice",
        score=Score(attention=attention),
        **flags,
    )


class TestRefOrdering:
    def test_refs_sort_by_from_to_type(self) -> None:
        refs = [
            Ref("p2", "c1", "resolves"),
            Ref("p1", "c2", "resolves"),
            Ref("p1", "c1", "resolves"),
            Ref("p1", "c1", "duplicates"),
        ]
        assert sorted(refs) == [
            Ref("p1", "c1", "duplicates"),
            Ref("p1", "c1", "resolves"),
            Ref("p1", "c2", "resolves"),
            Ref("p2", "c1", "resolves"),
        ]


class TestAddRef:
    def test_add_ref_to_twice_is_idempotent(self) -> None:
        m = _make_motion("p1")
        ref = Ref("p1", "c1", "resolves")
        m.add_ref_to(ref)
        m.add_ref_to(ref)
        assert m.ref_to == [ref]

    def test_add_ref_by_twice_is_idempotent(self) -> None:
        m = _make_motion("c1")
        ref = Ref("p1", "c1", "resolves")
        m.add_ref_by(ref)
        m.add_ref_by(ref)
        assert m.ref_by == [ref]

    def test_add_keeps_sorted(self) -> None:
        m = _make_motion("p1")
        m.add_ref_to(Ref("p1", "c3", "resolves"))
        m.add_ref_to(Ref("p1", "c1", "resolves"))
        m.add_ref_to(Ref("p1", "c2", "resolves"))
        assert [r.to_id for r in m.ref_to] == ["c1", "c2", "c3"]

    def test_different_types_are_distinct_edges(self) -> None:
        m = _make_motion("p1")
        m.add_ref_to(Ref("p1", "c1", "resolves"))
        m.add_ref_to(Ref("p1", "c1", "mentions"))
        assert len(m.ref_to) == 2
        assert m.refers_to("c1", "resolves")
        assert m.refers_to("c1", "mentions")

    def test_remove_ref(self) -> None:
        m = _make_motion("p1")
        keep = Ref("p1", "c2", "resolves")
        drop = Ref("p1", "c1", "resolves")
        m.add_ref_to(keep)
        m.add_ref_to(drop)
        m.remove_ref(drop)
        assert m.ref_to == [keep]
        assert not m.refers_to("c1", "resolves")


class TestState:
    def test_default_is_open(self) -> None:
        assert _make_motion().state == MotionState.OPEN

    def test_frozen(self) -> None:
        assert _make_motion(frozen=True).state == MotionState.FROZEN

    def test_closed_is_terminal(self) -> None:
        m = _make_motion(closed=True)
        assert m.state == MotionState.CLOSED
        assert m.is_terminal

    def test_cancelled_is_terminal(self) -> None:
        m = _make_motion(cancelled=True)
        assert m.state == MotionState.CANCELLED
        assert m.is_terminal

    def test_archived_wins_over_closed(self) -> None:
        assert _make_motion(closed=True, archived=True).state == MotionState.ARCHIVED


class TestRanking:
    def test_ascending_by_attention(self) -> None:
        motions = [_make_motion("a", 5.0), _make_motion("b", 1.0), _make_motion("c", 3.0)]
        assert [m.motion_id for m in rank_by_attention(motions)] == ["b", "c", "a"]

    def test_ties_broken_by_id(self) -> None:
        motions = [_make_motion("z", 1.0), _make_motion("a", 1.0)]
        assert [m.motion_id for m in rank_by_attention(motions)] == ["a", "z"]

    def test_select_open_drops_terminal(self) -> None:
        motions = [_make_motion("a"), _make_motion("b", closed=True), _make_motion("c", cancelled=True)]
        assert [m.motion_id for m in select_open(motions)] == ["a"]
