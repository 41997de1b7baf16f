"""Motion models — concerns, proposals and the references between them.

A motion's identity (id, type, policy, author) is fixed at creation.
Metadata and lifecycle flags are mutable. References form a small
per-motion adjacency list: every edge in the source's ``ref_to`` has a
mirror in the target's ``ref_by``, and both lists stay deduplicated and
sorted by (from, to, type).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


class MotionType(str, enum.Enum):
    """Kind of tracked item under governance."""
    CONCERN = "concern"
    PROPOSAL = "proposal"


class MotionState(str, enum.Enum):
    """Lifecycle state derived from a motion's flags.

    Open is initial. Open ↔ Frozen is reversible. Closed and Cancelled
    are terminal and mutually exclusive. Archived follows either.
    """
    OPEN = "open"
    FROZEN = "frozen"
    CLOSED = "closed"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"


@dataclass(frozen=True, order=True)
class Ref:
    """A directed, typed edge between two motions.

    Field order defines the canonical sort order of reference lists.
    """
    from_id: str
    to_id: str
    ref_type: str


@dataclass
class Score:
    """Ranking values attached to a motion."""
    attention: float = 0.0


@dataclass
class Motion:
    """A concern or proposal under governance."""
    motion_id: str
    motion_type: MotionType
    policy: str
    author: str = ""
    tracker_url: str = ""
    title: str = ""
    body: str = ""
    labels: list[str] = field(default_factory=list)
    frozen: bool = False
    closed: bool = False
    cancelled: bool = False
    archived: bool = False
    opened_utc: Optional[datetime] = None
    closed_utc: Optional[datetime] = None
    score: Score = field(default_factory=Score)
    ref_to: list[Ref] = field(default_factory=list)
    ref_by: list[Ref] = field(default_factory=list)

    @property
    def state(self) -> MotionState:
        if self.archived:
            return MotionState.ARCHIVED
        if self.closed:
            return MotionState.CLOSED
        if self.cancelled:
            return MotionState.CANCELLED
        if self.frozen:
            return MotionState.FROZEN
        return MotionState.OPEN

    @property
    def is_terminal(self) -> bool:
        return self.closed or self.cancelled

    def is_concern(self) -> bool:
        return self.motion_type == MotionType.CONCERN

    def is_proposal(self) -> bool:
        return self.motion_type == MotionType.PROPOSAL

    def refers_to(self, to_id: str, ref_type: str) -> bool:
        return any(r.to_id == to_id and r.ref_type == ref_type for r in self.ref_to)

    def referred_by(self, from_id: str, ref_type: str) -> bool:
        return any(r.from_id == from_id and r.ref_type == ref_type for r in self.ref_by)

    def add_ref_to(self, ref: Ref) -> None:
        """Record an outgoing edge. Adding an existing edge is a no-op."""
        if not self.refers_to(ref.to_id, ref.ref_type):
            self.ref_to.append(ref)
        self.ref_to.sort()

    def add_ref_by(self, ref: Ref) -> None:
        """Record an incoming edge. Adding an existing edge is a no-op."""
        if not self.referred_by(ref.from_id, ref.ref_type):
            self.ref_by.append(ref)
        self.ref_by.sort()

    def remove_ref(self, ref: Ref) -> None:
        """Drop an edge from whichever side of this motion holds it."""
        self.ref_to = [r for r in self.ref_to if r != ref]
        self.ref_by = [r for r in self.ref_by if r != ref]


def rank_by_attention(motions: list[Motion]) -> list[Motion]:
    """Order motions ascending by attention, ties by id."""
    return sorted(motions, key=lambda m: (m.score.attention, m.motion_id))


def select_open(motions: list[Motion]) -> list[Motion]:
    return [m for m in motions if not m.is_terminal]
