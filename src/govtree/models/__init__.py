"""Core data models for govtree."""

from govtree.models.ballot import (
    AcceptedElections,
    Ad,
    BallotStatus,
    Conclusion,
    KernelState,
    Margin,
    MarginCalculator,
    Notice,
    Outcome,
    ScoredVote,
    ScoredVotes,
    VoteRecord,
    as_credits,
)
from govtree.models.motion import (
    Motion,
    MotionState,
    MotionType,
    Ref,
    Score,
)

__all__ = [
    "AcceptedElections",
    "Ad",
    "BallotStatus",
    "Conclusion",
    "KernelState",
    "Margin",
    "MarginCalculator",
    "Motion",
    "MotionState",
    "MotionType",
    "Notice",
    "Outcome",
    "Ref",
    "Score",
    "ScoredVote",
    "ScoredVotes",
    "VoteRecord",
    "as_credits",
]
