"""Ballot data models — ads, elections, scored votes and outcomes.

An Ad is the immutable definition of a ballot. Its mutable lifecycle
lives in BallotStatus and the kernel's working state in KernelState,
so the committed Ad never changes. Every Outcome is a pure function of
(Ad, KernelState, AcceptedElections, advanced credits).

Credit amounts (balances, charges, refunds, rewards, bounties) are
Decimal. No floats in the ledger.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from govtree.errors import ValidationError


EVERYBODY = "everybody"

ZERO = Decimal("0")

CreditAmount = Union[Decimal, int, float, str]


def as_credits(value: CreditAmount) -> Decimal:
    """Exact credit amount. Floats are taken at their shortest repr."""
    try:
        credits = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as e:
        raise ValidationError(f"Invalid credit amount: {value!r}") from e
    if not credits.is_finite():
        raise ValidationError(f"Credit amount must be finite, got {value!r}")
    return credits


class Conclusion(str, enum.Enum):
    """How a tally relates to the ballot lifecycle."""
    OPEN = "open"            # interim tally, ballot still accepting votes
    CLOSED = "closed"        # final tally, winner and rewards computed
    CANCELLED = "cancelled"  # final tally, unspent credits refunded


@dataclass(frozen=True)
class Ad:
    """Ballot definition.

    Invariants:
    - namespace is non-empty
    - choices are non-empty and unique
    """
    namespace: str
    title: str
    choices: tuple[str, ...]
    group: str = EVERYBODY
    kernel: str = "qv"
    description: str = ""
    allow_revision: bool = True
    created_by: str = ""

    def __post_init__(self) -> None:
        if not self.namespace.strip("/"):
            raise ValidationError("Ballot namespace must be non-empty")
        if not self.choices:
            raise ValidationError(f"{self.namespace}: ballot needs at least one choice")
        if len(set(self.choices)) != len(self.choices):
            raise ValidationError(f"{self.namespace}: duplicate ballot choices")


@dataclass
class BallotStatus:
    """Mutable lifecycle flags of a ballot."""
    frozen: bool = False
    closed: bool = False
    cancelled: bool = False

    @property
    def is_concluded(self) -> bool:
        return self.closed or self.cancelled


@dataclass
class KernelState:
    """Kernel-specific working state for one ballot."""
    motion_id: str = ""
    inverse_cost_multiplier: float = 1.0
    bounty: Decimal = ZERO

    def __post_init__(self) -> None:
        self.bounty = as_credits(self.bounty)


@dataclass
class VoteRecord:
    """A voter's current elections on one ballot.

    elections maps choice → strength (sign is direction). advanced is
    the total credits charged to the voter for this ballot so far.
    """
    voter: str
    elections: dict[str, float] = field(default_factory=dict)
    advanced: Decimal = ZERO

    def __post_init__(self) -> None:
        self.advanced = as_credits(self.advanced)


@dataclass(frozen=True)
class AcceptedElections:
    """Votes eligible for scoring, keyed by voter then choice."""
    elections: dict[str, dict[str, float]] = field(default_factory=dict)

    def voters(self) -> list[str]:
        return sorted(self.elections)


@dataclass(frozen=True)
class ScoredVote:
    """One voter's scored contribution to one choice."""
    strength: float
    score: float
    cost: Decimal


@dataclass(frozen=True)
class ScoredVotes:
    """Kernel output: voter → choice → scored contribution."""
    votes: dict[str, dict[str, ScoredVote]] = field(default_factory=dict)

    def consumed(self, voter: str) -> Decimal:
        """Credits the voter's accepted elections cost."""
        return sum((sv.cost for _, sv in sorted(self.votes.get(voter, {}).items())), ZERO)


@dataclass(frozen=True)
class MarginCalculator:
    """A client-side preview function, carried as JavaScript source."""
    label: str
    description: str
    fn_js: str


@dataclass(frozen=True)
class Margin:
    """Advisory calculators attached to a tally for UI rendering."""
    calculators: dict[str, MarginCalculator] = field(default_factory=dict)


@dataclass(frozen=True)
class Outcome:
    """Aggregated result of a tally.

    scores: choice → aggregate score.
    scores_by_user: voter → choice → contribution.
    refunded / rewarded: voter → credits.
    """
    scores: dict[str, float] = field(default_factory=dict)
    scores_by_user: dict[str, dict[str, float]] = field(default_factory=dict)
    refunded: dict[str, Decimal] = field(default_factory=dict)
    rewarded: dict[str, Decimal] = field(default_factory=dict)
    winner: Optional[str] = None
    conclusion: Conclusion = Conclusion.OPEN
    margin: Margin = field(default_factory=Margin)


@dataclass(frozen=True)
class Notice:
    """Free-form message addressed to a motion's tracker thread."""
    motion_id: str
    body: str
