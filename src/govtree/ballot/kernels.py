"""Score kernels — convert accepted elections into scored contributions.

Every kernel satisfies the ScoreKernel Protocol. Kernels are pure: the
same (ad, state, elections) always yields the same ScoredVotes. They
read no clock, no randomness and no store.

Built-in kernels:
- "qv": quadratic voting. A vote of strength s costs s² / m credits,
  where m is the ballot's inverse cost multiplier. The scored
  contribution is s itself, so direction and ordering are preserved.
- "pmp-proposal-approval-v1": quadratic voting plus an advisory reward
  preview attached to the margin. The preview never sizes payouts.
"""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Protocol, runtime_checkable

from govtree.errors import KernelError
from govtree.models.ballot import (
    AcceptedElections,
    Ad,
    KernelState,
    Margin,
    MarginCalculator,
    Outcome,
    ScoredVote,
    ScoredVotes,
    ZERO,
    as_credits,
)
from govtree.registry import Registry

QV_KERNEL = "qv"
PROPOSAL_APPROVAL_KERNEL = "pmp-proposal-approval-v1"


@runtime_checkable
class ScoreKernel(Protocol):
    """Capability contract for a pluggable scoring strategy."""

    def score(self, ad: Ad, state: KernelState, elections: AcceptedElections) -> ScoredVotes:
        """Score every accepted election."""
        ...

    def cost(self, state: KernelState, elections: dict[str, float]) -> Decimal:
        """Credits one voter's elections cost in total."""
        ...

    def calc_js(self, ad: Ad, state: KernelState, outcome: Outcome) -> Margin:
        """Client-side preview calculators for a tally."""
        ...

    def bounty(self, state: KernelState) -> Decimal:
        """Credits available to reward voters aligned with the winner."""
        ...


_QV_COST_JS = """
function(voteUser, voteChoice, voteImpact) {
    return voteImpact * voteImpact / %s;
}
"""

_QV_IMPACT_JS = """
function(voteUser, voteChoice, voteStrength) {
    return voteStrength;
}
"""

_REWARD_JS = """
function(voteUser, voteChoice, voteImpact) {
    return 2*Math.abs(voteImpact);
}
"""


class QVKernel:
    """Quadratic voting kernel."""

    def _multiplier(self, state: KernelState) -> Decimal:
        m = state.inverse_cost_multiplier
        if not isinstance(m, (int, float)) or not math.isfinite(m) or m <= 0:
            raise KernelError(f"Inverse cost multiplier must be a positive number, got {m!r}")
        return as_credits(m)

    @staticmethod
    def _price(strength: float, m: Decimal) -> Decimal:
        s = as_credits(strength)
        return s * s / m

    def score(self, ad: Ad, state: KernelState, elections: AcceptedElections) -> ScoredVotes:
        m = self._multiplier(state)
        votes: dict[str, dict[str, ScoredVote]] = {}
        for voter in elections.voters():
            by_choice: dict[str, ScoredVote] = {}
            for choice, strength in sorted(elections.elections[voter].items()):
                if choice not in ad.choices:
                    raise KernelError(f"{ad.namespace}: election for unknown choice {choice!r}")
                by_choice[choice] = ScoredVote(
                    strength=strength,
                    score=strength,
                    cost=self._price(strength, m),
                )
            votes[voter] = by_choice
        return ScoredVotes(votes=votes)

    def cost(self, state: KernelState, elections: dict[str, float]) -> Decimal:
        m = self._multiplier(state)
        return sum((self._price(s, m) for _, s in sorted(elections.items())), ZERO)

    def calc_js(self, ad: Ad, state: KernelState, outcome: Outcome) -> Margin:
        m = self._multiplier(state)
        return Margin(calculators={
            "cost": MarginCalculator(
                label="Cost",
                description="Credits charged for a vote of the given impact",
                fn_js=_QV_COST_JS % m,
            ),
            "impact": MarginCalculator(
                label="Impact",
                description="Contribution of a vote to the choice's aggregate score",
                fn_js=_QV_IMPACT_JS,
            ),
        })

    def bounty(self, state: KernelState) -> Decimal:
        return state.bounty


class ProposalApprovalKernel(QVKernel):
    """Quadratic voting with a reward preview for proposal approval polls."""

    def calc_js(self, ad: Ad, state: KernelState, outcome: Outcome) -> Margin:
        margin = super().calc_js(ad, state, outcome)
        calculators = dict(margin.calculators)
        calculators["reward"] = MarginCalculator(
            label="Reward",
            description="Potential reward for the voter, assuming the vote is aligned with the outcome",
            fn_js=_REWARD_JS,
        )
        return Margin(calculators=calculators)


def build_kernel_registry() -> Registry[ScoreKernel]:
    """Register the built-in kernels and seal the table."""
    registry: Registry[ScoreKernel] = Registry("score kernel", KernelError)
    registry.register(QV_KERNEL, QVKernel())
    registry.register(PROPOSAL_APPROVAL_KERNEL, ProposalApprovalKernel())
    registry.seal()
    return registry
