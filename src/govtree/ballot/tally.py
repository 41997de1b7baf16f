"""Tally engine — aggregates scored votes into an Outcome.

Rules:
- Scores are summed per choice; every choice of the ad appears, even
  with no votes. Voters are summed in sorted order so float scores do
  not depend on storage order. Refunds and rewards are exact Decimal
  credit amounts.
- Refunds (closed or cancelled ballots): each voter gets back the
  credits advanced minus the credits their accepted elections consume,
  when that remainder is positive.
- Winner (closed ballots only): the choice with the highest strictly
  positive aggregate. Equal aggregates go to the lexicographically
  smallest choice. No positive aggregate means no winner.
- Rewards (closed ballots with a winner): the kernel's bounty is split
  among voters with a positive contribution to the winner, in
  proportion to that contribution.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Optional

from govtree.ballot.kernels import ScoreKernel
from govtree.models.ballot import (
    AcceptedElections,
    Ad,
    Conclusion,
    KernelState,
    Outcome,
    ScoredVotes,
    ZERO,
    as_credits,
)

logger = logging.getLogger(__name__)


class TallyEngine:
    """Pure aggregation. Holds no state."""

    def tally(
        self,
        ad: Ad,
        bounty: Decimal,
        scored: ScoredVotes,
        advanced: dict[str, Decimal],
        conclusion: Conclusion = Conclusion.OPEN,
    ) -> Outcome:
        scores: dict[str, float] = {c: 0.0 for c in sorted(ad.choices)}
        scores_by_user: dict[str, dict[str, float]] = {}
        for voter in sorted(scored.votes):
            contributions: dict[str, float] = {}
            for choice, sv in sorted(scored.votes[voter].items()):
                contributions[choice] = sv.score
                scores[choice] = scores.get(choice, 0.0) + sv.score
            scores_by_user[voter] = contributions

        refunded: dict[str, Decimal] = {}
        rewarded: dict[str, Decimal] = {}
        winner: Optional[str] = None

        if conclusion != Conclusion.OPEN:
            refunded = self._refunds(scored, advanced)
        if conclusion == Conclusion.CLOSED:
            winner = self.pick_winner(scores)
            if winner is not None:
                rewarded = self._rewards(winner, bounty, scores_by_user)

        return Outcome(
            scores=scores,
            scores_by_user=scores_by_user,
            refunded=refunded,
            rewarded=rewarded,
            winner=winner,
            conclusion=conclusion,
        )

    def evaluate(
        self,
        kernel: ScoreKernel,
        ad: Ad,
        state: KernelState,
        elections: AcceptedElections,
        advanced: dict[str, Decimal],
        conclusion: Conclusion = Conclusion.OPEN,
    ) -> Outcome:
        """Score, tally and attach the kernel's margin preview."""
        scored = kernel.score(ad, state, elections)
        outcome = self.tally(ad, kernel.bounty(state), scored, advanced, conclusion)
        outcome = replace(outcome, margin=kernel.calc_js(ad, state, outcome))
        logger.debug(
            "Tallied %s (%s): %d voter(s), winner=%s",
            ad.namespace, conclusion.value, len(outcome.scores_by_user), outcome.winner,
        )
        return outcome

    @staticmethod
    def pick_winner(scores: dict[str, float]) -> Optional[str]:
        positive = {c: s for c, s in scores.items() if s > 0}
        if not positive:
            return None
        best = max(positive.values())
        return min(c for c, s in positive.items() if s == best)

    @staticmethod
    def _refunds(scored: ScoredVotes, advanced: dict[str, Decimal]) -> dict[str, Decimal]:
        refunded: dict[str, Decimal] = {}
        for voter in sorted(advanced):
            remainder = as_credits(advanced[voter]) - scored.consumed(voter)
            if remainder > 0:
                refunded[voter] = remainder
        return refunded

    @staticmethod
    def _rewards(
        winner: str,
        bounty: Decimal,
        scores_by_user: dict[str, dict[str, float]],
    ) -> dict[str, Decimal]:
        if bounty <= 0:
            return {}
        aligned = {
            voter: as_credits(contributions[winner])
            for voter, contributions in sorted(scores_by_user.items())
            if contributions.get(winner, 0.0) > 0
        }
        total = sum((aligned[v] for v in sorted(aligned)), ZERO)
        if total <= 0:
            return {}
        return {voter: bounty * s / total for voter, s in aligned.items()}
