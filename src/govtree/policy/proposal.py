"""Proposal policy — an approval poll per proposal, with a bounty.

A proposal lists the concerns it resolves through "resolves"
references. While the proposal is open, process() sizes its bounty as
the credits consumed by the priority polls of the open concerns it
resolves, and records it in the approval ballot's kernel state.

When the approval poll closes with "approve" as the winner, the
resolved concerns are closed and the bounty is split among the voters
who approved. When it is cancelled, voters get their unspent credits
back and no concern is touched.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from govtree.ballot.kernels import PROPOSAL_APPROVAL_KERNEL
from govtree.governance.lifecycle import conclude_motion
from govtree.models.ballot import ZERO, Conclusion, Notice, Outcome
from govtree.models.motion import Motion, MotionType
from govtree.persistence import records
from govtree.policy.base import PollPolicy, consumed_credits, pay_out
from govtree.policy.notices import cancel_notice, close_notice

if TYPE_CHECKING:
    from govtree.governance.workspace import Workspace

logger = logging.getLogger(__name__)

PROPOSAL_POLICY = "pmp-proposal-v1"
APPROVAL_CHOICE = "approve"


class ProposalPolicy(PollPolicy):
    name = PROPOSAL_POLICY
    motion_type = MotionType.PROPOSAL
    choice = APPROVAL_CHOICE
    kernel = PROPOSAL_APPROVAL_KERNEL
    namespace_template = "pmp/proposal/{motion_id}/approval"
    title_template = "Approval poll for proposal {motion_id}"

    def resolved_concerns(self, ws: Workspace, motion: Motion) -> list[Motion]:
        """Open concerns this proposal resolves, ordered by id."""
        return [
            m for m in ws.motions.refs_from(motion.motion_id, ws.config.resolves_ref_type)
            if m.is_concern() and not m.is_terminal
        ]

    def bounty(self, ws: Workspace, motion: Motion) -> Decimal:
        total = ZERO
        for concern in self.resolved_concerns(ws, motion):
            namespace = ws.policies.get(concern.policy).ballot_namespace(concern.motion_id)
            total += consumed_credits(ws, namespace)
        return total

    def process(self, ws: Workspace, motion: Motion) -> Outcome:
        namespace = self.ballot_namespace(motion.motion_id)
        if not ws.ballots.status(namespace).is_concluded:
            state = ws.ballots.kernel_state(namespace)
            state.bounty = self.bounty(ws, motion)
            ws.ballots.save_kernel_state(namespace, state)
        return super().process(ws, motion)

    def details(self, ws: Workspace, motion: Motion) -> dict[str, Any]:
        namespace = self.ballot_namespace(motion.motion_id)
        return {
            "bounty": records.credits_to_str(ws.ballots.kernel_state(namespace).bounty),
            "resolves": [m.motion_id for m in self.resolved_concerns(ws, motion)],
        }

    def on_ballot_outcome(self, ws: Workspace, motion: Motion, outcome: Outcome) -> Notice:
        if outcome.conclusion == Conclusion.CANCELLED:
            pay_out(ws, outcome)
            return cancel_notice(motion, outcome, self.choice)

        approved = outcome.winner == self.choice
        resolved: list[str] = []
        if approved:
            for concern in self.resolved_concerns(ws, motion):
                conclude_motion(ws, concern.motion_id, cancelled=False)
                resolved.append(concern.motion_id)
            logger.info("Proposal %s approved; resolved %s", motion.motion_id, resolved)
        pay_out(ws, outcome)
        return close_notice(
            motion,
            outcome,
            self.choice,
            verdict="approved" if approved else "rejected",
            resolved=resolved,
        )
