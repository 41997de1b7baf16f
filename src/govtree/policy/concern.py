"""Concern policy — a prioritization poll per concern.

Members spend credits on a concern's "prioritize" poll to raise its
attention score. The credits a concern's poll consumes are what an
approved proposal that resolves it can pay out as a bounty.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from govtree.ballot.kernels import QV_KERNEL
from govtree.models.ballot import Conclusion, Notice, Outcome
from govtree.models.motion import Motion, MotionType
from govtree.policy.base import PollPolicy, pay_out
from govtree.policy.notices import cancel_notice, close_notice

if TYPE_CHECKING:
    from govtree.governance.workspace import Workspace

CONCERN_POLICY = "pmp-concern-v1"
PRIORITY_CHOICE = "prioritize"


class ConcernPolicy(PollPolicy):
    name = CONCERN_POLICY
    motion_type = MotionType.CONCERN
    choice = PRIORITY_CHOICE
    kernel = QV_KERNEL
    namespace_template = "pmp/concern/{motion_id}/priority"
    title_template = "Prioritization poll for concern {motion_id}"

    def on_ballot_outcome(self, ws: Workspace, motion: Motion, outcome: Outcome) -> Notice:
        pay_out(ws, outcome)
        if outcome.conclusion == Conclusion.CANCELLED:
            return cancel_notice(motion, outcome, self.choice)
        return close_notice(motion, outcome, self.choice)
