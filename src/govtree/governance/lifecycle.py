"""Conclusion sequence — closing or cancelling a motion's poll.

Order of operations (all inside one workspace, committed together):

    1. refuse motions that are already closed or cancelled
    2. resolve the motion's policy
    3. refresh the poll through the policy (attention, bounty)
    4. resolve the poll's score kernel
    5. close or cancel the ballot
    6. score and tally with the final conclusion; store the tally
    7. transition the motion
    8. hand the outcome to the policy and post its notice

Any error aborts the unit of work before commit, so a kernel that
cannot be resolved leaves the ballot open.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from govtree.errors import AlreadyTerminalError
from govtree.models.ballot import Conclusion, Outcome
from govtree.models.motion import MotionState

if TYPE_CHECKING:
    from govtree.governance.workspace import Workspace

logger = logging.getLogger(__name__)


def conclude_motion(ws: Workspace, motion_id: str, cancelled: bool) -> Outcome:
    motion = ws.motions.get(motion_id)
    if motion.is_terminal:
        raise AlreadyTerminalError(f"Motion {motion_id} is already {motion.state.value}")

    policy = ws.policies.get(motion.policy)
    policy.process(ws, motion)

    namespace = policy.ballot_namespace(motion_id)
    ad = ws.ballots.load(namespace)
    kernel = ws.kernels.get(ad.kernel)

    if cancelled:
        conclusion = Conclusion.CANCELLED
        ws.ballots.cancel_ballot(namespace)
    else:
        conclusion = Conclusion.CLOSED
        ws.ballots.close_ballot(namespace)

    outcome = ws.tally.evaluate(
        kernel,
        ad,
        ws.ballots.kernel_state(namespace),
        ws.ballots.accepted_elections(namespace),
        ws.ballots.advanced(namespace),
        conclusion,
    )
    ws.ballots.save_tally(namespace, outcome)

    target = MotionState.CANCELLED if cancelled else MotionState.CLOSED
    motion = ws.motions.transition(motion_id, target)
    ws.post_notice(policy.on_ballot_outcome(ws, motion, outcome))
    logger.info("Motion %s concluded (%s), winner=%s", motion_id, conclusion.value, outcome.winner)
    return outcome
