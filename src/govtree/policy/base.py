"""Motion policy contract and shared poll helpers.

A motion policy binds behaviour to a motion: which ballot it opens,
how interim tallies feed back into the motion, and what happens when
the ballot concludes. Policies are looked up by name in a sealed
Registry built at start-up (see govtree.policy.build_policy_registry).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from govtree.models.ballot import (
    EVERYBODY,
    Ad,
    BallotStatus,
    Conclusion,
    KernelState,
    Notice,
    Outcome,
    ZERO,
)
from govtree.models.motion import Motion, MotionType

if TYPE_CHECKING:
    from govtree.governance.workspace import Workspace


@dataclass(frozen=True)
class PolicyView:
    """Read-only projection of a motion and its poll."""
    motion: Motion
    ad: Ad
    status: BallotStatus
    outcome: Outcome
    details: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class MotionPolicy(Protocol):
    """Behaviour attached to motions of one policy name."""

    name: str
    motion_type: MotionType
    choice: str

    def ballot_namespace(self, motion_id: str) -> str:
        """Namespace of the motion's poll."""
        ...

    def open(self, ws: Workspace, motion: Motion) -> Ad:
        """Open the motion's poll. Called once, when the motion is created."""
        ...

    def show(self, ws: Workspace, motion: Motion) -> PolicyView:
        """Project the motion without writing anything."""
        ...

    def process(self, ws: Workspace, motion: Motion) -> Outcome:
        """Re-tally the open poll and update the motion's scores."""
        ...

    def on_ballot_outcome(self, ws: Workspace, motion: Motion, outcome: Outcome) -> Notice:
        """Apply a concluded poll's side effects. Called exactly once."""
        ...


class PollPolicy:
    """Shared behaviour of single-choice poll policies.

    Subclasses set name, motion_type, choice, kernel and the namespace
    template, and implement on_ballot_outcome.
    """

    name = ""
    motion_type = MotionType.CONCERN
    choice = ""
    kernel = ""
    namespace_template = ""
    title_template = ""

    def ballot_namespace(self, motion_id: str) -> str:
        return self.namespace_template.format(motion_id=motion_id)

    def open(self, ws: Workspace, motion: Motion) -> Ad:
        ad = Ad(
            namespace=self.ballot_namespace(motion.motion_id),
            title=self.title_template.format(motion_id=motion.motion_id),
            description=motion.title,
            choices=(self.choice,),
            group=EVERYBODY,
            kernel=self.kernel,
            allow_revision=True,
            created_by=motion.author,
        )
        state = KernelState(
            motion_id=motion.motion_id,
            inverse_cost_multiplier=ws.config.inverse_cost_multiplier,
        )
        return ws.ballots.open_ballot(ad, state)

    def show(self, ws: Workspace, motion: Motion) -> PolicyView:
        namespace = self.ballot_namespace(motion.motion_id)
        status = ws.ballots.status(namespace)
        outcome = ws.ballots.load_tally(namespace)
        if outcome is None or not status.is_concluded:
            outcome = self.interim_outcome(ws, namespace)
        return PolicyView(
            motion=motion,
            ad=ws.ballots.load(namespace),
            status=status,
            outcome=outcome,
            details=self.details(ws, motion),
        )

    def details(self, ws: Workspace, motion: Motion) -> dict[str, Any]:
        return {}

    def process(self, ws: Workspace, motion: Motion) -> Outcome:
        namespace = self.ballot_namespace(motion.motion_id)
        outcome = self.interim_outcome(ws, namespace)
        if not ws.ballots.status(namespace).is_concluded:
            ws.ballots.save_tally(namespace, outcome)
        ws.motions.set_attention(motion.motion_id, outcome.scores.get(self.choice, 0.0))
        return outcome

    def interim_outcome(self, ws: Workspace, namespace: str) -> Outcome:
        ad = ws.ballots.load(namespace)
        return ws.tally.evaluate(
            ws.kernels.get(ad.kernel),
            ad,
            ws.ballots.kernel_state(namespace),
            ws.ballots.accepted_elections(namespace),
            ws.ballots.advanced(namespace),
            Conclusion.OPEN,
        )


def pay_out(ws: Workspace, outcome: Outcome) -> None:
    """Credit an outcome's refunds and rewards to voters' balances."""
    for user, amount in sorted(outcome.refunded.items()):
        ws.members.credit(user, amount)
    for user, amount in sorted(outcome.rewarded.items()):
        ws.members.credit(user, amount)


def consumed_credits(ws: Workspace, namespace: str) -> Decimal:
    """Credits the accepted votes on a ballot consume."""
    ad = ws.ballots.load(namespace)
    scored = ws.kernels.get(ad.kernel).score(
        ad,
        ws.ballots.kernel_state(namespace),
        ws.ballots.accepted_elections(namespace),
    )
    return sum((scored.consumed(voter) for voter in sorted(scored.votes)), ZERO)
