"""Governance service — unified facade over the governance tree.

This is the primary interface for programmatic access to govtree. It
orchestrates all subsystems:
- Community membership (users, groups, credits, credentials)
- Motion lifecycle (create, freeze, close, cancel, archive)
- Reference graph (concerns resolved by proposals)
- Ballots (open, vote, tally, close, cancel)
- Policy dispatch (polls, attention, bounties, notices)

Every mutating operation is one unit of work:

    clone → mutate through a Workspace → commit-if-changed → push

A rejected push means another member pushed first. The whole unit is
replayed on a fresh clone, up to ``max_push_attempts`` times. Nothing is
committed when an operation fails, and every failure is reported as a
ServiceResult carrying the error kind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from govtree.ballot.kernels import ScoreKernel, build_kernel_registry
from govtree.config import GovernanceConfig
from govtree.errors import (
    ConflictExhaustedError,
    GovernanceError,
    PreconditionError,
    PushConflictError,
    ValidationError,
)
from govtree.governance import Workspace, conclude_motion
from govtree.identity import Credentials, install_public_credentials
from govtree.members import member_to_dict
from govtree.models.ballot import (
    EVERYBODY,
    Ad,
    Conclusion,
    CreditAmount,
    KernelState,
    Outcome,
    as_credits,
)
from govtree.models.motion import Motion, MotionState, MotionType
from govtree.persistence import records
from govtree.persistence.records import Change, commit_if_changed
from govtree.persistence.store import VersionedStore
from govtree.policy import MotionPolicy, build_policy_registry
from govtree.policy.base import pay_out
from govtree.registry import Registry

logger = logging.getLogger(__name__)

_TS_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

Mutation = Callable[[Workspace], dict[str, Any]]


@dataclass
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


class GovernanceService:
    """Unified governance facade.

    Usage:
        config = GovernanceConfig.from_config_dir(config_dir)
        service = GovernanceService(GitStore(config.store_url), config)

        service.init_community("example")
        service.add_member("alice", voting_credits=100)

        service.create_motion("c1", MotionType.CONCERN, author="alice", title="...")
        service.create_motion("p1", MotionType.PROPOSAL, author="bob", title="...")
        service.add_ref("p1", "c1", "resolves")

        service.vote("c1", "alice", 3.0)
        service.vote("p1", "alice", 2.0)
        service.close_motion("p1")   # closes c1, pays the bounty
    """

    def __init__(
        self,
        store: VersionedStore,
        config: GovernanceConfig,
        kernels: Optional[Registry[ScoreKernel]] = None,
        policies: Optional[Registry[MotionPolicy]] = None,
    ) -> None:
        self._store = store
        self._config = config
        self._kernels = kernels if kernels is not None else build_kernel_registry()
        self._policies = policies if policies is not None else build_policy_registry()

    @property
    def config(self) -> GovernanceConfig:
        return self._config

    # ------------------------------------------------------------------
    # Community and members
    # ------------------------------------------------------------------

    def init_community(self, name: str) -> ServiceResult:
        """Create the community record. Fails if the branch is already initialized."""
        def mutate(ws: Workspace) -> dict[str, Any]:
            if ws.clone.exists(records.COMMUNITY_PATH):
                raise PreconditionError(f"Community already initialized on {ws.clone.branch}")
            if not name.strip():
                raise ValidationError("Community name must be non-empty")
            community = {
                "name": name,
                "branch": ws.clone.branch,
                "created_at": datetime.now(timezone.utc).strftime(_TS_FORMAT),
            }
            records.write_json(ws.clone, records.COMMUNITY_PATH, community)
            return {"community": community}

        return self._transact(f"Initialize community {name}", mutate, require_community=False)

    def add_member(
        self,
        user: str,
        voting_credits: CreditAmount = 0,
        groups: tuple[str, ...] = (),
    ) -> ServiceResult:
        def mutate(ws: Workspace) -> dict[str, Any]:
            member = ws.members.add_user(user, voting_credits)
            for group in groups:
                if group == EVERYBODY:
                    continue
                if not ws.members.group_exists(group):
                    ws.members.create_group(group)
                ws.members.add_to_group(group, user)
            return {"member": member_to_dict(member), "groups": sorted(set(groups) | {EVERYBODY})}

        return self._transact(f"Add member {user}", mutate)

    def credit_member(self, user: str, amount: CreditAmount) -> ServiceResult:
        """Issue voting credits to a member."""
        def mutate(ws: Workspace) -> dict[str, Any]:
            issued = as_credits(amount)
            ws.members.credit(user, issued)
            return {
                "user": user,
                "issued": records.credits_to_str(issued),
                "voting_credits": records.credits_to_str(ws.members.balance(user)),
            }

        return self._transact(f"Issue {amount} credits to {user}", mutate)

    def set_user_property(self, user: str, key: str, value: str) -> ServiceResult:
        def mutate(ws: Workspace) -> dict[str, Any]:
            ws.members.set_property(user, key, value)
            return {"user": user, "key": key, "value": value}

        return self._transact(f"Set property {key} of {user}", mutate)

    def register_credentials(self, credentials: Credentials) -> ServiceResult:
        """Publish a member's public key into the community tree."""
        def mutate(ws: Workspace) -> dict[str, Any]:
            ws.members.get(credentials.user)
            install_public_credentials(ws.clone, credentials)
            return {"user": credentials.user, "public_key": credentials.public_key}

        return self._transact(f"Register credentials of {credentials.user}", mutate)

    # ------------------------------------------------------------------
    # Motions
    # ------------------------------------------------------------------

    def create_motion(
        self,
        motion_id: str,
        motion_type: MotionType,
        author: str,
        title: str = "",
        body: str = "",
        tracker_url: str = "",
        labels: Optional[list[str]] = None,
        policy: Optional[str] = None,
    ) -> ServiceResult:
        """Create a motion and open its poll under the motion's policy."""
        if policy is None:
            policy = (
                self._config.concern_policy
                if motion_type == MotionType.CONCERN
                else self._config.proposal_policy
            )

        def mutate(ws: Workspace) -> dict[str, Any]:
            impl = ws.policies.get(policy)
            if impl.motion_type != motion_type:
                raise ValidationError(
                    f"Policy {policy} governs {impl.motion_type.value} motions, "
                    f"not {motion_type.value}"
                )
            ws.members.get(author)
            motion = ws.motions.create(Motion(
                motion_id=motion_id,
                motion_type=motion_type,
                policy=policy,
                author=author,
                tracker_url=tracker_url,
                title=title,
                body=body,
                labels=sorted(set(labels or [])),
            ))
            ad = impl.open(ws, motion)
            return {"motion": records.motion_to_dict(motion), "ballot": ad.namespace}

        return self._transact(f"Create {motion_type.value} {motion_id}", mutate)

    def update_motion(
        self,
        motion_id: str,
        title: Optional[str] = None,
        body: Optional[str] = None,
        tracker_url: Optional[str] = None,
        labels: Optional[list[str]] = None,
    ) -> ServiceResult:
        def mutate(ws: Workspace) -> dict[str, Any]:
            motion = ws.motions.update_meta(
                motion_id, tracker_url=tracker_url, title=title, body=body, labels=labels,
            )
            return {"motion": records.motion_to_dict(motion)}

        return self._transact(f"Update motion {motion_id}", mutate)

    def add_ref(self, from_id: str, to_id: str, ref_type: str) -> ServiceResult:
        def mutate(ws: Workspace) -> dict[str, Any]:
            ws.motions.add_ref(from_id, to_id, ref_type)
            return {"ref": {"from": from_id, "to": to_id, "type": ref_type}}

        return self._transact(f"Add {ref_type} reference {from_id} → {to_id}", mutate)

    def remove_ref(self, from_id: str, to_id: str, ref_type: str) -> ServiceResult:
        def mutate(ws: Workspace) -> dict[str, Any]:
            ws.motions.remove_ref(from_id, to_id, ref_type)
            return {"ref": {"from": from_id, "to": to_id, "type": ref_type}}

        return self._transact(f"Remove {ref_type} reference {from_id} → {to_id}", mutate)

    def vote(self, motion_id: str, voter: str, strength: float) -> ServiceResult:
        """Vote on a motion's poll, then refresh the motion's attention."""
        def mutate(ws: Workspace) -> dict[str, Any]:
            motion = ws.motions.get(motion_id)
            if motion.is_terminal:
                raise ValidationError(f"Motion {motion_id} is {motion.state.value}")
            policy = ws.policies.get(motion.policy)
            namespace = policy.ballot_namespace(motion_id)
            vote = ws.ballots.cast_vote(namespace, voter, policy.choice, strength)
            outcome = policy.process(ws, motion)
            return {
                "motion_id": motion_id,
                "vote": records.vote_to_dict(vote),
                "attention": outcome.scores.get(policy.choice, 0.0),
                "balance": records.credits_to_str(ws.members.balance(voter)),
            }

        return self._transact(f"Vote {strength:g} on motion {motion_id} by {voter}", mutate)

    def rescore(self) -> ServiceResult:
        """Re-tally every open motion and refresh attention and bounties."""
        def mutate(ws: Workspace) -> dict[str, Any]:
            attention: dict[str, float] = {}
            for motion in ws.motions.list():
                if motion.is_terminal:
                    continue
                policy = ws.policies.get(motion.policy)
                outcome = policy.process(ws, motion)
                attention[motion.motion_id] = outcome.scores.get(policy.choice, 0.0)
            return {"attention": attention}

        return self._transact("Rescore motions", mutate)

    def freeze_motion(self, motion_id: str) -> ServiceResult:
        return self._freeze(motion_id, MotionState.FROZEN)

    def unfreeze_motion(self, motion_id: str) -> ServiceResult:
        return self._freeze(motion_id, MotionState.OPEN)

    def _freeze(self, motion_id: str, target: MotionState) -> ServiceResult:
        def mutate(ws: Workspace) -> dict[str, Any]:
            motion = ws.motions.transition(motion_id, target)
            namespace = ws.policies.get(motion.policy).ballot_namespace(motion_id)
            if target == MotionState.FROZEN:
                ws.ballots.freeze_ballot(namespace)
            else:
                ws.ballots.unfreeze_ballot(namespace)
            return {"motion": records.motion_to_dict(motion)}

        verb = "Freeze" if target == MotionState.FROZEN else "Unfreeze"
        return self._transact(f"{verb} motion {motion_id}", mutate)

    def close_motion(self, motion_id: str) -> ServiceResult:
        """Close a motion's poll and apply the outcome through its policy."""
        return self._conclude(motion_id, cancelled=False)

    def cancel_motion(self, motion_id: str) -> ServiceResult:
        """Cancel a motion's poll, refunding unspent credits."""
        return self._conclude(motion_id, cancelled=True)

    def _conclude(self, motion_id: str, cancelled: bool) -> ServiceResult:
        def mutate(ws: Workspace) -> dict[str, Any]:
            outcome = conclude_motion(ws, motion_id, cancelled=cancelled)
            return {
                "motion": records.motion_to_dict(ws.motions.get(motion_id)),
                "outcome": records.outcome_to_dict(outcome),
                "notices": [records.notice_to_dict(n) for n in ws.notices],
            }

        verb = "Cancel" if cancelled else "Close"
        return self._transact(f"{verb} motion {motion_id}", mutate)

    def archive_motion(self, motion_id: str) -> ServiceResult:
        def mutate(ws: Workspace) -> dict[str, Any]:
            motion = ws.motions.transition(motion_id, MotionState.ARCHIVED)
            return {"motion": records.motion_to_dict(motion)}

        return self._transact(f"Archive motion {motion_id}", mutate)

    def show_motion(self, motion_id: str) -> ServiceResult:
        """Read-only view of a motion, its poll and its current tally."""
        def read(ws: Workspace) -> dict[str, Any]:
            motion = ws.motions.get(motion_id)
            view = ws.policies.get(motion.policy).show(ws, motion)
            notice = ws.notice_for(motion_id)
            return {
                "motion": records.motion_to_dict(view.motion),
                "ballot": records.ad_to_dict(view.ad),
                "status": records.status_to_dict(view.status),
                "tally": records.outcome_to_dict(view.outcome),
                "details": view.details,
                "notice": records.notice_to_dict(notice) if notice else None,
            }

        return self._read(read)

    def list_motions(self, include_closed: bool = False) -> ServiceResult:
        """Motions ascending by attention score."""
        def read(ws: Workspace) -> dict[str, Any]:
            return {"motions": [
                records.motion_to_dict(m) for m in ws.motions.ranked(include_closed)
            ]}

        return self._read(read)

    # ------------------------------------------------------------------
    # Standalone ballots
    # ------------------------------------------------------------------

    def open_ballot(
        self,
        namespace: str,
        title: str,
        choices: tuple[str, ...],
        created_by: str,
        group: str = EVERYBODY,
        kernel: str = "qv",
        description: str = "",
        allow_revision: bool = True,
        bounty: CreditAmount = 0,
    ) -> ServiceResult:
        def mutate(ws: Workspace) -> dict[str, Any]:
            ad = ws.ballots.open_ballot(
                Ad(
                    namespace=namespace,
                    title=title,
                    choices=tuple(choices),
                    group=group,
                    kernel=kernel,
                    description=description,
                    allow_revision=allow_revision,
                    created_by=created_by,
                ),
                KernelState(
                    inverse_cost_multiplier=self._config.inverse_cost_multiplier,
                    bounty=bounty,
                ),
            )
            return {"ballot": records.ad_to_dict(ad)}

        return self._transact(f"Open ballot {namespace}", mutate)

    def cast_vote(self, namespace: str, voter: str, choice: str, strength: float) -> ServiceResult:
        def mutate(ws: Workspace) -> dict[str, Any]:
            self._require_standalone(ws, namespace)
            vote = ws.ballots.cast_vote(namespace, voter, choice, strength)
            return {
                "vote": records.vote_to_dict(vote),
                "balance": records.credits_to_str(ws.members.balance(voter)),
            }

        return self._transact(f"Vote {choice}={strength:g} on {namespace} by {voter}", mutate)

    def tally_ballot(self, namespace: str) -> ServiceResult:
        """Store an interim tally of an open ballot."""
        def mutate(ws: Workspace) -> dict[str, Any]:
            if ws.ballots.status(namespace).is_concluded:
                outcome = ws.ballots.load_tally(namespace)
            else:
                outcome = self._evaluate(ws, namespace, Conclusion.OPEN)
                ws.ballots.save_tally(namespace, outcome)
            return {"tally": records.outcome_to_dict(outcome) if outcome else None}

        return self._transact(f"Tally ballot {namespace}", mutate)

    def close_ballot(self, namespace: str) -> ServiceResult:
        return self._conclude_ballot(namespace, Conclusion.CLOSED)

    def cancel_ballot(self, namespace: str) -> ServiceResult:
        return self._conclude_ballot(namespace, Conclusion.CANCELLED)

    def _conclude_ballot(self, namespace: str, conclusion: Conclusion) -> ServiceResult:
        def mutate(ws: Workspace) -> dict[str, Any]:
            self._require_standalone(ws, namespace)
            ws.kernels.get(ws.ballots.load(namespace).kernel)
            if conclusion == Conclusion.CANCELLED:
                ws.ballots.cancel_ballot(namespace)
            else:
                ws.ballots.close_ballot(namespace)
            outcome = self._evaluate(ws, namespace, conclusion)
            ws.ballots.save_tally(namespace, outcome)
            pay_out(ws, outcome)
            return {"tally": records.outcome_to_dict(outcome)}

        verb = "Cancel" if conclusion == Conclusion.CANCELLED else "Close"
        return self._transact(f"{verb} ballot {namespace}", mutate)

    @staticmethod
    def _evaluate(ws: Workspace, namespace: str, conclusion: Conclusion) -> Outcome:
        ad = ws.ballots.load(namespace)
        return ws.tally.evaluate(
            ws.kernels.get(ad.kernel),
            ad,
            ws.ballots.kernel_state(namespace),
            ws.ballots.accepted_elections(namespace),
            ws.ballots.advanced(namespace),
            conclusion,
        )

    @staticmethod
    def _require_standalone(ws: Workspace, namespace: str) -> None:
        """Motion polls are driven through the motion operations only."""
        namespace = records.normalize_namespace(namespace)
        for motion in ws.motions.list():
            if ws.policies.get(motion.policy).ballot_namespace(motion.motion_id) == namespace:
                raise ValidationError(
                    f"Ballot {namespace} belongs to motion {motion.motion_id}; "
                    f"use the motion operations"
                )

    # ------------------------------------------------------------------
    # Units of work
    # ------------------------------------------------------------------

    def _workspace(self) -> Workspace:
        return Workspace(
            clone=self._store.clone(self._config.branch),
            config=self._config,
            kernels=self._kernels,
            policies=self._policies,
        )

    def _transact(
        self,
        summary: str,
        mutate: Mutation,
        require_community: bool = True,
    ) -> ServiceResult:
        retrying = Retrying(
            stop=stop_after_attempt(self._config.max_push_attempts),
            wait=wait_exponential(multiplier=self._config.retry_wait_seconds, max=10),
            retry=retry_if_exception_type(PushConflictError),
        )
        try:
            try:
                data = retrying(self._attempt, summary, mutate, require_community)
            except RetryError as e:
                raise ConflictExhaustedError(
                    f"{summary}: push still conflicting after "
                    f"{self._config.max_push_attempts} attempt(s)"
                ) from e
        except GovernanceError as e:
            logger.warning("%s failed: %s", summary, e)
            return ServiceResult(success=False, errors=[str(e)], data={"kind": e.kind})
        return ServiceResult(success=True, data=data)

    def _attempt(self, summary: str, mutate: Mutation, require_community: bool) -> dict[str, Any]:
        ws = self._workspace()
        try:
            if require_community and not ws.clone.exists(records.COMMUNITY_PATH):
                raise PreconditionError(f"Community not initialized on {ws.clone.branch}")
            data = mutate(ws)
            data["committed"] = commit_if_changed(ws.clone, Change(summary, data))
            return data
        finally:
            ws.clone.cleanup()

    def _read(self, read: Mutation) -> ServiceResult:
        ws = self._workspace()
        try:
            if not ws.clone.exists(records.COMMUNITY_PATH):
                raise PreconditionError(f"Community not initialized on {ws.clone.branch}")
            return ServiceResult(success=True, data=read(ws))
        except GovernanceError as e:
            return ServiceResult(success=False, errors=[str(e)], data={"kind": e.kind})
        finally:
            ws.clone.cleanup()
