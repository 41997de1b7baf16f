"""Ballot store — ads, votes, lifecycle flags and tallies inside a clone.

A ballot lives under ``ballot/<namespace>/``. The ad is written once
and never rewritten; status, kernel state, votes and tallies are
separate records. All writes are staged in the clone; the caller
decides when to commit.

Voting charges credits incrementally. When a voter's elections change,
the kernel prices the full new set and the voter pays only the part
not already advanced. Lowering a vote does not refund immediately:
the unspent remainder comes back when the ballot concludes.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from decimal import Decimal
from typing import Optional

from govtree.ballot.kernels import ScoreKernel
from govtree.errors import ValidationError
from govtree.members import MemberStore
from govtree.models.ballot import (
    AcceptedElections,
    Ad,
    BallotStatus,
    KernelState,
    Outcome,
    VoteRecord,
    ZERO,
)
from govtree.persistence import records
from govtree.persistence.store import Clone
from govtree.registry import Registry

logger = logging.getLogger(__name__)


class BallotStore:
    """Reads and writes ballot records inside one clone."""

    def __init__(
        self,
        clone: Clone,
        members: MemberStore,
        kernels: Registry[ScoreKernel],
    ) -> None:
        self._clone = clone
        self._members = members
        self._kernels = kernels

    # ------------------------------------------------------------------
    # Definition
    # ------------------------------------------------------------------

    def open_ballot(self, ad: Ad, kernel_state: Optional[KernelState] = None) -> Ad:
        """Write a new ballot. Refuses to overwrite an existing namespace."""
        ad = replace(ad, namespace=records.normalize_namespace(ad.namespace))
        if self.exists(ad.namespace):
            raise ValidationError(f"Ballot already exists: {ad.namespace}")
        self._check_nesting(ad.namespace)
        if not self._members.group_exists(ad.group):
            raise ValidationError(f"{ad.namespace}: unknown group {ad.group!r}")
        self._kernels.get(ad.kernel)

        records.write_json(self._clone, records.ad_path(ad.namespace), records.ad_to_dict(ad))
        self._write_status(ad.namespace, BallotStatus())
        self.save_kernel_state(ad.namespace, kernel_state or KernelState())
        logger.info("Opened ballot %s (%s)", ad.namespace, ad.kernel)
        return ad

    def _check_nesting(self, namespace: str) -> None:
        """Ballot directories never overlap: no ballot inside another."""
        parts = namespace.split("/")
        for i in range(1, len(parts)):
            outer = "/".join(parts[:i])
            if self.exists(outer):
                raise ValidationError(f"{namespace}: lies inside ballot {outer}")
        if self._clone.list(records.ballot_dir(namespace)):
            raise ValidationError(f"{namespace}: contains existing ballot records")

    def exists(self, namespace: str) -> bool:
        return self._clone.exists(records.ad_path(namespace))

    def load(self, namespace: str) -> Ad:
        data = records.read_json(self._clone, records.ad_path(namespace))
        if data is None:
            raise ValidationError(f"Ballot not found: {namespace}")
        return records.ad_from_dict(data)

    def list_namespaces(self) -> list[str]:
        prefix = records.BALLOT_DIR + "/"
        suffix = "/ad.json"
        namespaces = []
        for p in self._clone.list(records.BALLOT_DIR):
            if not p.endswith(suffix):
                continue
            namespace = p[len(prefix): -len(suffix)]
            # a voter named "ad" also leaves a votes/ad.json
            if self._clone.exists(records.status_path(namespace)):
                namespaces.append(namespace)
        return namespaces

    def status(self, namespace: str) -> BallotStatus:
        data = records.read_json(self._clone, records.status_path(namespace))
        if data is None:
            raise ValidationError(f"Ballot not found: {namespace}")
        return records.status_from_dict(data)

    def kernel_state(self, namespace: str) -> KernelState:
        data = records.read_json(self._clone, records.kernel_state_path(namespace))
        if data is None:
            raise ValidationError(f"Ballot not found: {namespace}")
        return records.kernel_state_from_dict(data)

    def save_kernel_state(self, namespace: str, state: KernelState) -> None:
        records.write_json(
            self._clone,
            records.kernel_state_path(namespace),
            records.kernel_state_to_dict(state),
        )

    def _write_status(self, namespace: str, status: BallotStatus) -> None:
        records.write_json(self._clone, records.status_path(namespace), records.status_to_dict(status))

    # ------------------------------------------------------------------
    # Voting
    # ------------------------------------------------------------------

    def cast_vote(self, namespace: str, voter: str, choice: str, strength: float) -> VoteRecord:
        """Record or revise a voter's election for one choice and charge for it."""
        ad = self.load(namespace)
        status = self.status(namespace)
        if status.is_concluded:
            raise ValidationError(f"{ad.namespace}: ballot is closed")
        if status.frozen:
            raise ValidationError(f"{ad.namespace}: ballot is frozen")
        if choice not in ad.choices:
            raise ValidationError(f"{ad.namespace}: unknown choice {choice!r}")
        if not isinstance(strength, (int, float)) or not math.isfinite(strength):
            raise ValidationError(f"{ad.namespace}: vote strength must be a finite number")
        if not self._members.is_member(voter, ad.group):
            raise ValidationError(f"{ad.namespace}: {voter} is not a member of {ad.group}")

        vote = self.vote_of(namespace, voter) or VoteRecord(voter=voter)
        if choice in vote.elections and not ad.allow_revision:
            raise ValidationError(f"{ad.namespace}: vote revision is not allowed")

        kernel = self._kernels.get(ad.kernel)
        elections = dict(vote.elections)
        elections[choice] = float(strength)
        charge = max(ZERO, kernel.cost(self.kernel_state(namespace), elections) - vote.advanced)
        self._members.debit(voter, charge)

        vote = VoteRecord(voter=voter, elections=elections, advanced=vote.advanced + charge)
        records.write_json(self._clone, records.vote_path(namespace, voter), records.vote_to_dict(vote))
        logger.debug("%s voted %s=%s on %s (charged %s)", voter, choice, strength, ad.namespace, charge)
        return vote

    def vote_of(self, namespace: str, voter: str) -> Optional[VoteRecord]:
        data = records.read_json(self._clone, records.vote_path(namespace, voter))
        return records.vote_from_dict(data) if data else None

    def votes(self, namespace: str) -> list[VoteRecord]:
        prefix = records.votes_dir(namespace) + "/"
        return [
            records.vote_from_dict(records.read_json(self._clone, p))
            for p in self._clone.list(prefix)
            if "/" not in p[len(prefix):] and p.endswith(".json")
        ]

    def accepted_elections(self, namespace: str) -> AcceptedElections:
        """Elections of voters who are still members of the governing group."""
        ad = self.load(namespace)
        eligible = set(self._members.members_of(ad.group))
        return AcceptedElections(elections={
            v.voter: dict(v.elections)
            for v in self.votes(namespace)
            if v.voter in eligible
        })

    def advanced(self, namespace: str) -> dict[str, Decimal]:
        """Credits charged to each voter on this ballot."""
        return {v.voter: v.advanced for v in self.votes(namespace)}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def freeze_ballot(self, namespace: str) -> None:
        status = self._live_status(namespace)
        if status.frozen:
            raise ValidationError(f"Ballot {namespace} is already frozen")
        status.frozen = True
        self._write_status(namespace, status)

    def unfreeze_ballot(self, namespace: str) -> None:
        status = self._live_status(namespace)
        if not status.frozen:
            raise ValidationError(f"Ballot {namespace} is not frozen")
        status.frozen = False
        self._write_status(namespace, status)

    def close_ballot(self, namespace: str) -> None:
        """Stop accepting votes. The current votes become final."""
        status = self._live_status(namespace)
        status.closed = True
        self._write_status(namespace, status)
        logger.info("Closed ballot %s", namespace)

    def cancel_ballot(self, namespace: str) -> None:
        status = self._live_status(namespace)
        status.cancelled = True
        self._write_status(namespace, status)
        logger.info("Cancelled ballot %s", namespace)

    def _live_status(self, namespace: str) -> BallotStatus:
        status = self.status(namespace)
        if status.is_concluded:
            raise ValidationError(f"Ballot {namespace} is already concluded")
        return status

    # ------------------------------------------------------------------
    # Tallies
    # ------------------------------------------------------------------

    def save_tally(self, namespace: str, outcome: Outcome) -> None:
        records.write_json(self._clone, records.tally_path(namespace), records.outcome_to_dict(outcome))

    def load_tally(self, namespace: str) -> Optional[Outcome]:
        data = records.read_json(self._clone, records.tally_path(namespace))
        return records.outcome_from_dict(data) if data else None
