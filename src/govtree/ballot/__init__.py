"""Ballots — storage, pluggable score kernels and the tally engine."""

from govtree.ballot.kernels import (
    PROPOSAL_APPROVAL_KERNEL,
    QV_KERNEL,
    ProposalApprovalKernel,
    QVKernel,
    ScoreKernel,
    build_kernel_registry,
)
from govtree.ballot.store import BallotStore
from govtree.ballot.tally import TallyEngine

__all__ = [
    "BallotStore",
    "PROPOSAL_APPROVAL_KERNEL",
    "ProposalApprovalKernel",
    "QVKernel",
    "QV_KERNEL",
    "ScoreKernel",
    "TallyEngine",
    "build_kernel_registry",
]
