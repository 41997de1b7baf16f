"""Motion policies and the registry that dispatches to them."""

from govtree.errors import UnknownPolicyError
from govtree.policy.base import MotionPolicy, PolicyView, PollPolicy
from govtree.policy.concern import CONCERN_POLICY, PRIORITY_CHOICE, ConcernPolicy
from govtree.policy.proposal import APPROVAL_CHOICE, PROPOSAL_POLICY, ProposalPolicy
from govtree.registry import Registry


def build_policy_registry() -> Registry[MotionPolicy]:
    """Register the built-in policies and seal the table."""
    registry: Registry[MotionPolicy] = Registry("motion policy", UnknownPolicyError)
    registry.register(CONCERN_POLICY, ConcernPolicy())
    registry.register(PROPOSAL_POLICY, ProposalPolicy())
    registry.seal()
    return registry


__all__ = [
    "APPROVAL_CHOICE",
    "CONCERN_POLICY",
    "ConcernPolicy",
    "MotionPolicy",
    "PRIORITY_CHOICE",
    "PROPOSAL_POLICY",
    "PolicyView",
    "PollPolicy",
    "ProposalPolicy",
    "build_policy_registry",
]
