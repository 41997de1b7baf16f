"""Error taxonomy for governance operations.

Four kinds of failure, each with a fixed recovery rule:
- Validation: the single operation is rejected, nothing is committed.
- Precondition: the operation aborts before any write.
- Kernel: a ballot cannot be scored; the close sequence aborts and the
  ballot stays open.
- Conflict: a push was not a fast-forward; the orchestrator re-clones
  and reapplies, and only exhausting the retry budget is fatal.
"""

from __future__ import annotations


class GovernanceError(Exception):
    """Base class for every failure raised by govtree."""

    kind = "governance"


class ValidationError(GovernanceError, ValueError):
    """Input was rejected (unknown name, duplicate, non-member, ...)."""

    kind = "validation"


class InvalidTransitionError(ValidationError):
    """A motion state transition is not in the legal transition set."""


class AlreadyTerminalError(InvalidTransitionError):
    """Close or cancel was attempted on a closed or cancelled motion."""


class UnknownPolicyError(ValidationError):
    """A motion policy name is not registered."""


class PreconditionError(GovernanceError):
    """A required precondition does not hold (e.g. already initialized)."""

    kind = "precondition"


class KernelError(GovernanceError):
    """A score kernel is not registered or cannot score a ballot."""

    kind = "kernel"


class PushConflictError(GovernanceError):
    """The remote branch moved since the clone; the push was rejected."""

    kind = "conflict"


class ConflictExhaustedError(GovernanceError):
    """Push conflicts persisted past the retry budget."""

    kind = "conflict"
