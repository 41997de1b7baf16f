"""Plain-text notices emitted when a motion's poll concludes.

The issue-tracker collaborator renders these for its platform. The text
here carries no platform markup beyond inline code for identifiers.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence, Union

from govtree.models.ballot import Notice, Outcome
from govtree.models.motion import Motion
from govtree.persistence.records import credits_to_str


def _fmt(amount: Union[Decimal, float]) -> str:
    if isinstance(amount, Decimal):
        return credits_to_str(amount)
    return f"{amount:g}"


def _breakdown(lines: list[str], outcome: Outcome, choice: str) -> None:
    lines.append("Tally breakdown by user:")
    for user, contributions in sorted(outcome.scores_by_user.items()):
        lines.append(f"- User {user} contributed {_fmt(contributions.get(choice, 0.0))} votes.")


def _payments(lines: list[str], heading: str, verb: str, payments: dict[str, Decimal]) -> None:
    lines.append(heading)
    if not payments:
        lines.append("- None.")
    for user, amount in sorted(payments.items()):
        lines.append(f"- User {user} was {verb} {_fmt(amount)} credits.")
    lines.append("")


def close_notice(
    motion: Motion,
    outcome: Outcome,
    choice: str,
    verdict: str = "",
    resolved: Sequence[str] = (),
) -> Notice:
    kind = motion.motion_type.value
    suffix = f" ({verdict})" if verdict else ""
    lines = [
        f"This {kind}, managed as motion `{motion.motion_id}`, has been closed{suffix}.",
        "",
        f"The {choice} tally was {_fmt(outcome.scores.get(choice, 0.0))}.",
        "",
    ]
    if resolved:
        lines.append("Resolved concerns: " + ", ".join(f"`{m}`" for m in resolved) + ".")
        lines.append("")
    _payments(lines, "Rewards issued:", "rewarded", outcome.rewarded)
    _payments(lines, "Refunds issued:", "refunded", outcome.refunded)
    _breakdown(lines, outcome, choice)
    return Notice(motion_id=motion.motion_id, body="\n".join(lines) + "\n")


def cancel_notice(motion: Motion, outcome: Outcome, choice: str) -> Notice:
    kind = motion.motion_type.value
    lines = [
        f"This {kind}, managed as motion `{motion.motion_id}`, has been cancelled.",
        "",
        f"The {choice} tally was {_fmt(outcome.scores.get(choice, 0.0))}.",
        "",
    ]
    _payments(lines, "Refunds issued:", "refunded", outcome.refunded)
    _breakdown(lines, outcome, choice)
    return Notice(motion_id=motion.motion_id, body="\n".join(lines) + "\n")
