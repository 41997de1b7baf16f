"""Record layout and JSON codecs for the governance tree.

Every record lives at a deterministic path inside a branch:

    community.json
    member/users/<user>.json
    member/groups/<group>.json
    member/credentials/<user>.json
    motion/<id>.json
    ballot/<namespace>/ad.json
    ballot/<namespace>/status.json
    ballot/<namespace>/kernel_state.json
    ballot/<namespace>/votes/<user>.json
    ballot/<namespace>/tally.json
    notice/<motion id>.json

Records are canonical JSON (sorted keys, two-space indent) so that
writing an unchanged record leaves the tree clean and commit-if-changed
produces no commit.

Commit messages carry the full record being committed:

    <summary line>

    <canonical JSON of the change>
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from govtree.errors import ValidationError
from govtree.models.ballot import (
    Ad,
    BallotStatus,
    Conclusion,
    KernelState,
    Margin,
    MarginCalculator,
    Notice,
    Outcome,
    VoteRecord,
    as_credits,
)
from govtree.models.motion import Motion, MotionType, Ref, Score

if TYPE_CHECKING:
    from govtree.persistence.store import Clone

logger = logging.getLogger(__name__)

_TS_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

COMMUNITY_PATH = "community.json"
MOTION_DIR = "motion"
BALLOT_DIR = "ballot"
NOTICE_DIR = "notice"
USERS_DIR = "member/users"
GROUPS_DIR = "member/groups"
CREDENTIALS_DIR = "member/credentials"


# ------------------------------------------------------------------
# Paths
# ------------------------------------------------------------------

def _segment(name: str) -> str:
    """Validate a single path segment (user, group or motion id)."""
    if not name or "/" in name or name in (".", "..") or name != name.strip():
        raise ValidationError(f"Invalid record name: {name!r}")
    return name


def normalize_namespace(namespace: str) -> str:
    parts = [p for p in namespace.strip().split("/") if p]
    if not parts or any(p in (".", "..") for p in parts):
        raise ValidationError(f"Invalid ballot namespace: {namespace!r}")
    return "/".join(parts)


def motion_path(motion_id: str) -> str:
    return f"{MOTION_DIR}/{_segment(motion_id)}.json"


def notice_path(motion_id: str) -> str:
    return f"{NOTICE_DIR}/{_segment(motion_id)}.json"


def user_path(user: str) -> str:
    return f"{USERS_DIR}/{_segment(user)}.json"


def group_path(group: str) -> str:
    return f"{GROUPS_DIR}/{_segment(group)}.json"


def credentials_path(user: str) -> str:
    return f"{CREDENTIALS_DIR}/{_segment(user)}.json"


def ballot_dir(namespace: str) -> str:
    return f"{BALLOT_DIR}/{normalize_namespace(namespace)}"


def ad_path(namespace: str) -> str:
    return f"{ballot_dir(namespace)}/ad.json"


def status_path(namespace: str) -> str:
    return f"{ballot_dir(namespace)}/status.json"


def kernel_state_path(namespace: str) -> str:
    return f"{ballot_dir(namespace)}/kernel_state.json"


def votes_dir(namespace: str) -> str:
    return f"{ballot_dir(namespace)}/votes"


def vote_path(namespace: str, voter: str) -> str:
    return f"{votes_dir(namespace)}/{_segment(voter)}.json"


def tally_path(namespace: str) -> str:
    return f"{ballot_dir(namespace)}/tally.json"


# ------------------------------------------------------------------
# JSON I/O
# ------------------------------------------------------------------

def credits_to_str(amount: Decimal) -> str:
    """Canonical text of a credit amount: no exponent, no trailing zeros."""
    return f"{amount.normalize():f}"


def _encode(value: Any) -> Any:
    if isinstance(value, Decimal):
        return credits_to_str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(data: Any) -> str:
    return json.dumps(
        data, indent=2, sort_keys=True, ensure_ascii=False, default=_encode,
    ) + "\n"


def read_json(clone: Clone, path: str) -> Optional[Any]:
    raw = clone.read(path)
    if raw is None:
        return None
    return json.loads(raw.decode("utf-8"))


def write_json(clone: Clone, path: str, data: Any) -> None:
    clone.write(path, dumps(data).encode("utf-8"))


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.strftime(_TS_FORMAT) if value else None


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.strptime(value, _TS_FORMAT).replace(tzinfo=timezone.utc)


# ------------------------------------------------------------------
# Motion codec
# ------------------------------------------------------------------

def _refs_to_list(refs: list[Ref]) -> list[dict[str, str]]:
    return [{"from": r.from_id, "to": r.to_id, "type": r.ref_type} for r in refs]


def _refs_from_list(data: list[dict[str, str]]) -> list[Ref]:
    return sorted(Ref(from_id=d["from"], to_id=d["to"], ref_type=d["type"]) for d in data)


def motion_to_dict(m: Motion) -> dict[str, Any]:
    return {
        "id": m.motion_id,
        "type": m.motion_type.value,
        "policy": m.policy,
        "author": m.author,
        "tracker_url": m.tracker_url,
        "title": m.title,
        "body": m.body,
        "labels": list(m.labels),
        "frozen": m.frozen,
        "closed": m.closed,
        "cancelled": m.cancelled,
        "archived": m.archived,
        "opened_at": _ts(m.opened_utc),
        "closed_at": _ts(m.closed_utc),
        "score": {"attention": m.score.attention},
        "ref_to": _refs_to_list(m.ref_to),
        "ref_by": _refs_to_list(m.ref_by),
    }


def motion_from_dict(data: dict[str, Any]) -> Motion:
    return Motion(
        motion_id=data["id"],
        motion_type=MotionType(data["type"]),
        policy=data["policy"],
        author=data.get("author", ""),
        tracker_url=data.get("tracker_url", ""),
        title=data.get("title", ""),
        body=data.get("body", ""),
        labels=list(data.get("labels", [])),
        frozen=data.get("frozen", False),
        closed=data.get("closed", False),
        cancelled=data.get("cancelled", False),
        archived=data.get("archived", False),
        opened_utc=_parse_ts(data.get("opened_at")),
        closed_utc=_parse_ts(data.get("closed_at")),
        score=Score(attention=data.get("score", {}).get("attention", 0.0)),
        ref_to=_refs_from_list(data.get("ref_to", [])),
        ref_by=_refs_from_list(data.get("ref_by", [])),
    )


# ------------------------------------------------------------------
# Ballot codecs
# ------------------------------------------------------------------

def ad_to_dict(ad: Ad) -> dict[str, Any]:
    return {
        "namespace": ad.namespace,
        "title": ad.title,
        "description": ad.description,
        "choices": list(ad.choices),
        "group": ad.group,
        "kernel": ad.kernel,
        "allow_revision": ad.allow_revision,
        "created_by": ad.created_by,
    }


def ad_from_dict(data: dict[str, Any]) -> Ad:
    return Ad(
        namespace=data["namespace"],
        title=data["title"],
        description=data.get("description", ""),
        choices=tuple(data["choices"]),
        group=data["group"],
        kernel=data["kernel"],
        allow_revision=data.get("allow_revision", True),
        created_by=data.get("created_by", ""),
    )


def status_to_dict(status: BallotStatus) -> dict[str, Any]:
    return {
        "frozen": status.frozen,
        "closed": status.closed,
        "cancelled": status.cancelled,
    }


def status_from_dict(data: dict[str, Any]) -> BallotStatus:
    return BallotStatus(
        frozen=data.get("frozen", False),
        closed=data.get("closed", False),
        cancelled=data.get("cancelled", False),
    )


def kernel_state_to_dict(state: KernelState) -> dict[str, Any]:
    return {
        "motion_id": state.motion_id,
        "inverse_cost_multiplier": state.inverse_cost_multiplier,
        "bounty": credits_to_str(state.bounty),
    }


def kernel_state_from_dict(data: dict[str, Any]) -> KernelState:
    return KernelState(
        motion_id=data.get("motion_id", ""),
        inverse_cost_multiplier=data["inverse_cost_multiplier"],
        bounty=as_credits(data.get("bounty", "0")),
    )


def vote_to_dict(vote: VoteRecord) -> dict[str, Any]:
    return {
        "voter": vote.voter,
        "elections": dict(vote.elections),
        "advanced": credits_to_str(vote.advanced),
    }


def vote_from_dict(data: dict[str, Any]) -> VoteRecord:
    return VoteRecord(
        voter=data["voter"],
        elections={k: float(v) for k, v in data.get("elections", {}).items()},
        advanced=as_credits(data.get("advanced", "0")),
    )


def margin_to_dict(margin: Margin) -> dict[str, Any]:
    return {
        name: {"label": c.label, "description": c.description, "fn_js": c.fn_js}
        for name, c in margin.calculators.items()
    }


def margin_from_dict(data: dict[str, Any]) -> Margin:
    return Margin(calculators={
        name: MarginCalculator(
            label=c["label"], description=c["description"], fn_js=c["fn_js"],
        )
        for name, c in data.items()
    })


def outcome_to_dict(outcome: Outcome) -> dict[str, Any]:
    return {
        "scores": dict(outcome.scores),
        "scores_by_user": {u: dict(s) for u, s in outcome.scores_by_user.items()},
        "refunded": {u: credits_to_str(v) for u, v in outcome.refunded.items()},
        "rewarded": {u: credits_to_str(v) for u, v in outcome.rewarded.items()},
        "winner": outcome.winner,
        "conclusion": outcome.conclusion.value,
        "margin": margin_to_dict(outcome.margin),
    }


def outcome_from_dict(data: dict[str, Any]) -> Outcome:
    return Outcome(
        scores={k: float(v) for k, v in data.get("scores", {}).items()},
        scores_by_user={
            u: {c: float(v) for c, v in s.items()}
            for u, s in data.get("scores_by_user", {}).items()
        },
        refunded={k: as_credits(v) for k, v in data.get("refunded", {}).items()},
        rewarded={k: as_credits(v) for k, v in data.get("rewarded", {}).items()},
        winner=data.get("winner"),
        conclusion=Conclusion(data.get("conclusion", Conclusion.OPEN.value)),
        margin=margin_from_dict(data.get("margin", {})),
    )


def notice_to_dict(notice: Notice) -> dict[str, Any]:
    return {"motion_id": notice.motion_id, "body": notice.body}


def notice_from_dict(data: dict[str, Any]) -> Notice:
    return Notice(motion_id=data["motion_id"], body=data["body"])


# ------------------------------------------------------------------
# Commits
# ------------------------------------------------------------------

@dataclass(frozen=True)
class Change:
    """A committable unit: a one-line summary plus the record it carries."""
    summary: str
    record: dict[str, Any] = field(default_factory=dict)

    def message(self) -> str:
        return f"{self.summary}\n\n{dumps(self.record)}"


def parse_commit_message(message: str) -> Change:
    """Recover the Change from a commit message written by Change.message()."""
    summary, _, body = message.partition("\n\n")
    record = json.loads(body) if body.strip() else {}
    return Change(summary=summary.strip(), record=record)


def commit_if_changed(clone: Clone, change: Change) -> bool:
    """Commit and push staged work, or do nothing if the tree is clean.

    Returns True when a commit was pushed. Raises PushConflictError when
    the remote branch moved since the clone was taken.
    """
    if not clone.is_dirty():
        logger.debug("Nothing to commit for %r", change.summary)
        return False
    clone.commit(change.message())
    clone.push()
    logger.info("Committed %r to %s", change.summary, clone.branch)
    return True
