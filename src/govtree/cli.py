"""govtree CLI — command-line interface for community governance.

Usage:
    python -m govtree.cli init --name example --create-remote
    python -m govtree.cli add-member --user alice --credits 100
    python -m govtree.cli credit --user alice --amount 25.5
    python -m govtree.cli create-motion --id c1 --type concern --author alice --title "Slow CI"
    python -m govtree.cli create-motion --id p1 --type proposal --author bob --title "Cache deps"
    python -m govtree.cli add-ref --from p1 --to c1
    python -m govtree.cli vote --id c1 --user alice --strength 3
    python -m govtree.cli rescore
    python -m govtree.cli close --id p1
    python -m govtree.cli show --id p1
    python -m govtree.cli list

Deployment settings come from config/governance.json and GOVTREE_*
environment variables (a .env file is honoured).
"""

from __future__ import annotations

import argparse
import logging
import sys
from decimal import Decimal
from pathlib import Path
from typing import Any

from govtree.config import GovernanceConfig
from govtree.errors import GovernanceError, ValidationError
from govtree.identity import load_credentials
from govtree.models.ballot import as_credits
from govtree.models.motion import MotionType
from govtree.persistence import records
from govtree.persistence.git_store import GitStore, init_bare_remote
from govtree.service import GovernanceService, ServiceResult

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = Path(__file__).resolve().parents[2] / "config"


def _credits(text: str) -> Decimal:
    try:
        return as_credits(text)
    except ValidationError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _load_config(args: argparse.Namespace) -> GovernanceConfig:
    return GovernanceConfig.from_config_dir(args.config)


def _make_service(config: GovernanceConfig) -> GovernanceService:
    """Create a GovernanceService over the configured git remote."""
    credentials = None
    if config.user:
        credentials = load_credentials(
            config.user,
            private_key_path=config.private_key_path,
        )
    return GovernanceService(GitStore(config.store_url, credentials=credentials), config)


def _report(result: ServiceResult) -> int:
    if result.success:
        print(records.dumps(result.data), end="")
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_init(args: argparse.Namespace) -> int:
    config = _load_config(args)
    if args.create_remote:
        init_bare_remote(Path(config.store_url))
    return _report(_make_service(config).init_community(args.name))


def cmd_add_member(args: argparse.Namespace) -> int:
    service = _make_service(_load_config(args))
    return _report(service.add_member(args.user, args.credits, tuple(args.group)))


def cmd_credit(args: argparse.Namespace) -> int:
    service = _make_service(_load_config(args))
    return _report(service.credit_member(args.user, args.amount))


def cmd_register_credentials(args: argparse.Namespace) -> int:
    config = _load_config(args)
    if not config.user or config.public_key_path is None:
        print("Failed: GOVTREE_USER and GOVTREE_PUBLIC_KEY must be set", file=sys.stderr)
        return 1
    credentials = load_credentials(config.user, public_key_path=config.public_key_path)
    return _report(_make_service(config).register_credentials(credentials))


def cmd_create_motion(args: argparse.Namespace) -> int:
    service = _make_service(_load_config(args))
    result = service.create_motion(
        motion_id=args.id,
        motion_type=MotionType(args.type),
        author=args.author,
        title=args.title,
        body=args.body,
        tracker_url=args.tracker_url,
        labels=args.label,
        policy=args.policy,
    )
    return _report(result)


def cmd_add_ref(args: argparse.Namespace) -> int:
    config = _load_config(args)
    ref_type = args.type or config.resolves_ref_type
    return _report(_make_service(config).add_ref(args.from_id, args.to_id, ref_type))


def cmd_vote(args: argparse.Namespace) -> int:
    service = _make_service(_load_config(args))
    return _report(service.vote(args.id, args.user, args.strength))


def cmd_rescore(args: argparse.Namespace) -> int:
    return _report(_make_service(_load_config(args)).rescore())


def cmd_close(args: argparse.Namespace) -> int:
    return _report(_make_service(_load_config(args)).close_motion(args.id))


def cmd_cancel(args: argparse.Namespace) -> int:
    return _report(_make_service(_load_config(args)).cancel_motion(args.id))


def cmd_show(args: argparse.Namespace) -> int:
    return _report(_make_service(_load_config(args)).show_motion(args.id))


def cmd_list(args: argparse.Namespace) -> int:
    result = _make_service(_load_config(args)).list_motions(include_closed=args.all)
    if not result.success:
        return _report(result)
    for m in result.data["motions"]:
        _print_motion_line(m)
    return 0


def _print_motion_line(m: dict[str, Any]) -> None:
    state = "closed" if m["closed"] else "cancelled" if m["cancelled"] else (
        "frozen" if m["frozen"] else "open"
    )
    print(f"{m['score']['attention']:>10g}  {m['id']:<16} {m['type']:<9} {state:<9} {m['title']}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="govtree",
        description="Community governance on a versioned tree",
    )
    parser.add_argument(
        "--config", type=Path, default=DEFAULT_CONFIG,
        help="Path to config directory",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    # init
    p_init = sub.add_parser("init", help="Initialize the community on the governed branch")
    p_init.add_argument("--name", required=True, help="Community name")
    p_init.add_argument(
        "--create-remote", action="store_true",
        help="Create an empty bare repository at the store path first",
    )

    # add-member
    p_member = sub.add_parser("add-member", help="Register a member")
    p_member.add_argument("--user", required=True, help="User name")
    p_member.add_argument("--credits", type=_credits, default=Decimal("0"), help="Initial voting credits")
    p_member.add_argument("--group", action="append", default=[], help="Group (repeatable)")

    # credit
    p_credit = sub.add_parser("credit", help="Issue voting credits to a member")
    p_credit.add_argument("--user", required=True, help="User name")
    p_credit.add_argument("--amount", type=_credits, required=True, help="Credits to issue")

    # register-credentials
    sub.add_parser(
        "register-credentials",
        help="Publish GOVTREE_USER's public key into the community",
    )

    # create-motion
    p_create = sub.add_parser("create-motion", help="Create a concern or proposal")
    p_create.add_argument("--id", required=True, help="Motion ID")
    p_create.add_argument(
        "--type", required=True, choices=[t.value for t in MotionType], help="Motion type",
    )
    p_create.add_argument("--author", required=True, help="Author user name")
    p_create.add_argument("--title", default="", help="Title")
    p_create.add_argument("--body", default="", help="Body")
    p_create.add_argument("--tracker-url", default="", help="Issue tracker URL")
    p_create.add_argument("--label", action="append", default=[], help="Label (repeatable)")
    p_create.add_argument("--policy", default=None, help="Policy name (default per type)")

    # add-ref
    p_ref = sub.add_parser("add-ref", help="Reference one motion from another")
    p_ref.add_argument("--from", dest="from_id", required=True, help="Source motion ID")
    p_ref.add_argument("--to", dest="to_id", required=True, help="Target motion ID")
    p_ref.add_argument("--type", default=None, help="Reference type (default: resolves)")

    # vote
    p_vote = sub.add_parser("vote", help="Vote on a motion's poll")
    p_vote.add_argument("--id", required=True, help="Motion ID")
    p_vote.add_argument("--user", required=True, help="Voter")
    p_vote.add_argument("--strength", type=float, required=True, help="Vote strength (signed)")

    # rescore
    sub.add_parser("rescore", help="Re-tally open motions")

    # close / cancel / show
    for name, help_text in (
        ("close", "Close a motion's poll and apply the outcome"),
        ("cancel", "Cancel a motion and refund unspent credits"),
        ("show", "Show a motion, its poll and tally"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--id", required=True, help="Motion ID")

    # list
    p_list = sub.add_parser("list", help="List motions by attention")
    p_list.add_argument("--all", action="store_true", help="Include closed and cancelled motions")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "init": cmd_init,
        "add-member": cmd_add_member,
        "credit": cmd_credit,
        "register-credentials": cmd_register_credentials,
        "create-motion": cmd_create_motion,
        "add-ref": cmd_add_ref,
        "vote": cmd_vote,
        "rescore": cmd_rescore,
        "close": cmd_close,
        "cancel": cmd_cancel,
        "show": cmd_show,
        "list": cmd_list,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except (GovernanceError, FileNotFoundError, ValueError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
