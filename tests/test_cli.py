"""Tests for govtree CLI — proves CLI dispatches correctly."""

import json
import shutil
from decimal import Decimal
from pathlib import Path

import pytest

from govtree.cli import build_parser, main

_ENV_VARS = ("GOVTREE_BRANCH", "GOVTREE_USER", "GOVTREE_PUBLIC_KEY", "GOVTREE_PRIVATE_KEY")


class TestCLIParsing:
    def test_create_motion_command(self) -> None:
        parser = build_parser()
        args = parser.parse_args([
            "create-motion", "--id", "c1", "--type", "concern",
            "--author", "alice", "--label", "ci", "--label", "infra",
        ])
        assert args.command == "create-motion"
        assert args.id == "c1"
        assert args.type == "concern"
        assert args.label == ["ci", "infra"]
        assert args.policy is None

    def test_add_ref_command(self) -> None:
        args = build_parser().parse_args(["add-ref", "--from", "p1", "--to", "c1"])
        assert args.from_id == "p1"
        assert args.to_id == "c1"
        assert args.type is None

    def test_vote_command(self) -> None:
        args = build_parser().parse_args(["vote", "--id", "c1", "--user", "bob", "--strength", "-2"])
        assert args.strength == -2.0

    def test_credit_command(self) -> None:
        args = build_parser().parse_args(["credit", "--user", "alice", "--amount", "25.5"])
        assert args.command == "credit"
        assert args.amount == Decimal("25.5")

    def test_bad_credit_amount_rejected(self) -> None:
        for amount in ("lots", "inf"):
            with pytest.raises(SystemExit):
                build_parser().parse_args(["credit", "--user", "alice", "--amount", amount])
        with pytest.raises(SystemExit):
            build_parser().parse_args(["add-member", "--user", "alice", "--credits", "NaN"])

    def test_bad_motion_type_rejected(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["create-motion", "--id", "x", "--type", "idea", "--author", "a"])


class TestCLIExecution:
    def test_no_command_shows_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 0
        assert "governance" in capsys.readouterr().out

    def test_missing_config_dir_fails(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--config", str(tmp_path), "rescore"]) == 1
        assert "Failed:" in capsys.readouterr().err


@pytest.mark.skipif(shutil.which("git") is None, reason="git binary not available")
class TestCLIEndToEnd:
    @pytest.fixture(autouse=True)
    def remote(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
        for name in _ENV_VARS:
            monkeypatch.setenv(name, "unset")
            monkeypatch.delenv(name)
        path = tmp_path / "community.git"
        monkeypatch.setenv("GOVTREE_STORE_URL", str(path))
        return path

    def test_motion_flow(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["init", "--name", "cli-test", "--create-remote"]) == 0
        assert main(["add-member", "--user", "alice", "--credits", "50"]) == 0
        assert main(["create-motion", "--id", "c1", "--type", "concern", "--author", "alice",
                     "--title", "Slow CI"]) == 0
        capsys.readouterr()

        assert main(["vote", "--id", "c1", "--user", "alice", "--strength", "3"]) == 0
        voted = json.loads(capsys.readouterr().out)
        assert voted["attention"] == 3.0
        assert voted["balance"] == "41"

        assert main(["credit", "--user", "alice", "--amount", "2.5"]) == 0
        assert json.loads(capsys.readouterr().out)["voting_credits"] == "43.5"

        assert main(["list"]) == 0
        assert "c1" in capsys.readouterr().out

        assert main(["close", "--id", "c1"]) == 0
        capsys.readouterr()
        assert main(["show", "--id", "c1"]) == 0
        shown = json.loads(capsys.readouterr().out)
        assert shown["motion"]["closed"] is True
        assert "has been closed" in shown["notice"]["body"]

    def test_failure_exits_nonzero(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["init", "--name", "cli-test", "--create-remote"]) == 0
        assert main(["vote", "--id", "missing", "--user", "alice", "--strength", "1"]) == 1
        assert "Failed:" in capsys.readouterr().err
