"""Tests for the tally engine — proves winners, refunds and rewards."""

from decimal import Decimal

import pytest

from govtree.ballot.kernels import ProposalApprovalKernel, QVKernel
from govtree.ballot.tally import TallyEngine
from govtree.models.ballot import AcceptedElections, Ad, Conclusion, KernelState
from govtree.persistence import records


@pytest.fixture
def engine() -> TallyEngine:
    return TallyEngine()


def _make_ad(choices: tuple[str, ...] = ("a", "b")) -> Ad:
    return Ad(namespace="test/poll", title="Poll", choices=choices)


def _evaluate(
    engine: TallyEngine,
    elections: dict[str, dict[str, float]],
    advanced: dict[str, float],
    conclusion: Conclusion,
    choices: tuple[str, ...] = ("a", "b"),
    bounty: float = 0.0,
    multiplier: float = 1.0,
):
    return engine.evaluate(
        QVKernel(),
        _make_ad(choices),
        KernelState(inverse_cost_multiplier=multiplier, bounty=bounty),
        AcceptedElections(elections=elections),
        {voter: Decimal(str(credits)) for voter, credits in advanced.items()},
        conclusion,
    )


class TestSingleVoterScenario:
    def test_one_vote_for_a(self, engine: TallyEngine) -> None:
        outcome = _evaluate(engine, {"alice": {"a": 1.0}}, {"alice": 1.0}, Conclusion.CLOSED)
        assert outcome.scores["a"] > 0
        assert outcome.scores["b"] == 0
        assert outcome.winner == "a"
        assert outcome.refunded == {}
        scored = QVKernel().score(
            _make_ad(), KernelState(), AcceptedElections(elections={"alice": {"a": 1.0}}),
        )
        assert scored.consumed("alice") == 1.0

    def test_every_choice_reported(self, engine: TallyEngine) -> None:
        outcome = _evaluate(engine, {}, {}, Conclusion.OPEN, choices=("x", "y", "z"))
        assert outcome.scores == {"x": 0.0, "y": 0.0, "z": 0.0}
        assert outcome.winner is None


class TestWinner:
    def test_highest_positive_wins(self) -> None:
        assert TallyEngine.pick_winner({"a": 1.0, "b": 3.0, "c": 2.0}) == "b"

    def test_tie_goes_to_smallest_choice(self) -> None:
        assert TallyEngine.pick_winner({"b": 2.0, "a": 2.0, "c": 1.0}) == "a"

    def test_no_positive_score_no_winner(self) -> None:
        assert TallyEngine.pick_winner({"a": 0.0, "b": -1.0}) is None

    def test_open_tally_has_no_winner(self, engine: TallyEngine) -> None:
        outcome = _evaluate(engine, {"alice": {"a": 1.0}}, {"alice": 1.0}, Conclusion.OPEN)
        assert outcome.winner is None

    def test_tie_in_full_tally(self, engine: TallyEngine) -> None:
        outcome = _evaluate(
            engine,
            {"alice": {"b": 2.0}, "bob": {"a": 2.0}},
            {"alice": 4.0, "bob": 4.0},
            Conclusion.CLOSED,
        )
        assert outcome.winner == "a"


class TestRefunds:
    def test_cancel_refunds_unspent_remainder_exactly(self, engine: TallyEngine) -> None:
        # alice paid 9 for strength 3, then lowered to 1 (cost 1)
        outcome = _evaluate(engine, {"alice": {"a": 1.0}}, {"alice": 9.0}, Conclusion.CANCELLED)
        assert outcome.refunded == {"alice": 8.0}
        assert outcome.rewarded == {}
        assert outcome.winner is None

    def test_cancel_with_nothing_unspent_refunds_nothing(self, engine: TallyEngine) -> None:
        outcome = _evaluate(engine, {"alice": {"a": 2.0}}, {"alice": 4.0}, Conclusion.CANCELLED)
        assert outcome.refunded == {}

    def test_voter_without_accepted_elections_gets_everything_back(self, engine: TallyEngine) -> None:
        outcome = _evaluate(engine, {}, {"mallory": 4.0}, Conclusion.CLOSED)
        assert outcome.refunded == {"mallory": 4.0}

    def test_fractional_refund_is_exact(self, engine: TallyEngine) -> None:
        # strength 1.5 at multiplier 2.5 cost 0.9, lowered to 0.5 (cost 0.1)
        outcome = _evaluate(
            engine, {"alice": {"a": 0.5}}, {"alice": 0.9}, Conclusion.CANCELLED, multiplier=2.5,
        )
        assert outcome.refunded == {"alice": Decimal("0.8")}
        assert isinstance(outcome.refunded["alice"], Decimal)

    def test_open_tally_refunds_nothing(self, engine: TallyEngine) -> None:
        outcome = _evaluate(engine, {"alice": {"a": 1.0}}, {"alice": 9.0}, Conclusion.OPEN)
        assert outcome.refunded == {}


class TestRewards:
    def test_bounty_split_by_contribution_to_winner(self, engine: TallyEngine) -> None:
        outcome = _evaluate(
            engine,
            {"alice": {"a": 3.0}, "bob": {"a": 1.0}, "carol": {"b": 2.0}},
            {"alice": 9.0, "bob": 1.0, "carol": 4.0},
            Conclusion.CLOSED,
            bounty=8.0,
        )
        assert outcome.winner == "a"
        assert outcome.rewarded == {"alice": 6.0, "bob": 2.0}

    def test_opposing_voters_get_nothing(self, engine: TallyEngine) -> None:
        outcome = _evaluate(
            engine,
            {"alice": {"a": 2.0}, "bob": {"a": -1.0}},
            {"alice": 4.0, "bob": 1.0},
            Conclusion.CLOSED,
            bounty=10.0,
        )
        assert outcome.rewarded == {"alice": 10.0}

    def test_no_bounty_no_rewards(self, engine: TallyEngine) -> None:
        outcome = _evaluate(engine, {"alice": {"a": 1.0}}, {"alice": 1.0}, Conclusion.CLOSED)
        assert outcome.rewarded == {}

    def test_cancelled_ballot_pays_no_rewards(self, engine: TallyEngine) -> None:
        outcome = _evaluate(
            engine, {"alice": {"a": 1.0}}, {"alice": 1.0}, Conclusion.CANCELLED, bounty=5.0,
        )
        assert outcome.rewarded == {}


class TestDeterminism:
    def test_same_inputs_same_outcome(self, engine: TallyEngine) -> None:
        elections = {"carol": {"b": 1.5}, "alice": {"a": 0.1, "b": 0.2}, "bob": {"a": 0.7}}
        advanced = {"alice": 1.0, "bob": 1.0, "carol": 3.0}
        first = _evaluate(engine, elections, advanced, Conclusion.CLOSED, bounty=3.0)
        second = _evaluate(engine, dict(reversed(list(elections.items()))), advanced,
                           Conclusion.CLOSED, bounty=3.0)
        assert first == second

    def test_outcome_round_trip(self, engine: TallyEngine) -> None:
        outcome = engine.evaluate(
            ProposalApprovalKernel(),
            _make_ad(("approve",)),
            KernelState(bounty=4.0),
            AcceptedElections(elections={"alice": {"approve": 2.0}, "bob": {"approve": -1.0}}),
            {"alice": Decimal("5"), "bob": Decimal("1")},
            Conclusion.CLOSED,
        )
        restored = records.outcome_from_dict(records.outcome_to_dict(outcome))
        assert restored == outcome
        assert restored.scores == outcome.scores
        assert restored.scores_by_user == outcome.scores_by_user
        assert restored.refunded == {"alice": 1.0}
        assert restored.rewarded == {"alice": 4.0}
        assert "reward" in restored.margin.calculators
