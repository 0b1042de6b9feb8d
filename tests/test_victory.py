"""Tests for victory evaluation and best-of-three skirmish flow."""

import pytest

from conftest import make_state, place, reserve
from towers.config import GameConfig, MatchFormat
from towers.errors import ValidationError
from towers.hexgrid import HexPosition
from towers.state import Phase
from towers.turn import TurnManager
from towers.units import DeploymentState
from towers.victory import VictoryEvaluator


def eliminated(state, *unit_ids):
    for unit_id in unit_ids:
        state = state.with_unit(state.units[unit_id].killed())
    return state.with_deployment_counts()


@pytest.fixture
def skirmish():
    """player1's only unit is dead; player2 still has one on the board."""
    state = make_state()
    state = place(state, "p1_unit", "brute", "player1", 4, 1)
    state = place(state, "p2_unit", "brute", "player2", 4, 6)
    return eliminated(state, "p1_unit")


@pytest.fixture
def best_of_three(catalog, rng, events):
    return TurnManager(catalog, GameConfig(match_format=MatchFormat.BEST_OF_THREE), rng=rng, events=events)


def test_no_result_while_both_sides_fight():
    state = place(make_state(), "a", "brute", "player1", 4, 1)
    state = place(state, "b", "brute", "player2", 4, 6)
    assert VictoryEvaluator().evaluate(state) is None


def test_reserve_units_keep_a_player_alive(skirmish):
    state = reserve(skirmish, "spare", "militia", "player1")
    assert VictoryEvaluator().evaluate(state) is None


def test_mutual_elimination_has_no_winner(skirmish):
    assert VictoryEvaluator().evaluate(eliminated(skirmish, "p2_unit")) is None


def test_not_evaluated_outside_play(skirmish):
    assert VictoryEvaluator().evaluate(skirmish.evolve(phase=Phase.ARMY_BUILDING)) is None


def test_single_battle_ends_the_match(manager, skirmish):
    state = manager.check_victory(skirmish)

    assert state.phase == Phase.MATCH_END
    assert state.winner == "player2"
    assert state.victory_reason == "Player 1 has no remaining units"


def test_check_victory_is_a_no_op_mid_fight(manager):
    state = place(make_state(), "a", "brute", "player1", 4, 1)
    state = place(state, "b", "brute", "player2", 4, 6)
    assert manager.check_victory(state) is state


def test_best_of_three(best_of_three, skirmish):
    manager = best_of_three

    state = manager.check_victory(skirmish)
    assert state.phase == Phase.SKIRMISH_END
    assert state.winner is None
    assert dict(state.match_score) == {"player1": 0, "player2": 1}

    state = manager.start_next_skirmish(state)
    assert state.phase == Phase.DEPLOYMENT
    assert state.skirmish == 2
    assert state.turn == 1
    assert state.current_player == "player1"
    assert state.victory_reason == ""
    assert all(u.deployment == DeploymentState.RESERVE for u in state.units.values())
    assert state.units["p1_unit"].current_hp == 4
    assert state.players["player1"].cp == 4

    state = eliminated(manager.deploy_unit(state, "p1_unit", HexPosition(0, 0)), "p1_unit")
    state = manager.check_victory(state)

    assert state.phase == Phase.MATCH_END
    assert state.winner == "player2"
    assert state.victory_reason == "Player 2 won 2 skirmishes"
    assert dict(state.match_score) == {"player1": 0, "player2": 2}


def test_next_skirmish_requires_a_finished_skirmish(best_of_three, skirmish):
    with pytest.raises(ValidationError, match="Not allowed during battle"):
        best_of_three.start_next_skirmish(skirmish)

