"""Tests for the turn manager: phases, deployment, actions and invariants."""

import pytest

from conftest import make_state, place, reserve
from towers.errors import ValidationError
from towers.events import EventCategory
from towers.hexgrid import HexPosition
from towers.state import Phase
from towers.units import DeploymentState


def with_armies(manager, player1=("militia", "brute"), player2=("militia", "brute")):
    state = manager.new_game()
    state = manager.build_army(state, "player1", list(player1))
    return manager.build_army(state, "player2", list(player2))


def battle(*placements, **state_changes):
    """Battle-phase state with (unit_id, template_id, player_id, q, r) placements."""
    state = make_state()
    for unit_id, template_id, player_id, q, r in placements:
        state = place(state, unit_id, template_id, player_id, q, r)
    if state_changes:
        state = state.evolve(**state_changes)
    return state


# --- Army building ---


def test_army_over_point_limit_is_rejected(manager, events):
    state = manager.new_game()
    army = ["shardbearer"] * 4 + ["militia"] * 2

    with pytest.raises(ValidationError) as exc:
        manager.build_army(state, "player1", army)

    assert exc.value.reason == "Army exceeds point limit: 104/100"
    assert not state.players["player1"].has_army
    assert events.by_category(EventCategory.VALIDATION)


@pytest.mark.parametrize("army, reason", [
    ([], "Army must contain at least one unit"),
    (["militia", "dragon"], "Unknown unit template: dragon"),
])
def test_invalid_armies(manager, army, reason):
    with pytest.raises(ValidationError, match=reason):
        manager.build_army(manager.new_game(), "player1", army)


def test_too_many_command_cards(manager):
    with pytest.raises(ValidationError, match="Too many command cards"):
        manager.build_army(manager.new_game(), "player1", ["militia"], ["battle_cry"] * 6)


def test_armies_open_deployment(manager):
    state = manager.new_game()
    state = manager.build_army(state, "player1", ["militia", "archers"], ["rapid_march"])
    assert state.phase == Phase.ARMY_BUILDING

    with pytest.raises(ValidationError, match="already built an army"):
        manager.build_army(state, "player1", ["militia"])

    state = manager.build_army(state, "player2", ["spearmen"])

    assert state.phase == Phase.DEPLOYMENT
    assert state.current_player == "player1"
    assert state.players["player1"].hand == ("rapid_march",)
    assert sorted(u.id for u in state.units_of("player1")) == ["player1_archers_1", "player1_militia_0"]
    assert all(u.is_in_reserve for u in state.units.values())
    assert state.units["player2_spearmen_0"].current_hp == 3


# --- Deployment ---


def test_deploy_into_own_zone(manager):
    state = with_armies(manager)
    state = manager.deploy_unit(state, "player1_militia_0", HexPosition(0, 0))

    unit = state.units["player1_militia_0"]
    assert unit.is_deployed
    assert unit.position == HexPosition(0, 0)
    assert not unit.activated
    assert state.players["player1"].deployed_units == 1


def test_deploy_rejections(manager):
    state = with_armies(manager)
    state = manager.deploy_unit(state, "player1_militia_0", HexPosition(0, 0))

    with pytest.raises(ValidationError, match="Position not in deployment zone"):
        manager.deploy_unit(state, "player1_brute_1", HexPosition(0, 5))
    with pytest.raises(ValidationError, match="Position occupied by a living unit"):
        manager.deploy_unit(state, "player1_brute_1", HexPosition(0, 0))
    with pytest.raises(ValidationError, match="Not your turn to deploy"):
        manager.deploy_unit(state, "player2_brute_1", HexPosition(0, 7))
    with pytest.raises(ValidationError, match="Unit is not in reserve"):
        manager.deploy_unit(state, "player1_militia_0", HexPosition(1, 0))
    with pytest.raises(ValidationError, match="Unit not found: nobody"):
        manager.deploy_unit(state, "nobody", HexPosition(1, 0))


def test_deployment_cap(manager):
    state = with_armies(manager, player1=["militia"] * 6)
    for index in range(5):
        state = manager.deploy_unit(state, f"player1_militia_{index}", HexPosition(index, 0))

    with pytest.raises(ValidationError, match=r"Maximum deployment reached \(5 units\)"):
        manager.deploy_unit(state, "player1_militia_5", HexPosition(5, 0))


def test_hex_of_a_fallen_unit_can_be_reused(manager):
    state = make_state(phase=Phase.DEPLOYMENT)
    state = place(state, "fallen", "brute", "player1", 0, 0, current_hp=0)
    state = reserve(state, "fresh", "brute", "player1")

    state = manager.deploy_unit(state, "fresh", HexPosition(0, 0))

    assert state.units["fresh"].position == HexPosition(0, 0)
    assert state.units["fallen"].deployment == DeploymentState.DEAD
    assert state.units["fallen"].position is None


def test_deploy_during_battle_costs_an_activation(manager):
    state = reserve(battle(("enemy", "brute", "player2", 4, 6)), "late", "brute", "player1")
    state = manager.deploy_unit(state, "late", HexPosition(3, 1))

    assert state.units["late"].activated
    assert state.activations_remaining == 2


def test_undeploy_returns_unit_to_reserve(manager):
    state = with_armies(manager)
    state = manager.deploy_unit(state, "player1_militia_0", HexPosition(0, 0))
    state = manager.undeploy_unit(state, "player1_militia_0")

    assert state.units["player1_militia_0"].is_in_reserve
    assert state.units["player1_militia_0"].position is None
    assert state.players["player1"].deployed_units == 0


def test_pass_and_start_battle(manager):
    state = with_armies(manager)
    state = manager.deploy_unit(state, "player1_militia_0", HexPosition(0, 0))

    state = manager.pass_deployment(state)
    assert state.current_player == "player2"
    state = manager.deploy_unit(state, "player2_militia_0", HexPosition(0, 7))

    state = manager.start_battle_phase(state)

    assert state.phase == Phase.BATTLE
    assert state.activations_remaining == 3


def test_battle_starts_with_one_side_in_reserve(manager):
    state = make_state(phase=Phase.DEPLOYMENT)
    state = place(state, "front", "brute", "player1", 4, 1)
    state = reserve(state, "held", "brute", "player2")

    state = manager.start_battle_phase(state)
    assert state.phase == Phase.BATTLE
    assert state.units["held"].is_in_reserve

    state = manager.end_turn(state)
    state = manager.deploy_unit(state, "held", HexPosition(4, 7))

    assert state.units["held"].position == HexPosition(4, 7)
    assert state.units["held"].activated
    assert state.activations_remaining == 2


# --- Movement ---


def test_move_within_range(manager, events):
    state = battle(("a", "brute", "player1", 4, 4), ("b", "brute", "player2", 8, 7))
    state = manager.move_unit(state, "a", HexPosition(4, 6))

    assert state.units["a"].position == HexPosition(4, 6)
    assert state.units["a"].activated
    assert state.activations_remaining == 2
    assert events.by_category(EventCategory.MOVEMENT)[-1].payload == {"unit_id": "a", "from": "4,4", "to": "4,6"}

    with pytest.raises(ValidationError, match="Unit has already activated this turn"):
        manager.move_unit(state, "a", HexPosition(4, 5))


def test_move_rejections(manager):
    state = battle(("a", "brute", "player1", 4, 4), ("b", "brute", "player2", 4, 5))

    with pytest.raises(ValidationError, match="Target position out of movement range"):
        manager.move_unit(state, "a", HexPosition(4, 7))
    with pytest.raises(ValidationError, match="Target position is occupied"):
        manager.move_unit(state, "a", HexPosition(4, 5))
    with pytest.raises(ValidationError, match="Not your unit"):
        manager.move_unit(state, "b", HexPosition(4, 6))
    with pytest.raises(ValidationError, match="off the board"):
        manager.move_unit(state, "a", HexPosition(4, -1))

    spent = state.evolve(activations_remaining=0)
    with pytest.raises(ValidationError, match="No activations remaining"):
        manager.move_unit(spent, "a", HexPosition(4, 3))


def test_operations_outside_their_phase(manager):
    state = with_armies(manager)
    with pytest.raises(ValidationError, match="Not allowed during deployment"):
        manager.move_unit(state, "player1_militia_0", HexPosition(0, 0))
    with pytest.raises(ValidationError, match="Not allowed during deployment"):
        manager.end_turn(state)


def test_missing_template_is_surfaced_as_rejection(manager, events):
    state = battle(("ghost", "ghost", "player1", 4, 4), ("b", "brute", "player2", 8, 7))

    with pytest.raises(ValidationError, match="Internal error"):
        manager.move_unit(state, "ghost", HexPosition(4, 5))

    assert events.by_category(EventCategory.ERROR)


def test_inconsistent_snapshot_is_refused(manager):
    state = battle(("a", "brute", "player1", 4, 4), ("b", "brute", "player2", 4, 4))
    with pytest.raises(ValidationError, match="share 4,4"):
        manager.end_turn(state)


# --- Combat ---


def test_combat_applies_damage_and_logs(manager, rng, events):
    state = battle(("a", "brute", "player1", 4, 3), ("d", "brute", "player2", 4, 4))
    rng.push(4, 1)

    after = manager.execute_combat(state, "a", "d")

    assert after.units["d"].current_hp == 2
    assert after.units["a"].activated
    assert after.activations_remaining == 2
    assert [r.id for r in after.combat_log] == ["combat_1"]
    assert events.by_category(EventCategory.COMBAT)[-1].payload["result"] == "massive-hit"
    assert state.combat_log == ()


def test_melee_miss_damages_attacker(manager, rng):
    state = battle(("a", "brute", "player1", 4, 3), ("d", "brute", "player2", 4, 4))
    rng.push(1, 6)

    after = manager.execute_combat(state, "a", "d")

    assert after.units["a"].current_hp == 3
    assert after.units["d"].current_hp == 4


def test_tie_shakes_both_units(manager, rng):
    state = battle(("a", "brute", "player1", 4, 3), ("d", "brute", "player2", 4, 4))
    rng.push(3, 3)

    after = manager.execute_combat(state, "a", "d")

    assert after.units["a"].morale_tokens == 1
    assert after.units["d"].morale_tokens == 1


def test_manager_attacks_without_charge_bonus(manager, rng):
    state = battle(("cav", "light_cavalry", "player1", 4, 3), ("d", "brute", "player2", 4, 4))
    rng.push(3, 3)

    after = manager.execute_combat(state, "cav", "d")

    assert after.combat_log[-1].attacker_value == 3


def test_killing_a_commander_shakes_nearby_enemies(manager, rng):
    state = battle(
        ("a", "brute", "player1", 4, 3),
        ("far", "brute", "player1", 9, 0),
        ("cmd", "commander", "player2", 4, 4),
    )
    state = place(state, "cmd", "commander", "player2", 4, 4, current_hp=1)
    rng.push(1, 1)

    after = manager.execute_combat(state, "a", "cmd")

    assert after.units["cmd"].deployment == DeploymentState.DEAD
    assert after.units["cmd"].position is None
    assert after.units["a"].morale_tokens == 1
    assert after.units["far"].morale_tokens == 0
    assert after.players["player2"].deployed_units == 0


def test_illegal_attacks(manager):
    state = battle(
        ("a", "brute", "player1", 4, 3),
        ("friend", "brute", "player1", 3, 4),
        ("far", "brute", "player2", 4, 7),
    )
    with pytest.raises(ValidationError, match="Cannot attack a friendly unit"):
        manager.execute_combat(state, "a", "friend")
    with pytest.raises(ValidationError, match="Target out of range"):
        manager.execute_combat(state, "a", "far")


# --- End of turn ---


def test_end_turn_hands_over(manager, events):
    state = battle(
        ("a", "brute", "player1", 4, 1),
        ("b", "brute", "player2", 4, 6),
        activations_remaining=1,
    )
    state = place(state, "a", "brute", "player1", 4, 1, activated=True, in_supply=False)
    state = place(state, "b", "brute", "player2", 4, 6, activated=True)

    after = manager.end_turn(state)

    assert after.current_player == "player2"
    assert after.turn == 2
    assert after.activations_remaining == 3
    assert after.players["player2"].cp == 6
    assert not after.units["b"].activated
    assert after.units["a"].activated
    assert after.units["a"].morale_tokens == 1
    assert events.by_category(EventCategory.STATE_CHANGE)


def test_start_of_turn_morale_checks_run_for_next_player(manager, rng):
    state = battle(("a", "brute", "player1", 4, 1), ("b", "brute", "player2", 4, 6))
    state = place(state, "b", "brute", "player2", 4, 6, morale_tokens=3)
    rng.push(1)

    after = manager.end_turn(state)

    assert after.units["b"].activated
    assert after.units["b"].current_hp == 3


# --- Supply camps ---


def test_engineer_builds_supply_camp(manager):
    state = battle(("eng", "engineer", "player1", 4, 4), ("b", "brute", "player2", 8, 7))
    state = manager.build_supply_camp(state, "eng", HexPosition(4, 3))

    assert state.terrain_at(HexPosition(4, 3)) == "supply_camp"
    assert state.units["eng"].activated
    assert state.activations_remaining == 2


def test_supply_camp_rejections(manager):
    state = battle(
        ("eng", "engineer", "player1", 4, 4),
        ("brute", "brute", "player1", 6, 4),
        ("b", "brute", "player2", 4, 5),
    )
    state = state.with_terrain(HexPosition(4, 3), "hill")

    with pytest.raises(ValidationError, match="Only engineers can build supply camps"):
        manager.build_supply_camp(state, "brute", HexPosition(6, 3))
    with pytest.raises(ValidationError, match="must be adjacent"):
        manager.build_supply_camp(state, "eng", HexPosition(4, 6))
    with pytest.raises(ValidationError, match="Position is occupied"):
        manager.build_supply_camp(state, "eng", HexPosition(4, 5))
    with pytest.raises(ValidationError, match="only be built on plain terrain"):
        manager.build_supply_camp(state, "eng", HexPosition(4, 3))


# --- Queries ---


def test_deployment_zone(manager):
    state = manager.new_game()
    zone = manager.deployment_zone(state, "player2")
    assert len(zone) == 20
    assert {pos.r for pos in zone} == {6, 7}


def test_valid_moves_and_targets(manager):
    state = battle(("a", "brute", "player1", 4, 4), ("b", "brute", "player2", 4, 5))

    moves = manager.valid_moves(state, "a")
    assert len(moves) == 17
    assert HexPosition(4, 5) not in moves
    assert HexPosition(4, 4) not in moves

    assert manager.valid_targets(state, "a") == ["b"]
    assert manager.valid_targets(state, "b") == []
    assert manager.valid_moves(state, "b") == []
