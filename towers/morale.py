"""
Morale tokens, morale checks, commander death and Skald rally.
"""

import logging
import random
from dataclasses import dataclass
from typing import Optional

from .catalog import Catalog, SHARDBEARER, SKALD
from .config import GameConfig
from .hexgrid import HexPosition, distance, neighbors, positions_within
from .state import GameState
from .units import UnitInstance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MoraleCheckResult:
    """Outcome of one morale check."""
    unit_id: str
    roll: int
    bonus: int
    passed: bool
    retreated_to: Optional[HexPosition] = None
    damage: int = 0

    @property
    def total(self) -> int:
        return self.roll + self.bonus

    def to_dict(self) -> dict:
        return {
            "unit_id": self.unit_id,
            "roll": self.roll,
            "bonus": self.bonus,
            "total": self.total,
            "passed": self.passed,
            "retreated_to": self.retreated_to.key() if self.retreated_to else None,
            "damage": self.damage,
        }


class MoraleSystem:
    """Applies morale rules to game state snapshots."""

    SKALD_RADIUS = 1

    def __init__(
        self,
        catalog: Catalog,
        config: Optional[GameConfig] = None,
        rng: Optional[random.Random] = None,
        rng_seed: Optional[int] = None,
    ):
        self.catalog = catalog
        self.config = config or GameConfig()
        self.rng = rng if rng is not None else random.Random(rng_seed)

    def add_token(self, state: GameState, unit_id: str, count: int = 1) -> GameState:
        """Shardbearers are immune and ignore new tokens."""
        unit = state.unit(unit_id)
        if unit is None or unit.template_id == SHARDBEARER:
            return state
        return state.with_unit(unit.with_tokens(unit.morale_tokens + count))

    def remove_token(self, state: GameState, unit_id: str, count: int = 1) -> GameState:
        unit = state.unit(unit_id)
        if unit is None or unit.morale_tokens == 0:
            return state
        return state.with_unit(unit.with_tokens(unit.morale_tokens - count))

    def perform_check(self, state: GameState, unit_id: str) -> tuple[Optional[MoraleCheckResult], GameState]:
        """
        Roll d6 + floor(defense / 2) against the pass target.

        A failed check retreats the unit when retreat is allowed and a hex
        is available (losing one token); otherwise the unit takes 1 damage.
        Units that are not on the board, or whose template is unknown, are
        not checked.
        """
        unit = state.unit(unit_id)
        if unit is None or not unit.on_board:
            return None, state

        template = self.catalog.template(unit.template_id)
        if template is None:
            return None, state

        roll = self.rng.randint(1, 6)
        bonus = template.defense // 2
        if roll + bonus >= self.config.morale_pass_target:
            return MoraleCheckResult(unit.id, roll, bonus, passed=True), state

        retreat = self.find_retreat_position(unit, state)
        if retreat is not None:
            moved = unit.moved_to(retreat).with_tokens(unit.morale_tokens - 1)
            return (
                MoraleCheckResult(unit.id, roll, bonus, passed=False, retreated_to=retreat),
                state.with_unit(moved),
            )

        return (
            MoraleCheckResult(unit.id, roll, bonus, passed=False, damage=1),
            state.with_unit(unit.damaged(1)),
        )

    def find_retreat_position(self, unit: UnitInstance, state: GameState) -> Optional[HexPosition]:
        """
        The free adjacent hex furthest from the nearest enemy.

        Returns None unless the allow_retreat rule is on, or when no hex
        increases the distance to the nearest enemy.
        """
        if not self.config.allow_retreat or unit.position is None:
            return None

        enemies = [u.position for u in state.board_units() if u.player_id != unit.player_id]
        if not enemies:
            return None

        def nearest_enemy(pos: HexPosition) -> int:
            return min(distance(pos, enemy) for enemy in enemies)

        best = None
        best_distance = nearest_enemy(unit.position)
        for pos in sorted(neighbors(unit.position)):
            if not state.in_bounds(pos) or state.is_occupied(pos):
                continue
            d = nearest_enemy(pos)
            if d > best_distance:
                best, best_distance = pos, d

        return best

    def process_start_of_turn(self, state: GameState, player_id: str) -> tuple[GameState, list[MoraleCheckResult]]:
        """Check every shaken unit of the player; failing units lose their activation."""
        results = []
        shaken = [
            u.id for u in state.units_of(player_id)
            if u.on_board and u.morale_tokens >= self.config.morale_check_threshold
        ]

        for unit_id in sorted(shaken):
            result, state = self.perform_check(state, unit_id)
            if result is None:
                continue
            results.append(result)
            if not result.passed:
                state = state.with_unit(state.units[unit_id].with_activation(True))

        return state, results

    def process_commander_death(self, state: GameState, commander_id: str, position: HexPosition) -> GameState:
        """Every enemy unit near the fallen commander's last position gains a token."""
        commander = state.unit(commander_id)
        if commander is None:
            return state

        radius = self.config.commander_aura_radius
        for pos in positions_within(position, radius, state.board_width, state.board_height):
            unit = state.unit_at(pos)
            if unit and unit.player_id != commander.player_id:
                state = self.add_token(state, unit.id)

        return state

    def process_skald_rally(self, state: GameState, skald_id: str) -> GameState:
        """Adjacent friendly units each lose one token."""
        skald = state.unit(skald_id)
        if skald is None or not skald.on_board or skald.template_id != SKALD:
            return state

        for unit in state.board_units():
            if unit.player_id != skald.player_id or unit.id == skald.id:
                continue
            if distance(skald.position, unit.position) <= self.SKALD_RADIUS:
                state = self.remove_token(state, unit.id)

        return state

    def rally_all(self, state: GameState, player_id: str) -> GameState:
        for unit in sorted(state.units_of(player_id), key=lambda u: u.id):
            if unit.on_board and unit.template_id == SKALD:
                state = self.process_skald_rally(state, unit.id)
        return state

    def boost_around(self, state: GameState, center: HexPosition, player_id: str, radius: int) -> GameState:
        """Remove one token from every friendly unit within radius of center."""
        for pos in positions_within(center, radius, state.board_width, state.board_height):
            unit = state.unit_at(pos)
            if unit and unit.player_id == player_id:
                state = self.remove_token(state, unit.id)
        return state
