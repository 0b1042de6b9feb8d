"""
Supply network for the TOWERS battlefield.

A deployed unit is in supply when a breadth-first trace from its hex,
through empty or friendly-occupied hexes, reaches a supply source:
- a supply camp, fort or city controlled by the player
- any hex in the player's own deployment rows
"""

import logging
from collections import deque

from .catalog import SUPPLY_CAMP, FORT, CITY
from .hexgrid import HexPosition, board_positions, neighbors
from .state import GameState
from .units import UnitInstance

logger = logging.getLogger(__name__)


class SupplyNetwork:
    """Recomputes supply for every unit on the board."""

    SOURCE_TERRAIN = frozenset({SUPPLY_CAMP, FORT, CITY})

    def recompute(self, state: GameState) -> GameState:
        """
        Overwrite in_supply on every unit of every player.

        Units not on the board are marked out of supply; the recompute is
        full, never incremental.
        """
        updates = {}
        for unit in state.units.values():
            in_supply = unit.on_board and self.is_in_supply(unit, state)
            if unit.in_supply != in_supply:
                updates[unit.id] = unit.with_supply(in_supply)

        if updates:
            logger.debug(f"Supply changed for {sorted(updates)}")
        return state.with_units(updates)

    def is_in_supply(self, unit: UnitInstance, state: GameState) -> bool:
        if unit.position is None:
            return False

        visited = {unit.position}
        queue = deque([unit.position])

        while queue:
            current = queue.popleft()
            if self.is_supply_source(current, state, unit.player_id):
                return True

            for pos in neighbors(current):
                if pos in visited or not state.in_bounds(pos):
                    continue
                occupant = state.unit_at(pos)
                if occupant and occupant.player_id != unit.player_id:
                    continue
                visited.add(pos)
                queue.append(pos)

        return False

    def is_supply_source(self, position: HexPosition, state: GameState, player_id: str) -> bool:
        if state.terrain_at(position) in self.SOURCE_TERRAIN:
            if self.is_controlled_by(position, state, player_id):
                return True
        return state.is_in_deployment_zone(position, player_id)

    def is_controlled_by(self, position: HexPosition, state: GameState, player_id: str) -> bool:
        """Occupied by, or adjacent to, a living friendly unit."""
        for pos in [position] + neighbors(position):
            occupant = state.unit_at(pos)
            if occupant and occupant.player_id == player_id:
                return True
        return False

    def get_supply_status(self, state: GameState, player_id: str) -> dict:
        """Summary of a player's supply situation for display."""
        units = [u for u in state.units_of(player_id) if u.on_board]
        sources = [
            pos.key() for pos, terrain_id in sorted(state.terrain.items())
            if terrain_id in self.SOURCE_TERRAIN and self.is_controlled_by(pos, state, player_id)
        ]
        return {
            "player_id": player_id,
            "in_supply": sorted(u.id for u in units if u.in_supply),
            "out_of_supply": sorted(u.id for u in units if not u.in_supply),
            "controlled_sources": sources,
        }

