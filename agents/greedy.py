"""
Greedy heuristic agent.

Attacks the weakest enemy it can reach, otherwise closes distance,
otherwise brings reserves onto the board.
"""

from typing import Optional

from towers.hexgrid import HexPosition, distance
from towers.state import GameState
from towers.turn import TurnManager
from towers.units import UnitInstance

from .base import Agent, AgentConfig, Action, ActionKind


class GreedyAgent(Agent):
    """Deterministic for a given seed."""

    @classmethod
    def create_default(cls, player_id: str, seed: Optional[int] = None, events=None) -> "GreedyAgent":
        config = AgentConfig(player_id=player_id, name=f"Greedy {player_id}", seed=seed)
        return cls(config, events)

    def choose_army(self, manager: TurnManager, state: GameState) -> tuple[list[str], list[str]]:
        """Random affordable templates until the budget runs out."""
        budget = manager.config.point_limit
        templates = sorted(manager.catalog.templates, key=lambda t: t.id)
        army = []

        while True:
            affordable = [t for t in templates if 0 < t.cost <= budget]
            if not affordable:
                break
            choice = self.rng.choice(affordable)
            army.append(choice.id)
            budget -= choice.cost

        cards = self.config.command_cards
        if not cards:
            card_ids = sorted(c.id for c in manager.catalog.cards)
            count = min(manager.config.max_command_cards, len(card_ids))
            cards = self.rng.sample(card_ids, count)

        self.log("Army chosen", {"units": army, "cards": list(cards)})
        return army, list(cards)

    def choose_deployment(self, manager: TurnManager, state: GameState) -> Optional[Action]:
        player = state.players[self.player_id]
        if state.alive_deployed_count(self.player_id) >= player.max_deployment:
            return None
        return self._deploy_action(manager, state)

    def choose_action(self, manager: TurnManager, state: GameState) -> Optional[Action]:
        if state.activations_remaining <= 0:
            return None

        action = self._best_attack(manager, state) or self._best_move(manager, state)
        if action is None:
            action = self._deploy_action(manager, state)

        if action:
            self.log(f"Chose {action.kind.value}", action.to_dict())
        return action

    def _ready_units(self, state: GameState) -> list[UnitInstance]:
        return sorted(
            (u for u in state.units_of(self.player_id) if u.on_board and not u.activated),
            key=lambda u: u.id,
        )

    def _enemies(self, state: GameState) -> list[UnitInstance]:
        return [u for u in state.board_units() if u.player_id != self.player_id]

    def _best_attack(self, manager: TurnManager, state: GameState) -> Optional[Action]:
        best = None
        for unit in self._ready_units(state):
            for target_id in manager.valid_targets(state, unit.id):
                target = state.units[target_id]
                key = (target.current_hp, target.id, unit.id)
                if best is None or key < best[0]:
                    best = (key, unit.id, target_id)

        if best is None:
            return None
        return Action(ActionKind.ATTACK, best[1], target_id=best[2])

    def _best_move(self, manager: TurnManager, state: GameState) -> Optional[Action]:
        enemies = self._enemies(state)
        if not enemies:
            return None

        def average_distance(pos: HexPosition) -> float:
            return sum(distance(pos, e.position) for e in enemies) / len(enemies)

        best = None
        for unit in self._ready_units(state):
            current = average_distance(unit.position)
            for pos in manager.valid_moves(state, unit.id):
                score = average_distance(pos)
                if score >= current:
                    continue
                key = (score, unit.id, pos)
                if best is None or key < best[0]:
                    best = (key, unit.id, pos)

        if best is None:
            return None
        return Action(ActionKind.MOVE, best[1], position=best[2])

    def _deploy_action(self, manager: TurnManager, state: GameState) -> Optional[Action]:
        reserves = sorted(
            (u for u in state.units_of(self.player_id) if u.is_in_reserve and u.is_alive),
            key=lambda u: u.id,
        )
        if not reserves:
            return None

        free = [pos for pos in manager.deployment_zone(state, self.player_id) if not state.is_occupied(pos)]
        if not free:
            return None

        # Front rows first: closest to the middle of the board
        middle = (state.board_height - 1) / 2
        free.sort(key=lambda pos: (abs(pos.r - middle), abs(pos.q - state.board_width // 2), pos))
        return Action(ActionKind.DEPLOY, reserves[0].id, position=free[0])
