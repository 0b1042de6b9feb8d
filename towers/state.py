"""
Game state aggregate for a TOWERS match.

GameState is an immutable snapshot. Every accepted operation produces a
new snapshot through the copy-on-write helpers below; only the touched
units/players are replaced, untouched entries are shared.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from .catalog import CardEffect, SUPPLY_CAMP, HILL, FOREST, PLAIN
from .combat.base import CombatResult
from .config import GameConfig
from .errors import InvariantViolation
from .hexgrid import HexPosition, is_valid
from .units import UnitInstance

PLAYER_IDS = ("player1", "player2")


class Phase(Enum):
    ARMY_BUILDING = "army-building"
    DEPLOYMENT = "deployment"
    BATTLE = "battle"
    SKIRMISH_END = "skirmish-end"
    MATCH_END = "match-end"


# Every phase must have an entry; MATCH_END is terminal.
PHASE_TRANSITIONS: dict[Phase, frozenset] = {
    Phase.ARMY_BUILDING: frozenset({Phase.DEPLOYMENT}),
    Phase.DEPLOYMENT: frozenset({Phase.BATTLE, Phase.SKIRMISH_END, Phase.MATCH_END}),
    Phase.BATTLE: frozenset({Phase.SKIRMISH_END, Phase.MATCH_END}),
    Phase.SKIRMISH_END: frozenset({Phase.DEPLOYMENT, Phase.MATCH_END}),
    Phase.MATCH_END: frozenset(),
}


def can_transition(current: Phase, target: Phase) -> bool:
    return target in PHASE_TRANSITIONS[current]


def freeze(mapping) -> Mapping:
    """Read-only copy of a mapping."""
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class Player:
    """Per-player match state."""
    id: str
    name: str
    cp: int = 0
    army_list: tuple[str, ...] = ()
    hand: tuple[str, ...] = ()
    deployed_units: int = 0
    max_deployment: int = 5

    @property
    def has_army(self) -> bool:
        return len(self.army_list) > 0

    def with_cp(self, cp: int, max_cp: int) -> "Player":
        return replace(self, cp=max(0, min(max_cp, cp)))

    def without_card(self, card_id: str) -> "Player":
        """Remove one copy of card_id from the hand."""
        hand = list(self.hand)
        hand.remove(card_id)
        return replace(self, hand=tuple(hand))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "cp": self.cp,
            "army_list": list(self.army_list),
            "hand": list(self.hand),
            "deployed_units": self.deployed_units,
            "max_deployment": self.max_deployment,
        }


@dataclass(frozen=True)
class ActiveEffect:
    """A command card effect that outlives the play action."""
    card_id: str
    effect: CardEffect
    player_id: str
    unit_ids: tuple[str, ...]
    value: int
    expires_turn: int  # Removed when this turn ends
    single_use: bool = False

    def applies_to(self, unit_id: str) -> bool:
        return unit_id in self.unit_ids

    def to_dict(self) -> dict:
        return {
            "card_id": self.card_id,
            "effect": self.effect.value,
            "player_id": self.player_id,
            "unit_ids": list(self.unit_ids),
            "value": self.value,
            "expires_turn": self.expires_turn,
            "single_use": self.single_use,
        }


@dataclass(frozen=True)
class GameState:
    """Complete match state snapshot."""
    phase: Phase
    current_player: str
    turn: int
    activations_remaining: int
    board_width: int
    board_height: int
    terrain: Mapping[HexPosition, str]
    units: Mapping[str, UnitInstance]
    players: Mapping[str, Player]
    player_order: tuple[str, ...] = PLAYER_IDS
    deployment_rows: int = 2
    combat_log: tuple[CombatResult, ...] = ()
    active_effects: tuple[ActiveEffect, ...] = ()
    skirmish: int = 1
    match_score: Mapping[str, int] = field(default_factory=dict)
    winner: Optional[str] = None
    victory_reason: str = ""

    def __post_init__(self):
        for name in ("terrain", "units", "players", "match_score"):
            value = getattr(self, name)
            if not isinstance(value, MappingProxyType):
                object.__setattr__(self, name, freeze(value))

    # Lookups
    def unit(self, unit_id: str) -> Optional[UnitInstance]:
        return self.units.get(unit_id)

    def player(self, player_id: str) -> Optional[Player]:
        return self.players.get(player_id)

    def opponent_of(self, player_id: str) -> str:
        for pid in self.player_order:
            if pid != player_id:
                return pid
        raise InvariantViolation(f"No opponent for {player_id}")

    def units_of(self, player_id: str) -> list[UnitInstance]:
        return [u for u in self.units.values() if u.player_id == player_id]

    def board_units(self) -> list[UnitInstance]:
        """Living deployed units."""
        return [u for u in self.units.values() if u.on_board]

    def unit_at(self, position: HexPosition) -> Optional[UnitInstance]:
        """The living unit occupying position, if any."""
        for unit in self.units.values():
            if unit.on_board and unit.position == position:
                return unit
        return None

    def is_occupied(self, position: HexPosition) -> bool:
        return self.unit_at(position) is not None

    def in_bounds(self, position: HexPosition) -> bool:
        return is_valid(position, self.board_width, self.board_height)

    def terrain_at(self, position: HexPosition) -> str:
        return self.terrain.get(position, PLAIN)

    def is_in_deployment_zone(self, position: HexPosition, player_id: str) -> bool:
        """The rows nearest the player's edge: top for the first player, bottom for the second."""
        if not self.in_bounds(position):
            return False
        if self.player_order.index(player_id) == 0:
            return position.r < self.deployment_rows
        return position.r >= self.board_height - self.deployment_rows

    def effects_for(self, unit_id: str, effect: CardEffect) -> list[ActiveEffect]:
        return [e for e in self.active_effects if e.effect == effect and e.applies_to(unit_id)]

    def alive_deployed_count(self, player_id: str) -> int:
        return sum(1 for u in self.units_of(player_id) if u.on_board)

    # Copy-on-write updates
    def evolve(self, **changes) -> "GameState":
        return replace(self, **changes)

    def with_units(self, updates: Mapping[str, UnitInstance]) -> "GameState":
        if not updates:
            return self
        units = dict(self.units)
        units.update(updates)
        return replace(self, units=freeze(units))

    def with_unit(self, unit: UnitInstance) -> "GameState":
        return self.with_units({unit.id: unit})

    def with_player(self, player: Player) -> "GameState":
        players = dict(self.players)
        players[player.id] = player
        return replace(self, players=freeze(players))

    def with_terrain(self, position: HexPosition, terrain_id: str) -> "GameState":
        terrain = dict(self.terrain)
        terrain[position] = terrain_id
        return replace(self, terrain=freeze(terrain))

    def with_phase(self, phase: Phase) -> "GameState":
        if not can_transition(self.phase, phase):
            raise InvariantViolation(f"Illegal phase transition {self.phase.value} -> {phase.value}")
        return replace(self, phase=phase)

    def with_combat(self, result: CombatResult) -> "GameState":
        return replace(self, combat_log=self.combat_log + (result,))

    def with_deployment_counts(self) -> "GameState":
        """Recount living deployed units per player."""
        players = {
            pid: replace(player, deployed_units=self.alive_deployed_count(pid))
            for pid, player in self.players.items()
        }
        return replace(self, players=freeze(players))

    def to_dict(self) -> dict:
        """Plain, JSON-serialisable snapshot for the presentation layer."""
        return {
            "phase": self.phase.value,
            "current_player": self.current_player,
            "turn": self.turn,
            "activations_remaining": self.activations_remaining,
            "board_size": {"width": self.board_width, "height": self.board_height},
            "terrain": {pos.key(): tid for pos, tid in self.terrain.items()},
            "units": {uid: unit.to_dict() for uid, unit in self.units.items()},
            "players": {pid: player.to_dict() for pid, player in self.players.items()},
            "combat_log": [result.to_dict() for result in self.combat_log],
            "active_effects": [effect.to_dict() for effect in self.active_effects],
            "skirmish": self.skirmish,
            "match_score": dict(self.match_score),
            "winner": self.winner,
            "victory_reason": self.victory_reason,
        }


def generate_initial_terrain(width: int, height: int) -> dict[HexPosition, str]:
    """Symmetric starting terrain: central hill, four forests, two supply camps per side."""
    terrain = {}

    terrain[HexPosition(width // 2, height // 2)] = HILL

    terrain[HexPosition(2, 2)] = FOREST
    terrain[HexPosition(width - 3, height - 3)] = FOREST
    terrain[HexPosition(width - 3, 2)] = FOREST
    terrain[HexPosition(2, height - 3)] = FOREST

    # Camps sit one row in from each edge
    for row in (1, height - 2):
        terrain[HexPosition(int(width * 0.25), row)] = SUPPLY_CAMP
        terrain[HexPosition(int(width * 0.75), row)] = SUPPLY_CAMP

    return {pos: tid for pos, tid in terrain.items() if is_valid(pos, width, height)}


def create_initial_state(
    config: Optional[GameConfig] = None,
    player_names: Optional[dict[str, str]] = None,
    terrain: Optional[dict[HexPosition, str]] = None,
) -> GameState:
    """Fresh match in the army-building phase."""
    config = config or GameConfig()
    player_names = player_names or {}

    players = {
        pid: Player(
            id=pid,
            name=player_names.get(pid, f"Player {index + 1}"),
            cp=config.starting_cp,
            max_deployment=config.max_deployment,
        )
        for index, pid in enumerate(PLAYER_IDS)
    }

    if terrain is None:
        terrain = generate_initial_terrain(config.board_width, config.board_height)

    return GameState(
        phase=Phase.ARMY_BUILDING,
        current_player=PLAYER_IDS[0],
        turn=1,
        activations_remaining=config.activations_per_turn,
        board_width=config.board_width,
        board_height=config.board_height,
        terrain=terrain,
        units={},
        players=players,
        player_order=PLAYER_IDS,
        deployment_rows=config.deployment_rows,
        match_score={pid: 0 for pid in PLAYER_IDS},
    )
