"""
Base agent interface for TOWERS players.
"""

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from towers.events import EventCategory, EventSink, LoggingEventSink
from towers.hexgrid import HexPosition
from towers.state import GameState
from towers.turn import TurnManager


class ActionKind(Enum):
    DEPLOY = "deploy"
    MOVE = "move"
    ATTACK = "attack"
    PLAY_CARD = "play_card"
    BUILD_CAMP = "build_camp"


@dataclass(frozen=True)
class Action:
    """One intent for the turn manager."""
    kind: ActionKind
    unit_id: str
    position: Optional[HexPosition] = None
    target_id: Optional[str] = None
    card_id: Optional[str] = None

    def apply(self, manager: TurnManager, state: GameState) -> GameState:
        """Run the matching TurnManager operation."""
        if self.kind == ActionKind.DEPLOY:
            return manager.deploy_unit(state, self.unit_id, self.position)
        if self.kind == ActionKind.MOVE:
            return manager.move_unit(state, self.unit_id, self.position)
        if self.kind == ActionKind.ATTACK:
            return manager.execute_combat(state, self.unit_id, self.target_id)
        if self.kind == ActionKind.PLAY_CARD:
            return manager.play_command_card(state, self.card_id, self.unit_id)
        return manager.build_supply_camp(state, self.unit_id, self.position)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "unit_id": self.unit_id,
            "position": self.position.key() if self.position else None,
            "target_id": self.target_id,
            "card_id": self.card_id,
        }


@dataclass
class AgentConfig:
    """Configuration for an agent."""
    player_id: str
    name: str = ""
    seed: Optional[int] = None
    command_cards: list[str] = field(default_factory=list)


class Agent(ABC):
    """Base class for automated players."""

    def __init__(self, config: AgentConfig, events: Optional[EventSink] = None):
        self.config = config
        self.player_id = config.player_id
        self.rng = random.Random(config.seed)
        self.events = events or LoggingEventSink()

    @abstractmethod
    def choose_army(self, manager: TurnManager, state: GameState) -> tuple[list[str], list[str]]:
        """Template ids and command card ids for this player's army."""
        pass

    @abstractmethod
    def choose_deployment(self, manager: TurnManager, state: GameState) -> Optional[Action]:
        """A deploy action during the deployment phase, or None to pass."""
        pass

    @abstractmethod
    def choose_action(self, manager: TurnManager, state: GameState) -> Optional[Action]:
        """The next battle action, or None to end the turn."""
        pass

    def log(self, message: str, payload: Optional[dict] = None):
        self.events.emit(EventCategory.AI, f"[{self.player_id}] {message}", payload)
