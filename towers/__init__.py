"""
Rules engine for TOWERS, a two-player hex-grid tactical wargame.

Core modules:
- hexgrid: Offset hex coordinates, neighbours, distance
- catalog: Unit templates, terrain types, command cards
- combat/: Attack resolution and legality
- logistics: Supply network tracing
- morale: Morale tokens and checks
- turn: Phase and activation state machine
- victory: Terminal conditions
"""

from .catalog import Catalog, UnitTemplate, TerrainType, CommandCard, CardEffect, CardTiming
from .combat import CombatResolver, CombatResult, FieldCombat, Outcome
from .config import GameConfig, MatchFormat, load_config
from .errors import TowersError, ValidationError, InvariantViolation
from .events import EventCategory, EventSink, GameEvent, LoggingEventSink, MemoryEventSink
from .hexgrid import HexPosition, neighbors, distance, is_valid
from .logistics import SupplyNetwork
from .morale import MoraleSystem, MoraleCheckResult
from .state import GameState, Phase, Player, ActiveEffect, create_initial_state, generate_initial_terrain
from .turn import TurnManager
from .units import UnitInstance, DeploymentState
from .victory import VictoryEvaluator, VictoryResult

__all__ = [
    # Hex grid
    "HexPosition", "neighbors", "distance", "is_valid",
    # Catalogs and config
    "Catalog", "UnitTemplate", "TerrainType", "CommandCard", "CardEffect", "CardTiming",
    "GameConfig", "MatchFormat", "load_config",
    # Errors and events
    "TowersError", "ValidationError", "InvariantViolation",
    "EventCategory", "EventSink", "GameEvent", "LoggingEventSink", "MemoryEventSink",
    # State
    "GameState", "Phase", "Player", "ActiveEffect", "UnitInstance", "DeploymentState",
    "create_initial_state", "generate_initial_terrain",
    # Rules
    "CombatResolver", "CombatResult", "FieldCombat", "Outcome",
    "SupplyNetwork", "MoraleSystem", "MoraleCheckResult",
    "TurnManager", "VictoryEvaluator", "VictoryResult",
]
