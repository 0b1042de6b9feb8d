"""
Rules configuration.

All rules constants live in GameConfig; a YAML rules file may override any
of them.
"""

import logging
import yaml
from dataclasses import dataclass, fields, replace
from enum import Enum
from pathlib import Path

from .catalog import DEFAULT_DATA_PATH

logger = logging.getLogger(__name__)

DEFAULT_RULES_PATH = DEFAULT_DATA_PATH / "rules.yaml"


class MatchFormat(Enum):
    SINGLE_BATTLE = "single_battle"
    BEST_OF_THREE = "best_of_three"


@dataclass(frozen=True)
class GameConfig:
    """Rules constants for one match."""
    point_limit: int = 100
    max_command_cards: int = 5
    cp_per_turn: int = 4
    max_cp: int = 6
    starting_cp: int = 4
    activations_per_turn: int = 3
    board_width: int = 10
    board_height: int = 8
    max_deployment: int = 5
    deployment_rows: int = 2
    match_format: MatchFormat = MatchFormat.SINGLE_BATTLE
    skirmishes_to_win: int = 2
    line_of_sight: bool = False  # Enforce LOS-blocking terrain for ranged attacks
    allow_retreat: bool = False  # Failed morale checks may retreat instead of taking damage
    morale_check_threshold: int = 3
    morale_pass_target: int = 4
    commander_aura_radius: int = 3
    max_turns: int = 60

    @classmethod
    def from_dict(cls, data: dict) -> "GameConfig":
        """Build a config from a plain mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}
        if "match_format" in values:
            values["match_format"] = MatchFormat(values["match_format"])
        return cls(**values)

    def with_overrides(self, **overrides) -> "GameConfig":
        return replace(self, **overrides)


def load_config(path: Path | str = DEFAULT_RULES_PATH) -> GameConfig:
    """Load rules from a YAML file; missing file means defaults."""
    path = Path(path)
    if not path.exists():
        logger.warning(f"Rules file not found, using defaults: {path}")
        return GameConfig()

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    config = GameConfig.from_dict(data)
    logger.info(f"Loaded rules from {path} ({config.match_format.value})")
    return config
