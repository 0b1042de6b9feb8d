"""
Static catalogs: unit templates, terrain types and command cards.

Loaded once from YAML under the data directory and never mutated. Lookups
by an unknown id return None so callers can treat a dangling reference as
a no-op.
"""

import logging
import yaml
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from .errors import InvariantViolation

logger = logging.getLogger(__name__)

DEFAULT_DATA_PATH = Path(__file__).parent / "data"

# Template ids with special rules
SHARDBEARER = "shardbearer"
SKALD = "skald"
HEAVY_CAVALRY = "heavy_cavalry"
SPEARMEN = "spearmen"
PIKEMEN = "pikemen"
SIEGE_ENGINE = "siege_engine"

# Terrain ids with special rules
PLAIN = "plain"
HILL = "hill"
FOREST = "forest"
SUPPLY_CAMP = "supply_camp"
FORT = "fort"
CITY = "city"

# Keywords
CAVALRY = "Cavalry"
HEAVY = "Heavy"
INFANTRY = "Infantry"
COMMANDER = "Commander"

BUILD_SUPPLY_CAMP = "build_supply_camp"


class CardEffect(Enum):
    MOVEMENT_BONUS = "movement_bonus"
    ATTACK_BONUS = "attack_bonus"
    DEPLOY_MILITIA = "deploy_militia"
    DEFENSE_BONUS = "defense_bonus"
    AMBUSH_DEPLOY = "ambush_deploy"
    SAVE_UNIT = "save_unit"
    DOUBLE_SHOT = "double_shot"
    FLANK_BONUS = "flank_bonus"
    RANGED_DEFENSE = "ranged_defense"
    MORALE_BOOST = "morale_boost"


class CardTiming(Enum):
    ACTIVATION = "activation"
    REACTION = "reaction"
    ANYTIME = "anytime"


@dataclass(frozen=True)
class UnitTemplate:
    """Unit type definition."""
    id: str
    name: str
    type: str
    cost: int
    move: int
    hp: int
    melee: int
    ranged: int
    defense: int
    supply: int = 1
    size: int = 1
    keywords: frozenset = field(default_factory=frozenset)
    ability: str = ""
    ability_description: str = ""

    def has_keyword(self, keyword: str) -> bool:
        return keyword in self.keywords

    @property
    def is_cavalry(self) -> bool:
        return CAVALRY in self.keywords


@dataclass(frozen=True)
class TerrainType:
    """Terrain type properties."""
    id: str
    name: str
    movement_cost: int = 1
    defense_bonus: int = 0
    ranged_defense_bonus: int = 0
    blocks_los: bool = False
    description: str = ""


@dataclass(frozen=True)
class CommandCard:
    """Command card definition."""
    id: str
    name: str
    cp_cost: int
    effect: CardEffect
    timing: CardTiming = CardTiming.ACTIVATION
    description: str = ""


class Catalog:
    """Read-only lookup tables for templates, terrain and command cards."""

    def __init__(
        self,
        templates: Optional[dict[str, UnitTemplate]] = None,
        terrain: Optional[dict[str, TerrainType]] = None,
        cards: Optional[dict[str, CommandCard]] = None,
    ):
        self._templates = dict(templates or {})
        self._terrain = dict(terrain or {})
        self._cards = dict(cards or {})

        if PLAIN not in self._terrain:
            self._terrain[PLAIN] = TerrainType(id=PLAIN, name="Plain")

    @classmethod
    def load(cls, data_path: Path | str = DEFAULT_DATA_PATH) -> "Catalog":
        """Load all catalogs from YAML files under data_path."""
        data_path = Path(data_path)
        templates = {
            tid: cls._parse_template(tid, info)
            for tid, info in cls._read_yaml(data_path / "units.yaml").items()
        }
        terrain = {
            tid: cls._parse_terrain(tid, info)
            for tid, info in cls._read_yaml(data_path / "terrain.yaml").items()
        }
        cards = {
            cid: cls._parse_card(cid, info)
            for cid, info in cls._read_yaml(data_path / "command_cards.yaml").items()
        }

        logger.info(
            f"Loaded {len(templates)} unit templates, {len(terrain)} terrain types, "
            f"{len(cards)} command cards"
        )
        return cls(templates, terrain, cards)

    @staticmethod
    def _read_yaml(path: Path) -> dict:
        if not path.exists():
            logger.warning(f"Catalog file not found: {path}")
            return {}

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return {key: value for key, value in data.items() if isinstance(value, dict)}

    @staticmethod
    def _parse_template(tid: str, info: dict) -> UnitTemplate:
        return UnitTemplate(
            id=info.get("id", tid),
            name=info.get("name", tid.replace("_", " ").title()),
            type=info.get("type", "Infantry"),
            cost=int(info.get("cost", 0)),
            move=int(info.get("move", 1)),
            hp=int(info.get("hp", 1)),
            melee=int(info.get("melee", 0)),
            ranged=int(info.get("ranged", 0)),
            defense=int(info.get("defense", 0)),
            supply=int(info.get("supply", 1)),
            size=int(info.get("size", 1)),
            keywords=frozenset(info.get("keywords", [])),
            ability=info.get("ability", ""),
            ability_description=info.get("ability_description", ""),
        )

    @staticmethod
    def _parse_terrain(tid: str, info: dict) -> TerrainType:
        return TerrainType(
            id=info.get("id", tid),
            name=info.get("name", tid.replace("_", " ").title()),
            movement_cost=int(info.get("movement_cost", 1)),
            defense_bonus=int(info.get("defense_bonus", 0)),
            ranged_defense_bonus=int(info.get("ranged_defense_bonus", 0)),
            blocks_los=bool(info.get("blocks_los", False)),
            description=info.get("description", ""),
        )

    @staticmethod
    def _parse_card(cid: str, info: dict) -> CommandCard:
        return CommandCard(
            id=info.get("id", cid),
            name=info.get("name", cid.replace("_", " ").title()),
            cp_cost=int(info.get("cp_cost", 0)),
            effect=CardEffect(info["effect"]),
            timing=CardTiming(info.get("timing", "activation")),
            description=info.get("description", ""),
        )

    # Lookups
    def template(self, template_id: str) -> Optional[UnitTemplate]:
        return self._templates.get(template_id)

    def require_template(self, template_id: str) -> UnitTemplate:
        """Template lookup for callers that cannot proceed without one."""
        template = self._templates.get(template_id)
        if template is None:
            raise InvariantViolation(f"Dangling unit template reference: {template_id}")
        return template

    def terrain(self, terrain_id: str) -> Optional[TerrainType]:
        return self._terrain.get(terrain_id)

    def card(self, card_id: str) -> Optional[CommandCard]:
        return self._cards.get(card_id)

    @property
    def templates(self) -> list[UnitTemplate]:
        return list(self._templates.values())

    @property
    def terrain_types(self) -> list[TerrainType]:
        return list(self._terrain.values())

    @property
    def cards(self) -> list[CommandCard]:
        return list(self._cards.values())

    def army_cost(self, template_ids) -> int:
        """Total point cost; unknown ids contribute nothing."""
        total = 0
        for template_id in template_ids:
            template = self.template(template_id)
            if template:
                total += template.cost
        return total
