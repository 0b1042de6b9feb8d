"""
Base combat resolution with dice and the outcome table.
"""

import random
from dataclasses import dataclass, field
from typing import Optional
from enum import Enum


class Outcome(Enum):
    MASSIVE_HIT = "massive-hit"
    HIT = "hit"
    TIE = "tie"
    MISS = "miss"


@dataclass(frozen=True)
class CombatResult:
    """Record of one resolved attack. Appended to the combat log, never mutated."""
    id: str
    attacker_id: str
    defender_id: str
    attacker_value: int
    defender_value: int
    attacker_roll: int
    defender_roll: int
    outcome: Outcome
    damage: int
    morale_gained: int = 0
    special_effects: tuple[str, ...] = field(default_factory=tuple)
    is_ranged: bool = False

    @property
    def margin(self) -> int:
        return (self.attacker_value + self.attacker_roll) - (self.defender_value + self.defender_roll)

    @property
    def damages_attacker(self) -> bool:
        """Misses hurt the attacker (melee recoil); everything else hurts the defender."""
        return self.outcome == Outcome.MISS

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "attacker_id": self.attacker_id,
            "defender_id": self.defender_id,
            "attacker_value": self.attacker_value,
            "defender_value": self.defender_value,
            "attacker_roll": self.attacker_roll,
            "defender_roll": self.defender_roll,
            "result": self.outcome.value,
            "damage": self.damage,
            "morale_gained": self.morale_gained,
            "special_effects": list(self.special_effects),
            "is_ranged": self.is_ranged,
        }


class CombatResolver:
    """Base class for combat resolution."""

    MASSIVE_HIT_MARGIN = 3

    def __init__(self, rng: Optional[random.Random] = None, rng_seed: Optional[int] = None):
        self.rng = rng if rng is not None else random.Random(rng_seed)

    def roll_d6(self) -> int:
        return self.rng.randint(1, 6)

    def determine_outcome(self, margin: int, is_ranged: bool) -> tuple[Outcome, int, int]:
        """Outcome, damage and morale tokens for a combat margin."""
        if margin >= self.MASSIVE_HIT_MARGIN:
            return Outcome.MASSIVE_HIT, 2, 0
        elif margin >= 1:
            return Outcome.HIT, 1, 0
        elif margin == 0:
            return Outcome.TIE, 0, 1
        else:
            # No counterattack at range
            return Outcome.MISS, 0 if is_ranged else 1, 0
