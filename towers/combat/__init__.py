"""
Combat resolution.

base: dice and the margin -> outcome table; field: modifier stacking and
attack legality for melee and ranged attacks.
"""

from .base import CombatResolver, CombatResult, Outcome
from .field import FieldCombat

__all__ = [
    "CombatResolver",
    "CombatResult",
    "Outcome",
    "FieldCombat",
]
