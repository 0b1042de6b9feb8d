"""
Field combat - melee and ranged attacks between deployed units.

Handles:
- Attack/defense value stacking (charge, flank, terrain, supply, anti-cavalry)
- Elite special cases (Shardbearer ties and knockback, heavy cavalry flank damage)
- Range and line-of-sight legality
"""

from typing import TYPE_CHECKING, Optional

from .base import CombatResolver, CombatResult, Outcome
from ..catalog import Catalog, HEAVY, HILL, SHARDBEARER, HEAVY_CAVALRY, SPEARMEN, PIKEMEN, SIEGE_ENGINE
from ..hexgrid import distance, hex_line, neighbors
from ..units import UnitInstance

if TYPE_CHECKING:
    from ..state import GameState


class FieldCombat(CombatResolver):
    """Resolves one attack between two deployed units."""

    CHARGE_MIN_DISTANCE = 2
    CHARGE_BONUS = 2
    HEAVY_CHARGE_BONUS = 3

    FLANK_THRESHOLD = 2
    FLANK_BONUS = 2

    HILL_RANGED_BONUS = 1
    POINT_BLANK_PENALTY = 1
    OUT_OF_SUPPLY_PENALTY = 2

    # Defender template id -> bonus against cavalry
    ANTI_CAVALRY = {
        SPEARMEN: 1,
        PIKEMEN: 2,  # Pike wall
    }

    DEFAULT_MAX_RANGE = 2
    MAX_RANGE = {
        SIEGE_ENGINE: 3,
    }

    def __init__(self, catalog: Catalog, rng=None, rng_seed: Optional[int] = None, line_of_sight: bool = False):
        super().__init__(rng=rng, rng_seed=rng_seed)
        self.catalog = catalog
        self.line_of_sight = line_of_sight

    def is_flanked(self, unit: UnitInstance, state: "GameState") -> bool:
        """Two or more living enemy units in the six surrounding hexes."""
        if unit.position is None:
            return False

        enemies = 0
        for pos in neighbors(unit.position):
            occupant = state.unit_at(pos)
            if occupant and occupant.player_id != unit.player_id:
                enemies += 1
        return enemies >= self.FLANK_THRESHOLD

    def attacker_value(
        self,
        attacker: UnitInstance,
        defender: UnitInstance,
        state: "GameState",
        is_ranged: bool,
        modifiers: Optional[dict[str, int]] = None,
        charge_distance: int = 0,
    ) -> int:
        template = self.catalog.template(attacker.template_id)
        if template is None:
            return 0

        modifiers = modifiers or {}
        value = (template.ranged if is_ranged else template.melee) + modifiers.get("attack", 0)

        if template.is_cavalry and charge_distance >= self.CHARGE_MIN_DISTANCE:
            value += self.HEAVY_CHARGE_BONUS if template.has_keyword(HEAVY) else self.CHARGE_BONUS

        if self.is_flanked(defender, state):
            value += self.FLANK_BONUS + modifiers.get("flank_attack", 0)

        if attacker.position is not None:
            if is_ranged and state.terrain_at(attacker.position) == HILL:
                value += self.HILL_RANGED_BONUS

            if is_ranged and defender.position is not None and distance(attacker.position, defender.position) == 1:
                value -= self.POINT_BLANK_PENALTY

        return value

    def defender_value(
        self,
        defender: UnitInstance,
        attacker: UnitInstance,
        state: "GameState",
        is_ranged: bool,
        modifiers: Optional[dict[str, int]] = None,
    ) -> int:
        template = self.catalog.template(defender.template_id)
        attacker_template = self.catalog.template(attacker.template_id)
        if template is None or attacker_template is None:
            return 0

        modifiers = modifiers or {}
        value = template.defense + modifiers.get("defense", 0)
        if is_ranged:
            value += modifiers.get("ranged_defense", 0)

        if attacker_template.is_cavalry:
            value += self.ANTI_CAVALRY.get(template.id, 0)

        if defender.position is not None:
            terrain = self.catalog.terrain(state.terrain_at(defender.position))
            if terrain:
                value += terrain.defense_bonus
                if is_ranged:
                    value += terrain.ranged_defense_bonus

        if not defender.in_supply:
            value -= self.OUT_OF_SUPPLY_PENALTY

        return value

    def resolve(
        self,
        attacker: UnitInstance,
        defender: UnitInstance,
        state: "GameState",
        is_ranged: bool,
        modifiers: Optional[dict[str, int]] = None,
        charge_distance: int = 0,
    ) -> CombatResult:
        """
        Roll one attack. Pure apart from the two dice; the caller applies
        damage and morale to the state.

        `modifiers` carries command card bonuses under the keys
        attack, flank_attack, defense and ranged_defense.
        """
        modifiers = modifiers or {}
        attacker_value = self.attacker_value(attacker, defender, state, is_ranged, modifiers, charge_distance)
        defender_value = self.defender_value(defender, attacker, state, is_ranged, modifiers)

        attacker_roll = self.roll_d6()
        defender_roll = self.roll_d6()

        margin = (attacker_value + attacker_roll) - (defender_value + defender_roll)
        outcome, damage, morale = self.determine_outcome(margin, is_ranged)
        effects = []

        if attacker.template_id == SHARDBEARER:
            if outcome == Outcome.TIE:
                outcome, damage, morale = Outcome.HIT, 1, 0
                effects.append("Shardbearer wins tie automatically")
            if margin >= self.MASSIVE_HIT_MARGIN:
                damage += 1
                effects.append("Shardbearer knockback +1 damage")

        # Only damage dealt to the defender is increased, never recoil
        if (
            attacker.template_id == HEAVY_CAVALRY
            and outcome != Outcome.MISS
            and damage > 0
            and self.is_flanked(defender, state)
        ):
            damage += 1
            effects.append("Heavy cavalry flank bonus +1 damage")

        return CombatResult(
            id=f"combat_{len(state.combat_log) + 1}",
            attacker_id=attacker.id,
            defender_id=defender.id,
            attacker_value=attacker_value,
            defender_value=defender_value,
            attacker_roll=attacker_roll,
            defender_roll=defender_roll,
            outcome=outcome,
            damage=damage,
            morale_gained=morale,
            special_effects=tuple(effects),
            is_ranged=is_ranged,
        )

    def max_range(self, template_id: str) -> int:
        return self.MAX_RANGE.get(template_id, self.DEFAULT_MAX_RANGE)

    def attack_rejection(self, attacker: UnitInstance, defender: UnitInstance, state: "GameState") -> Optional[str]:
        """Reason the attack is illegal, or None when it may proceed."""
        if not attacker.on_board or not defender.on_board:
            return "Both units must be alive and deployed"
        if attacker.player_id == defender.player_id:
            return "Cannot attack a friendly unit"
        if attacker.activated:
            return "Unit has already activated this turn"

        template = self.catalog.template(attacker.template_id)
        if template is None:
            return "Unknown unit type"

        dist = distance(attacker.position, defender.position)
        if template.melee > 0 and dist == 1:
            return None

        if template.ranged > 0 and 1 <= dist <= self.max_range(template.id):
            if not self.has_line_of_sight(attacker, defender, state):
                return "No line of sight to target"
            return None

        return "Target out of range"

    def can_attack(self, attacker: UnitInstance, defender: UnitInstance, state: "GameState") -> bool:
        return self.attack_rejection(attacker, defender, state) is None

    def has_line_of_sight(self, attacker: UnitInstance, defender: UnitInstance, state: "GameState") -> bool:
        """Always clear unless the line_of_sight rule is on; then blocking terrain between the two stops it."""
        if not self.line_of_sight:
            return True

        for pos in hex_line(attacker.position, defender.position)[1:-1]:
            terrain = self.catalog.terrain(state.terrain_at(pos))
            if terrain and terrain.blocks_los:
                return False
        return True

    def valid_targets(self, attacker: UnitInstance, state: "GameState") -> list[UnitInstance]:
        """Every enemy unit the attacker could legally attack right now."""
        return [
            unit for unit in state.board_units()
            if unit.player_id != attacker.player_id and self.can_attack(attacker, unit, state)
        ]
