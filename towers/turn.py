"""
Turn and activation engine for TOWERS.

Orchestrates phases: army-building → deployment → battle → (skirmish-end) → match-end

Every public operation takes the current GameState and returns a new one.
A rejected operation raises ValidationError and the caller keeps the
snapshot it passed in; nothing is applied partially.
"""

import functools
import logging
import random
from dataclasses import replace
from typing import Optional

from .catalog import Catalog, CardEffect, BUILD_SUPPLY_CAMP, COMMANDER, INFANTRY, PLAIN, SUPPLY_CAMP
from .combat import FieldCombat
from .config import GameConfig
from .errors import InvariantViolation, ValidationError
from .events import EventCategory, EventSink, LoggingEventSink
from .hexgrid import HexPosition, board_positions, distance
from .logistics import SupplyNetwork
from .morale import MoraleSystem
from .state import ActiveEffect, GameState, Phase, create_initial_state, freeze
from .units import UnitInstance
from .victory import VictoryEvaluator

logger = logging.getLogger(__name__)


def operation(method):
    """
    Orchestration boundary for a public TurnManager operation.

    Rejections are reported as VALIDATION events and re-raised. Internal
    inconsistencies are reported as ERROR events and surfaced as a
    ValidationError so the caller's snapshot stays current. Accepted
    results are verified before they are returned.
    """
    @functools.wraps(method)
    def wrapper(self, state, *args, **kwargs):
        try:
            new_state = method(self, state, *args, **kwargs)
            self.verify(new_state)
            return new_state
        except ValidationError as e:
            self.events.emit(
                EventCategory.VALIDATION,
                f"{method.__name__} rejected: {e.reason}",
                {"operation": method.__name__, "reason": e.reason},
            )
            raise
        except InvariantViolation as e:
            self.events.emit(
                EventCategory.ERROR,
                f"{method.__name__} failed: {e}",
                {"operation": method.__name__, "error": str(e)},
            )
            raise ValidationError(f"Internal error: {e}") from e
    return wrapper


class TurnManager:
    """Validates and applies player operations."""

    # Command card values
    MOVEMENT_BONUS = 2
    ATTACK_BONUS = 3
    FLANK_BONUS = 2
    DEFENSE_BONUS = 2
    RANGED_DEFENSE_BONUS = 3
    MORALE_BOOST_RADIUS = 2

    # Effects that last until the end of the opponent's next turn
    DEFENSIVE_EFFECTS = {CardEffect.DEFENSE_BONUS, CardEffect.RANGED_DEFENSE}

    def __init__(
        self,
        catalog: Optional[Catalog] = None,
        config: Optional[GameConfig] = None,
        rng: Optional[random.Random] = None,
        rng_seed: Optional[int] = None,
        events: Optional[EventSink] = None,
    ):
        self.catalog = catalog or Catalog.load()
        self.config = config or GameConfig()
        self.rng = rng if rng is not None else random.Random(rng_seed)
        self.events = events or LoggingEventSink()

        # Combat and morale share one dice stream so a seed replays a whole match
        self.combat = FieldCombat(self.catalog, rng=self.rng, line_of_sight=self.config.line_of_sight)
        self.morale = MoraleSystem(self.catalog, self.config, rng=self.rng)
        self.supply = SupplyNetwork()
        self.victory = VictoryEvaluator(self.config)

    def new_game(self, player_names: Optional[dict[str, str]] = None, terrain: Optional[dict] = None) -> GameState:
        state = create_initial_state(self.config, player_names, terrain)
        self.events.emit(
            EventCategory.STATE_CHANGE,
            "New game",
            {"board": [state.board_width, state.board_height], "format": self.config.match_format.value},
        )
        return state

    # ------------------------------------------------------------------
    # Army building and deployment
    # ------------------------------------------------------------------

    @operation
    def build_army(self, state: GameState, player_id: str, template_ids, command_cards=()) -> GameState:
        self._require_phase(state, Phase.ARMY_BUILDING)
        player = state.player(player_id)
        if player is None:
            raise ValidationError(f"Unknown player: {player_id}")
        if player.has_army:
            raise ValidationError(f"{player.name} has already built an army")

        template_ids = list(template_ids)
        command_cards = list(command_cards)
        if not template_ids:
            raise ValidationError("Army must contain at least one unit")

        for template_id in template_ids:
            if self.catalog.template(template_id) is None:
                raise ValidationError(f"Unknown unit template: {template_id}")

        total_cost = self.catalog.army_cost(template_ids)
        if total_cost > self.config.point_limit:
            raise ValidationError(f"Army exceeds point limit: {total_cost}/{self.config.point_limit}")

        if len(command_cards) > self.config.max_command_cards:
            raise ValidationError(
                f"Too many command cards: {len(command_cards)}/{self.config.max_command_cards}"
            )
        for card_id in command_cards:
            if self.catalog.card(card_id) is None:
                raise ValidationError(f"Unknown command card: {card_id}")

        units = {}
        for index, template_id in enumerate(template_ids):
            unit_id = f"{player_id}_{template_id}_{index}"
            units[unit_id] = UnitInstance(
                id=unit_id,
                template_id=template_id,
                player_id=player_id,
                current_hp=self.catalog.require_template(template_id).hp,
            )

        state = state.with_units(units).with_player(
            replace(player, army_list=tuple(template_ids), hand=tuple(command_cards))
        )
        self.events.emit(
            EventCategory.ACTION,
            f"{player.name} built an army",
            {"player_id": player_id, "units": template_ids, "cards": command_cards, "cost": total_cost},
        )

        if all(p.has_army for p in state.players.values()):
            state = state.with_phase(Phase.DEPLOYMENT).evolve(current_player=state.player_order[0])
            self._emit_phase(state)

        return state

    @operation
    def deploy_unit(self, state: GameState, unit_id: str, position: HexPosition) -> GameState:
        """
        Place a reserve unit in the acting player's deployment zone.

        Free during the deployment phase (capped by max_deployment); during
        the battle it costs an activation and the unit counts as activated.
        """
        self._require_phase(state, Phase.DEPLOYMENT, Phase.BATTLE)
        unit = self._require_unit(state, unit_id)

        if not unit.is_alive:
            raise ValidationError("Cannot deploy a dead unit")
        if not unit.is_in_reserve:
            raise ValidationError("Unit is not in reserve")
        if unit.player_id != state.current_player:
            raise ValidationError("Not your turn to deploy")

        in_battle = state.phase == Phase.BATTLE
        if in_battle:
            self._require_activation(state)
        else:
            player = state.players[unit.player_id]
            if state.alive_deployed_count(unit.player_id) >= player.max_deployment:
                raise ValidationError(f"Maximum deployment reached ({player.max_deployment} units)")

        if state.is_occupied(position):
            raise ValidationError("Position occupied by a living unit")
        if not state.is_in_deployment_zone(position, unit.player_id):
            raise ValidationError("Position not in deployment zone")

        state = self.remove_dead_units(state)
        state = state.with_unit(unit.deployed_at(position, activated=in_battle))
        if in_battle:
            state = self._spend_activation(state)

        state = self._recompute_supply(state.with_deployment_counts())
        self.events.emit(
            EventCategory.DEPLOYMENT,
            f"{unit.id} deployed at {position.key()}",
            {"unit_id": unit.id, "position": position.key(), "phase": state.phase.value},
        )
        return state

    @operation
    def undeploy_unit(self, state: GameState, unit_id: str) -> GameState:
        self._require_phase(state, Phase.DEPLOYMENT)
        unit = self._require_unit(state, unit_id)

        if unit.player_id != state.current_player:
            raise ValidationError("Not your unit")
        if not unit.on_board:
            raise ValidationError("Unit is not deployed")

        state = state.with_unit(unit.returned_to_reserve())
        state = self._recompute_supply(state.with_deployment_counts())
        self.events.emit(
            EventCategory.DEPLOYMENT,
            f"{unit.id} returned to reserve",
            {"unit_id": unit.id},
        )
        return state

    @operation
    def pass_deployment(self, state: GameState) -> GameState:
        """Hand the deployment turn to the opponent."""
        self._require_phase(state, Phase.DEPLOYMENT)
        next_player = state.opponent_of(state.current_player)
        self.events.emit(
            EventCategory.DEPLOYMENT,
            f"{state.current_player} passes deployment to {next_player}",
            {"player_id": state.current_player},
        )
        return state.evolve(current_player=next_player)

    @operation
    def start_battle_phase(self, state: GameState) -> GameState:
        self._require_phase(state, Phase.DEPLOYMENT)
        state = state.with_phase(Phase.BATTLE).evolve(activations_remaining=self.config.activations_per_turn)
        state = self._recompute_supply(state)
        self._emit_phase(state)
        return self._start_of_turn(state)

    # ------------------------------------------------------------------
    # Battle actions
    # ------------------------------------------------------------------

    @operation
    def move_unit(self, state: GameState, unit_id: str, target: HexPosition) -> GameState:
        self._require_phase(state, Phase.BATTLE)
        unit = self._require_unit(state, unit_id)

        if not unit.is_alive:
            raise ValidationError("Dead units cannot move")
        if not unit.is_deployed:
            raise ValidationError("Unit is not deployed")
        self._require_ready(state, unit)

        if not state.in_bounds(target):
            raise ValidationError("Target position is off the board")

        move_range, bonus = self._movement_range(state, unit)
        if distance(unit.position, target) > move_range:
            raise ValidationError("Target position out of movement range")
        if state.is_occupied(target):
            raise ValidationError("Target position is occupied")

        origin = unit.position
        state = state.with_unit(unit.moved_to(target))
        if bonus is not None:
            state = self._consume_effects(state, [bonus])
        state = self._recompute_supply(self._spend_activation(state))

        self.events.emit(
            EventCategory.MOVEMENT,
            f"{unit.id} moved {origin.key()} -> {target.key()}",
            {"unit_id": unit.id, "from": origin.key(), "to": target.key()},
        )
        return state

    @operation
    def execute_combat(self, state: GameState, attacker_id: str, defender_id: str) -> GameState:
        self._require_phase(state, Phase.BATTLE)
        attacker = self._require_unit(state, attacker_id)
        defender = self._require_unit(state, defender_id)

        if not attacker.is_alive:
            raise ValidationError("Dead units cannot attack")
        if not defender.is_alive:
            raise ValidationError("Target is already dead")
        self._require_ready(state, attacker)

        rejection = self.combat.attack_rejection(attacker, defender, state)
        if rejection:
            raise ValidationError(rejection)

        is_ranged = distance(attacker.position, defender.position) > 1
        modifiers, used = self._combat_modifiers(state, attacker, defender, is_ranged)

        # Hexes moved this activation are not tracked, so no cavalry charge bonus applies here
        result = self.combat.resolve(attacker, defender, state, is_ranged, modifiers)

        if result.damages_attacker:
            state = state.with_unit(attacker.damaged(result.damage))
        elif result.damage:
            state = state.with_unit(defender.damaged(result.damage))

        if result.morale_gained:
            state = self.morale.add_token(state, attacker.id, result.morale_gained)
            state = self.morale.add_token(state, defender.id, result.morale_gained)

        state = state.with_unit(state.units[attacker.id].with_activation(True))
        state = self._consume_effects(state, used)
        state = self._spend_activation(state).with_combat(result)

        self.events.emit(
            EventCategory.COMBAT,
            f"{attacker.id} attacks {defender.id}: {result.outcome.value} ({result.damage} damage)",
            result.to_dict(),
        )
        return self.remove_dead_units(state)

    @operation
    def play_command_card(self, state: GameState, card_id: str, target_unit_id: str) -> GameState:
        """Spend CP to play a card from the acting player's hand on one of their units."""
        self._require_phase(state, Phase.BATTLE)
        player = state.players[state.current_player]

        if card_id not in player.hand:
            raise ValidationError("Card not in hand")
        card = self.catalog.card(card_id)
        if card is None:
            raise ValidationError(f"Unknown command card: {card_id}")
        if player.cp < card.cp_cost:
            raise ValidationError(f"Not enough command points ({player.cp}/{card.cp_cost})")

        target = self._require_unit(state, target_unit_id)
        if target.player_id != player.id:
            raise ValidationError("Command cards target your own units")
        if not target.on_board:
            raise ValidationError("Target unit is not on the battlefield")

        effect = None
        expires = state.turn + 1 if card.effect in self.DEFENSIVE_EFFECTS else state.turn

        if card.effect == CardEffect.MOVEMENT_BONUS:
            if target.activated:
                raise ValidationError("Unit has already activated this turn")
            effect = self._effect(card, player.id, [target.id], self.MOVEMENT_BONUS, expires, single_use=True)

        elif card.effect == CardEffect.ATTACK_BONUS:
            template = self.catalog.template(target.template_id)
            if template is None or template.ranged <= 0:
                raise ValidationError(f"{card.name} requires a ranged unit")
            effect = self._effect(card, player.id, [target.id], self.ATTACK_BONUS, expires, single_use=True)

        elif card.effect == CardEffect.FLANK_BONUS:
            effect = self._effect(card, player.id, [target.id], self.FLANK_BONUS, expires, single_use=True)

        elif card.effect == CardEffect.DEFENSE_BONUS:
            covered = [
                u.id for u in state.units_of(player.id)
                if u.on_board and distance(u.position, target.position) <= 1
            ]
            effect = self._effect(card, player.id, sorted(covered), self.DEFENSE_BONUS, expires)

        elif card.effect == CardEffect.RANGED_DEFENSE:
            template = self.catalog.template(target.template_id)
            if template is None or not template.has_keyword(INFANTRY):
                raise ValidationError(f"{card.name} requires an infantry unit")
            effect = self._effect(card, player.id, [target.id], self.RANGED_DEFENSE_BONUS, expires)

        elif card.effect == CardEffect.MORALE_BOOST:
            state = self.morale.boost_around(state, target.position, player.id, self.MORALE_BOOST_RADIUS)

        else:
            raise ValidationError(f"{card.name} cannot be played in this ruleset")

        if effect is not None:
            state = state.evolve(active_effects=state.active_effects + (effect,))

        state = state.with_player(replace(player.without_card(card_id), cp=player.cp - card.cp_cost))
        self.events.emit(
            EventCategory.ACTION,
            f"{player.name} played {card.name} on {target.id}",
            {"card_id": card_id, "effect": card.effect.value, "target": target.id, "cp_cost": card.cp_cost},
        )
        return state

    @operation
    def build_supply_camp(self, state: GameState, engineer_id: str, position: HexPosition) -> GameState:
        """An engineer turns an adjacent empty plain into a supply camp."""
        self._require_phase(state, Phase.BATTLE)
        engineer = self._require_unit(state, engineer_id)

        if not engineer.on_board:
            raise ValidationError("Unit is not on the battlefield")
        self._require_ready(state, engineer)

        template = self.catalog.template(engineer.template_id)
        if template is None or template.ability != BUILD_SUPPLY_CAMP:
            raise ValidationError("Only engineers can build supply camps")
        if not state.in_bounds(position) or distance(engineer.position, position) != 1:
            raise ValidationError("Supply camp must be adjacent to the engineer")
        if state.is_occupied(position):
            raise ValidationError("Position is occupied")
        if state.terrain_at(position) != PLAIN:
            raise ValidationError("Supply camps can only be built on plain terrain")

        state = state.with_terrain(position, SUPPLY_CAMP)
        state = state.with_unit(engineer.with_activation(True))
        state = self._recompute_supply(self._spend_activation(state))

        self.events.emit(
            EventCategory.ACTION,
            f"{engineer.id} built a supply camp at {position.key()}",
            {"unit_id": engineer.id, "position": position.key()},
        )
        return state

    @operation
    def end_turn(self, state: GameState) -> GameState:
        self._require_phase(state, Phase.BATTLE)
        ending = state.current_player
        ending_turn = state.turn

        state = self.remove_dead_units(state)

        for unit in state.units_of(ending):
            if unit.on_board and not unit.in_supply:
                state = self.morale.add_token(state, unit.id)

        next_player = state.opponent_of(ending)
        player = state.players[next_player]
        state = state.with_player(player.with_cp(player.cp + self.config.cp_per_turn, self.config.max_cp))

        resets = {
            u.id: u.with_activation(False)
            for u in state.units_of(next_player)
            if u.is_alive and u.activated
        }
        state = state.with_units(resets).evolve(
            current_player=next_player,
            turn=ending_turn + 1,
            activations_remaining=self.config.activations_per_turn,
            active_effects=tuple(e for e in state.active_effects if e.expires_turn > ending_turn),
        )

        self.events.emit(
            EventCategory.STATE_CHANGE,
            f"Turn {ending_turn} ended; {next_player} to act",
            {"turn": state.turn, "current_player": next_player},
        )
        return self._start_of_turn(state)

    # ------------------------------------------------------------------
    # Match flow
    # ------------------------------------------------------------------

    @operation
    def check_victory(self, state: GameState) -> GameState:
        """Apply the victory evaluator's verdict, if any."""
        result = self.victory.evaluate(state)
        if result is None:
            return state

        state = self.victory.apply(state, result)
        self.events.emit(EventCategory.STATE_CHANGE, result.reason, result.to_dict())
        self._emit_phase(state)
        return state

    @operation
    def start_next_skirmish(self, state: GameState) -> GameState:
        """Reset every unit to reserve at full HP; the loser of the last skirmish deploys first."""
        self._require_phase(state, Phase.SKIRMISH_END)

        loser = next(
            (pid for pid in state.player_order if self.victory.remaining_units(state, pid) == 0),
            state.player_order[0],
        )

        units = {
            u.id: u.restored(self.catalog.require_template(u.template_id).hp)
            for u in state.units.values()
        }
        players = {
            pid: replace(p, cp=self.config.starting_cp, deployed_units=0)
            for pid, p in state.players.items()
        }

        state = state.with_phase(Phase.DEPLOYMENT).evolve(
            units=freeze(units),
            players=freeze(players),
            current_player=loser,
            turn=1,
            activations_remaining=self.config.activations_per_turn,
            active_effects=(),
            skirmish=state.skirmish + 1,
            victory_reason="",
        )
        self.events.emit(
            EventCategory.STATE_CHANGE,
            f"Skirmish {state.skirmish} begins; {loser} deploys first",
            {"skirmish": state.skirmish, "score": dict(state.match_score)},
        )
        return state

    def remove_dead_units(self, state: GameState) -> GameState:
        """Take units at 0 HP off the board. They stay on the roster as dead."""
        fallen = [u for u in state.units.values() if u.is_deployed and not u.is_alive]
        if not fallen:
            return state

        for unit in sorted(fallen, key=lambda u: u.id):
            position = unit.position
            state = state.with_unit(unit.killed())
            self.events.emit(
                EventCategory.STATE_CHANGE,
                f"{unit.id} destroyed",
                {"unit_id": unit.id, "position": position.key() if position else None},
            )

            template = self.catalog.template(unit.template_id)
            if template and template.has_keyword(COMMANDER) and position is not None:
                state = self.morale.process_commander_death(state, unit.id, position)
                self.events.emit(
                    EventCategory.STATE_CHANGE,
                    f"Commander {unit.id} has fallen",
                    {"unit_id": unit.id},
                )

        return self._recompute_supply(state.with_deployment_counts())

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def deployment_zone(self, state: GameState, player_id: str) -> list[HexPosition]:
        return [
            pos for pos in board_positions(state.board_width, state.board_height)
            if state.is_in_deployment_zone(pos, player_id)
        ]

    def valid_moves(self, state: GameState, unit_id: str) -> list[HexPosition]:
        """Every hex the unit could move to right now."""
        unit = state.unit(unit_id)
        if state.phase != Phase.BATTLE or unit is None or not unit.on_board:
            return []
        if unit.activated or unit.player_id != state.current_player or state.activations_remaining <= 0:
            return []
        if self.catalog.template(unit.template_id) is None:
            return []

        move_range, _ = self._movement_range(state, unit)
        return [
            pos for pos in board_positions(state.board_width, state.board_height)
            if 0 < distance(unit.position, pos) <= move_range and not state.is_occupied(pos)
        ]

    def valid_targets(self, state: GameState, unit_id: str) -> list[str]:
        """Ids of every enemy unit this unit could attack right now."""
        unit = state.unit(unit_id)
        if state.phase != Phase.BATTLE or unit is None:
            return []
        if unit.player_id != state.current_player or state.activations_remaining <= 0:
            return []
        return sorted(target.id for target in self.combat.valid_targets(unit, state))

    # ------------------------------------------------------------------
    # Invariants
    # ------------------------------------------------------------------

    def verify(self, state: GameState):
        """Raise InvariantViolation if the snapshot is internally inconsistent."""
        occupied = {}
        for unit in state.units.values():
            if (unit.position is not None) != unit.is_deployed:
                raise InvariantViolation(f"{unit.id} position does not match deployment state")

            template = self.catalog.template(unit.template_id)
            max_hp = template.hp if template else unit.current_hp
            if not 0 <= unit.current_hp <= max_hp:
                raise InvariantViolation(f"{unit.id} hp {unit.current_hp} outside 0..{max_hp}")
            if unit.is_deployed and not unit.is_alive:
                raise InvariantViolation(f"{unit.id} left on the board with 0 hp")
            if unit.morale_tokens < 0:
                raise InvariantViolation(f"{unit.id} has negative morale tokens")

            if unit.on_board:
                if unit.position in occupied:
                    raise InvariantViolation(
                        f"{unit.id} and {occupied[unit.position]} share {unit.position.key()}"
                    )
                occupied[unit.position] = unit.id

        if not 0 <= state.activations_remaining <= self.config.activations_per_turn:
            raise InvariantViolation(f"Activations out of range: {state.activations_remaining}")

        for player in state.players.values():
            if not 0 <= player.cp <= self.config.max_cp:
                raise InvariantViolation(f"{player.id} CP out of range: {player.cp}")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_phase(self, state: GameState, *phases: Phase):
        if state.phase not in phases:
            allowed = ", ".join(p.value for p in phases)
            raise ValidationError(f"Not allowed during {state.phase.value} (requires {allowed})")

    def _require_unit(self, state: GameState, unit_id: str) -> UnitInstance:
        unit = state.unit(unit_id)
        if unit is None:
            raise ValidationError(f"Unit not found: {unit_id}")
        return unit

    def _require_activation(self, state: GameState):
        if state.activations_remaining <= 0:
            raise ValidationError("No activations remaining")

    def _require_ready(self, state: GameState, unit: UnitInstance):
        """The acting player's unit, not yet activated, with budget left."""
        if unit.player_id != state.current_player:
            raise ValidationError("Not your unit")
        if unit.activated:
            raise ValidationError("Unit has already activated this turn")
        self._require_activation(state)

    def _spend_activation(self, state: GameState) -> GameState:
        return state.evolve(activations_remaining=max(0, state.activations_remaining - 1))

    def _recompute_supply(self, state: GameState) -> GameState:
        state = self.supply.recompute(state)
        out = sorted(u.id for u in state.board_units() if not u.in_supply)
        self.events.emit(EventCategory.DEBUG, "Supply recomputed", {"out_of_supply": out})
        return state

    def _start_of_turn(self, state: GameState) -> GameState:
        """Skald rallies, then morale checks for the acting player."""
        player_id = state.current_player
        state = self.morale.rally_all(state, player_id)
        state, results = self.morale.process_start_of_turn(state, player_id)

        for result in results:
            self.events.emit(
                EventCategory.STATE_CHANGE,
                f"{result.unit_id} morale check {'passed' if result.passed else 'failed'}",
                result.to_dict(),
            )

        if any(r.retreated_to is not None for r in results):
            state = self._recompute_supply(state)
        return self.remove_dead_units(state)

    def _movement_range(self, state: GameState, unit: UnitInstance) -> tuple[int, Optional[ActiveEffect]]:
        template = self.catalog.require_template(unit.template_id)
        bonuses = state.effects_for(unit.id, CardEffect.MOVEMENT_BONUS)
        if bonuses:
            return template.move + bonuses[0].value, bonuses[0]
        return template.move, None

    def _combat_modifiers(
        self,
        state: GameState,
        attacker: UnitInstance,
        defender: UnitInstance,
        is_ranged: bool,
    ) -> tuple[dict[str, int], list[ActiveEffect]]:
        """Card bonuses for one attack, plus the single-use effects it spends."""
        modifiers = {}
        used = []

        if is_ranged:
            for effect in state.effects_for(attacker.id, CardEffect.ATTACK_BONUS)[:1]:
                modifiers["attack"] = effect.value
                used.append(effect)

        if self.combat.is_flanked(defender, state):
            for effect in state.effects_for(attacker.id, CardEffect.FLANK_BONUS)[:1]:
                modifiers["flank_attack"] = effect.value
                used.append(effect)

        defense = sum(e.value for e in state.effects_for(defender.id, CardEffect.DEFENSE_BONUS))
        if defense:
            modifiers["defense"] = defense

        if is_ranged:
            ranged = sum(e.value for e in state.effects_for(defender.id, CardEffect.RANGED_DEFENSE))
            if ranged:
                modifiers["ranged_defense"] = ranged

        return modifiers, used

    def _consume_effects(self, state: GameState, used: list[ActiveEffect]) -> GameState:
        if not used:
            return state
        remaining = list(state.active_effects)
        for effect in used:
            if effect.single_use and effect in remaining:
                remaining.remove(effect)
        return state.evolve(active_effects=tuple(remaining))

    def _effect(self, card, player_id: str, unit_ids, value: int, expires: int, single_use: bool = False) -> ActiveEffect:
        return ActiveEffect(
            card_id=card.id,
            effect=card.effect,
            player_id=player_id,
            unit_ids=tuple(unit_ids),
            value=value,
            expires_turn=expires,
            single_use=single_use,
        )

    def _emit_phase(self, state: GameState):
        self.events.emit(
            EventCategory.STATE_CHANGE,
            f"Phase: {state.phase.value}",
            {"phase": state.phase.value, "current_player": state.current_player},
        )
