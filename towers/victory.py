"""
Victory evaluation.

A player with no living units left (deployed or in reserve) loses while
the opponent still has one. In single-battle mode that ends the match; in
best-of-three mode it ends the skirmish and the match ends once a player
has won enough skirmishes.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import GameConfig, MatchFormat
from .state import GameState, Phase
from .units import DeploymentState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VictoryResult:
    winner: str
    loser: str
    reason: str
    match_over: bool = True

    def to_dict(self) -> dict:
        return {
            "winner": self.winner,
            "loser": self.loser,
            "reason": self.reason,
            "match_over": self.match_over,
        }


class VictoryEvaluator:
    """Checks terminal conditions after a state change."""

    LIVE_STATES = (DeploymentState.DEPLOYED, DeploymentState.RESERVE)

    def __init__(self, config: Optional[GameConfig] = None):
        self.config = config or GameConfig()

    def remaining_units(self, state: GameState, player_id: str) -> int:
        return sum(
            1 for u in state.units_of(player_id)
            if u.deployment in self.LIVE_STATES and u.current_hp > 0
        )

    def evaluate(self, state: GameState) -> Optional[VictoryResult]:
        """The decided result, or None while the fight goes on."""
        if state.phase not in (Phase.DEPLOYMENT, Phase.BATTLE):
            return None

        remaining = {pid: self.remaining_units(state, pid) for pid in state.player_order}
        losers = [pid for pid, count in remaining.items() if count == 0]
        if len(losers) != 1:
            return None

        loser = losers[0]
        winner = state.opponent_of(loser)
        reason = f"{state.players[loser].name} has no remaining units"

        if self.config.match_format == MatchFormat.SINGLE_BATTLE:
            return VictoryResult(winner, loser, reason)

        skirmishes_won = state.match_score.get(winner, 0) + 1
        if skirmishes_won >= self.config.skirmishes_to_win:
            reason = f"{state.players[winner].name} won {skirmishes_won} skirmishes"
            return VictoryResult(winner, loser, reason)

        return VictoryResult(winner, loser, reason, match_over=False)

    def apply(self, state: GameState, result: VictoryResult) -> GameState:
        """Record the result on the state and move to the terminal phase."""
        score = dict(state.match_score)
        if self.config.match_format == MatchFormat.BEST_OF_THREE:
            score[result.winner] = score.get(result.winner, 0) + 1

        if result.match_over:
            logger.info(f"Match over: {result.reason}")
            return state.with_phase(Phase.MATCH_END).evolve(
                winner=result.winner,
                victory_reason=result.reason,
                match_score=score,
            )

        logger.info(f"Skirmish {state.skirmish} over: {result.reason}")
        return state.with_phase(Phase.SKIRMISH_END).evolve(
            victory_reason=result.reason,
            match_score=score,
        )
