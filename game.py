"""
Main match runner for TOWERS.

Plays a seeded match between two greedy agents through the TurnManager.
"""

import os
import json
import logging
from pathlib import Path
from datetime import datetime
from typing import Optional

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent / ".env")

from towers import (
    Catalog, GameConfig, GameState, LoggingEventSink, MatchFormat, MemoryEventSink,
    Phase, TurnManager, ValidationError, load_config,
)
from towers.config import DEFAULT_RULES_PATH
from agents import GreedyAgent

logger = logging.getLogger(__name__)


class MatchRunner:
    """Agent-vs-agent match orchestrator."""

    def __init__(
        self,
        config: Optional[GameConfig] = None,
        catalog: Optional[Catalog] = None,
        seed: Optional[int] = None,
        log_dir: str = "logs",
    ):
        self.config = config or GameConfig()
        self.seed = seed
        self.log_dir = Path(log_dir)

        self.events = MemoryEventSink(forward_to=LoggingEventSink(), max_events=100_000)
        self.manager = TurnManager(catalog, self.config, rng_seed=seed, events=self.events)

        self.agents = {
            pid: GreedyAgent.create_default(pid, None if seed is None else seed + offset, self.events)
            for offset, pid in enumerate(("player1", "player2"), start=1)
        }

        self.state: Optional[GameState] = None
        self.start_time: Optional[datetime] = None

    def run_match(self) -> dict:
        """Run the full match."""
        self.start_time = datetime.now()
        state = self.manager.new_game({pid: agent.config.name for pid, agent in self.agents.items()})

        for player_id, agent in self.agents.items():
            units, cards = agent.choose_army(self.manager, state)
            state = self.manager.build_army(state, player_id, units, cards)

        while state.phase != Phase.MATCH_END and state.turn <= self.config.max_turns:
            if state.phase == Phase.DEPLOYMENT:
                state = self._run_deployment(state)
            elif state.phase == Phase.BATTLE:
                state = self._run_activation(state)
            elif state.phase == Phase.SKIRMISH_END:
                state = self.manager.start_next_skirmish(state)
            state = self.manager.check_victory(state)

        self.state = state
        results = self._compile_results(state)
        self._save_match_log(results)
        return results

    def _run_deployment(self, state: GameState) -> GameState:
        """Players alternate single deployments until both pass in a row."""
        passes = 0
        while passes < 2:
            agent = self.agents[state.current_player]
            action = agent.choose_deployment(self.manager, state)
            if action is None:
                passes += 1
            else:
                passes = 0
                state = action.apply(self.manager, state)
            state = self.manager.pass_deployment(state)

        return self.manager.start_battle_phase(state)

    def _run_activation(self, state: GameState) -> GameState:
        agent = self.agents[state.current_player]
        action = agent.choose_action(self.manager, state)
        if action is None:
            return self.manager.end_turn(state)

        try:
            return action.apply(self.manager, state)
        except ValidationError as e:
            logger.warning(f"{agent.player_id} action rejected ({e.reason}); ending turn")
            return self.manager.end_turn(state)

    def _compile_results(self, state: GameState) -> dict:
        """Compile final match results."""
        surviving = {
            pid: self.manager.victory.remaining_units(state, pid)
            for pid in state.player_order
        }
        return {
            "seed": self.seed,
            "turns_played": state.turn,
            "skirmishes": state.skirmish,
            "winner": state.winner,
            "reason": state.victory_reason or "Turn limit reached",
            "match_score": dict(state.match_score),
            "surviving_units": surviving,
            "combats": len(state.combat_log),
            "duration": str(datetime.now() - self.start_time) if self.start_time else None,
        }

    def _save_match_log(self, results: dict) -> Path:
        """Save the event log and final state to a JSON file."""
        self.log_dir.mkdir(exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = self.log_dir / f"match_{timestamp}.json"

        with open(log_path, "w") as f:
            json.dump(
                {
                    "results": results,
                    "events": [event.to_dict() for event in self.events.events],
                    "final_state": self.state.to_dict() if self.state else None,
                },
                f,
                indent=2,
                default=str,
            )

        logger.info(f"Match log saved to: {log_path}")
        return log_path


def main():
    """Run a TOWERS match between two greedy agents."""
    import argparse

    parser = argparse.ArgumentParser(description="TOWERS hex wargame match runner")
    parser.add_argument("--seed", type=int, default=None, help="Dice and agent seed (default: TOWERS_SEED)")
    parser.add_argument("--rules", default=None, help="Rules YAML (default: TOWERS_RULES or bundled rules)")
    parser.add_argument("--format", choices=["single_battle", "best_of_three"], default=None, help="Match format")
    parser.add_argument("--logs", default="logs", help="Log directory path")

    args = parser.parse_args()

    logging.basicConfig(level=os.environ.get("TOWERS_LOG_LEVEL", "INFO").upper())

    seed = args.seed
    if seed is None and os.environ.get("TOWERS_SEED"):
        seed = int(os.environ["TOWERS_SEED"])

    config = load_config(args.rules or os.environ.get("TOWERS_RULES", DEFAULT_RULES_PATH))
    if args.format:
        config = config.with_overrides(match_format=MatchFormat(args.format))

    runner = MatchRunner(config=config, seed=seed, log_dir=args.logs)
    results = runner.run_match()

    print("\n" + "=" * 60)
    print("FINAL RESULTS")
    print("=" * 60)
    print(f"Turns played: {results['turns_played']}")
    print(f"Winner: {results['winner']}")
    print(f"Reason: {results['reason']}")
    print(f"Match score: {results['match_score']}")
    print(f"Surviving units: {results['surviving_units']}")
    print(f"Duration: {results['duration']}")


if __name__ == "__main__":
    main()
