"""
Automated players for TOWERS.

Uses a greedy heuristic for decision making.
"""

from .base import Agent, AgentConfig, Action, ActionKind
from .greedy import GreedyAgent

__all__ = ["Agent", "AgentConfig", "Action", "ActionKind", "GreedyAgent"]
