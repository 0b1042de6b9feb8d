"""
Unit instances on a player's roster.

A UnitInstance is created once when an army is built and lives for the
whole match, moving between reserve, deployed and dead. Instances are
immutable; every change returns a new instance.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from .hexgrid import HexPosition


class DeploymentState(Enum):
    RESERVE = "in-reserve"
    DEPLOYED = "deployed"
    DEAD = "dead"


@dataclass(frozen=True)
class UnitInstance:
    """Runtime state of one unit."""
    id: str
    template_id: str
    player_id: str
    current_hp: int
    position: Optional[HexPosition] = None
    morale_tokens: int = 0
    activated: bool = False
    in_supply: bool = True
    deployment: DeploymentState = DeploymentState.RESERVE

    @property
    def is_alive(self) -> bool:
        return self.current_hp > 0

    @property
    def is_deployed(self) -> bool:
        return self.deployment == DeploymentState.DEPLOYED

    @property
    def is_in_reserve(self) -> bool:
        return self.deployment == DeploymentState.RESERVE

    @property
    def on_board(self) -> bool:
        """Deployed with HP left; the only units that occupy a hex."""
        return self.is_deployed and self.is_alive

    def deployed_at(self, position: HexPosition, activated: bool = False) -> "UnitInstance":
        return replace(
            self,
            position=position,
            deployment=DeploymentState.DEPLOYED,
            activated=activated,
        )

    def returned_to_reserve(self) -> "UnitInstance":
        return replace(self, position=None, deployment=DeploymentState.RESERVE)

    def moved_to(self, position: HexPosition) -> "UnitInstance":
        return replace(self, position=position, activated=True)

    def damaged(self, amount: int) -> "UnitInstance":
        """Lose HP, never below zero. Death is applied separately."""
        return replace(self, current_hp=max(0, self.current_hp - amount))

    def killed(self) -> "UnitInstance":
        return replace(self, position=None, deployment=DeploymentState.DEAD, activated=False)

    def with_tokens(self, tokens: int) -> "UnitInstance":
        return replace(self, morale_tokens=max(0, tokens))

    def with_activation(self, activated: bool) -> "UnitInstance":
        return replace(self, activated=activated)

    def with_supply(self, in_supply: bool) -> "UnitInstance":
        return replace(self, in_supply=in_supply)

    def restored(self, hp: int) -> "UnitInstance":
        """Back to reserve at full strength (new skirmish)."""
        return UnitInstance(
            id=self.id,
            template_id=self.template_id,
            player_id=self.player_id,
            current_hp=hp,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "template_id": self.template_id,
            "player_id": self.player_id,
            "current_hp": self.current_hp,
            "position": {"q": self.position.q, "r": self.position.r} if self.position else None,
            "morale_tokens": self.morale_tokens,
            "activated": self.activated,
            "in_supply": self.in_supply,
            "deployment": self.deployment.value,
        }
