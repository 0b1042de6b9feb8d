"""Shared test fixtures and helpers."""

from dataclasses import replace

import pytest

from towers.catalog import Catalog, UnitTemplate
from towers.config import GameConfig
from towers.events import MemoryEventSink
from towers.hexgrid import HexPosition
from towers.state import Phase, create_initial_state
from towers.turn import TurnManager
from towers.units import DeploymentState, UnitInstance

CATALOG = Catalog.load()

# Melee 5 / defense 5 on plain ground gives both sides a value of 5
BRUTE = UnitTemplate(
    id="brute", name="Brute", type="Infantry", cost=10,
    move=2, hp=4, melee=5, ranged=0, defense=5,
    keywords=frozenset({"Infantry"}),
)


class ScriptedRng:
    """Dice double: returns the scripted rolls in order."""

    def __init__(self, *rolls):
        self.rolls = list(rolls)

    def push(self, *rolls):
        self.rolls.extend(rolls)

    def randint(self, a, b):
        assert self.rolls, "no scripted roll left"
        roll = self.rolls.pop(0)
        assert a <= roll <= b
        return roll


# --- Fixtures ---


@pytest.fixture
def catalog():
    """Bundled catalog plus the brute test template."""
    return catalog_with(BRUTE)


@pytest.fixture
def config():
    return GameConfig()


@pytest.fixture
def rng():
    return ScriptedRng()


@pytest.fixture
def events():
    return MemoryEventSink()


@pytest.fixture
def manager(catalog, config, rng, events):
    return TurnManager(catalog, config, rng=rng, events=events)


# --- Helper functions ---


def catalog_with(*templates):
    """The bundled catalog with extra unit templates."""
    merged = {t.id: t for t in CATALOG.templates}
    merged.update({t.id: t for t in templates})
    return Catalog(
        merged,
        {t.id: t for t in CATALOG.terrain_types},
        {c.id: c for c in CATALOG.cards},
    )


def make_state(config=None, terrain=None, phase=Phase.BATTLE, current_player="player1"):
    """Empty board (plain unless terrain is given) in the requested phase."""
    state = create_initial_state(config or GameConfig(), terrain=terrain or {})
    return state.evolve(phase=phase, current_player=current_player)


def place(state, unit_id, template_id, player_id, q, r, catalog=None, **changes):
    """Add a deployed unit at (q, r), full HP unless overridden."""
    template = (catalog or catalog_with(BRUTE)).template(template_id)
    hp = template.hp if template else 1
    unit = UnitInstance(
        id=unit_id,
        template_id=template_id,
        player_id=player_id,
        current_hp=hp,
        position=HexPosition(q, r),
        deployment=DeploymentState.DEPLOYED,
    )
    if changes:
        unit = replace(unit, **changes)
    return state.with_unit(unit).with_deployment_counts()


def reserve(state, unit_id, template_id, player_id, catalog=None):
    """Add a unit in reserve."""
    template = (catalog or catalog_with(BRUTE)).template(template_id)
    unit = UnitInstance(
        id=unit_id,
        template_id=template_id,
        player_id=player_id,
        current_hp=template.hp if template else 1,
    )
    return state.with_unit(unit)
