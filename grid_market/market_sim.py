"""
Public entry points of the grid market core.

Each call returns a fresh GridWorld snapshot; the snapshot passed in is never
modified, so a UI can keep the previous state around (or replay it) safely.
"""
import copy
import logging

import numpy as np

from .config import GameConfig
from .dispatch import dispatch
from .grid_model import GridWorld, PlacementRejected
from .stochastic_engine import StochasticEngine

logger = logging.getLogger(__name__)


def initialize(config: GameConfig = None, seed: int = None) -> GridWorld:
    """Builds a new board from `config` (defaults when omitted)."""
    config = config or GameConfig()
    world = GridWorld(config=config, rng=np.random.default_rng(seed))
    StochasticEngine(world.rng, config).populate(world)

    logger.info(
        "New game: %(customers)d customers, %(solar_farms)d solar farms, "
        "%(gas_plants)d gas plants, %(npc_batteries)d NPC batteries",
        world.entity_counts(),
    )
    return world


def step(world: GridWorld) -> GridWorld:
    """
    Advances one tick: new demand and solar draws, then dispatch and settlement.
    The RNG state travels with the snapshot, so stepping the same snapshot twice
    gives the same result.
    """
    nxt = copy.deepcopy(world)
    StochasticEngine(nxt.rng, nxt.config).step_weather_and_demand(nxt)
    report = dispatch(nxt)
    nxt.last_report = report
    nxt.history.append(report)
    return nxt


def place_storage(world: GridWorld, x: int, y: int) -> GridWorld:
    """
    Returns a snapshot with the player battery placed on (x, y).
    Raises PlacementRejected when the cell is taken, off the board, or a battery
    already exists; `world` is left as it was.
    """
    nxt = copy.deepcopy(world)
    try:
        battery = nxt.add_player_battery(x, y)
    except PlacementRejected as exc:
        logger.warning("Placement at (%d, %d) rejected: %s", x, y, exc)
        raise
    logger.info("Player battery placed at (%d, %d) with capacity %d", x, y, battery.capacity)
    return nxt
