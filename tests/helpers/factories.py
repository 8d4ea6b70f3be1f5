"""Factories for hand-built worlds used across the test-suite."""

import numpy as np

from grid_market.config import GameConfig
from grid_market.grid_model import (
    PLAYER_STORAGE,
    PLAYER_STORAGE_ID,
    STORAGE,
    Customer,
    GasPlant,
    GridWorld,
    SolarFarm,
    StorageUnit,
)


def make_battery(capacity, stored=0.0, efficiency=0.9, player=False):
    """A storage unit with the standard four-hour energy rating."""
    return StorageUnit(
        PLAYER_STORAGE_ID if player else "battery",
        0, 0,
        capacity=capacity,
        max_storage=capacity * 4,
        current_storage=float(stored),
        efficiency=efficiency,
        kind=PLAYER_STORAGE if player else STORAGE,
    )


def make_world(demand=0, solar=0, batteries=(), player=None, gas=(), seed=0):
    """
    Hand-built world: one customer carrying the whole demand, one solar farm
    producing exactly `solar`, NPC batteries and gas plants as given.
    Entities are laid out on distinct cells of row 0..2, the player on (9, 9).
    """
    if player is not None:
        player.x, player.y = 9, 9
    world =GridWorld(config=GameConfig(), rng=np.random.default_rng(seed), player_battery=player)
    world.add(Customer("customer-0", 0, 0, demand=demand))
    if solar:
        world.add(SolarFarm("solar-0", 1, 0, capacity=solar, output=solar))
    for i, capacity in enumerate(gas):
        world.add(GasPlant(f"gas-{i}", i, 1, capacity=capacity))
    for i, battery in enumerate(batteries):
        battery.entity_id, battery.x, battery.y = f"battery-{i}", i, 2
        world.add(battery)
    return world
