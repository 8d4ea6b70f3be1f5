from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import numpy as np

from .config import GameConfig, GridMarketError

if TYPE_CHECKING:
    from .dispatch import DispatchReport

CUSTOMER = "customer"
SOLAR = "solar"
GAS = "gas"
STORAGE = "storage"
PLAYER_STORAGE = "playerStorage"

PLAYER_STORAGE_ID = "player-storage"


class PlacementRejected(GridMarketError):
    """Raised when the player battery cannot be placed on the requested cell."""


@runtime_checkable
class Dispatchable(Protocol):
    """Anything the dispatch engine can ask for energy or hand energy to."""
    capacity: int
    output: float

    def discharge(self, limit: float) -> float: ...

    def charge(self, limit: float) -> float: ...


@dataclass
class Customer:
    """A demand point. Its demand is redrawn every step."""
    entity_id: str
    x: int
    y: int
    demand: int = 0
    kind: str = CUSTOMER


@dataclass
class SolarFarm:
    """Renewable source. Output is sampled by the stochastic engine, never dispatched."""
    entity_id: str
    x: int
    y: int
    capacity: int
    output: int = 0
    kind: str = SOLAR


@dataclass
class GasPlant:
    """Backup generation, always available up to its capacity."""
    entity_id: str
    x: int
    y: int
    capacity: int
    output: float = 0.0
    kind: str = GAS

    def discharge(self, limit: float) -> float:
        """Runs the plant against the remaining deficit. Returns the energy produced."""
        self.output = min(self.capacity, limit)
        return self.output

    def charge(self, limit: float) -> float:
        # A gas plant cannot absorb surplus
        self.output = 0.0
        return 0.0


@dataclass
class StorageUnit:
    """
    A battery, either owned by the market (NPC) or by the player.
    Output is signed: positive when discharging to the grid, negative when charging.
    """
    entity_id: str
    x: int
    y: int
    capacity: int
    max_storage: float
    current_storage: float = 0.0
    efficiency: float = 0.9
    output: float = 0.0
    kind: str = STORAGE

    @property
    def is_player(self) -> bool:
        return self.kind == PLAYER_STORAGE

    @property
    def headroom(self) -> float:
        return self.max_storage - self.current_storage

    def discharge(self, limit: float) -> float:
        """
        Delivers as much as the rate, the stored energy and the limit allow.
        Returns the delivered amount.
        """
        amount = min(self.capacity, self.current_storage, limit)
        if amount <= 0:
            return 0.0
        self.current_storage -= amount
        self.output = amount
        return amount

    def charge(self, limit: float) -> float:
        """
        Draws energy from the grid. The returned amount is what the grid delivered;
        only `amount * efficiency` ends up stored.
        """
        amount = min(self.capacity, self.headroom, limit)
        if amount <= 0:
            return 0.0
        # Float accumulation must never overshoot the ceiling
        self.current_storage = min(self.max_storage, self.current_storage + amount * self.efficiency)
        self.output = -amount
        return amount


@dataclass
class GridWorld:
    """Every entity of the board plus the player's ledger for one simulation instant."""
    config: GameConfig
    rng: np.random.Generator
    customers: list[Customer] = field(default_factory=list)
    solar_farms: list[SolarFarm] = field(default_factory=list)
    gas_plants: list[GasPlant] = field(default_factory=list)
    batteries: list[StorageUnit] = field(default_factory=list)
    player_battery: StorageUnit | None = None
    revenue: float = 0.0
    is_deficit: bool = False
    current_step: int = 0
    last_report: DispatchReport | None = None
    history: deque[DispatchReport] = field(default_factory=deque)
    _by_id: dict[str, object] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self):
        # Only the most recent reports are kept, so snapshot copies stay cheap
        self.history = deque(self.history, maxlen=self.config.history_length)
        for entity in self.entities():
            self._by_id[entity.entity_id] = entity

    def add(self, entity):
        """Registers an NPC entity under its stable id, in the list of its kind."""
        if entity.entity_id in self._by_id:
            raise ValueError(f"duplicate entity id {entity.entity_id!r}")
        by_kind = {
            CUSTOMER: self.customers,
            SOLAR: self.solar_farms,
            GAS: self.gas_plants,
            STORAGE: self.batteries,
        }
        by_kind[entity.kind].append(entity)
        self._by_id[entity.entity_id] = entity
        return entity

    def entities(self) -> list:
        """All entities in merit-relevant order: NPC storage before the player unit."""
        entities = [*self.customers, *self.solar_farms, *self.gas_plants, *self.batteries]
        if self.player_battery is not None:
            entities.append(self.player_battery)
        return entities

    def get(self, entity_id: str):
        return self._by_id[entity_id]

    def occupied(self, x: int, y: int) -> bool:
        return any(e.x == x and e.y == y for e in self.entities())

    def free_cells(self) -> list[tuple[int, int]]:
        taken = {(e.x, e.y) for e in self.entities()}
        size = self.config.grid_size
        return [(x, y) for y in range(size) for x in range(size) if (x, y) not in taken]

    def total_demand(self) -> int:
        return sum(c.demand for c in self.customers)

    def total_solar(self) -> int:
        return sum(s.output for s in self.solar_farms)

    def entity_counts(self) -> dict:
        return {
            "customers": len(self.customers),
            "solar_farms": len(self.solar_farms),
            "gas_plants": len(self.gas_plants),
            "npc_batteries": len(self.batteries),
            "player_battery": 0 if self.player_battery is None else 1,
        }

    def add_player_battery(self, x: int, y: int) -> StorageUnit:
        """
        Creates the player's battery on a free cell.
        Raises PlacementRejected and leaves the world untouched otherwise.
        """
        size = self.config.grid_size
        if self.player_battery is not None:
            raise PlacementRejected("a player battery is already placed")
        if not (0 <= x < size and 0 <= y < size):
            raise PlacementRejected(f"cell ({x}, {y}) is outside the {size}x{size} grid")
        if self.occupied(x, y):
            raise PlacementRejected(f"cell ({x}, {y}) is already occupied")

        low, high = self.config.player_capacity
        capacity = int(self.rng.integers(low, high, endpoint=True))
        self.player_battery = StorageUnit(
            PLAYER_STORAGE_ID, x, y,
            capacity=capacity,
            max_storage=capacity * self.config.storage_hours,
            current_storage=0.0,
            efficiency=self.config.efficiency,
            kind=PLAYER_STORAGE,
        )
        self._by_id[PLAYER_STORAGE_ID] = self.player_battery
        return self.player_battery
