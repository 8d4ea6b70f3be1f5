import numpy as np

from .config import GameConfig
from .grid_model import Customer, GasPlant, GridWorld, SolarFarm, StorageUnit


class StochasticEngine:
    def __init__(self, rng: np.random.Generator, config: GameConfig):
        """Core engine centralizing all grid uncertainties."""
        self.rng = rng
        self.config = config

    def _draw(self, bounds: tuple[int, int]) -> int:
        low, high = bounds
        return int(self.rng.integers(low, high, endpoint=True))

    def draw_demand(self) -> int:
        return self._draw(self.config.demand_range)

    def draw_solar(self, farm: SolarFarm) -> int:
        """Fresh sample in [0, capacity], independent of the previous output."""
        return self._draw((0, farm.capacity))

    def step_weather_and_demand(self, world: GridWorld):
        """Redraws every customer demand and solar output, then advances the step counter."""
        for customer in world.customers:
            customer.demand = self.draw_demand()
        for farm in world.solar_farms:
            farm.output = self.draw_solar(farm)
        world.current_step += 1

    def _take_cell(self, free: list[tuple[int, int]]) -> tuple[int, int]:
        return free.pop(int(self.rng.integers(len(free))))

    def populate(self, world: GridWorld):
        """Generates the NPC population of a fresh board on distinct cells."""
        cfg = self.config
        free = world.free_cells()

        for i in range(cfg.n_customers):
            x, y = self._take_cell(free)
            world.add(Customer(f"customer-{i}", x, y, demand=self.draw_demand()))

        for i in range(self._draw(cfg.solar_count)):
            x, y = self._take_cell(free)
            farm = SolarFarm(f"solar-{i}", x, y, capacity=self._draw(cfg.solar_capacity))
            farm.output = self.draw_solar(farm)
            world.add(farm)

        for i in range(self._draw(cfg.gas_count)):
            x, y = self._take_cell(free)
            world.add(GasPlant(f"gas-{i}", x, y, capacity=self._draw(cfg.gas_capacity)))

        for i in range(self._draw(cfg.storage_count)):
            x, y = self._take_cell(free)
            capacity = self._draw(cfg.storage_capacity)
            max_storage = capacity * cfg.storage_hours
            world.add(StorageUnit(
                f"battery-{i}", x, y,
                capacity=capacity,
                max_storage=max_storage,
                # NPC batteries start with less than two steps' worth of charge
                current_storage=float(min(self.rng.integers(0, capacity * 2), max_storage)),
                efficiency=cfg.efficiency,
            ))
