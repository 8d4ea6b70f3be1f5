from dataclasses import asdict, dataclass, fields
from pathlib import Path

import yaml


class GridMarketError(Exception):
    """Base class for every error raised by the grid market core."""


class InvalidConfiguration(GridMarketError, ValueError):
    """Raised when a game configuration would produce degenerate entities."""


@dataclass(frozen=True)
class GameConfig:
    """
    Immutable world-generation parameters.
    Every (low, high) pair is an inclusive integer range.
    """
    grid_size: int = 10
    n_customers: int = 5
    solar_count: tuple[int, int] = (3, 7)
    solar_capacity: tuple[int, int] = (1, 5)
    gas_count: tuple[int, int] = (3, 5)
    gas_capacity: tuple[int, int] = (1, 5)
    storage_count: tuple[int, int] = (1, 3)
    storage_capacity: tuple[int, int] = (1, 4)
    player_capacity: tuple[int, int] = (1, 4)
    demand_range: tuple[int, int] = (1, 10)
    storage_hours: int = 4
    efficiency: float = 0.9
    sell_price: float = 100.0   # Credit per unit discharged by the player
    charge_cost: float = 20.0   # Debit per unit charged by the player
    history_length: int = 50    # Dispatch reports kept on a world for charts

    def __post_init__(self):
        # YAML hands us lists, the dataclass stores tuples
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, list):
                object.__setattr__(self, f.name, tuple(value))
        self.validate()

    def validate(self):
        """Fails fast on anything that would build a degenerate world."""
        if self.grid_size < 1:
            raise InvalidConfiguration(f"grid_size must be positive, got {self.grid_size}")
        if self.n_customers < 1:
            raise InvalidConfiguration(f"n_customers must be positive, got {self.n_customers}")
        if self.storage_hours < 1:
            raise InvalidConfiguration(f"storage_hours must be positive, got {self.storage_hours}")
        if self.history_length < 1:
            raise InvalidConfiguration(f"history_length must be positive, got {self.history_length}")

        for name in ("solar_count", "solar_capacity", "gas_count", "gas_capacity",
                     "storage_count", "storage_capacity", "player_capacity", "demand_range"):
            bounds = getattr(self, name)
            if len(bounds) != 2:
                raise InvalidConfiguration(f"{name} must be a (low, high) pair, got {bounds!r}")
            low, high = bounds
            if low > high:
                raise InvalidConfiguration(f"{name} range is inverted: {bounds!r}")
            # Demand may legitimately be zero, counts and capacities may not
            minimum = 0 if name == "demand_range" else 1
            if low < minimum:
                raise InvalidConfiguration(f"{name} lower bound must be >= {minimum}, got {low}")

        if not 0.0 < self.efficiency <= 1.0:
            raise InvalidConfiguration(f"efficiency must be in (0, 1], got {self.efficiency}")
        if self.sell_price < 0 or self.charge_cost < 0:
            raise InvalidConfiguration("sell_price and charge_cost must be non-negative")

        # The worst case still has to fit on the board, player battery included
        max_entities = (self.n_customers + self.solar_count[1] + self.gas_count[1]
                        + self.storage_count[1] + 1)
        if max_entities > self.grid_size ** 2:
            raise InvalidConfiguration(
                f"up to {max_entities} entities cannot fit on a {self.grid_size}x{self.grid_size} grid"
            )

    @classmethod
    def from_yaml(cls, path, **overrides) -> "GameConfig":
        """Loads a YAML mapping, keyword overrides win over file values."""
        with Path(path).open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise InvalidConfiguration(f"{path} must contain a mapping, got {type(data).__name__}")
        data.update(overrides)

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidConfiguration(f"unknown configuration keys: {', '.join(unknown)}")
        return cls(**data)

    def to_dict(self) -> dict:
        return asdict(self)
