import gymnasium as gym
from gymnasium import spaces
import numpy as np

from .config import GameConfig
from .grid_model import PlacementRejected
from .market_sim import initialize, place_storage, step


class GridMarketEnv(gym.Env):
    """Gymnasium environment for the battery trading game."""
    metadata = {"render_modes": ["human"], "render_fps": 30}

    def __init__(self, config: GameConfig = None, max_steps: int = 24, render_mode=None):
        super().__init__()
        self.render_mode = render_mode
        self.config = config or GameConfig()
        self.max_steps = max_steps

        # 0: just advance, k >= 1: place the battery on cell k - 1 (row-major) then advance
        n_cells = self.config.grid_size ** 2
        self.action_space = spaces.Discrete(n_cells + 1)

        # Observation: demand, solar, NPC stored, player stored/max/capacity, deficit, revenue, progress
        self.observation_space = spaces.Box(low=-np.inf, high=np.inf, shape=(9,), dtype=np.float32)
        self.world = None

    def reset(self, seed=None, options=None):
        """Resets the environment at the beginning of a new episode."""
        super().reset(seed=seed)
        self.world = initialize(self.config, seed=seed)
        return self._get_obs(), self._get_info()

    def decode_action(self, action: int):
        """Returns the (x, y) cell targeted by a placement action, or None."""
        action = int(action)
        if action == 0:
            return None
        size = self.config.grid_size
        return (action - 1) % size, (action - 1) // size

    def step(self, action):
        """Advances the simulation by one tick."""
        placement_rejected = False
        cell = self.decode_action(action)
        if cell is not None:
            try:
                self.world = place_storage(self.world, *cell)
            except PlacementRejected:
                placement_rejected = True

        revenue_before = self.world.revenue
        self.world = step(self.world)
        reward = self.world.revenue - revenue_before

        info = self._get_info()
        info["placement_rejected"] = placement_rejected

        truncated = self.world.current_step >= self.max_steps
        return self._get_obs(), float(reward), False, truncated, info

    def _get_obs(self):
        """Constructs the flat observation vector."""
        world = self.world
        player = world.player_battery
        obs = [
            world.total_demand(),
            world.total_solar(),
            sum(b.current_storage for b in world.batteries),
            player.current_storage if player else 0.0,
            player.max_storage if player else 0.0,
            player.capacity if player else 0.0,
            float(world.is_deficit),
            world.revenue,
            world.current_step / self.max_steps,
        ]
        return np.array(obs, dtype=np.float32)

    def _get_info(self):
        """Packages rich data for the UI rendering."""
        report = self.world.last_report
        return {
            "step": self.world.current_step,
            "revenue": self.world.revenue,
            "is_deficit": self.world.is_deficit,
            "status": report.status if report else None,
            "entity_counts": self.world.entity_counts(),
        }
