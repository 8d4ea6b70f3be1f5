import logging

from .config import GameConfig

logger = logging.getLogger(__name__)


def settle(player_output: float, config: GameConfig) -> float:
    """
    Converts the player battery's realized output for one step into money.
    Discharging sells at `sell_price`, charging pays `charge_cost` on the grid-side
    (pre-efficiency) amount. An idle battery earns nothing.
    """
    if player_output > 0:
        return player_output * config.sell_price
    if player_output < 0:
        return player_output * config.charge_cost
    return 0.0


def apply_settlement(world, player_output: float) -> float:
    """Books the step's settlement on the world's ledger and returns the delta."""
    delta = settle(player_output, world.config)
    if delta:
        world.revenue += delta
        logger.debug("Player ledger %+.2f -> %.2f", delta, world.revenue)
    return delta
