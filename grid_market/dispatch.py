import logging
from dataclasses import dataclass

from .grid_model import GridWorld
from .settlement import apply_settlement

logger = logging.getLogger(__name__)

SHORTAGE = "SHORTAGE"
SURPLUS = "SURPLUS"
BALANCED = "BALANCED"


@dataclass(frozen=True)
class DispatchReport:
    """Outcome of one dispatch pass, kept for the stats panel and the history chart."""
    step: int
    total_demand: float
    total_solar: float
    npc_discharge: float
    npc_charge: float
    player_output: float
    gas_output: float
    unmet_demand: float
    is_deficit: bool
    revenue_delta: float
    revenue: float

    @property
    def net_imbalance(self) -> float:
        return self.total_demand - self.total_solar

    @property
    def battery_output(self) -> float:
        """Energy delivered by storage. Charging does not count as supply."""
        return self.npc_discharge + max(0.0, self.player_output)

    @property
    def total_supply(self) -> float:
        return self.total_solar + self.battery_output + self.gas_output

    @property
    def balance(self) -> float:
        return self.total_supply - self.total_demand

    @property
    def status(self) -> str:
        if self.is_deficit:
            return SHORTAGE
        return SURPLUS if self.balance > 0 else BALANCED


def dispatch(world: GridWorld) -> DispatchReport:
    """
    Merit-order dispatch for the current draw: solar first (already netted out of demand),
    then NPC batteries in list order, then the player battery, then gas plants.
    Mutates outputs, stored energy, the deficit flag and the player ledger in place.
    """
    total_demand = world.total_demand()
    total_solar = world.total_solar()
    player = world.player_battery

    # No output survives from the previous step
    for plant in world.gas_plants:
        plant.output = 0.0
    for battery in world.batteries:
        battery.output = 0.0
    if player is not None:
        player.output = 0.0

    npc_discharge = npc_charge = gas_output = 0.0
    remaining = total_demand - total_solar

    if remaining > 0:
        for battery in world.batteries:
            if remaining <= 0:
                break
            delivered = battery.discharge(remaining)
            npc_discharge += delivered
            remaining -= delivered

        if player is not None and remaining > 0 and player.current_storage > 0:
            remaining -= player.discharge(remaining)

        for plant in world.gas_plants:
            if remaining <= 0:
                break
            produced = plant.discharge(remaining)
            gas_output += produced
            remaining -= produced

        unmet = max(0.0, remaining)
        world.is_deficit = unmet > 0
    else:
        remaining = -remaining
        for battery in world.batteries:
            if remaining <= 0:
                break
            if battery.current_storage < battery.max_storage:
                # The grid-side amount consumes surplus, the efficiency loss stays in the unit
                absorbed = battery.charge(remaining)
                npc_charge += absorbed
                remaining -= absorbed

        if player is not None and remaining > 0 and player.current_storage < player.max_storage:
            remaining -= player.charge(remaining)

        unmet = 0.0
        world.is_deficit = False

    player_output = player.output if player is not None else 0.0
    delta = apply_settlement(world, player_output)

    report = DispatchReport(
        step=world.current_step,
        total_demand=total_demand,
        total_solar=total_solar,
        npc_discharge=npc_discharge,
        npc_charge=npc_charge,
        player_output=player_output,
        gas_output=gas_output,
        unmet_demand=unmet,
        is_deficit=world.is_deficit,
        revenue_delta=delta,
        revenue=world.revenue,
    )
    logger.debug(
        "Step %d: demand=%s solar=%s npc=%+.2f/-%.2f player=%+.2f gas=%.2f -> %s",
        report.step, total_demand, total_solar, npc_discharge, npc_charge,
        player_output, gas_output, report.status,
    )
    if world.is_deficit:
        logger.info("Step %d: %.2f units of demand left unserved", report.step, unmet)
    return report
