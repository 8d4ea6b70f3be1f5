import argparse

import pygame

from grid_market.config import GameConfig
from grid_market.grid_model import PlacementRejected
from grid_market.human_ui import HumanUI
from grid_market.logging_config import setup_logging
from grid_market.market_sim import initialize, place_storage, step

AUTO_RUN_INTERVAL_MS = 1000


def play_human(config: GameConfig, seed: int = None):
    """Main loop to run the trading game in human-playable mode."""
    print("Initializing Energy Grid Trading Game...")

    world = initialize(config, seed=seed)
    ui = HumanUI(grid_size=config.grid_size)
    last_tick = pygame.time.get_ticks()

    try:
        while True:
            ui.handle_events()

            if ui.reset_requested:
                # Same seed, same board
                world = initialize(config, seed=seed)
                ui.placing_battery = False
                print("Game reset.")

            if ui.clicked_cell is not None:
                try:
                    world = place_storage(world, *ui.clicked_cell)
                    ui.placing_battery = False
                except PlacementRejected as exc:
                    print(f"Cannot place battery: {exc}")

            # A tick always runs to completion before the next one is scheduled
            now = pygame.time.get_ticks()
            auto_due = ui.auto_run and now - last_tick >= AUTO_RUN_INTERVAL_MS
            if ui.step_requested or auto_due:
                world = step(world)
                last_tick = now
                report = world.last_report
                ui.log_step(report)
                print(f"Step: {report.step} | Demand: {report.total_demand} MW | "
                      f"Solar: {report.total_solar} MW | {report.status} | Revenue: ${world.revenue:.0f}")

            ui.render_frame(world)
    except SystemExit:
        print(f"Game closed after {world.current_step} steps. Final revenue: ${world.revenue:.0f}")
    finally:
        pygame.quit()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Energy grid battery trading game")
    parser.add_argument("--config", help="YAML file overriding the default game configuration")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--log-file", default=None, help="Also write log lines to this rotating file")
    return parser.parse_args(argv)


def main():
    args = parse_args()

    setup_logging(args.log_level, log_file=args.log_file)
    config = GameConfig.from_yaml(args.config) if args.config else GameConfig()
    play_human(config, seed=args.seed)


if __name__ == "__main__":
    main()
