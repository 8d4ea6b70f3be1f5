"""Command-line entry point and the human game loop, without a display."""

import play
from grid_market.market_sim import initialize


class _ResetOnceUI:
    """Stands in for the pygame window: asks for one reset, then closes."""

    def __init__(self, grid_size=10):
        self.grid_size = grid_size
        self.calls = 0
        self.reset_requested = False
        self.clicked_cell = None
        self.step_requested = False
        self.auto_run = False
        self.placing_battery = False

    def handle_events(self):
        self.calls += 1
        if self.calls > 1:
            raise SystemExit
        self.reset_requested = True

    def log_step(self, report):
        pass

    def render_frame(self, world):
        pass


def test_reset_keeps_the_seed(monkeypatch) -> None:
    seeds = []
    worlds = []

    def recording_initialize(config=None, seed=None):
        seeds.append(seed)
        worlds.append(initialize(config, seed=seed))
        return worlds[-1]

    monkeypatch.setattr(play, "HumanUI", _ResetOnceUI)
    monkeypatch.setattr(play, "initialize", recording_initialize)

    play.play_human(play.GameConfig(), seed=11)

    assert seeds == [11, 11]
    first, after_reset = worlds
    assert [(c.x, c.y) for c in first.customers] == [(c.x, c.y) for c in after_reset.customers]


def test_parse_args_reads_log_file_and_seed() -> None:
    args = play.parse_args(["--log-file", "logs/game.log", "--seed", "3", "--log-level", "debug"])
    assert args.log_file == "logs/game.log"
    assert args.seed == 3
    assert args.log_level == "debug"
    assert args.config is None


def test_parse_args_defaults() -> None:
    args = play.parse_args([])
    assert args.log_file is None and args.seed is None
    assert args.log_level == "INFO"
