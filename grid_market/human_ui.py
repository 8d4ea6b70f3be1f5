import pygame
import matplotlib
import matplotlib.pyplot as plt
from matplotlib.backends.backend_agg import FigureCanvasAgg
import numpy as np
import csv
import os
from datetime import datetime

from .dispatch import SHORTAGE, SURPLUS
from .grid_model import CUSTOMER, GAS, PLAYER_STORAGE, SOLAR, STORAGE

# Use non-interactive backend for Matplotlib
matplotlib.use("Agg")

CELL = 44
BOARD_ORIGIN = (20, 60)

ENTITY_COLORS = {
    CUSTOMER: (59, 130, 246), SOLAR: (251, 191, 36), GAS: (239, 68, 68),
    STORAGE: (139, 92, 246), PLAYER_STORAGE: (16, 185, 129),
}
ENTITY_LABELS = {CUSTOMER: "C", SOLAR: "S", GAS: "G", STORAGE: "B", PLAYER_STORAGE: "P"}

HELP_LINES = [
    "HOW TO PLAY",
    "",
    "Place one battery on a free cell, then step the market.",
    "Shortage (demand > solar): your battery discharges and earns $100/MWh.",
    "Surplus (solar > demand): your battery charges and pays $20/MWh.",
    "NPC batteries always trade before yours, gas covers what is left.",
    "",
    "ENTER: next step    A: toggle auto-run    R: reset    H: close help",
]


class Button:
    """A clickable rectangle with a caption."""
    def __init__(self, x, y, w, h, label):
        self.rect = pygame.Rect(x, y, w, h)
        self.label = label
        self.enabled = True

    def draw(self, screen, font):
        color = (60, 90, 160) if self.enabled else (170, 170, 170)
        pygame.draw.rect(screen, color, self.rect, border_radius=6)
        text = font.render(self.label, True, (255, 255, 255))
        screen.blit(text, text.get_rect(center=self.rect.center))

    def clicked(self, event):
        return (self.enabled and event.type == pygame.MOUSEBUTTONDOWN and event.button == 1
                and self.rect.collidepoint(event.pos))


class HumanUI:
    def __init__(self, grid_size=10, screen_width=1280, screen_height=720):
        pygame.init()
        self.width = screen_width
        self.height = screen_height
        self.grid_size = grid_size
        self.screen = pygame.display.set_mode((self.width, self.height))
        pygame.display.set_caption("Energy Grid Trading Game")
        self.clock = pygame.time.Clock()

        self.font = pygame.font.SysFont("Arial", 16, bold=True)
        self.small_font = pygame.font.SysFont("Arial", 14)
        self.title_font = pygame.font.SysFont("Arial", 22, bold=True)

        panel_x = BOARD_ORIGIN[0] + grid_size * CELL + 30
        self.step_button = Button(panel_x, 60, 170, 36, "Next Step")
        self.auto_button = Button(panel_x + 180, 60, 170, 36, "Auto-run: OFF")
        self.reset_button = Button(panel_x, 104, 170, 36, "Reset Game")
        self.place_button = Button(panel_x + 180, 104, 170, 36, "Add Battery")
        self.buttons = [self.step_button, self.auto_button, self.reset_button, self.place_button]

        # Intents collected by handle_events, consumed by the game loop
        self.step_requested = False
        self.reset_requested = False
        self.auto_run = False
        self.placing_battery = False
        self.clicked_cell = None
        self.show_help = True

        os.makedirs("logs", exist_ok=True)
        self.log_file = f"logs/grid_game_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
        with open(self.log_file, mode='w', newline='') as f:
            csv.writer(f).writerow(["step", "demand", "solar", "player_output", "revenue", "status"])

        # Pre-allocate Matplotlib Figure & Canvas
        self.fig, self.ax = plt.subplots(figsize=(4.0, 3.2), dpi=100)
        self.ax_balance = self.ax.twinx()
        self.canvas = FigureCanvasAgg(self.fig)

    def log_step(self, report):
        with open(self.log_file, mode='a', newline='') as f:
            csv.writer(f).writerow([report.step, report.total_demand, report.total_solar,
                                    report.player_output, report.revenue, report.status])

    def _cell_at(self, pos):
        col = (pos[0] - BOARD_ORIGIN[0]) // CELL
        row = (pos[1] - BOARD_ORIGIN[1]) // CELL
        if 0 <= col < self.grid_size and 0 <= row < self.grid_size:
            return int(col), int(row)
        return None

    def handle_events(self):
        """Processes Pygame events (buttons, board clicks, shortcuts)."""
        self.step_requested = False
        self.reset_requested = False
        self.clicked_cell = None
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                raise SystemExit
            if event.type == pygame.KEYDOWN:
                if event.key == pygame.K_RETURN:
                    self.step_requested = True
                elif event.key == pygame.K_a:
                    self.toggle_auto_run()
                elif event.key == pygame.K_r:
                    self.reset_requested = True
                elif event.key == pygame.K_h:
                    self.show_help = not self.show_help
            if self.step_button.clicked(event):
                self.step_requested = True
            elif self.auto_button.clicked(event):
                self.toggle_auto_run()
            elif self.reset_button.clicked(event):
                self.reset_requested = True
            elif self.place_button.clicked(event):
                self.placing_battery = True
            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                if self.show_help:
                    self.show_help = False
                elif self.placing_battery:
                    self.clicked_cell = self._cell_at(event.pos)

    def toggle_auto_run(self):
        self.auto_run = not self.auto_run
        self.auto_button.label = f"Auto-run: {'ON' if self.auto_run else 'OFF'}"

    def _render_history_to_pygame(self, history) -> pygame.Surface:
        """Draws revenue and balance history using the cached figure."""
        self.ax.clear()
        self.ax_balance.clear()
        if history:
            steps = np.array([r.step for r in history])
            revenue = np.array([r.revenue for r in history])
            balance = np.array([r.balance for r in history])
            self.ax.plot(steps, revenue, label="Revenue ($)", color='green', linewidth=2)
            self.ax_balance.bar(steps, balance, color=np.where(balance >= 0, '#10b981', '#ef4444'),
                                alpha=0.3, label="Balance (MW)")
            self.ax_balance.set_ylabel("Balance (MW)")
        self.ax.set_title("Revenue & Grid Balance")
        self.ax.set_xlabel("Step")
        self.ax.set_ylabel("Revenue ($)")
        self.ax.grid(True, linestyle='--', alpha=0.6)
        self.fig.tight_layout()

        self.canvas.draw()
        return pygame.image.frombuffer(self.canvas.buffer_rgba(), self.canvas.get_width_height(), "RGBA")

    def _draw_board(self, world):
        ox, oy = BOARD_ORIGIN
        size = self.grid_size * CELL
        pygame.draw.rect(self.screen, (255, 255, 255), (ox, oy, size, size))
        for i in range(self.grid_size + 1):
            pygame.draw.line(self.screen, (225, 228, 235), (ox + i * CELL, oy), (ox + i * CELL, oy + size))
            pygame.draw.line(self.screen, (225, 228, 235), (ox, oy + i * CELL), (ox + size, oy + i * CELL))

        hovered = None
        mouse = pygame.mouse.get_pos()
        for entity in world.entities():
            center = (ox + entity.x * CELL + CELL // 2, oy + entity.y * CELL + CELL // 2)
            color = ENTITY_COLORS[entity.kind]
            if entity.kind == CUSTOMER and world.is_deficit:
                color = (239, 68, 68)
            radius = 15 if entity.kind == PLAYER_STORAGE else 12
            pygame.draw.circle(self.screen, color, center, radius)
            label = self.small_font.render(ENTITY_LABELS[entity.kind], True, (255, 255, 255))
            self.screen.blit(label, label.get_rect(center=center))
            if (mouse[0] - center[0]) ** 2 + (mouse[1] - center[1]) ** 2 <= radius ** 2:
                hovered = entity

        if self.placing_battery:
            hint = self.small_font.render("Click an empty cell to place your battery", True, (80, 80, 80))
            self.screen.blit(hint, (ox, oy + size + 8))
        if hovered is not None:
            self._draw_tooltip(hovered, mouse)

    def _draw_tooltip(self, entity, pos):
        if entity.kind == CUSTOMER:
            lines = [f"Customer: {entity.demand} MWh demand"]
        elif entity.kind in (SOLAR, GAS):
            lines = [f"{'Solar' if entity.kind == SOLAR else 'Gas Plant'}: "
                     f"{entity.output:.0f}/{entity.capacity} MW"]
        else:
            owner = "Your Battery" if entity.kind == PLAYER_STORAGE else "NPC Battery"
            lines = [f"{owner}: {entity.current_storage:.1f}/{entity.max_storage} MWh",
                     f"Output: {entity.output:.1f} MW  Capacity: {entity.capacity} MW"]
        surfaces = [self.small_font.render(line, True, (255, 255, 255)) for line in lines]
        w = max(s.get_width() for s in surfaces) + 12
        h = 18 * len(surfaces) + 8
        box = pygame.Rect(pos[0] + 12, pos[1] + 12, w, h)
        pygame.draw.rect(self.screen, (40, 40, 40), box, border_radius=4)
        for i, s in enumerate(surfaces):
            self.screen.blit(s, (box.x + 6, box.y + 4 + i * 18))

    def _draw_stats(self, world, x, y):
        report = world.last_report
        pygame.draw.rect(self.screen, (255, 255, 255), (x, y, 350, 190), border_radius=8)
        pygame.draw.rect(self.screen, (100, 100, 100), (x, y, 350, 190), 2, border_radius=8)
        self.screen.blit(self.font.render(f"System Status (Step {world.current_step})", True, (0, 0, 0)),
                         (x + 12, y + 10))

        solar = world.total_solar()
        battery = report.battery_output if report else 0.0
        gas = report.gas_output if report else 0.0
        balance = solar + battery + gas - world.total_demand()
        rows = [
            ("Total Demand", f"{world.total_demand()} MW"),
            ("Solar Output", f"{solar} MW"),
            ("Battery Output", f"{battery:.1f} MW"),
            ("Gas Output", f"{gas:.1f} MW"),
            ("Balance", f"{balance:+.1f} MW"),
        ]
        for i, (name, value) in enumerate(rows):
            self.screen.blit(self.small_font.render(name, True, (60, 60, 60)), (x + 12, y + 40 + i * 22))
            self.screen.blit(self.small_font.render(value, True, (0, 0, 0)), (x + 220, y + 40 + i * 22))

        status = report.status if report else "BALANCED"
        color = (200, 0, 0) if status == SHORTAGE else (0, 150, 0)
        hint = {SHORTAGE: "High prices - good for selling!",
                SURPLUS: "Low prices - good for charging!"}.get(status, "Supply matches demand")
        self.screen.blit(self.font.render(status, True, color), (x + 12, y + 155))
        self.screen.blit(self.small_font.render(hint, True, color), (x + 130, y + 157))

    def _draw_counts_and_player(self, world, x, y):
        counts = world.entity_counts()
        lines = [
            f"Customers: {counts['customers']}   Solar: {counts['solar_farms']}   "
            f"Gas: {counts['gas_plants']}   NPC Batteries: {counts['npc_batteries']}",
        ]
        player = world.player_battery
        if player is not None:
            lines += [
                f"Revenue: ${world.revenue:.0f}",
                f"Storage: {player.current_storage:.1f}/{player.max_storage} MWh   "
                f"Output: {player.output:.1f} MW",
            ]
        else:
            lines.append("No battery placed yet")
        for i, line in enumerate(lines):
            font = self.font if i == 1 else self.small_font
            self.screen.blit(font.render(line, True, (30, 30, 30)), (x, y + i * 24))

    def _draw_help(self):
        overlay = pygame.Surface((self.width, self.height), pygame.SRCALPHA)
        overlay.fill((0, 0, 0, 160))
        self.screen.blit(overlay, (0, 0))
        box = pygame.Rect(self.width // 2 - 330, self.height // 2 - 140, 660, 280)
        pygame.draw.rect(self.screen, (250, 250, 250), box, border_radius=10)
        for i, line in enumerate(HELP_LINES):
            font = self.title_font if i == 0 else self.small_font
            self.screen.blit(font.render(line, True, (30, 30, 30)), (box.x + 24, box.y + 20 + i * 28))

    def render_frame(self, world):
        self.screen.fill((230, 235, 240))
        self.screen.blit(self.title_font.render("Energy Grid Trading Game", True, (50, 50, 50)), (20, 20))

        self.place_button.enabled = world.player_battery is None and not self.placing_battery
        self.place_button.label = "Click to Place" if self.placing_battery else "Add Battery"
        for button in self.buttons:
            button.draw(self.screen, self.font)

        panel_x = BOARD_ORIGIN[0] + self.grid_size * CELL + 30
        self._draw_board(world)
        self._draw_stats(world, panel_x, 155)
        self._draw_counts_and_player(world, panel_x, 360)

        graph_surface = self._render_history_to_pygame(list(world.history))
        self.screen.blit(graph_surface, (self.width - graph_surface.get_width() - 20, 60))

        if self.show_help:
            self._draw_help()

        pygame.display.flip()
        self.clock.tick(30)
