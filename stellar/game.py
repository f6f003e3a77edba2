from __future__ import annotations

import logging
import random
from typing import Optional

import pygame

from .config import Settings, load_settings
from .ecs_systems import RenderSystem
from .engine import GameEngine, InputAction
from .meta import ProfileStore
from .progress import ProfileProgressReporter, stats_from_profile
from .ui import GameUI

logger = logging.getLogger(__name__)

KEY_BINDINGS = {
    pygame.K_UP: InputAction.UP,
    pygame.K_w: InputAction.UP,
    pygame.K_DOWN: InputAction.DOWN,
    pygame.K_s: InputAction.DOWN,
    pygame.K_LEFT: InputAction.LEFT,
    pygame.K_a: InputAction.LEFT,
    pygame.K_RIGHT: InputAction.RIGHT,
    pygame.K_d: InputAction.RIGHT,
    pygame.K_r: InputAction.RESTART,
    pygame.K_p: InputAction.PAUSE,
}


class Game:
    def __init__(self, settings: Settings, seed: Optional[int] = None) -> None:
        self.settings = settings
        self.clock = pygame.time.Clock()
        self.screen = pygame.display.set_mode((settings.window.width, settings.window.height))
        pygame.display.set_caption(settings.window.title)

        self.profile_store = ProfileStore(settings.meta.save_path)
        self.profile = self.profile_store.load()
        self.stats = stats_from_profile(self.profile)
        self.engine = GameEngine(
            settings,
            self.stats,
            reporter=ProfileProgressReporter(self.profile_store, settings.meta.badges),
            rng=random.Random(seed),
        )

        grid_px = settings.grid.size * settings.grid.cell_px
        origin = ((settings.window.width - grid_px) // 2, settings.grid.margin_px)
        self.engine.world.add_processor(
            RenderSystem(self.engine.ctx, self.screen, origin, settings.grid.cell_px), priority=0
        )
        self.ui = GameUI(settings.window.width, settings.window.height)
        self.running = False

    def _sync(self) -> None:
        result = self.engine.sync_progress()
        if result.saved:
            self.ui.show_banner(f"Progress saved: {result.keys} keys, {result.score:,} points")
        elif result.status == "nothing_to_save":
            self.ui.show_banner("No new progress to save")
        else:
            self.ui.show_banner("Save failed, try again later")

    def _quit(self) -> None:
        self.running = False

    def run(self) -> None:
        self.engine.start_game(self.stats.level)
        callbacks = {
            'resume': self.engine.toggle_pause,
            'restart': self.engine.restart,
            'save': self._sync,
            'quit': self._quit,
        }
        self.running = True
        fps = self.settings.window.fps
        while self.running:
            dt = self.clock.tick(fps) / 1000.0
            for event in pygame.event.get():
                self.ui.process_event(event)
                if event.type == pygame.QUIT:
                    self.running = False
                elif event.type == pygame.KEYDOWN:
                    if event.key == pygame.K_ESCAPE:
                        self.running = False
                    elif event.key == pygame.K_e:
                        self.engine.end_game()
                    elif event.key in KEY_BINDINGS:
                        self.engine.handle_input(KEY_BINDINGS[event.key])

            # Enemy ticks, round delays and drawing the board
            self.engine.update(dt)

            snap = self.engine.get_snapshot()
            for notice in self.engine.drain_notices():
                self.ui.show_banner(f"{notice.title} {notice.message}".strip())
            self.ui.update_hud(snap)
            self.ui.sync_overlay(snap, callbacks)
            self.ui.update(dt)
            self.ui.draw(self.screen)
            pygame.display.flip()

        self.engine.sync_progress()
        self.profile_store.save()

    @staticmethod
    def init_pygame():
        pygame.init()


def run_game(settings_path: str = "config/settings.yaml", seed: Optional[int] = None) -> None:
    settings = load_settings(settings_path)
    Game.init_pygame()
    try:
        Game(settings, seed=seed).run()
    finally:
        pygame.quit()
