from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, Optional

import pygame
import pygame_gui

from .context import GameState
from .engine import Snapshot


class GameUI:
    def __init__(self, width: int, height: int) -> None:
        theme_path = Path('assets/ui/theme.json')
        self.manager = pygame_gui.UIManager((width, height), theme_path if theme_path.exists() else None)
        self.width = width
        self.height = height

        # HUD elements
        self.hud_panel: Optional[pygame_gui.elements.UIPanel] = None
        self.hud_labels: Dict[str, pygame_gui.elements.UILabel] = {}
        self.status_label: Optional[pygame_gui.elements.UILabel] = None
        # Banner
        self.banner_label: Optional[pygame_gui.elements.UILabel] = None
        self.banner_time_left: float = 0.0

        # State overlay (pause / game over / round and level complete)
        self.overlay_window: Optional[pygame_gui.elements.UIWindow] = None
        self.overlay_state: Optional[GameState] = None
        self.overlay_text: Optional[pygame_gui.elements.UITextBox] = None
        self.overlay_buttons: Dict[str, pygame_gui.elements.UIButton] = {}
        self.callbacks: Dict[str, Callable[[], None]] = {}

    def process_event(self, event: pygame.event.Event) -> None:
        self.manager.process_events(event)
        if event.type != pygame_gui.UI_BUTTON_PRESSED:
            return
        for name, btn in self.overlay_buttons.items():
            if btn == event.ui_element:
                fn = self.callbacks.get(name)
                if fn:
                    fn()
                break

    def update(self, dt: float) -> None:
        self.manager.update(dt)
        if self.banner_time_left > 0:
            self.banner_time_left -= dt
            if self.banner_time_left <= 0 and self.banner_label is not None:
                self.banner_label.kill()
                self.banner_label = None

    def draw(self, surface: pygame.Surface) -> None:
        self.manager.draw_ui(surface)

    # HUD helpers
    def ensure_hud(self) -> None:
        if self.hud_panel is not None:
            return
        self.hud_panel = pygame_gui.elements.UIPanel(pygame.Rect(10, 10, self.width - 20, 64), manager=self.manager)
        names = ['Level', 'Round', 'Keys', 'Score', 'High Score', 'Rounds Done']
        col_w = (self.width - 32) // len(names)
        for i, name in enumerate(names):
            pygame_gui.elements.UILabel(pygame.Rect(4 + i * col_w, 4, col_w, 20), text=name, manager=self.manager, container=self.hud_panel)
            self.hud_labels[name] = pygame_gui.elements.UILabel(
                pygame.Rect(4 + i * col_w, 28, col_w, 24), text='0', manager=self.manager, container=self.hud_panel
            )
        self.status_label = pygame_gui.elements.UILabel(pygame.Rect(10, 80, self.width - 20, 24), text='', manager=self.manager)

    def update_hud(self, snap: Snapshot) -> None:
        self.ensure_hud()
        s = snap.stats
        values = {
            'Level': str(s.level),
            'Round': f'{s.round}/{snap.total_rounds}',
            'Keys': str(s.keys),
            'Score': f'{s.score:,}',
            'High Score': f'{s.high_score:,}',
            'Rounds Done': str(s.rounds_completed),
        }
        for name, text in values.items():
            self.hud_labels[name].set_text(text)
        if self.status_label is not None:
            if snap.goal_reachable:
                text = 'All keys collected! Reach the orange spaceship to complete the round!'
            else:
                text = f'Collect all keys: {snap.keys_remaining} remaining  |  Enemies: {len(snap.enemies)}'
            self.status_label.set_text(text)

    def show_banner(self, text: str, seconds: float = 2.5) -> None:
        if not text:
            return
        if self.banner_label is not None:
            self.banner_label.kill()
        width = min(600, self.width - 40)
        x = (self.width - width) // 2
        self.banner_label = pygame_gui.elements.UILabel(pygame.Rect(x, self.height - 40, width, 30), text=text, manager=self.manager)
        self.banner_time_left = seconds

    # Overlays
    def sync_overlay(self, snap: Snapshot, callbacks: Dict[str, Callable[[], None]]) -> None:
        state = snap.game_state
        if state is GameState.PLAYING:
            self.close_overlay()
            return
        if state is self.overlay_state:
            return
        self.close_overlay()
        self.callbacks = callbacks
        s = snap.stats
        if state is GameState.PAUSED:
            title, lines, buttons = 'Game Paused', [], {'resume': 'Resume (P)'}
        elif state is GameState.GAME_OVER:
            title = 'Game Over!'
            lines = [
                f'Final Score: {s.score:,}',
                f'Level Reached: {s.level}',
                f'Round Reached: {s.round}/{snap.total_rounds}',
                f'Keys Collected: {s.keys}',
                f'Rounds Completed: {s.rounds_completed}',
            ]
            if s.total_keys_collected > 0 or s.session_score > s.high_score:
                lines.append('You have unsaved progress!')
            buttons = {'restart': 'Play Again (R)', 'save': 'Save Progress', 'quit': 'Quit'}
        elif state is GameState.ROUND_COMPLETE:
            title = 'Round Complete!'
            lines = [
                f'Round {s.round} of {snap.total_rounds} completed!',
                f'Keys collected this round: +{s.keys_collected}',
                'Starting next round...',
            ]
            buttons = {}
        else:
            title = 'Congratulations!'
            lines = [
                f'Level {s.level} Completed!',
                f'You are now Level {s.level + 1}!',
                f'All {snap.total_rounds} rounds finished!',
                f'Total Score: {s.score:,}',
            ]
            buttons = {}

        w, h = 380, 300
        x, y = (self.width - w) // 2, (self.height - h) // 2
        self.overlay_window = pygame_gui.elements.UIWindow(
            rect=pygame.Rect(x, y, w, h), window_display_title=title, manager=self.manager, object_id='#state_window'
        )
        self.overlay_text = pygame_gui.elements.UITextBox(
            html_text='<br>'.join(lines) or title,
            relative_rect=pygame.Rect(10, 10, w - 50, 150),
            manager=self.manager,
            container=self.overlay_window,
        )
        for i, (name, label) in enumerate(buttons.items()):
            self.overlay_buttons[name] = pygame_gui.elements.UIButton(
                relative_rect=pygame.Rect(10 + i * 115, 170, 110, 36), text=label, manager=self.manager, container=self.overlay_window
            )
        self.overlay_state = state

    def close_overlay(self) -> None:
        if self.overlay_window is not None:
            self.overlay_window.kill()
        self.overlay_window = None
        self.overlay_text = None
        self.overlay_state = None
        self.overlay_buttons.clear()
