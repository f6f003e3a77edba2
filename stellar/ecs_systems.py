from __future__ import annotations

import logging
from typing import Callable, Optional

import esper
import pygame

from .config import ScoringConfig
from .context import GameContext, GameOverReason, GameState
from .ecs_components import Direction, Enemy, Goal, Key, Player, Position, Sprite

logger = logging.getLogger(__name__)


def player_position(world: esper.World) -> Optional[Position]:
    for _, (pos, _pl) in world.get_components(Position, Player):
        return pos
    return None


class EnemyMovementSystem(esper.Processor):
    """Steps every enemy once per tick interval while the round is being played."""

    def __init__(self, ctx: GameContext) -> None:
        super().__init__()
        self.ctx = ctx

    def process(self, dt: float) -> None:
        if not self.ctx.playing:
            return
        self.ctx.tick_elapsed += dt
        interval = self.ctx.tick_ms / 1000.0
        while self.ctx.playing and self.ctx.tick_elapsed >= interval:
            self.ctx.tick_elapsed -= interval
            self.step()
            # An enemy can walk onto the player and off again within one frame
            self.world.get_processor(CollisionSystem).evaluate()

    def step(self) -> None:
        n = self.ctx.grid_size
        for _, (pos, d, _enemy) in self.world.get_components(Position, Direction, Enemy):
            nx = pos.x + d.dx
            ny = pos.y + d.dy
            # Bounce: flip the offending axis and step from the old cell instead
            if nx < 0 or nx >= n:
                d.dx = -d.dx
                nx = pos.x + d.dx
            if ny < 0 or ny >= n:
                d.dy = -d.dy
                ny = pos.y + d.dy
            pos.x, pos.y = nx, ny
        self.ctx.dirty = True


class CollisionSystem(esper.Processor):
    """Enemy hits, key pickups and the locked goal.

    Evaluation happens only after something moved (``ctx.dirty``) and only
    while playing. ``on_goal`` fires once the player stands on the goal with
    every key collected.
    """

    def __init__(self, ctx: GameContext, scoring: ScoringConfig, on_goal: Callable[[], None]) -> None:
        super().__init__()
        self.ctx = ctx
        self.scoring = scoring
        self.on_goal = on_goal

    def process(self, dt: float) -> None:
        self.evaluate()

    def evaluate(self) -> None:
        # A push-back off the goal is itself a move, so go round again
        for _ in range(4):
            if not (self.ctx.playing and self.ctx.dirty):
                return
            self.ctx.dirty = False
            self._evaluate_once()

    def _evaluate_once(self) -> None:
        ppos = player_position(self.world)
        if ppos is None:
            return
        here = ppos.at()

        for _, (epos, _enemy) in self.world.get_components(Position, Enemy):
            if epos.at() == here:
                self.ctx.state = GameState.GAME_OVER
                self.ctx.game_over_reason = GameOverReason.ENEMY
                logger.info("caught by an enemy at %s (level %d, round %d)", here, self.ctx.stats.level, self.ctx.stats.round)
                self.ctx.notify("game_over", "Game Over!", "You were caught by an enemy!", reason=GameOverReason.ENEMY.value)
                return

        picked = [e for e, (kpos, _key) in self.world.get_components(Position, Key) if kpos.at() == here]
        for e in picked:
            self.world.delete_entity(e, immediate=True)
            self._collect_key()

        if here == self.ctx.goal:
            if self.ctx.goal_reachable:
                self.on_goal()
            else:
                self._push_back(ppos)

    def _collect_key(self) -> None:
        stats = self.ctx.stats
        points = self.scoring.key_points * stats.level
        stats.score += points
        stats.session_score += points
        stats.keys += 1
        stats.keys_collected += 1
        stats.total_keys_collected += 1
        self.ctx.keys_remaining = max(0, self.ctx.keys_remaining - 1)
        self.ctx.notify("key_collected", "Key collected!", f"+{points} points", points=points, remaining=self.ctx.keys_remaining)
        if self.ctx.keys_remaining == 0:
            self.ctx.goal_reachable = True
            self.ctx.notify("all_keys_collected", "All Keys Collected!", "Reach the spaceship to complete the round!")

    def _push_back(self, ppos: Position) -> None:
        dx, dy = self.ctx.last_move or (1, 0)
        hi = self.ctx.grid_size - 1
        gx, gy = self.ctx.goal
        ppos.x = max(0, min(hi, gx - dx))
        ppos.y = max(0, min(hi, gy - dy))
        self.ctx.dirty = True
        remaining = self.ctx.keys_remaining
        self.ctx.notify(
            "collect_keys_first",
            "Collect All Keys First!",
            f"You need to collect {remaining} more keys before reaching the spaceship",
            remaining=remaining,
        )


class RoundTransitionSystem(esper.Processor):
    """Counts down the pause between a finished round and the next one."""

    def __init__(self, ctx: GameContext, on_ready: Callable[[], None]) -> None:
        super().__init__()
        self.ctx = ctx
        self.on_ready = on_ready

    def process(self, dt: float) -> None:
        if self.ctx.state not in (GameState.ROUND_COMPLETE, GameState.LEVEL_COMPLETE):
            return
        self.ctx.transition_left -= dt
        if self.ctx.transition_left <= 0:
            self.ctx.transition_left = 0.0
            self.on_ready()


class RenderSystem(esper.Processor):
    def __init__(self, ctx: GameContext, surface: pygame.Surface, origin: tuple[int, int], cell_px: int) -> None:
        super().__init__()
        self.ctx = ctx
        self.surf = surface
        self.ox, self.oy = origin
        self.cell = cell_px

    def _cell_rect(self, x: int, y: int) -> pygame.Rect:
        return pygame.Rect(self.ox + x * self.cell, self.oy + y * self.cell, self.cell - 2, self.cell - 2)

    def process(self, dt: float) -> None:
        self.surf.fill((15, 23, 42))
        n = self.ctx.grid_size
        gx, gy = self.ctx.goal
        for y in range(n):
            for x in range(n):
                color = (67, 38, 20) if (x, y) == (gx, gy) else (30, 41, 59)
                pygame.draw.rect(self.surf, color, self._cell_rect(x, y))
                pygame.draw.rect(self.surf, (55, 65, 81), self._cell_rect(x, y), 1)

        # Player drawn last so it stays visible on top of a key or the goal
        layers = (Goal, Key, Enemy, Player)
        for marker in layers:
            for _, (pos, sprite, _m) in self.world.get_components(Position, Sprite, marker):
                rect = self._cell_rect(pos.x, pos.y)
                if sprite.square:
                    inner = rect.inflate(-(self.cell - 2 * sprite.radius), -(self.cell - 2 * sprite.radius))
                    pygame.draw.rect(self.surf, sprite.color, inner, border_radius=6)
                else:
                    pygame.draw.circle(self.surf, sprite.color, rect.center, sprite.radius)

        if self.ctx.goal_reachable and self.ctx.playing:
            pygame.draw.rect(self.surf, (74, 222, 128), self._cell_rect(gx, gy), 2)
