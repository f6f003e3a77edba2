"""The game engine.

``GameEngine`` owns the esper world for one game session and is the only
thing allowed to change it. Ticks, player input, clock updates, restarts and
syncs all go through :meth:`GameEngine.dispatch`, which runs commands one at
a time in arrival order, so an enemy step can never interleave with the
evaluation of a player move.
"""
from __future__ import annotations

import logging
import random
import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple, Union

import esper

from .config import Settings, default_settings
from .context import GameContext, GameOverReason, GameState, GameStats, Notice
from .difficulty import check_round, complexity, enemy_tick_ms, total_rounds
from .ecs_components import Direction, Enemy, GridPos, Key, Position
from .ecs_systems import CollisionSystem, EnemyMovementSystem, RoundTransitionSystem, player_position
from .factories import populate_round
from .progress import ProgressReporter, SyncResult, sync_progress

logger = logging.getLogger(__name__)


class InputAction(str, Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    RESTART = "restart"
    PAUSE = "pause"

    @classmethod
    def parse(cls, value: Union["InputAction", str]) -> Optional["InputAction"]:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


DELTAS: Dict[InputAction, Tuple[int, int]] = {
    InputAction.UP: (0, -1),
    InputAction.DOWN: (0, 1),
    InputAction.LEFT: (-1, 0),
    InputAction.RIGHT: (1, 0),
}


@dataclass(frozen=True)
class EnemyView:
    id: int
    pos: GridPos
    direction: Tuple[int, int]


@dataclass
class RoundSnapshot:
    player: GridPos
    enemies: List[EnemyView]
    keys: List[GridPos]


@dataclass
class Snapshot:
    game_state: GameState
    player: GridPos
    enemies: List[EnemyView]
    keys: List[GridPos]
    stats: GameStats
    keys_remaining: int
    goal_reachable: bool
    tick_ms: int
    total_rounds: int
    game_over_reason: Optional[GameOverReason] = None
    grid_size: int = 10
    notices: List[Notice] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "game_state": self.game_state.value,
            "player": {"x": self.player.x, "y": self.player.y},
            "enemies": [
                {"id": e.id, "x": e.pos.x, "y": e.pos.y, "dx": e.direction[0], "dy": e.direction[1]}
                for e in self.enemies
            ],
            "keys": [{"x": k.x, "y": k.y} for k in self.keys],
            "stats": self.stats.to_dict(),
            "keys_remaining": self.keys_remaining,
            "goal_reachable": self.goal_reachable,
            "tick_ms": self.tick_ms,
            "total_rounds": self.total_rounds,
            "game_over_reason": self.game_over_reason.value if self.game_over_reason else None,
            "grid_size": self.grid_size,
            "notices": [
                {"kind": n.kind, "title": n.title, "message": n.message, "data": dict(n.data)}
                for n in self.notices
            ],
        }


class GameEngine:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        stats: Optional[GameStats] = None,
        reporter: Optional[ProgressReporter] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings or default_settings()
        self.reporter = reporter
        self.ctx = GameContext(
            stats=stats if stats is not None else GameStats(),
            rng=rng or random.Random(),
            grid_size=self.settings.grid.size,
        )
        self.world = esper.World()
        self.movement = EnemyMovementSystem(self.ctx)
        self.collisions = CollisionSystem(self.ctx, self.settings.scoring, on_goal=self._complete_round)
        self.transitions = RoundTransitionSystem(self.ctx, on_ready=self._advance)
        self.world.add_processor(self.movement, priority=90)
        self.world.add_processor(self.collisions, priority=80)
        self.world.add_processor(self.transitions, priority=70)

        self._lock = threading.RLock()
        self._queue: Deque[Tuple[Callable[..., Any], tuple]] = deque()
        self._draining = False

    @property
    def stats(self) -> GameStats:
        return self.ctx.stats

    @property
    def state(self) -> GameState:
        return self.ctx.state

    # -- single entry point -------------------------------------------------

    def dispatch(self, command: Callable[..., Any], *args: Any) -> Any:
        """Run ``command`` with exclusive access to the game state.

        Commands issued while another one is running (for instance by a
        reporter calling back into the engine) are queued and run right
        after it, on the same thread. Only the outermost call gets a return
        value.
        """
        with self._lock:
            if self._draining:
                self._queue.append((command, args))
                return None
            self._draining = True
            try:
                result = command(*args)
                while self._queue:
                    queued, queued_args = self._queue.popleft()
                    queued(*queued_args)
                return result
            finally:
                # a failed command drops whatever it queued
                self._queue.clear()
                self._draining = False

    # -- public API ---------------------------------------------------------

    def initialize_round(self, level: Optional[int] = None, round_: Optional[int] = None) -> RoundSnapshot:
        self.dispatch(self._initialize, level, round_)
        return self.round_snapshot()

    def start_game(self, level: Optional[int] = None, round_: int = 1) -> RoundSnapshot:
        """Start a new game at ``level`` (default: the current level), round 1 unless told otherwise."""
        self.dispatch(self._start_game, level, round_)
        return self.round_snapshot()

    def handle_input(self, action: Union[InputAction, str]) -> bool:
        """Apply one discrete input. Returns False when the action is unknown."""
        parsed = InputAction.parse(action)
        if parsed is None:
            logger.debug("ignoring unknown input %r", action)
            return False
        self.dispatch(self._handle_input, parsed)
        return True

    def on_tick(self) -> None:
        self.dispatch(self._tick)

    def update(self, dt: float) -> None:
        """Advance the clock by ``dt`` seconds: enemy ticks and round transition delays."""
        self.dispatch(self.world.process, dt)

    def restart(self) -> None:
        self.dispatch(self._restart)

    def toggle_pause(self) -> None:
        self.dispatch(self._toggle_pause)

    def end_game(self) -> None:
        self.dispatch(self._end_game, GameOverReason.MANUAL)

    def advance_transition(self) -> None:
        """Skip the remaining delay of a finished round or level."""
        self.dispatch(self._advance)

    def sync_progress(self) -> SyncResult:
        if self.reporter is None:
            return SyncResult(saved=False, status="failed")
        return self.dispatch(sync_progress, self.ctx.stats, self.reporter)

    def drain_notices(self) -> List[Notice]:
        with self._lock:
            out = list(self.ctx.notices)
            self.ctx.notices.clear()
            return out

    def round_snapshot(self) -> RoundSnapshot:
        with self._lock:
            return RoundSnapshot(player=self._player_at(), enemies=self._enemies(), keys=self._keys())

    def get_snapshot(self, include_notices: bool = False) -> Snapshot:
        with self._lock:
            stats = self.ctx.stats
            return Snapshot(
                game_state=self.ctx.state,
                player=self._player_at(),
                enemies=self._enemies(),
                keys=self._keys(),
                stats=GameStats(**stats.to_dict()),
                keys_remaining=self.ctx.keys_remaining,
                goal_reachable=self.ctx.goal_reachable,
                tick_ms=self.ctx.tick_ms,
                total_rounds=total_rounds(stats.level, self.settings.difficulty),
                game_over_reason=self.ctx.game_over_reason,
                grid_size=self.ctx.grid_size,
                notices=self.drain_notices() if include_notices else [],
            )

    # -- commands -----------------------------------------------------------

    def _initialize(self, level: Optional[int], round_: Optional[int]) -> None:
        stats = self.ctx.stats
        level = stats.level if level is None else level
        round_ = stats.round if round_ is None else round_
        check_round(level, round_)
        stats.level = level
        stats.round = round_
        self._begin_round()

    def _start_game(self, level: Optional[int], round_: int = 1) -> None:
        self._initialize(level, round_)
        self._report("report_game_started", self.ctx.stats.level)

    def _begin_round(self) -> None:
        ctx, stats = self.ctx, self.ctx.stats
        counts = complexity(stats.level, stats.round, self.settings.difficulty)
        populate_round(self.world, ctx, counts)
        ctx.state = GameState.PLAYING
        ctx.game_over_reason = None
        ctx.goal_reachable = False
        ctx.last_move = None
        ctx.keys_remaining = counts.key_count
        ctx.transition_left = 0.0
        ctx.tick_ms = enemy_tick_ms(stats.level, stats.round, self.settings.timing)
        ctx.tick_elapsed = 0.0
        ctx.dirty = True
        rounds = total_rounds(stats.level, self.settings.difficulty)
        logger.info(
            "level %d round %d/%d: %d keys, %d enemies, tick %dms",
            stats.level, stats.round, rounds, counts.key_count, counts.enemy_count, ctx.tick_ms,
        )
        ctx.notify(
            "round_started",
            f"Round {stats.round} Started!",
            f"Level {stats.level} - Round {stats.round}/{rounds} | {counts.key_count} keys, {counts.enemy_count} enemies",
            level=stats.level, round=stats.round, keys=counts.key_count, enemies=counts.enemy_count,
        )
        self.collisions.evaluate()

    def _handle_input(self, action: InputAction) -> None:
        if action is InputAction.PAUSE:
            self._toggle_pause()
        elif action is InputAction.RESTART:
            if self.ctx.state is GameState.GAME_OVER:
                self._restart()
            else:
                logger.debug("restart ignored while %s", self.ctx.state.value)
        else:
            self._move(DELTAS[action])

    def _move(self, delta: Tuple[int, int]) -> None:
        if not self.ctx.playing:
            return
        pos = player_position(self.world)
        if pos is None:
            return
        hi = self.ctx.grid_size - 1
        pos.x = max(0, min(hi, pos.x + delta[0]))
        pos.y = max(0, min(hi, pos.y + delta[1]))
        self.ctx.last_move = delta
        self.ctx.dirty = True
        self.collisions.evaluate()

    def _tick(self) -> None:
        if not self.ctx.playing:
            logger.debug("tick ignored while %s", self.ctx.state.value)
            return
        self.movement.step()
        self.collisions.evaluate()

    def _toggle_pause(self) -> None:
        if self.ctx.state is GameState.PLAYING:
            self.ctx.state = GameState.PAUSED
            self.ctx.notify("paused", "Game Paused")
        elif self.ctx.state is GameState.PAUSED:
            self.ctx.state = GameState.PLAYING
            self.ctx.notify("resumed", "Game Resumed")

    def _end_game(self, reason: GameOverReason) -> None:
        if self.ctx.state not in (GameState.PLAYING, GameState.PAUSED):
            return
        self.ctx.state = GameState.GAME_OVER
        self.ctx.game_over_reason = reason
        logger.info("game ended (%s) at level %d round %d", reason.value, self.ctx.stats.level, self.ctx.stats.round)
        self.ctx.notify("game_over", "Game Over!", "Game ended.", reason=reason.value)

    def _restart(self) -> None:
        # keys, high_score, session_score and total_keys_collected carry over
        stats = self.ctx.stats
        stats.score = 0
        stats.keys_collected = 0
        stats.rounds_completed = 0
        logger.info("restarting at level 1")
        self._start_game(1)

    def _complete_round(self) -> None:
        ctx, stats = self.ctx, self.ctx.stats
        level = stats.level
        bonus = self.settings.scoring.round_bonus * level
        score_before = stats.score
        stats.score += bonus
        stats.session_score += bonus
        stats.rounds_completed += 1
        rounds = total_rounds(level, self.settings.difficulty)
        self._report("report_round_complete", level, stats.round)

        if stats.round >= rounds:
            ctx.state = GameState.LEVEL_COMPLETE
            ctx.transition_left = self.settings.timing.level_delay_ms / 1000.0
            new_level = level + 1
            logger.info("level %d complete, score %d", level, stats.score)
            ctx.notify(
                "level_complete",
                "Congratulations!",
                f"Level {level} completed! You are now Level {new_level}!",
                level=level, new_level=new_level, bonus=bonus, total_score=score_before + bonus,
            )
            self._report("report_level_complete", new_level, score_before + bonus)
        else:
            ctx.state = GameState.ROUND_COMPLETE
            ctx.transition_left = self.settings.timing.round_delay_ms / 1000.0
            logger.info("round %d/%d complete at level %d", stats.round, rounds, level)
            ctx.notify(
                "round_complete",
                "Round Complete!",
                f"Round {stats.round} of {rounds} completed! +{bonus} bonus points",
                round=stats.round, total_rounds=rounds, bonus=bonus,
            )

    def _report(self, event: str, *args: Any) -> None:
        if self.reporter is None:
            return
        try:
            getattr(self.reporter, event)(*args)
        except Exception:
            logger.exception("reporter failed on %s%r", event, args)

    def _advance(self) -> None:
        stats = self.ctx.stats
        if self.ctx.state is GameState.LEVEL_COMPLETE:
            stats.level += 1
            stats.round = 1
        elif self.ctx.state is GameState.ROUND_COMPLETE:
            stats.round += 1
        else:
            return
        stats.keys_collected = 0
        self._begin_round()

    # -- views --------------------------------------------------------------

    def _player_at(self) -> GridPos:
        pos = player_position(self.world)
        return pos.at() if pos is not None else GridPos(*self.ctx.start)

    def _enemies(self) -> List[EnemyView]:
        views = [
            EnemyView(id=enemy.id, pos=pos.at(), direction=(d.dx, d.dy))
            for _, (pos, d, enemy) in self.world.get_components(Position, Direction, Enemy)
        ]
        return sorted(views, key=lambda e: e.id)

    def _keys(self) -> List[GridPos]:
        return sorted(pos.at() for _, (pos, _k) in self.world.get_components(Position, Key))
