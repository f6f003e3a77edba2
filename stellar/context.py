from __future__ import annotations

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional
import random


class GameState(str, Enum):
    PLAYING = "playing"
    PAUSED = "paused"
    GAME_OVER = "gameOver"
    ROUND_COMPLETE = "roundComplete"
    LEVEL_COMPLETE = "levelComplete"


class GameOverReason(str, Enum):
    ENEMY = "enemy"
    MANUAL = "manual"


@dataclass
class GameStats:
    """Session stats. Owned by whoever drives the engine; the engine only mutates it."""

    level: int = 1
    round: int = 1
    score: int = 0
    keys: int = 0
    high_score: int = 0
    keys_collected: int = 0
    total_keys_collected: int = 0
    session_score: int = 0
    rounds_completed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class Notice:
    kind: str
    title: str
    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)


MAX_NOTICES = 32


@dataclass
class GameContext:
    stats: GameStats = field(default_factory=GameStats)
    state: GameState = GameState.PLAYING
    game_over_reason: Optional[GameOverReason] = None
    rng: random.Random = field(default_factory=random.Random)
    grid_size: int = 10
    keys_remaining: int = 0
    goal_reachable: bool = False
    # Set whenever player, enemy or key positions change; cleared by the evaluator
    dirty: bool = False
    # Last cardinal step taken by the player, used to push back from a locked goal
    last_move: Optional[tuple[int, int]] = None
    tick_ms: int = 1000
    tick_elapsed: float = 0.0
    # Seconds left before a pending round/level advance
    transition_left: float = 0.0
    notices: List[Notice] = field(default_factory=list)

    @property
    def playing(self) -> bool:
        return self.state is GameState.PLAYING

    @property
    def start(self) -> tuple[int, int]:
        return 0, 0

    @property
    def goal(self) -> tuple[int, int]:
        return self.grid_size - 1, self.grid_size - 1

    def notify(self, kind: str, title: str, message: str = "", **data: Any) -> None:
        self.notices.append(Notice(kind, title, message, dict(data)))
        if len(self.notices) > MAX_NOTICES:
            del self.notices[: len(self.notices) - MAX_NOTICES]
