from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .config import DifficultyConfig, TimingConfig


@dataclass(frozen=True)
class RoundConfig:
    enemy_count: int
    key_count: int


def check_round(level: int, round_: int) -> None:
    if level < 1 or round_ < 1:
        raise ValueError(f"level and round start at 1 (got level={level}, round={round_})")


def complexity(level: int, round_: int, cfg: Optional[DifficultyConfig] = None) -> RoundConfig:
    """Enemy and key counts for a round. Grows every couple of rounds and levels, capped."""
    check_round(level, round_)
    cfg = cfg or DifficultyConfig()
    enemies = cfg.base_enemies + (round_ - 1) // cfg.rounds_per_enemy + (level - 1) // cfg.levels_per_enemy
    keys = cfg.base_keys + (level - 1) // cfg.levels_per_key + (round_ - 1) // cfg.rounds_per_key
    return RoundConfig(enemy_count=min(cfg.max_enemies, enemies), key_count=min(cfg.max_keys, keys))


def total_rounds(level: int, cfg: Optional[DifficultyConfig] = None) -> int:
    cfg = cfg or DifficultyConfig()
    return level * cfg.rounds_per_level


def enemy_tick_ms(level: int, round_: int, cfg: Optional[TimingConfig] = None) -> int:
    """Milliseconds between enemy steps; shrinks slowly with level and round."""
    check_round(level, round_)
    cfg = cfg or TimingConfig()
    ms = cfg.base_tick_ms - cfg.level_step_ms * (level - 1) - cfg.round_step_ms * (round_ - 1)
    return max(cfg.min_tick_ms, ms)
