from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml

from .meta import DEFAULT_BADGES


@dataclass
class WindowConfig:
    width: int = 720
    height: int = 760
    title: str = "Into Stellar"
    fps: int = 60


@dataclass
class GridConfig:
    size: int = 10
    cell_px: int = 48
    margin_px: int = 120


@dataclass
class DifficultyConfig:
    base_enemies: int = 2
    max_enemies: int = 8
    rounds_per_enemy: int = 2
    levels_per_enemy: int = 2
    base_keys: int = 3
    max_keys: int = 6
    levels_per_key: int = 3
    rounds_per_key: int = 4
    rounds_per_level: int = 5


@dataclass
class ScoringConfig:
    key_points: int = 100
    round_bonus: int = 500


@dataclass
class TimingConfig:
    base_tick_ms: int = 1000
    min_tick_ms: int = 600
    level_step_ms: int = 30
    round_step_ms: int = 15
    round_delay_ms: int = 2000
    level_delay_ms: int = 4000


@dataclass
class MetaConfig:
    save_path: str = "save/profile.json"
    badges: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_BADGES))


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class Settings:
    window: WindowConfig
    grid: GridConfig
    difficulty: DifficultyConfig
    scoring: ScoringConfig
    timing: TimingConfig
    meta: MetaConfig
    logging: LoggingConfig


def default_settings() -> Settings:
    return Settings(
        window=WindowConfig(),
        grid=GridConfig(),
        difficulty=DifficultyConfig(),
        scoring=ScoringConfig(),
        timing=TimingConfig(),
        meta=MetaConfig(),
        logging=LoggingConfig(),
    )


def load_settings(path: str | Path = "config/settings.yaml") -> Settings:
    p = Path(path)
    raw: Dict[str, Any] = {}
    if p.exists():
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}

    win = raw.get("window", {})
    window = WindowConfig(
        width=int(win.get("width", 720)),
        height=int(win.get("height", 760)),
        title=str(win.get("title", "Into Stellar")),
        fps=int(win.get("fps", 60)),
    )

    gr = raw.get("grid", {})
    grid = GridConfig(
        size=int(gr.get("size", 10)),
        cell_px=int(gr.get("cell_px", 48)),
        margin_px=int(gr.get("margin_px", 120)),
    )

    df = raw.get("difficulty", {})
    difficulty = DifficultyConfig(
        base_enemies=int(df.get("enemies", {}).get("base", 2)),
        max_enemies=int(df.get("enemies", {}).get("max", 8)),
        rounds_per_enemy=int(df.get("enemies", {}).get("rounds_per_step", 2)),
        levels_per_enemy=int(df.get("enemies", {}).get("levels_per_step", 2)),
        base_keys=int(df.get("keys", {}).get("base", 3)),
        max_keys=int(df.get("keys", {}).get("max", 6)),
        levels_per_key=int(df.get("keys", {}).get("levels_per_step", 3)),
        rounds_per_key=int(df.get("keys", {}).get("rounds_per_step", 4)),
        rounds_per_level=int(df.get("rounds_per_level", 5)),
    )

    sc = raw.get("scoring", {})
    scoring = ScoringConfig(
        key_points=int(sc.get("key_points", 100)),
        round_bonus=int(sc.get("round_bonus", 500)),
    )

    tm = raw.get("timing", {})
    timing = TimingConfig(
        base_tick_ms=int(tm.get("enemy_tick", {}).get("base_ms", 1000)),
        min_tick_ms=int(tm.get("enemy_tick", {}).get("min_ms", 600)),
        level_step_ms=int(tm.get("enemy_tick", {}).get("level_step_ms", 30)),
        round_step_ms=int(tm.get("enemy_tick", {}).get("round_step_ms", 15)),
        round_delay_ms=int(tm.get("round_delay_ms", 2000)),
        level_delay_ms=int(tm.get("level_delay_ms", 4000)),
    )

    mt = raw.get("meta", {})
    meta = MetaConfig(
        save_path=str(mt.get("save_path", "save/profile.json")),
        badges={str(k): int(v) for k, v in (mt.get("badges") or DEFAULT_BADGES).items()},
    )

    lg = raw.get("logging", {})
    logging_cfg = LoggingConfig(level=str(lg.get("level", "INFO")).upper())

    return Settings(
        window=window,
        grid=grid,
        difficulty=difficulty,
        scoring=scoring,
        timing=timing,
        meta=meta,
        logging=logging_cfg,
    )
