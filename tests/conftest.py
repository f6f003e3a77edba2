"""
conftest.py
-----------
Shared fixtures for the engine tests.

- ``engine``: a seeded engine with a started level 1 / round 1.
- ``layout``: replaces the generated round with a hand-built board so that
  scenarios do not depend on random placement.
"""

import os
import random

import pytest

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

from stellar.config import default_settings
from stellar.context import GameStats
from stellar.ecs_components import GridPos
from stellar.engine import GameEngine
from stellar.factories import EnemySpawn, create_enemy, create_goal, create_key, create_player


class RecordingReporter:
    """Progress reporter that records every call."""

    def __init__(self, fail=False):
        self.fail = fail
        self.game_calls = []
        self.round_calls = []
        self.level_calls = []
        self.progress_calls = []

    def report_game_started(self, level):
        self.game_calls.append(level)
        if self.fail:
            raise RuntimeError("ledger unavailable")

    def report_round_complete(self, level, round_):
        self.round_calls.append((level, round_))
        if self.fail:
            raise RuntimeError("ledger unavailable")

    def report_level_complete(self, new_level, total_score):
        self.level_calls.append((new_level, total_score))
        if self.fail:
            raise RuntimeError("ledger unavailable")

    def report_progress(self, total_keys_collected, session_score, high_score, level):
        self.progress_calls.append((total_keys_collected, session_score, high_score, level))
        if self.fail:
            raise RuntimeError("ledger unavailable")
        return True


@pytest.fixture
def settings():
    return default_settings()


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def engine(settings, reporter):
    eng = GameEngine(settings, GameStats(), reporter=reporter, rng=random.Random(1234))
    eng.initialize_round(1, 1)
    eng.drain_notices()
    return eng


@pytest.fixture
def layout():
    """Rebuild the board: ``layout(engine, player=(x, y), enemies=[((x, y), (dx, dy))], keys=[(x, y)])``."""

    def _layout(engine, player=(0, 0), enemies=(), keys=()):
        world = engine.world
        world.clear_database()
        create_goal(world, engine.ctx.goal)
        create_player(world, player)
        for i, (pos, direction) in enumerate(enemies):
            create_enemy(world, EnemySpawn(id=i, pos=GridPos(*pos), direction=direction))
        for pos in keys:
            create_key(world, pos)
        engine.ctx.keys_remaining = len(keys)
        engine.ctx.goal_reachable = len(keys) == 0
        engine.ctx.last_move = None
        engine.ctx.dirty = False
        return engine

    return _layout
