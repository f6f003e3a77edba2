from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Iterable, List, Set, Tuple

import esper

from .context import GameContext
from .difficulty import RoundConfig
from .ecs_components import Direction, Enemy, Goal, GridPos, Key, Player, Position, Sprite

logger = logging.getLogger(__name__)

MAX_PLACEMENT_ATTEMPTS = 1000

PLAYER_COLOR = (34, 211, 238)
ENEMY_COLOR = (147, 51, 234)
KEY_COLOR = (96, 165, 250)
GOAL_COLOR = (249, 115, 22)


class PlacementError(RuntimeError):
    """Raised when rejection sampling cannot find a free cell."""


@dataclass
class EnemySpawn:
    id: int
    pos: GridPos
    direction: Tuple[int, int]


@dataclass
class Placement:
    enemies: List[EnemySpawn]
    keys: List[GridPos]


def _free_cell(rng: random.Random, grid_size: int, blocked: Set[GridPos], what: str) -> GridPos:
    for attempt in range(MAX_PLACEMENT_ATTEMPTS):
        pos = GridPos(rng.randrange(grid_size), rng.randrange(grid_size))
        if pos not in blocked:
            if attempt > 20:
                logger.debug("placed %s after %d attempts", what, attempt + 1)
            return pos
    raise PlacementError(
        f"no free cell for {what} after {MAX_PLACEMENT_ATTEMPTS} attempts "
        f"({len(blocked)} of {grid_size * grid_size} cells taken)"
    )


def place_entities(
    enemy_count: int,
    key_count: int,
    grid_size: int,
    reserved: Iterable[Tuple[int, int]],
    rng: random.Random,
) -> Placement:
    """Pick enemy and key cells by uniform sampling with rejection.

    Enemies avoid the reserved cells and each other. Keys avoid the reserved
    cells, every enemy and every other key. Each enemy also gets a random
    diagonal direction, one independent coin flip per axis.
    """
    blocked: Set[GridPos] = {GridPos(*c) for c in reserved}
    enemies: List[EnemySpawn] = []
    for i in range(enemy_count):
        pos = _free_cell(rng, grid_size, blocked, f"enemy {i}")
        blocked.add(pos)
        direction = (1 if rng.random() > 0.5 else -1, 1 if rng.random() > 0.5 else -1)
        enemies.append(EnemySpawn(id=i, pos=pos, direction=direction))

    keys: List[GridPos] = []
    for i in range(key_count):
        pos = _free_cell(rng, grid_size, blocked, f"key {i}")
        blocked.add(pos)
        keys.append(pos)
    return Placement(enemies=enemies, keys=keys)


def create_player(world: esper.World, pos: Tuple[int, int] = (0, 0)) -> int:
    return world.create_entity(Position(pos[0], pos[1]), Player(), Sprite(PLAYER_COLOR, 16))


def create_enemy(world: esper.World, spawn: EnemySpawn) -> int:
    return world.create_entity(
        Position(spawn.pos.x, spawn.pos.y),
        Direction(*spawn.direction),
        Enemy(id=spawn.id),
        Sprite(ENEMY_COLOR, 16, square=True),
    )


def create_key(world: esper.World, pos: Tuple[int, int]) -> int:
    return world.create_entity(Position(pos[0], pos[1]), Key(), Sprite(KEY_COLOR, 11))


def create_goal(world: esper.World, pos: Tuple[int, int]) -> int:
    return world.create_entity(Position(pos[0], pos[1]), Goal(), Sprite(GOAL_COLOR, 16, square=True))


def populate_round(world: esper.World, ctx: GameContext, counts: RoundConfig) -> Placement:
    """Wipe the world and lay out a fresh round: goal, player at start, enemies and keys."""
    world.clear_database()
    placement = place_entities(
        counts.enemy_count,
        counts.key_count,
        ctx.grid_size,
        reserved=(ctx.start, ctx.goal),
        rng=ctx.rng,
    )
    create_goal(world, ctx.goal)
    create_player(world, ctx.start)
    for spawn in placement.enemies:
        create_enemy(world, spawn)
    for pos in placement.keys:
        create_key(world, pos)
    return placement
