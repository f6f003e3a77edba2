from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple


class GridPos(NamedTuple):
    x: int
    y: int


@dataclass
class Position:
    x: int
    y: int

    def at(self) -> GridPos:
        return GridPos(self.x, self.y)


@dataclass
class Direction:
    dx: int  # -1 or +1
    dy: int


@dataclass
class Sprite:
    color: tuple[int, int, int]
    radius: int
    square: bool = False


@dataclass
class Player:
    pass


@dataclass
class Enemy:
    id: int


@dataclass
class Key:
    pass


@dataclass
class Goal:
    pass
