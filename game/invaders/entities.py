"""
Game entity dataclasses

Sizes and speeds are in surface units per tick; y grows downwards.
"""

from dataclasses import dataclass
from typing import Collection, Sequence

from .utils import clamp

PLAYER_WIDTH = 40.0
PLAYER_HEIGHT = 30.0
PLAYER_SPEED = 5.0

ENEMY_WIDTH = 40.0
ENEMY_HEIGHT = 30.0

BULLET_WIDTH = 4.0
BULLET_HEIGHT = 10.0
PLAYER_BULLET_SPEED = 8.0
ENEMY_BULLET_SPEED = 4.0

PARTICLE_LIFE = 60


def _pressed(keys: Collection[str], bindings: Sequence[str]) -> bool:
    return any(k in keys for k in bindings)


@dataclass
class Player:
    """Player ship, confined to the bottom band of the surface"""
    x: float
    y: float
    color: str = "#4CAF50"
    width: float = PLAYER_WIDTH
    height: float = PLAYER_HEIGHT
    speed: float = PLAYER_SPEED

    @property
    def center(self):
        return self.x + self.width / 2, self.y + self.height / 2

    def update(self, keys: Collection[str], bindings, surface_width: float, surface_height: float):
        """Move from the sampled key set, then clamp to the bottom 40% band"""
        if _pressed(keys, bindings.left):
            self.x -= self.speed
        if _pressed(keys, bindings.right):
            self.x += self.speed
        if _pressed(keys, bindings.up):
            self.y -= self.speed
        if _pressed(keys, bindings.down):
            self.y += self.speed

        top_limit = surface_height * 0.6
        self.x = clamp(self.x, 0.0, surface_width - self.width)
        self.y = clamp(self.y, top_limit, surface_height - self.height)


@dataclass
class Enemy:
    """Formation member; row decides the score value"""
    x: float
    y: float
    row: int
    col: int = 0
    color: str = "#FF4444"
    width: float = ENEMY_WIDTH
    height: float = ENEMY_HEIGHT
    alive: bool = True

    @property
    def center(self):
        return self.x + self.width / 2, self.y + self.height / 2

    def update(self, speed: float, direction: int):
        self.x += speed * direction


@dataclass
class Bullet:
    """Projectile; dy is -1 for player bullets (up) and +1 for enemy bullets"""
    x: float
    y: float
    dy: int
    speed: float
    color: str = "#FFFF00"
    width: float = BULLET_WIDTH
    height: float = BULLET_HEIGHT
    alive: bool = True

    def update(self):
        self.y += self.speed * self.dy


@dataclass
class Particle:
    """Explosion debris, fades out over max_life ticks"""
    x: float
    y: float
    vx: float
    vy: float
    size: float
    color: str = "#FF4444"
    life: int = PARTICLE_LIFE
    max_life: int = PARTICLE_LIFE

    @classmethod
    def spawn(cls, x: float, y: float, color: str, rng) -> "Particle":
        return cls(
            x=x,
            y=y,
            vx=(rng.random() - 0.5) * 4,
            vy=(rng.random() - 0.5) * 4,
            size=rng.random() * 3 + 1,
            color=color,
        )

    @property
    def alpha(self) -> float:
        return max(0.0, self.life / self.max_life)

    def update(self):
        self.x += self.vx
        self.y += self.vy
        self.life -= 1
