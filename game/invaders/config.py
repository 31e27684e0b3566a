"""
Game configuration and gameplay constants
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Tuple

from .utils import hex_to_rgb

# Formation layout: 4 rows x 5 columns
ENEMY_ROWS = 4
ENEMY_COLS = 5
FORMATION_ORIGIN = (50.0, 50.0)
FORMATION_SPACING = (60.0, 50.0)
FORMATION_STEP_DOWN = 20.0

SCORE_TABLE = (5, 10, 15, 20)  # indexed by enemy row
ROW_SHADES = (1.0, 0.85, 0.7, 0.55)  # enemy color brightness per row

START_LIVES = 3
MAX_PLAYER_BULLETS = 3
EXPLOSION_PARTICLES = 10
EXPLOSION_COLOR = "#FF4444"

ENEMY_START_SPEED = 1.0
ENEMY_FIRE_INTERVAL_MS = 1000.0
ENEMY_FIRE_LANE_WIDTH = 20.0
ENEMY_FIRE_LANE_DEPTH = 100.0

SPEED_RAMP_INTERVAL_MS = 5000.0
SPEED_RAMP_STEP = 0.5
SPEED_RAMP_MAX = 4

TIME_ALERT_MS = 60000.0


@dataclass(frozen=True)
class KeyBindings:
    """Movement keys, sampled every tick"""
    left: Tuple[str, ...] = ("ArrowLeft", "KeyA")
    right: Tuple[str, ...] = ("ArrowRight", "KeyD")
    up: Tuple[str, ...] = ("ArrowUp", "KeyW")
    down: Tuple[str, ...] = ("ArrowDown", "KeyS")


@dataclass(frozen=True)
class GameConfig:
    """Session settings resolved once at start"""
    shoot_key: str = "Space"
    game_time_minutes: float = 5
    player_color: str = "#4CAF50"
    enemy_color: str = "#FF4444"
    player_bullet_color: str = "#FFFF00"
    enemy_bullet_color: str = "#FF0000"
    keys: KeyBindings = field(default_factory=KeyBindings)

    @property
    def time_limit_ms(self) -> float:
        return self.game_time_minutes * 60 * 1000

    @property
    def shoot_key_label(self) -> str:
        """Display name of the shoot key ('SPACE', 'F', ...)"""
        if self.shoot_key == "Space":
            return "SPACE"
        return self.shoot_key.replace("Key", "")

    def with_overrides(self, **overrides) -> "GameConfig":
        return replace(self, **overrides)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameConfig":
        """Build a config from a collaborator-supplied mapping.

        Accepts snake_case field names and the camelCase names used by the
        account front-end (shootKey, gameTime, playerColor, ...). Missing keys
        keep their defaults.

        :raises ValueError: on unknown keys or invalid values.
        """
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown config key: {key!r}")
            kwargs[name] = value

        if "keys" in kwargs and isinstance(kwargs["keys"], dict):
            kwargs["keys"] = KeyBindings(
                **{k: tuple(v) for k, v in kwargs["keys"].items()}
            )

        config = cls(**kwargs)
        config.validate()
        return config

    def validate(self):
        minutes = self.game_time_minutes
        if isinstance(minutes, bool) or not isinstance(minutes, (int, float)) or minutes <= 0:
            raise ValueError(f"game_time_minutes must be a positive number, got {minutes!r}")
        if not isinstance(self.shoot_key, str) or not self.shoot_key:
            raise ValueError("shoot_key must be a non-empty key identifier")
        for name in ("player_color", "enemy_color", "player_bullet_color", "enemy_bullet_color"):
            hex_to_rgb(getattr(self, name))


_ALIASES = {
    "shootKey": "shoot_key",
    "gameTime": "game_time_minutes",
    "gameTimeMinutes": "game_time_minutes",
    "playerColor": "player_color",
    "enemyColor": "enemy_color",
    "playerBulletColor": "player_bullet_color",
    "enemyBulletColor": "enemy_bullet_color",
}
