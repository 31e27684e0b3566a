"""
Simulation - the invaders game loop
-----------------------------------
- One player ship confined to the bottom 40% of the surface
- A 4x5 enemy formation that sweeps sideways and steps down at the edges
- Player bullets (max 3 alive), rate-limited enemy fire
- Score by enemy row, 3 lives, wall-clock time limit
- Enemy speed ramps up every 5 seconds, at most 4 times per session

The Simulation owns all mutable game state. A frame scheduler (the arcade
window, the RL env, a test) calls tick() once per frame; rendering and UI
read the same state afterwards (see render.py).
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Collection, Dict, List, Optional

from .config import (
    ENEMY_COLS,
    ENEMY_FIRE_INTERVAL_MS,
    ENEMY_FIRE_LANE_DEPTH,
    ENEMY_FIRE_LANE_WIDTH,
    ENEMY_ROWS,
    ENEMY_START_SPEED,
    EXPLOSION_COLOR,
    EXPLOSION_PARTICLES,
    FORMATION_ORIGIN,
    FORMATION_SPACING,
    FORMATION_STEP_DOWN,
    MAX_PLAYER_BULLETS,
    ROW_SHADES,
    SCORE_TABLE,
    SPEED_RAMP_INTERVAL_MS,
    SPEED_RAMP_MAX,
    SPEED_RAMP_STEP,
    START_LIVES,
    GameConfig,
)
from .entities import (
    BULLET_WIDTH,
    ENEMY_BULLET_SPEED,
    PLAYER_BULLET_SPEED,
    PLAYER_WIDTH,
    Bullet,
    Enemy,
    Particle,
    Player,
)
from .sinks import AudioSink, Cue, ScoreReporter
from .utils import rect_overlap, shade

logger = logging.getLogger(__name__)


class GameState(str, Enum):
    MENU = "menu"
    PLAYING = "playing"
    PAUSED = "paused"
    GAME_OVER = "gameOver"


class Outcome(str, Enum):
    VICTORY = "victory"
    TIME_UP = "time_up"
    DEFEATED = "defeated"


@dataclass
class Session:
    """Score, lives and timers for one playthrough"""
    score: int = 0
    lives: int = START_LIVES
    level: int = 1
    start_time: float = 0.0
    time_limit: float = 0.0  # ms
    time_remaining: float = 0.0  # ms
    speed_timer: float = 0.0  # ms accumulated since the last ramp
    speed_increases: int = 0
    outcome: Optional[Outcome] = None

    @property
    def victory(self) -> bool:
        return self.outcome is Outcome.VICTORY


@dataclass
class Formation:
    """Enemy grid sharing one direction and speed"""
    enemies: List[Enemy] = field(default_factory=list)
    direction: int = 1
    speed: float = ENEMY_START_SPEED
    step_down: float = FORMATION_STEP_DOWN

    @classmethod
    def grid(cls, color: str) -> "Formation":
        """4x5 grid; each row is a darker shade of color"""
        x0, y0 = FORMATION_ORIGIN
        dx, dy = FORMATION_SPACING
        enemies = [
            Enemy(
                x=x0 + col * dx, y=y0 + row * dy, row=row, col=col,
                color=shade(color, ROW_SHADES[row]),
            )
            for row in range(ENEMY_ROWS)
            for col in range(ENEMY_COLS)
        ]
        return cls(enemies=enemies)

    @property
    def empty(self) -> bool:
        return not self.enemies

    def update(self, surface_width: float) -> bool:
        """Move sideways; flip and drop once if any enemy reached an edge"""
        at_edge = False
        for e in self.enemies:
            e.update(self.speed, self.direction)
            if e.x <= 0 or e.x + e.width >= surface_width:
                at_edge = True

        if at_edge:
            self.direction *= -1
            for e in self.enemies:
                e.y += self.step_down
        return at_edge


def _wall_clock_ms() -> float:
    return time.monotonic() * 1000.0


class Simulation:
    """Invaders game state plus the per-frame update"""

    def __init__(
        self,
        width: int = 800,
        height: int = 600,
        audio: Optional[AudioSink] = None,
        score_reporter: Optional[ScoreReporter] = None,
        clock: Optional[Callable[[], float]] = None,
        rng: Optional[random.Random] = None,
    ):
        # Surface
        self.width = width
        self.height = height

        # Collaborators
        self.audio = audio
        self.score_reporter = score_reporter
        self.clock = clock or _wall_clock_ms
        self.rng = rng or random.Random()

        self.state = GameState.MENU
        self.config = GameConfig()

        # World state
        self.session = Session()
        self.formation = Formation()
        self.player: Optional[Player] = None
        self.player_bullets: List[Bullet] = []
        self.enemy_bullets: List[Bullet] = []
        self.particles: List[Particle] = []

        self._last_enemy_shot: Optional[float] = None

        # Per-tick event counters
        self.events: Dict[str, float] = {}
        self._reset_events()

    # ----------------------------
    # Lifecycle
    # ----------------------------

    def start(self, config: Optional[GameConfig] = None):
        """Reset the session and begin playing"""
        if config is not None:
            self.config = config

        now = self.clock()
        self.session = Session(
            start_time=now,
            time_limit=self.config.time_limit_ms,
            time_remaining=self.config.time_limit_ms,
        )
        self.formation = Formation.grid(self.config.enemy_color)
        self._spawn_player()
        self.player_bullets = []
        self.enemy_bullets = []
        self.particles = []
        self._last_enemy_shot = None
        self._reset_events()

        self.state = GameState.PLAYING
        logger.info(
            "Game started: %d enemies, %.1f minute limit",
            len(self.formation.enemies), self.config.game_time_minutes,
        )
        self._cue(Cue.BACKGROUND_START)

    def restart(self, config: Optional[GameConfig] = None):
        self.start(config)

    def pause(self) -> bool:
        if self.state is not GameState.PLAYING:
            return False
        self.state = GameState.PAUSED
        logger.info("Game paused")
        self._cue(Cue.BACKGROUND_STOP)
        return True

    def resume(self) -> bool:
        if self.state is not GameState.PAUSED:
            return False
        self.state = GameState.PLAYING
        logger.info("Game resumed")
        self._cue(Cue.BACKGROUND_START)
        return True

    def toggle_pause(self) -> bool:
        return self.pause() or self.resume()

    def stop(self):
        """Back to the menu; the session is abandoned without a score report"""
        self.state = GameState.MENU
        logger.info("Game stopped")
        self._cue(Cue.BACKGROUND_STOP)

    @property
    def playing(self) -> bool:
        return self.state is GameState.PLAYING

    # ----------------------------
    # Actions
    # ----------------------------

    def shoot(self) -> bool:
        if not self.playing or self.player is None:
            return False
        if len(self.player_bullets) >= MAX_PLAYER_BULLETS:
            return False

        self.player_bullets.append(Bullet(
            x=self.player.x + self.player.width / 2 - BULLET_WIDTH / 2,
            y=self.player.y,
            dy=-1,
            speed=PLAYER_BULLET_SPEED,
            color=self.config.player_bullet_color,
        ))
        self.events["shots"] += 1
        return True

    # ----------------------------
    # Frame update
    # ----------------------------

    def tick(self, delta_ms: float, keys: Collection[str] = ()):
        """Advance one frame. Does nothing unless playing."""
        if not self.playing:
            return

        self.player.update(keys, self.config.keys, self.width, self.height)
        self.formation.update(self.width)
        self._update_player_bullets()
        self._update_enemy_bullets()
        if not self.playing:
            return
        self._update_particles()
        self._enemy_fire()
        self._speed_ramp(delta_ms)

        self.session.time_remaining = self.session.time_limit - (self.clock() - self.session.start_time)
        if self.session.time_remaining <= 0:
            self._game_over(Outcome.TIME_UP)
            return

        if self.formation.empty:
            self._game_over(Outcome.VICTORY)

    def _update_player_bullets(self):
        for b in self.player_bullets:
            b.update()
            if b.y < 0:
                b.alive = False
                continue

            # Reverse order: the most recently placed enemy wins ties
            for e in reversed(self.formation.enemies):
                if not e.alive:
                    continue
                if rect_overlap(b, e):
                    points = SCORE_TABLE[e.row]
                    self.session.score += points
                    self.events["points"] += points
                    self.events["kills"] += 1

                    e.alive = False
                    b.alive = False
                    self._explode(*e.center)
                    self._cue(Cue.ENEMY_HIT)
                    break

        self.player_bullets = [b for b in self.player_bullets if b.alive]
        self.formation.enemies = [e for e in self.formation.enemies if e.alive]

    def _update_enemy_bullets(self):
        for b in self.enemy_bullets:
            b.update()
            if b.y > self.height:
                b.alive = False
                continue

            if rect_overlap(b, self.player):
                b.alive = False
                self.session.lives -= 1
                self.events["lives_lost"] += 1
                self._explode(*self.player.center)
                self._cue(Cue.PLAYER_HIT)

                if self.session.lives <= 0:
                    self.session.lives = 0
                    self._game_over(Outcome.DEFEATED)
                    break
                self._spawn_player()

        self.enemy_bullets = [b for b in self.enemy_bullets if b.alive]

    def _update_particles(self):
        for p in self.particles:
            p.update()
        self.particles = [p for p in self.particles if p.life > 0]

    def _enemy_fire(self):
        if self.formation.empty:
            return

        now = self.clock()
        if self._last_enemy_shot is not None and now - self._last_enemy_shot < ENEMY_FIRE_INTERVAL_MS:
            return

        # Roughly one bullet per column: skip enemies with a bullet just below them
        candidates = [
            e for e in self.formation.enemies
            if not any(
                abs(b.x - e.x) < ENEMY_FIRE_LANE_WIDTH and b.y < e.y + ENEMY_FIRE_LANE_DEPTH
                for b in self.enemy_bullets
            )
        ]
        if not candidates:
            return

        shooter = self.rng.choice(candidates)
        self.enemy_bullets.append(Bullet(
            x=shooter.x + shooter.width / 2 - BULLET_WIDTH / 2,
            y=shooter.y + shooter.height,
            dy=1,
            speed=ENEMY_BULLET_SPEED,
            color=self.config.enemy_bullet_color,
        ))
        self._last_enemy_shot = now

    def _speed_ramp(self, delta_ms: float):
        s = self.session
        s.speed_timer += delta_ms
        if s.speed_timer >= SPEED_RAMP_INTERVAL_MS and s.speed_increases < SPEED_RAMP_MAX:
            self.formation.speed += SPEED_RAMP_STEP
            s.speed_increases += 1
            s.speed_timer = 0.0
            logger.debug("Enemy speed raised to %.1f", self.formation.speed)

    # ----------------------------
    # Helpers
    # ----------------------------

    def _spawn_player(self):
        x = self.rng.random() * (self.width - PLAYER_WIDTH)
        y = self.height - 60
        self.player = Player(x=x, y=y, color=self.config.player_color)

    def _explode(self, x: float, y: float):
        for _ in range(EXPLOSION_PARTICLES):
            self.particles.append(Particle.spawn(x, y, EXPLOSION_COLOR, self.rng))

    def _game_over(self, outcome: Outcome):
        self.state = GameState.GAME_OVER
        self.session.outcome = outcome
        logger.info("Game over (%s), final score %d", outcome.value, self.session.score)
        self._cue(Cue.BACKGROUND_STOP)

        if self.score_reporter is not None:
            try:
                self.score_reporter.report_score(self.session.score)
            except Exception:
                logger.warning("Score report failed", exc_info=True)

    def _cue(self, cue: Cue):
        if self.audio is None:
            return
        try:
            self.audio.play(cue)
        except Exception:
            logger.warning("Audio cue %s failed", cue.value, exc_info=True)

    def pop_events(self) -> Dict[str, float]:
        """Return the counters gathered since the last call and clear them"""
        events = self.events
        self._reset_events()
        return events

    def _reset_events(self):
        self.events = {"shots": 0.0, "kills": 0.0, "points": 0.0, "lives_lost": 0.0}
