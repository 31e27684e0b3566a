"""
InvadersEnv - Gymnasium wrapper around the invaders Simulation
--------------------------------------------------------------
- One env step = one simulation tick of dt_ms
- Simulated clock, so the time limit and enemy fire rate follow env steps
- MultiDiscrete action space: [horizontal(3), vertical(3), shoot(2)]
- Vector observation: player state + 20 formation slots + K nearest enemy bullets
- Reward from score, kills, lives lost and the final outcome

Quick test:
    python -m game.invaders.invaders_env
"""

from __future__ import annotations

import random
import time
from typing import Any, Dict, Optional

import numpy as np
import gymnasium as gym
from gymnasium import spaces

from .config import (
    ENEMY_COLS,
    ENEMY_ROWS,
    ENEMY_START_SPEED,
    MAX_PLAYER_BULLETS,
    SPEED_RAMP_INTERVAL_MS,
    SPEED_RAMP_MAX,
    SPEED_RAMP_STEP,
    START_LIVES,
    GameConfig,
)
from .render import build_draw_commands, rasterize
from .simulation import GameState, Outcome, Simulation
from .utils import clamp, seed_everything

DEFAULT_REWARD_CONFIG = {
    "R_POINTS": 0.05,    # per score point
    "R_KILL": 0.5,       # per enemy destroyed
    "R_LIFE": 2.0,       # per life lost
    "R_SHOT": 0.01,      # per bullet fired
    "R_TIME": 0.001,     # per step
    "R_VICTORY": 10.0,   # formation cleared
    "R_DEATH": 5.0,      # last life lost
}

# Key identifiers the env presses for each action component
_HORIZONTAL_KEYS = (None, "ArrowLeft", "ArrowRight")
_VERTICAL_KEYS = (None, "ArrowUp", "ArrowDown")


class StepClock:
    """Millisecond clock advanced explicitly by the env"""

    def __init__(self, start: float = 0.0):
        self.now = start

    def advance(self, ms: float):
        self.now += ms

    def __call__(self) -> float:
        return self.now


class InvadersEnv(gym.Env):
    """Invaders as a Gymnasium environment"""

    metadata = {"render_modes": ["human", "rgb_array"], "render_fps": 60}

    def __init__(
        self,
        render_mode: Optional[str] = None,
        width: int = 800,
        height: int = 600,
        dt_ms: float = 1000 / 60,
        max_steps: int = 3600,  # 60s at 60 FPS
        game_time_minutes: float = 1,
        k_bullets: int = 5,
        reward_config: Optional[Dict[str, float]] = None,
    ):
        super().__init__()

        assert render_mode is None or render_mode in self.metadata["render_modes"]
        self.render_mode = render_mode

        self.width = width
        self.height = height
        self.dt_ms = dt_ms
        self.max_steps = max_steps
        self.k_bullets = k_bullets
        self.game_config = GameConfig(game_time_minutes=game_time_minutes)

        self.reward_config = dict(DEFAULT_REWARD_CONFIG)
        if reward_config:
            self.reward_config.update({k: v for k, v in reward_config.items() if k.startswith("R_")})

        # Action space:
        # horizontal: 0 stay, 1 left, 2 right
        # vertical: 0 stay, 1 up, 2 down
        # shoot: 0/1
        self.action_space = spaces.MultiDiscrete([3, 3, 2])

        # Observation space (vector)
        # Player: pos(2) lives(1) enemy speed(1) direction(1) time left(1)
        #         speed ramp(1) bullets in flight(1)
        # Each formation slot: alive(1) rel pos(2)
        # Each enemy bullet: rel pos(2)
        obs_dim = 8 + (ENEMY_ROWS * ENEMY_COLS * 3) + (self.k_bullets * 2)
        self.observation_space = spaces.Box(
            low=-1.0, high=1.0, shape=(obs_dim,), dtype=np.float32
        )

        self._clock = StepClock()
        self.sim = Simulation(width=width, height=height, clock=self._clock)

        self._window = None
        self._step_count = 0
        self._events: Dict[str, float] = {}
        self._totals: Dict[str, float] = {}

    # ----------------------------
    # Gym API
    # ----------------------------

    def reset(self, seed: Optional[int] = None, options: Optional[dict] = None):
        super().reset(seed=seed)
        seed_everything(seed)
        self.sim.rng = random.Random(seed)

        self._step_count = 0
        self._clock.now = 0.0
        self._totals = {"kills": 0.0, "lives_lost": 0.0, "shots": 0.0}

        self.sim.start(self.game_config)
        self.sim.pop_events()

        return self._get_obs(), self._get_info()

    def step(self, action):
        horizontal, vertical, shoot = int(action[0]), int(action[1]), int(action[2])

        keys = {k for k in (_HORIZONTAL_KEYS[horizontal], _VERTICAL_KEYS[vertical]) if k}
        if shoot:
            self.sim.shoot()

        self._clock.advance(self.dt_ms)
        self.sim.tick(self.dt_ms, keys)

        self._events = self.sim.pop_events()
        for key in self._totals:
            self._totals[key] += self._events.get(key, 0.0)

        reward = self._compute_reward()

        terminated = self.sim.state is GameState.GAME_OVER
        self._step_count += 1
        truncated = not terminated and self._step_count >= self.max_steps

        obs = self._get_obs()
        info = self._get_info()

        if self.render_mode == "human":
            self.render()

        return obs, reward, terminated, truncated, info

    # ----------------------------
    # Observation / reward / info
    # ----------------------------

    def _get_obs(self) -> np.ndarray:
        sim = self.sim
        p = sim.player
        s = sim.session

        max_speed = ENEMY_START_SPEED + SPEED_RAMP_STEP * SPEED_RAMP_MAX
        time_left = s.time_remaining / s.time_limit if s.time_limit > 0 else 0.0
        ramp = clamp(s.speed_timer / SPEED_RAMP_INTERVAL_MS, 0.0, 1.0)

        obs_parts = [
            (p.x / self.width) * 2 - 1,
            (p.y / self.height) * 2 - 1,
            (s.lives / START_LIVES) * 2 - 1,
            (sim.formation.speed / max_speed) * 2 - 1,
            float(sim.formation.direction),
            clamp(time_left, 0.0, 1.0) * 2 - 1,
            ramp * 2 - 1,
            (len(sim.player_bullets) / MAX_PLAYER_BULLETS) * 2 - 1,
        ]

        # Formation: fixed slot per grid position
        slots = {(e.row, e.col): e for e in sim.formation.enemies}
        px, py = p.center
        for row in range(ENEMY_ROWS):
            for col in range(ENEMY_COLS):
                e = slots.get((row, col))
                if e is None:
                    obs_parts += [0.0, 0.0, 0.0]
                    continue
                ex, ey = e.center
                obs_parts += [
                    1.0,
                    clamp((ex - px) / self.width, -1, 1),
                    clamp((ey - py) / self.height, -1, 1),
                ]

        # Enemy bullets: top-K nearest
        bullets_sorted = sorted(
            sim.enemy_bullets,
            key=lambda b: (b.x - px) ** 2 + (b.y - py) ** 2
        )
        for i in range(self.k_bullets):
            if i < len(bullets_sorted):
                b = bullets_sorted[i]
                obs_parts += [
                    clamp((b.x - px) / self.width, -1, 1),
                    clamp((b.y - py) / self.height, -1, 1),
                ]
            else:
                obs_parts += [0.0, 0.0]

        return np.array(obs_parts, dtype=np.float32)

    def _compute_reward(self) -> float:
        r = self.reward_config
        reward = 0.0

        reward += r["R_POINTS"] * self._events.get("points", 0.0)
        reward += r["R_KILL"] * self._events.get("kills", 0.0)
        reward -= r["R_LIFE"] * self._events.get("lives_lost", 0.0)
        reward -= r["R_SHOT"] * self._events.get("shots", 0.0)
        reward -= r["R_TIME"]

        outcome = self.sim.session.outcome
        if outcome is Outcome.VICTORY:
            reward += r["R_VICTORY"]
        elif outcome is Outcome.DEFEATED:
            reward -= r["R_DEATH"]

        return float(reward)

    def _get_info(self) -> Dict[str, Any]:
        s = self.sim.session
        return {
            "score": s.score,
            "lives": s.lives,
            "enemies_left": len(self.sim.formation.enemies),
            "enemies_killed": self._totals.get("kills", 0.0),
            "lives_lost": self._totals.get("lives_lost", 0.0),
            "shots_fired": self._totals.get("shots", 0.0),
            "outcome": s.outcome.value if s.outcome else None,
            "step": self._step_count,
        }

    # ----------------------------
    # Rendering
    # ----------------------------

    def render(self):
        if self.render_mode is None:
            return None

        if self.render_mode == "rgb_array":
            return rasterize(build_draw_commands(self.sim), self.width, self.height)

        if self._window is None:
            # Imported here so headless training never opens a GL context
            from .window import InvadersWindow
            self._window = InvadersWindow(self.sim, interactive=False)
        self._window.on_draw()
        return None

    def close(self):
        if self._window is not None:
            self._window.close()
            self._window = None


# ----------------------------
# Quick sanity test
# ----------------------------

def run_random_episode(render: bool = True, seed: Optional[int] = 42) -> float:
    """Run a random episode and return its total reward"""
    env = InvadersEnv(render_mode="human" if render else None)
    obs, info = env.reset(seed=seed)
    env.action_space.seed(seed)

    terminated = False
    truncated = False
    total = 0.0

    print("Running episode... close the window to exit early.")

    while not (terminated or truncated):
        action = env.action_space.sample()
        obs, reward, terminated, truncated, info = env.step(action)
        total += reward

        if render and env._window:
            env._window.dispatch_events()
            env._window.flip()
            time.sleep(1 / env.metadata["render_fps"])

    print(f"Random episode return: {total:.2f} "
          f"(score {info['score']}, outcome {info['outcome']})")

    env.close()
    return total


if __name__ == "__main__":
    run_random_episode(render=True)
