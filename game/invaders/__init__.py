"""Invaders - fixed-timestep Space Invaders simulation, arcade front-end and Gymnasium environment"""

from .config import GameConfig, KeyBindings
from .simulation import Simulation, GameState, Outcome, Session, Formation
from .invaders_env import InvadersEnv, run_random_episode

__all__ = [
    'GameConfig', 'KeyBindings',
    'Simulation', 'GameState', 'Outcome', 'Session', 'Formation',
    'InvadersEnv', 'run_random_episode',
]
