"""
Training settings for InvadersEnv

Reward profiles are expressed as overrides of the env's default weights so
every profile carries the full set of R_* keys.
"""

from game.invaders.invaders_env import DEFAULT_REWARD_CONFIG

# One-minute rounds at 60 ticks per second; max_steps is past the time-up tick
ENV_CONFIG = {
    "dt_ms": 1000 / 60,
    "game_time_minutes": 1,
    "max_steps": 3700,
    "k_bullets": 5,
}


def _profile(description: str, **overrides) -> dict:
    unknown = set(overrides) - set(DEFAULT_REWARD_CONFIG)
    if unknown:
        raise ValueError(f"Unknown reward weights: {sorted(unknown)}")
    return {"description": description, **DEFAULT_REWARD_CONFIG, **overrides}


REWARD_PROFILES = {
    "baseline": _profile("Env defaults"),
    "survival": _profile(
        "Expensive lives, cheap kills",
        R_KILL=0.2, R_LIFE=5.0, R_DEATH=15.0,
    ),
    # ten misses cost as much as one kill pays
    "sharpshooter": _profile(
        "Penalize missed shots, reward accuracy",
        R_SHOT=0.1, R_KILL=1.0,
    ),
    "speedrun": _profile(
        "Clear the formation before the speed ramp",
        R_TIME=0.005, R_VICTORY=30.0,
    ),
}

# algorithm -> vec env layout and SB3 keyword arguments
ALGO_CONFIGS = {
    "ppo": {
        "n_envs": 8,
        "normalize": True,
        "flat_actions": False,
        "kwargs": {
            "policy": "MlpPolicy",
            "learning_rate": 2.5e-4,
            "n_steps": 512,
            "batch_size": 512,
            "n_epochs": 4,
            "gamma": 0.995,
            "gae_lambda": 0.95,
            "clip_range": 0.1,
            "ent_coef": 0.02,
            "verbose": 0,
        },
    },
    "dqn": {
        "n_envs": 1,
        "normalize": False,
        "flat_actions": True,
        "kwargs": {
            "policy": "MlpPolicy",
            "learning_rate": 1e-4,
            "buffer_size": 200_000,
            "learning_starts": 5_000,
            "batch_size": 64,
            "gamma": 0.995,
            "train_freq": 4,
            "target_update_interval": 2_000,
            "exploration_fraction": 0.2,
            "exploration_final_eps": 0.02,
            "verbose": 0,
        },
    },
}

TRAINING_CONFIG = {
    "total_timesteps": 1_000_000,
    "save_freq": 50_000,
    "eval_freq": 25_000,
    "eval_episodes": 5,
    "out_dir": "./runs",
}
