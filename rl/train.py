"""
Train an SB3 agent on InvadersEnv

    python -m rl.train --algo ppo --reward sharpshooter --timesteps 2000000

PPO acts on the native MultiDiscrete([3, 3, 2]) space behind VecNormalize.
DQN needs a single Discrete head, so its envs go through FlatActionWrapper.
Each run writes to <out>/<algo>_<reward>/: checkpoints, best model, the
final model, VecNormalize stats and the per-episode outcome CSV.
"""

import argparse
import os
from typing import Optional

import gymnasium as gym
import numpy as np
from gymnasium import spaces
from stable_baselines3 import DQN, PPO
from stable_baselines3.common.callbacks import CheckpointCallback, EvalCallback
from stable_baselines3.common.monitor import Monitor
from stable_baselines3.common.vec_env import DummyVecEnv, VecNormalize

from game.invaders import InvadersEnv
from rl.configs.invaders_config import ALGO_CONFIGS, ENV_CONFIG, REWARD_PROFILES, TRAINING_CONFIG
from rl.metrics_callback import OutcomeCallback, summarize

ALGORITHMS = {"ppo": PPO, "dqn": DQN}

_MOVES = ("", "left", "right")
_CLIMBS = ("", "up", "down")


class FlatActionWrapper(gym.ActionWrapper):
    """Expose the (horizontal, vertical, fire) combos as one Discrete action.

    Index order follows np.ndindex, so the fire bit changes fastest.
    """

    def __init__(self, env):
        super().__init__(env)
        self.table = np.array(list(np.ndindex(*env.action_space.nvec)), dtype=np.int64)
        self.action_space = spaces.Discrete(len(self.table))

    def action(self, action):
        return self.table[int(action)]

    def label(self, action) -> str:
        h, v, fire = self.table[int(action)]
        parts = [p for p in (_MOVES[h], _CLIMBS[v], "fire" if fire else "") if p]
        return "+".join(parts) or "idle"


def make_env(
    reward: str = "baseline",
    seed: Optional[int] = None,
    flat_actions: bool = False,
    render_mode: Optional[str] = None,
):
    """Return a thunk building a Monitor-wrapped InvadersEnv for DummyVecEnv"""
    if reward not in REWARD_PROFILES:
        raise ValueError(f"Unknown reward profile {reward!r}, expected one of {sorted(REWARD_PROFILES)}")

    def _init():
        env = InvadersEnv(render_mode=render_mode, reward_config=REWARD_PROFILES[reward], **ENV_CONFIG)
        if flat_actions:
            env = FlatActionWrapper(env)
        env = Monitor(env)
        env.reset(seed=seed)
        env.action_space.seed(seed)
        return env

    return _init


def train(
    algo: str = "ppo",
    reward: str = "baseline",
    total_timesteps: Optional[int] = None,
    out_dir: str = TRAINING_CONFIG["out_dir"],
    seed: int = 0,
):
    """Train one algorithm/reward-profile pair and return (model, OutcomeCallback)"""
    if algo not in ALGORITHMS:
        raise ValueError(f"Unknown algorithm {algo!r}, expected one of {sorted(ALGORITHMS)}")
    cfg = ALGO_CONFIGS[algo]
    total_timesteps = total_timesteps or TRAINING_CONFIG["total_timesteps"]
    n_envs = cfg["n_envs"]

    run_name = f"{algo}_{reward}"
    run_dir = os.path.join(out_dir, run_name)
    os.makedirs(run_dir, exist_ok=True)

    print(f"\n{'='*60}")
    print(f"{run_name}: {total_timesteps:,} steps on {n_envs} env(s)")
    print(f"Rewards: {REWARD_PROFILES[reward]['description']}")
    print(f"{'='*60}\n")

    env = DummyVecEnv([
        make_env(reward, seed=seed + i, flat_actions=cfg["flat_actions"]) for i in range(n_envs)
    ])
    eval_env = DummyVecEnv([make_env(reward, seed=seed + 10_000, flat_actions=cfg["flat_actions"])])
    if cfg["normalize"]:
        env = VecNormalize(env, norm_obs=True, norm_reward=True)
        # EvalCallback copies the running stats over before each evaluation
        eval_env = VecNormalize(eval_env, norm_obs=True, norm_reward=False, training=False)

    outcomes = OutcomeCallback(log_dir=run_dir, run_name=run_name)
    callbacks = [
        CheckpointCallback(
            save_freq=max(TRAINING_CONFIG["save_freq"] // n_envs, 1),
            save_path=os.path.join(run_dir, "checkpoints"),
            name_prefix=run_name,
        ),
        EvalCallback(
            eval_env,
            n_eval_episodes=TRAINING_CONFIG["eval_episodes"],
            eval_freq=max(TRAINING_CONFIG["eval_freq"] // n_envs, 1),
            best_model_save_path=run_dir,
            log_path=run_dir,
            deterministic=True,
        ),
        outcomes,
    ]

    model = ALGORITHMS[algo](
        env=env,
        seed=seed,
        tensorboard_log=os.path.join(run_dir, "tb"),
        **cfg["kwargs"],
    )
    model.learn(total_timesteps=total_timesteps, callback=callbacks, tb_log_name=run_name)

    model.save(os.path.join(run_dir, "final_model"))
    if isinstance(env, VecNormalize):
        env.save(os.path.join(run_dir, "vec_normalize.pkl"))
    env.close()
    eval_env.close()

    summary = summarize(outcomes.results)
    print(f"\n{'='*60}")
    print(f"{run_name} done, artifacts in {run_dir}")
    if summary:
        print(f"Episodes: {summary['episodes']}  Best score: {summary['best_score']}")
        print(f"Mean score: {summary['mean_score']:.1f}  Accuracy: {summary['accuracy']:.1%}")
        print(f"Win {summary['victory_rate']:.1%} / time up {summary['time_up_rate']:.1%} / "
              f"defeated {summary['defeated_rate']:.1%}")
    print(f"{'='*60}\n")

    return model, outcomes


def main():
    parser = argparse.ArgumentParser(description="Train an agent on the invaders environment")
    parser.add_argument("--algo", choices=sorted(ALGORITHMS), default="ppo")
    parser.add_argument(
        "--reward",
        choices=sorted(REWARD_PROFILES),
        nargs="+",
        default=["baseline"],
        help="Reward profile(s); one run per profile",
    )
    parser.add_argument(
        "--timesteps",
        type=int,
        default=None,
        help=f"Steps per run (default: {TRAINING_CONFIG['total_timesteps']:,})",
    )
    parser.add_argument("--out", default=TRAINING_CONFIG["out_dir"], help="Output root directory")
    parser.add_argument("--seed", type=int, default=0)
    args = parser.parse_args()

    for reward in args.reward:
        train(args.algo, reward, total_timesteps=args.timesteps, out_dir=args.out, seed=args.seed)


if __name__ == "__main__":
    main()
