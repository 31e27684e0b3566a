"""
Play evaluation rounds with a saved agent (or a random policy) and report
how the rounds ended: win/time-up/defeat rates, score, kills per shot.

    python -m rl.evaluate runs/ppo_baseline/final_model.zip --algo ppo \\
        --vec-normalize runs/ppo_baseline/vec_normalize.pkl --episodes 20
    python -m rl.evaluate --episodes 20            # random policy only
"""

import argparse
import time
from typing import Callable, List, Optional

import numpy as np
from stable_baselines3.common.vec_env import DummyVecEnv, VecNormalize

from game.invaders.records import ScoreBoard
from rl.configs.invaders_config import ALGO_CONFIGS
from rl.metrics_callback import OUTCOMES, EpisodeResult, summarize
from rl.train import ALGORITHMS, make_env

Policy = Callable[[np.ndarray], np.ndarray]


def random_policy(action_space, seed: Optional[int] = None) -> Policy:
    action_space.seed(seed)
    return lambda obs: action_space.sample()


def load_policy(model_path: str, algo: str = "ppo", vec_normalize_path: Optional[str] = None) -> Policy:
    """Deterministic policy from a saved model, normalizing observations with saved stats if given"""
    model = ALGORITHMS[algo].load(model_path)
    stats = None
    if vec_normalize_path:
        venv = DummyVecEnv([make_env(flat_actions=ALGO_CONFIGS[algo]["flat_actions"])])
        stats = VecNormalize.load(vec_normalize_path, venv)
        stats.training = False

    def policy(obs):
        if stats is not None:
            obs = stats.normalize_obs(obs)
        action, _ = model.predict(obs, deterministic=True)
        return action

    return policy


def play_episode(env, policy: Policy, seed: Optional[int] = None, render: bool = False) -> EpisodeResult:
    obs, info = env.reset(seed=seed)
    total, steps = 0.0, 0
    terminated = truncated = False

    while not (terminated or truncated):
        obs, reward, terminated, truncated, info = env.step(policy(obs))
        total += reward
        steps += 1
        if render:
            window = env.unwrapped._window
            if window is not None:
                window.dispatch_events()
                window.flip()
                time.sleep(1 / env.metadata["render_fps"])

    return EpisodeResult.from_info(info, reward=total, length=steps)


def evaluate(
    policy: Policy,
    n_episodes: int = 10,
    seed: int = 0,
    reward: str = "baseline",
    flat_actions: bool = False,
    render: bool = False,
    scoreboard: Optional[ScoreBoard] = None,
) -> List[EpisodeResult]:
    """Play n_episodes seeded rounds; episode i uses seed + i"""
    env = make_env(reward, flat_actions=flat_actions, render_mode="human" if render else None)()
    results = []
    try:
        for i in range(n_episodes):
            result = play_episode(env, policy, seed=seed + i, render=render)
            results.append(result)
            if scoreboard is not None:
                scoreboard.report_score(result.score)
            print(f"  round {i + 1:>3}/{n_episodes}: {result.outcome:<9} score {result.score:>3}  "
                  f"kills {result.kills:>2}/{result.shots:<3} lives lost {result.lives_lost}")
    finally:
        env.close()
    return results


def print_summary(title: str, results: List[EpisodeResult]):
    s = summarize(results)
    print(f"\n{title} ({s['episodes']} rounds)")
    print(f"  score    {s['mean_score']:7.1f} mean  {s['best_score']:5d} best")
    print(f"  reward   {s['mean_reward']:7.2f} ± {s['std_reward']:.2f}")
    print(f"  accuracy {s['accuracy']:7.1%}  ({s['mean_kills']:.1f} kills/round)")
    print("  " + "  ".join(f"{o} {s[o + '_rate']:.0%}" for o in OUTCOMES))


def main():
    parser = argparse.ArgumentParser(description="Evaluate an invaders agent")
    parser.add_argument("model_path", nargs="?", default=None, help="Saved SB3 model; omit for random play")
    parser.add_argument("--algo", choices=sorted(ALGORITHMS), default="ppo")
    parser.add_argument("--vec-normalize", default=None, help="VecNormalize stats saved by rl.train")
    parser.add_argument("--reward", default="baseline", help="Reward profile used to report returns")
    parser.add_argument("--episodes", type=int, default=10)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--render", action="store_true")
    parser.add_argument("--records", default=None, help="Also append each round's score to this records file")
    parser.add_argument("--compare-random", action="store_true", help="Play the same seeds with a random policy")
    args = parser.parse_args()

    scoreboard = ScoreBoard(args.records) if args.records else None

    if args.model_path is None:
        env = make_env(args.reward)()
        results = evaluate(random_policy(env.action_space, args.seed), args.episodes, args.seed,
                           reward=args.reward, render=args.render, scoreboard=scoreboard)
        env.close()
        print_summary("Random policy", results)
        return

    flat = ALGO_CONFIGS[args.algo]["flat_actions"]
    policy = load_policy(args.model_path, args.algo, args.vec_normalize)
    results = evaluate(policy, args.episodes, args.seed, reward=args.reward, flat_actions=flat,
                       render=args.render, scoreboard=scoreboard)
    print_summary(f"{args.algo.upper()} {args.model_path}", results)

    if args.compare_random:
        env = make_env(args.reward, flat_actions=flat)()
        baseline = evaluate(random_policy(env.action_space, args.seed), args.episodes, args.seed,
                            reward=args.reward, flat_actions=flat)
        env.close()
        print_summary("Random policy", baseline)
        delta = summarize(results)["mean_score"] - summarize(baseline)["mean_score"]
        print(f"\nScore over random: {delta:+.1f}")


if __name__ == "__main__":
    main()
