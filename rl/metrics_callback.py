"""
Episode outcomes for invaders training runs.

Every finished episode becomes an EpisodeResult (score, kills, shots, lives
lost and how the round ended). OutcomeCallback appends them to a CSV and
pushes rolling win/accuracy figures to the SB3 logger.
"""

import csv
import os
from collections import Counter, deque
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from stable_baselines3.common.callbacks import BaseCallback

OUTCOMES = ("victory", "time_up", "defeated", "truncated")


@dataclass
class EpisodeResult:
    reward: float
    length: int
    score: int
    kills: int
    shots: int
    lives_lost: int
    outcome: str  # one of OUTCOMES

    @classmethod
    def from_info(cls, info: Dict[str, Any], reward: float, length: int) -> "EpisodeResult":
        """Build from the last step's info dict. No outcome means the episode hit max_steps."""
        return cls(
            reward=float(reward),
            length=int(length),
            score=int(info.get("score", 0)),
            kills=int(info.get("enemies_killed", 0)),
            shots=int(info.get("shots_fired", 0)),
            lives_lost=int(info.get("lives_lost", 0)),
            outcome=info.get("outcome") or "truncated",
        )

    @property
    def victory(self) -> bool:
        return self.outcome == "victory"

    @property
    def accuracy(self) -> float:
        return self.kills / self.shots if self.shots else 0.0


def summarize(results: Sequence[EpisodeResult]) -> Dict[str, float]:
    """Aggregate episodes into mean score, accuracy and per-outcome rates"""
    if not results:
        return {}
    n = len(results)
    counts = Counter(r.outcome for r in results)
    shots = sum(r.shots for r in results)

    summary = {
        "episodes": n,
        "mean_reward": float(np.mean([r.reward for r in results])),
        "std_reward": float(np.std([r.reward for r in results])),
        "mean_length": float(np.mean([r.length for r in results])),
        "mean_score": float(np.mean([r.score for r in results])),
        "best_score": max(r.score for r in results),
        "mean_kills": float(np.mean([r.kills for r in results])),
        "accuracy": sum(r.kills for r in results) / shots if shots else 0.0,
    }
    for outcome in OUTCOMES:
        summary[f"{outcome}_rate"] = counts[outcome] / n
    return summary


class OutcomeCallback(BaseCallback):
    """Collects EpisodeResults from Monitor-wrapped envs during learn()"""

    def __init__(self, log_dir: str, run_name: str, window: int = 20, verbose: int = 1):
        super().__init__(verbose)
        self.log_dir = log_dir
        self.run_name = run_name
        self.results: List[EpisodeResult] = []
        self._recent: deque = deque(maxlen=window)

        self.csv_path: Optional[str] = None
        self._csv_file = None
        self._writer: Optional[csv.DictWriter] = None

    def _on_training_start(self) -> None:
        os.makedirs(self.log_dir, exist_ok=True)
        self.csv_path = os.path.join(self.log_dir, f"{self.run_name}_episodes.csv")
        self._csv_file = open(self.csv_path, "w", newline="")
        columns = ["timestep"] + [f.name for f in fields(EpisodeResult)] + ["accuracy"]
        self._writer = csv.DictWriter(self._csv_file, fieldnames=columns)
        self._writer.writeheader()

    def _on_step(self) -> bool:
        for info, done in zip(self.locals.get("infos", []), self.locals.get("dones", [])):
            # Monitor only attaches "episode" on the final step
            if done and "episode" in info:
                result = self.record_episode(info)
                self._log_rolling(result)
        return True

    def record_episode(self, info: Dict[str, Any]) -> EpisodeResult:
        ep = info["episode"]
        result = EpisodeResult.from_info(info, reward=ep["r"], length=ep["l"])
        self.results.append(result)
        self._recent.append(result)

        if self._writer is not None:
            row = asdict(result)
            row.update(timestep=self.num_timesteps, accuracy=round(result.accuracy, 4))
            self._writer.writerow(row)
            self._csv_file.flush()

        if self.verbose > 0 and len(self.results) % 25 == 0:
            recent = summarize(list(self._recent))
            print(f"[{self.run_name}] {len(self.results)} episodes @ {self.num_timesteps:,} steps | "
                  f"score {recent['mean_score']:.1f}  win {recent['victory_rate']:.0%}  "
                  f"acc {recent['accuracy']:.0%}")
        return result

    def _log_rolling(self, result: EpisodeResult):
        recent = summarize(list(self._recent))
        self.logger.record("invaders/score", result.score)
        self.logger.record("invaders/mean_score", recent["mean_score"])
        self.logger.record("invaders/win_rate", recent["victory_rate"])
        self.logger.record("invaders/defeat_rate", recent["defeated_rate"])
        self.logger.record("invaders/accuracy", recent["accuracy"])

    def _on_training_end(self) -> None:
        if self._csv_file is not None:
            self._csv_file.close()
            self._csv_file = None
        if self.verbose > 0:
            print(f"[{self.run_name}] {len(self.results)} episodes written to {self.csv_path}")
