"""
Score records kept in a JSON file, one entry per finished game.
"""

import json
import logging
import os
from datetime import datetime
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class ScoreBoard:
    """Score reporter that appends finished games to a JSON file"""

    def __init__(self, path: str = "./records/scores.json"):
        self.path = path

    def load(self) -> List[Dict]:
        if not os.path.exists(self.path):
            return []
        with open(self.path, "r") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Corrupt records file {self.path}: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("records"), list):
            raise ValueError(f"Corrupt records file {self.path}: missing 'records' list")
        return data["records"]

    def report_score(self, score: int, finished_at: Optional[datetime] = None):
        records = self.load()
        records.append({
            "finished_at": (finished_at or datetime.now()).isoformat(timespec="seconds"),
            "score": int(score),
        })

        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump({"records": records}, f, indent=2)
        logger.info("Recorded score %d to %s", score, self.path)

    def best(self, n: int = 5) -> List[Dict]:
        """Top n records, highest score first, earlier games win ties"""
        records = self.load()
        return sorted(records, key=lambda r: (-r["score"], r["finished_at"]))[:n]
