"""
Contracts for the collaborators the simulation talks to.

None of these are required: a Simulation without an audio sink or a score
reporter simply skips those calls.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, List, Protocol

if TYPE_CHECKING:
    from .render import DrawCommand, UISnapshot

logger = logging.getLogger(__name__)


class Cue(str, Enum):
    BACKGROUND_START = "start-background-loop"
    BACKGROUND_STOP = "stop-background-loop"
    ENEMY_HIT = "enemy-hit"  # an enemy was destroyed
    PLAYER_HIT = "player-hit"  # the player lost a life


class AudioSink(Protocol):
    def play(self, cue: Cue) -> None: ...


class RenderSink(Protocol):
    def draw(self, commands: List["DrawCommand"]) -> None: ...


class UISink(Protocol):
    def update(self, snapshot: "UISnapshot") -> None: ...


class ScoreReporter(Protocol):
    def report_score(self, score: int) -> None: ...


class NullAudioSink:
    """Audio sink that only logs cues"""

    def play(self, cue: Cue) -> None:
        logger.debug("audio cue %s (muted)", cue.value)
