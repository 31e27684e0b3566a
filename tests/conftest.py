import random

import pytest

from game.invaders.simulation import Simulation


class FakeClock:
    """Millisecond clock that only moves when told to"""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self):
        return self.now


class RecordingAudio:
    def __init__(self):
        self.cues = []

    def play(self, cue):
        self.cues.append(cue)


class RecordingReporter:
    def __init__(self):
        self.scores = []

    def report_score(self, score):
        self.scores.append(score)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def audio():
    return RecordingAudio()


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def sim(clock, audio, reporter):
    return Simulation(audio=audio, score_reporter=reporter, clock=clock, rng=random.Random(1234))


@pytest.fixture
def started(sim):
    sim.start()
    return sim
