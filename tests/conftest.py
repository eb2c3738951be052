import os
import random
from datetime import datetime, timedelta

import pytest

os.environ.setdefault("DATABASE_URL", "memory://")
os.environ.setdefault("SECRET_KEY", "test-secret")

from attempts import AttemptRegistry  # noqa: E402
from database import MemoryRepository  # noqa: E402
from schemas import Question, Quiz  # noqa: E402

T0 = datetime(2026, 3, 2, 9, 0, 0)


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def tick(self, seconds):
        self.now += timedelta(seconds=seconds)


class ScriptedShuffle:
    """Stands in for random.Random: each shuffle applies the next scripted order."""

    def __init__(self, *orders):
        self.orders = [list(o) for o in orders]

    def shuffle(self, items):
        order = self.orders.pop(0)
        items[:] = [items[i] for i in order]


def make_quiz(questions=None, seconds_per_question=30, quiz_id="qtest0001", created_by="t@school.edu"):
    if questions is None:
        questions = [
            Question(text="2 + 2 = ?", options=["3", "4", "5", "22"], correct_index=1),
            Question(type="true_false", text="The earth is flat", options=["True", "False"], correct_index=1),
            Question(text="Capital of Morocco?", options=["Rabat", "Fes", "Casablanca"], correct_index=0),
        ]
    return Quiz(
        quiz_id=quiz_id,
        title="Sample",
        course="MATH101",
        seconds_per_question=seconds_per_question,
        questions=questions,
        created_by=created_by,
        created_at=T0,
    )


@pytest.fixture
def quiz():
    return make_quiz()


@pytest.fixture
def repo():
    return MemoryRepository()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def attempts(repo, clock):
    return AttemptRegistry(repo, clock=clock, rng=random.Random(7), selection_policy="lenient")
