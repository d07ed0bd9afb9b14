"""Shared fixtures: a small in-memory curriculum and a controllable clock."""

from datetime import datetime, timedelta

import pytest

from aiplayground.classroom import ContentRegistry, MemoryStorage, ProgressStore
from aiplayground.schemas import (
    Challenge,
    CompletionCriteria,
    CompletionRule,
    ModuleContent,
    Quiz,
    Step,
    StepContent,
    TierMeta,
)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0):
        self.now += timedelta(days=days, hours=hours)


def make_step(step_id, quiz=None):
    return Step(id=step_id, title=step_id.upper(), content=StepContent(text=f"Step {step_id}"), quiz=quiz)


def make_quiz(correct_index=1):
    return Quiz(question="Pick one", options=["a", "b", "c"], correct_index=correct_index)


def make_challenge(challenge_id, target=0.3, props=None):
    return Challenge(
        id=challenge_id,
        title=challenge_id,
        description="...",
        props=props or {},
        completion_criteria=CompletionCriteria(type="threshold", target=target, metric="distance"),
    )


def make_modules():
    vectors = ModuleContent(
        id="vectors",
        tier_id=0,
        cluster_id="linear-algebra",
        title="Vectors",
        description="Arrows.",
        steps=[make_step("s1"), make_step("s2", make_quiz()), make_step("s3")],
        challenges=[make_challenge("reach-the-target", props={"target": {"x": 3, "y": 4}})],
    )
    matrices = ModuleContent(
        id="matrices",
        tier_id=0,
        cluster_id="linear-algebra",
        title="Matrices",
        description="Transformations.",
        prerequisites=["vectors"],
        steps=[make_step("m1"), make_step("m2")],
        challenges=[make_challenge("zero-determinant", target=0.05)],
        completion=CompletionRule(required_challenges=["zero-determinant"]),
    )
    regression = ModuleContent(
        id="regression",
        tier_id=1,
        cluster_id="ml-basics",
        title="Linear Regression",
        description="Fitting lines.",
        steps=[make_step("r1")],
    )
    return [vectors, matrices, regression]


TEST_TIERS = [
    TierMeta(id=0, title="Foundations", unlock_threshold=1.0),
    TierMeta(id=1, title="ML Fundamentals"),
    TierMeta(id=2, title="Deep Learning"),
]


@pytest.fixture
def registry():
    return ContentRegistry.from_modules(make_modules(), TEST_TIERS)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 1, 9, 0))


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(registry, storage, clock):
    progress = ProgressStore(registry, storage, clock=clock)
    progress.load()
    return progress
