"""
ChallengeEvaluator - Sample live visualization state against a challenge goal.

The visualization pushes its state through the observe_* callbacks as it
changes; the evaluator scores only the latest state on a fixed interval,
so scoring cost does not depend on how fast input events arrive.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable, Optional, Union

from aiplayground.config import EngineConfig
from aiplayground.schemas import Challenge, Point

from .scoring import UNREACHED_DISTANCE, ObservedState, resolve_threshold, score

if TYPE_CHECKING:
    from aiplayground.classroom.progress import ProgressStore


logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 0.1  # seconds

VectorLike = Union[Point, dict, tuple, list]


@dataclass
class ChallengeRun:
    """State of one attempt; discarded with its evaluator."""
    challenge: Challenge
    observed: ObservedState
    distance: float = UNREACHED_DISTANCE
    won: bool = False
    show_success: bool = False


def _as_pair(v: VectorLike) -> tuple[float, float]:
    if isinstance(v, Point):
        return (v.x, v.y)
    if isinstance(v, dict):
        return (float(v.get("x", 0.0)), float(v.get("y", 0.0)))
    x, y = v
    return (float(x), float(y))


class ChallengeEvaluator:
    """
    Decide when the learner's live state satisfies a challenge.

    Completion fires at most once per evaluator: after the first win,
    crossing the threshold again does nothing. The success affordance can
    be dismissed without touching the won state.

    Usage:
        async with ChallengeEvaluator("vectors", challenge, on_complete) as ev:
            ev.observe_vectors([(1, 1), (2, 3)])
            ...
    """

    def __init__(
        self,
        module_id: str,
        challenge: Challenge,
        on_complete: Optional[Callable[[], object]] = None,
        interval: float = DEFAULT_INTERVAL,
    ):
        if interval <= 0:
            raise ValueError(f"Sampling interval must be positive, got {interval}")
        self.module_id = module_id
        self.interval = interval
        self.threshold = resolve_threshold(challenge.completion_criteria)
        self.run = ChallengeRun(challenge=challenge, observed=ObservedState())
        self._on_complete = on_complete
        self._task: Optional[asyncio.Task] = None

    @property
    def challenge(self) -> Challenge:
        return self.run.challenge

    @property
    def won(self) -> bool:
        return self.run.won

    @property
    def distance(self) -> float:
        return self.run.distance

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # -------------------------------------------------------------------------
    # Observation (pushed by the visualization)
    # -------------------------------------------------------------------------

    def observe_vectors(self, vectors: Iterable[VectorLike]):
        self.run.observed.vectors = [_as_pair(v) for v in vectors]

    def observe_params(self, params: dict):
        self.run.observed.params = dict(params)

    def observe_matrix(self, matrix: Iterable):
        """Accept [[a, b], [c, d]] or (a, b, c, d)."""
        values = list(matrix)
        if len(values) == 2:
            values = [*values[0], *values[1]]
        a, b, c, d = (float(v) for v in values)
        self.run.observed.matrix = (a, b, c, d)

    # -------------------------------------------------------------------------
    # Sampling
    # -------------------------------------------------------------------------

    def sample(self) -> float:
        """Score the latest observed state once; fire completion on the first win."""
        distance = score(self.module_id, self.challenge, self.run.observed)
        self.run.distance = distance

        if distance <= self.threshold and not self.run.won:
            self.run.won = True
            self.run.show_success = True
            logger.info(
                f"Challenge won: {self.module_id}/{self.challenge.id} (distance {distance:.3f})"
            )
            if self._on_complete:
                self._on_complete()
        return distance

    def dismiss_success(self):
        self.run.show_success = False

    async def _sample_loop(self):
        while True:
            self.sample()
            await asyncio.sleep(self.interval)

    async def start(self):
        """Start sampling on the running event loop (no-op if already running)."""
        if self.running:
            return
        self._task = asyncio.create_task(self._sample_loop())

    async def stop(self):
        """Cancel the sampling loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def __aenter__(self) -> "ChallengeEvaluator":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()


def open_challenge(
    store: "ProgressStore",
    module_id: str,
    challenge_id: str,
    interval: Optional[float] = None,
) -> Optional[ChallengeEvaluator]:
    """
    Evaluator for a module's challenge whose win is recorded in the store.

    Returns None for an unknown module or challenge.
    """
    content = store.registry.resolve(module_id)
    challenge = content.get_challenge(challenge_id) if content else None
    if challenge is None:
        logger.warning(f"Unknown challenge: {module_id}/{challenge_id}")
        return None

    if interval is None:
        interval = EngineConfig.from_env().challenge_interval

    return ChallengeEvaluator(
        module_id,
        challenge,
        on_complete=lambda: store.complete_challenge(module_id, challenge_id),
        interval=interval,
    )
