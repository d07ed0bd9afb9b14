"""
LessonSession - Step navigation inside one module.

Tracks:
- Current step index, clamped to the step sequence
- Steps completed and quiz answers for this session
- Keyboard navigation (arrow keys)

The session owns its in-memory state; durable writes go out through the
completion callbacks (normally bound to a ProgressStore by open_lesson).
"""

import logging
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from aiplayground.schemas import Step, StepContent

if TYPE_CHECKING:
    from .progress import ProgressStore


logger = logging.getLogger(__name__)

# Shown while the step sequence is empty (content still loading)
LOADING_STEP = Step(
    id="__loading__",
    title="Loading...",
    content=StepContent(text=""),
)

NEXT_KEYS = {"ArrowRight", "ArrowDown"}
BACK_KEYS = {"ArrowLeft", "ArrowUp"}

StepCallback = Callable[[str], None]
QuizCallback = Callable[[str, int], None]


class LessonSession:
    """
    Step state machine for one lesson view.

    Index moves within [0, N-1]; boundary moves are no-ops and out-of-range
    jumps are ignored. With no steps the session exposes LOADING_STEP and
    every navigation flag is False.
    """

    def __init__(
        self,
        steps: list[Step],
        module_id: str,
        initial_step_index: int = 0,
        initial_completed_steps: Iterable[str] = (),
        initial_quiz_answers: Optional[dict[str, int]] = None,
        on_complete_step: Optional[StepCallback] = None,
        on_answer_quiz: Optional[QuizCallback] = None,
    ):
        self.module_id = module_id
        self.steps = list(steps)
        self.current_index = self._clamp(initial_step_index)
        self._completed: set[str] = set(initial_completed_steps)
        self._answers: dict[str, int] = dict(initial_quiz_answers or {})
        self._on_complete_step = on_complete_step
        self._on_answer_quiz = on_answer_quiz
        self._closed = False

    def __enter__(self) -> "LessonSession":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        """Discard session state; callbacks stop firing."""
        self._on_complete_step = None
        self._on_answer_quiz = None
        self._completed = set()
        self._answers = {}
        self._closed = True

    def _clamp(self, index: int) -> int:
        if not self.steps:
            return 0
        return max(0, min(index, len(self.steps) - 1))

    # -------------------------------------------------------------------------
    # Derived state
    # -------------------------------------------------------------------------

    @property
    def is_loading(self) -> bool:
        return not self.steps

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def current_step(self) -> Step:
        if not self.steps:
            return LOADING_STEP
        return self.steps[self.current_index]

    @property
    def is_first_step(self) -> bool:
        return bool(self.steps) and self.current_index == 0

    @property
    def is_last_step(self) -> bool:
        return bool(self.steps) and self.current_index == len(self.steps) - 1

    @property
    def can_go_next(self) -> bool:
        return bool(self.steps) and self.current_index < len(self.steps) - 1

    @property
    def can_go_back(self) -> bool:
        return bool(self.steps) and self.current_index > 0

    @property
    def progress_fraction(self) -> float:
        """Share of this lesson's steps completed (0.0 while loading)."""
        if not self.steps:
            return 0.0
        ids = {s.id for s in self.steps}
        return len(self._completed & ids) / len(self.steps)

    @property
    def completed_steps(self) -> frozenset[str]:
        return frozenset(self._completed)

    @property
    def quiz_answers(self) -> dict[str, int]:
        return dict(self._answers)

    def is_step_completed(self, step_id: str) -> bool:
        return step_id in self._completed

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    def go_next(self) -> int:
        self.current_index = self._clamp(self.current_index + 1)
        return self.current_index

    def go_back(self) -> int:
        self.current_index = self._clamp(self.current_index - 1)
        return self.current_index

    def go_to_step(self, index: int) -> int:
        if 0 <= index < len(self.steps):
            self.current_index = index
        return self.current_index

    def handle_key(self, key: str, in_text_entry: bool = False) -> bool:
        """
        Map an arrow key to navigation.

        Returns:
            True if the key moved (or tried to move) the session
        """
        if in_text_entry or self._closed:
            return False
        if key in NEXT_KEYS:
            self.go_next()
            return True
        if key in BACK_KEYS:
            self.go_back()
            return True
        return False

    # -------------------------------------------------------------------------
    # Completion and quizzes
    # -------------------------------------------------------------------------

    def complete_current_step(self) -> bool:
        """Mark the current step completed and notify the callback."""
        if self._closed or not self.steps:
            return False
        step_id = self.current_step.id
        self._completed.add(step_id)
        if self._on_complete_step:
            self._on_complete_step(step_id)
        return True

    def submit_quiz_answer(self, index: int) -> bool:
        """
        Record the selected option for the current step's quiz.

        Only the raw index is kept; correctness is Quiz.is_correct(index).
        """
        if self._closed or not self.steps:
            return False
        step = self.current_step
        if step.quiz is None:
            logger.debug(f"Step {step.id} has no quiz, answer ignored")
            return False
        self._answers[step.id] = index
        if self._on_answer_quiz:
            self._on_answer_quiz(step.id, index)
        return True

    # -------------------------------------------------------------------------
    # Late data
    # -------------------------------------------------------------------------

    def set_steps(self, steps: list[Step]):
        """Swap in the step sequence once content arrives; index is re-clamped."""
        self.steps = list(steps)
        self.current_index = self._clamp(self.current_index)

    def merge_persisted(
        self,
        completed_steps: Iterable[str] = (),
        quiz_answers: Optional[dict[str, int]] = None,
    ):
        """
        Fold persisted progress into the live session.

        Union only: nothing completed or answered in this session is lost.
        """
        self._completed |= set(completed_steps)
        for step_id, index in (quiz_answers or {}).items():
            self._answers.setdefault(step_id, index)


def open_lesson(store: "ProgressStore", module_id: str) -> Optional[LessonSession]:
    """
    Start a session for a module, seeded from and wired to the store.

    Resumes at the last accessed step. Returns None for an unknown module.
    """
    content = store.registry.resolve(module_id)
    if content is None:
        logger.warning(f"Cannot open unknown module: {module_id}")
        return None

    progress = store.get_module_progress(module_id)
    start = 0
    if progress.last_accessed_step in content.step_ids:
        start = content.step_ids.index(progress.last_accessed_step)

    return LessonSession(
        steps=content.steps,
        module_id=module_id,
        initial_step_index=start,
        initial_completed_steps=progress.steps_completed,
        initial_quiz_answers=progress.quiz_answers,
        on_complete_step=lambda step_id: store.complete_step(module_id, step_id),
        on_answer_quiz=lambda step_id, index: store.record_quiz_answer(module_id, step_id, index),
    )
