"""
AI Playground Classroom - Runtime components for lessons and progress.

This module provides:
- ContentRegistry: Resolve module ids to lesson content
- ProgressStore: Persist learner progress, streaks and activity
- LessonSession: Step navigation inside one module
- Navigator: Module availability, tier status and recommendations
"""

from .registry import (
    ContentRegistry,
    default_registry,
    MODULE_BUNDLES,
    MODULE_META,
    TIER_META,
)

from .progress import (
    ProgressStore,
    ProgressStorage,
    SQLiteStorage,
    MemoryStorage,
)

from .session import (
    LessonSession,
    LOADING_STEP,
    open_lesson,
)

from .navigator import (
    Navigator,
    NavigationModule,
    NavigationTier,
)

from .quiz import (
    QuizQuestion,
    extract_quiz_questions,
    grade_answers,
    calculate_quiz_score,
)

from .migrations import MigrationError, migrate
from .streak import advance_streak, decay_streak, compute_streak, activity_window
from .badges import BADGE_RULES, award_badges

__all__ = [
    # Registry
    "ContentRegistry",
    "default_registry",
    "MODULE_BUNDLES",
    "MODULE_META",
    "TIER_META",
    # Progress
    "ProgressStore",
    "ProgressStorage",
    "SQLiteStorage",
    "MemoryStorage",
    # Session
    "LessonSession",
    "LOADING_STEP",
    "open_lesson",
    # Navigator
    "Navigator",
    "NavigationModule",
    "NavigationTier",
    # Quiz
    "QuizQuestion",
    "extract_quiz_questions",
    "grade_answers",
    "calculate_quiz_score",
    # Streak, migrations, badges
    "MigrationError",
    "migrate",
    "advance_streak",
    "decay_streak",
    "compute_streak",
    "activity_window",
    "BADGE_RULES",
    "award_badges",
]
