"""
Badge rules.

Each rule is checked after every progress mutation; a badge is awarded at
most once and never taken away (reset_progress aside).
"""

import logging
from typing import Callable

from aiplayground.schemas import ModuleStatus, ProgressState


logger = logging.getLogger(__name__)


def _steps_completed(state: ProgressState) -> int:
    return sum(len(m.steps_completed) for m in state.all_modules().values())


def _quizzes_answered(state: ProgressState) -> int:
    return sum(len(m.quiz_answers) for m in state.all_modules().values())


def _challenges_completed(state: ProgressState) -> int:
    return sum(len(m.challenges_completed) for m in state.all_modules().values())


def _modules_completed(state: ProgressState) -> int:
    return sum(
        1 for m in state.all_modules().values()
        if m.status == ModuleStatus.COMPLETED
    )


BADGE_RULES: dict[str, Callable[[ProgressState], bool]] = {
    "first-step": lambda s: _steps_completed(s) >= 1,
    "first-quiz": lambda s: _quizzes_answered(s) >= 1,
    "first-challenge": lambda s: _challenges_completed(s) >= 1,
    "first-module": lambda s: _modules_completed(s) >= 1,
    "streak-3": lambda s: s.streak.longest >= 3,
    "streak-7": lambda s: s.streak.longest >= 7,
    "streak-30": lambda s: s.streak.longest >= 30,
}


def tier_badge(tier_id: int) -> str:
    return f"tier-{tier_id}-unlocked"


def award_badges(state: ProgressState) -> set[str]:
    """
    Add every newly earned badge to state.badges.

    Returns:
        The badges awarded by this call
    """
    earned = {badge for badge, check in BADGE_RULES.items() if check(state)}
    earned |= {
        tier_badge(tier_id)
        for tier_id, tier in state.tiers.items()
        if tier.unlocked and tier_id > 0
    }

    new = earned - state.badges
    for badge in sorted(new):
        logger.info(f"Awarding badge {badge}")
    state.badges |= new
    return new
