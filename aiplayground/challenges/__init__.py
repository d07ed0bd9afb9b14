"""
AI Playground Challenges - Scoring and live evaluation of interactive challenges.
"""

from .scoring import (
    UNREACHED_DISTANCE,
    DEFAULT_THRESHOLDS,
    ObservedState,
    SCORERS,
    chain_derivative,
    get_scorer,
    resolve_threshold,
    score,
)

from .evaluator import (
    ChallengeEvaluator,
    ChallengeRun,
    open_challenge,
)

__all__ = [
    # Scoring
    "UNREACHED_DISTANCE",
    "DEFAULT_THRESHOLDS",
    "ObservedState",
    "SCORERS",
    "chain_derivative",
    "get_scorer",
    "resolve_threshold",
    "score",
    # Evaluator
    "ChallengeEvaluator",
    "ChallengeRun",
    "open_challenge",
]
