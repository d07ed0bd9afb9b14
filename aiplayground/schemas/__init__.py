"""
AI Playground Schemas - Pydantic models for the learning engine.

This module exports all schema classes for:
- Curriculum: module content, steps, quizzes, challenges, static metadata
- Progress: the persisted learner progress document
"""

# Curriculum schemas
from .curriculum import (
    Reference,
    GoDeeper,
    StepContent,
    Quiz,
    Step,
    PlaygroundParam,
    PlaygroundConfig,
    Point,
    CompletionCriteria,
    Challenge,
    CompletionRule,
    ModuleContent,
    ModuleMeta,
    TierMeta,
)

# Progress schemas
from .progress import (
    SCHEMA_VERSION,
    DEFAULT_TIER_IDS,
    ModuleStatus,
    ActivityType,
    StreakData,
    ModuleProgress,
    TierProgress,
    ActivityEntry,
    UserSettings,
    ProgressState,
    create_default_progress,
)

__all__ = [
    # Curriculum
    'Reference',
    'GoDeeper',
    'StepContent',
    'Quiz',
    'Step',
    'PlaygroundParam',
    'PlaygroundConfig',
    'Point',
    'CompletionCriteria',
    'Challenge',
    'CompletionRule',
    'ModuleContent',
    'ModuleMeta',
    'TierMeta',
    # Progress
    'SCHEMA_VERSION',
    'DEFAULT_TIER_IDS',
    'ModuleStatus',
    'ActivityType',
    'StreakData',
    'ModuleProgress',
    'TierProgress',
    'ActivityEntry',
    'UserSettings',
    'ProgressState',
    'create_default_progress',
]
