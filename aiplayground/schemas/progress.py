"""
Progress tracking schemas for AI Playground.

Defines the single persisted progress document:
- Module status and per-module progress
- Streak data and the append-only activity log
- User settings

Field names serialize in camelCase so the stored JSON keeps the document
shape (stepsCompleted, activityLog, lastActiveDate, ...).
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from typing import Literal, Optional
from datetime import date, datetime
from enum import Enum


SCHEMA_VERSION = 2
DEFAULT_TIER_IDS = (0, 1, 2, 3, 4, 5)


class _Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ModuleStatus(str, Enum):
    LOCKED = "locked"
    AVAILABLE = "available"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    def advance(self, other: "ModuleStatus") -> "ModuleStatus":
        """Return whichever of the two statuses is further along."""
        return other if other.rank > self.rank else self


_STATUS_ORDER = [
    ModuleStatus.LOCKED,
    ModuleStatus.AVAILABLE,
    ModuleStatus.IN_PROGRESS,
    ModuleStatus.COMPLETED,
]


class ActivityType(str, Enum):
    STEP = "step"
    CHALLENGE = "challenge"
    QUIZ = "quiz"
    SESSION = "session"


class StreakData(_Document):
    current: int = Field(0, ge=0)
    longest: int = Field(0, ge=0)
    last_active_date: Optional[date] = None

    @model_validator(mode="after")
    def _longest_covers_current(self):
        if self.longest < self.current:
            self.longest = self.current
        return self


class ModuleProgress(_Document):
    status: ModuleStatus = ModuleStatus.AVAILABLE
    steps_completed: set[str] = set()
    quiz_answers: dict[str, int] = {}
    challenges_completed: set[str] = set()
    playground_visited: bool = False
    last_accessed_step: str = ""
    completed_at: Optional[datetime] = None


class TierProgress(_Document):
    unlocked: bool = False
    modules: dict[str, ModuleProgress] = {}


class ActivityEntry(_Document):
    type: ActivityType
    date: date
    timestamp: datetime
    module_id: str
    step_id: Optional[str] = None
    challenge_id: Optional[str] = None

    @classmethod
    def at(cls, moment: datetime, activity_type: ActivityType, module_id: str, **ids) -> "ActivityEntry":
        """Build an entry whose calendar date is taken from the moment itself."""
        return cls(type=activity_type, date=moment.date(), timestamp=moment, module_id=module_id, **ids)

    def same_action(self, other: "ActivityEntry") -> bool:
        """Same kind of action on the same target on the same calendar day."""
        return (
            self.type == other.type
            and self.date == other.date
            and self.module_id == other.module_id
            and self.step_id == other.step_id
            and self.challenge_id == other.challenge_id
        )


class UserSettings(_Document):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, validate_assignment=True
    )

    theme: Literal["dark", "light"] = "dark"
    go_deeper: Literal["collapsed", "expanded"] = "collapsed"
    animation_speed: Literal["slow", "normal", "fast"] = "normal"
    sidebar_collapsed: bool = False


class ProgressState(_Document):
    version: int = SCHEMA_VERSION
    last_updated: datetime
    streak: StreakData = StreakData()
    tiers: dict[int, TierProgress] = {}
    badges: set[str] = set()
    activity_log: list[ActivityEntry] = []
    settings: UserSettings = UserSettings()

    def find_module(self, module_id: str) -> tuple[Optional[int], Optional[ModuleProgress]]:
        """Locate a module's progress in whichever tier holds it."""
        for tier_id, tier in self.tiers.items():
            if module_id in tier.modules:
                return tier_id, tier.modules[module_id]
        return None, None

    def all_modules(self) -> dict[str, ModuleProgress]:
        result = {}
        for tier in self.tiers.values():
            result.update(tier.modules)
        return result


def create_default_progress(now: Optional[datetime] = None) -> ProgressState:
    """Fresh state: tier 0 unlocked, every counter zero, empty log."""
    return ProgressState(
        version=SCHEMA_VERSION,
        last_updated=now or datetime.now(),
        tiers={
            tier_id: TierProgress(unlocked=(tier_id == 0))
            for tier_id in DEFAULT_TIER_IDS
        },
    )
