"""
Curriculum schemas for AI Playground.

Defines Pydantic models for lesson content including:
- Guided steps with optional quizzes
- Playground configuration
- Challenges and their completion criteria
- Static module and tier metadata used for listing and unlock logic
"""

from pydantic import BaseModel, Field, model_validator
from typing import Literal, Optional, Union


Difficulty = Literal["beginner", "intermediate", "advanced", "research"]


# -----------------------------------------------------------------------------
# Step content
# -----------------------------------------------------------------------------

class Reference(BaseModel):
    title: str
    author: str
    url: Optional[str] = None
    year: Optional[int] = None


class GoDeeper(BaseModel):
    """Expandable formal content shown under a step."""
    math: Optional[str] = None  # LaTeX source
    explanation: str
    references: list[Reference] = []


class StepContent(BaseModel):
    text: str
    go_deeper: Optional[GoDeeper] = None
    author_note: Optional[str] = None


class Quiz(BaseModel):
    question: str
    options: list[str] = Field(..., min_length=2)
    correct_index: int = Field(..., ge=0)
    explanation: str = ""

    @model_validator(mode="after")
    def _check_correct_index(self):
        if self.correct_index >= len(self.options):
            raise ValueError(
                f"correct_index {self.correct_index} out of range for {len(self.options)} options"
            )
        return self

    def is_correct(self, index: int) -> bool:
        return index == self.correct_index


class Step(BaseModel):
    id: str
    title: str
    visualization_props: dict = {}  # passed through to the visualization untouched
    content: StepContent
    quiz: Optional[Quiz] = None
    interaction_hint: Optional[str] = None

    @property
    def has_quiz(self) -> bool:
        return self.quiz is not None


# -----------------------------------------------------------------------------
# Playground and challenges
# -----------------------------------------------------------------------------

class PlaygroundParam(BaseModel):
    id: str
    label: str
    type: Literal["slider", "stepper", "toggle", "select"]
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    default: Union[bool, float, str]
    options: Optional[list[str]] = None


class PlaygroundConfig(BaseModel):
    description: str
    parameters: list[PlaygroundParam] = []
    try_this: list[str] = []


class Point(BaseModel):
    x: float
    y: float


class CompletionCriteria(BaseModel):
    """
    Numeric goal of a challenge.

    A numeric target is the distance threshold; string or point targets
    fall back to a type-specific default threshold.
    """
    type: Literal["threshold", "exact", "custom", "distance"]
    target: Union[float, Point, str]
    metric: str


class Challenge(BaseModel):
    id: str
    title: str
    description: str
    component: Optional[str] = None
    props: dict = {}
    completion_criteria: CompletionCriteria
    hints: list[str] = []
    max_attempts: Optional[int] = None

    @property
    def target_point(self) -> Optional[Point]:
        """Goal point the visualization draws, if the challenge has one."""
        target = self.props.get("target")
        if isinstance(target, dict) and "x" in target and "y" in target:
            return Point(x=target["x"], y=target["y"])
        return None


# -----------------------------------------------------------------------------
# Module content
# -----------------------------------------------------------------------------

class CompletionRule(BaseModel):
    """
    When a module counts as completed.

    required_steps defaults to every step in the module. The gate on top of
    the steps is optional: all quizzes answered and/or named challenges won.
    """
    required_steps: Optional[list[str]] = None
    require_all_quizzes: bool = False
    required_challenges: list[str] = []


class ModuleContent(BaseModel):
    id: str
    tier_id: int = Field(..., ge=0)
    cluster_id: str
    title: str
    description: str
    tags: list[str] = []
    prerequisites: list[str] = []
    difficulty: Difficulty = "beginner"
    estimated_minutes: int = Field(30, ge=1)
    steps: list[Step] = Field(..., min_length=1)
    playground: Optional[PlaygroundConfig] = None
    challenges: list[Challenge] = []
    completion: CompletionRule = CompletionRule()

    @model_validator(mode="after")
    def _check_ids(self):
        step_ids = [s.id for s in self.steps]
        if len(step_ids) != len(set(step_ids)):
            raise ValueError(f"Duplicate step ids in module {self.id}")
        challenge_ids = [c.id for c in self.challenges]
        if len(challenge_ids) != len(set(challenge_ids)):
            raise ValueError(f"Duplicate challenge ids in module {self.id}")

        unknown_steps = set(self.completion.required_steps or []) - set(step_ids)
        if unknown_steps:
            raise ValueError(f"Required steps not in module {self.id}: {sorted(unknown_steps)}")
        unknown_challenges = set(self.completion.required_challenges) - set(challenge_ids)
        if unknown_challenges:
            raise ValueError(
                f"Required challenges not in module {self.id}: {sorted(unknown_challenges)}"
            )
        return self

    @property
    def step_ids(self) -> list[str]:
        return [s.id for s in self.steps]

    def required_step_ids(self) -> set[str]:
        if self.completion.required_steps is None:
            return set(self.step_ids)
        return set(self.completion.required_steps)

    def quiz_step_ids(self) -> set[str]:
        return {s.id for s in self.steps if s.has_quiz}

    def get_step(self, step_id: str) -> Optional[Step]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def get_challenge(self, challenge_id: str) -> Optional[Challenge]:
        for challenge in self.challenges:
            if challenge.id == challenge_id:
                return challenge
        return None

    def to_meta(self) -> "ModuleMeta":
        return ModuleMeta(
            id=self.id,
            tier_id=self.tier_id,
            cluster_id=self.cluster_id,
            title=self.title,
            description=self.description,
            prerequisites=list(self.prerequisites),
            difficulty=self.difficulty,
            estimated_minutes=self.estimated_minutes,
        )


# -----------------------------------------------------------------------------
# Static metadata (listing without loading full bundles)
# -----------------------------------------------------------------------------

class ModuleMeta(BaseModel):
    id: str
    tier_id: int = Field(..., ge=0)
    cluster_id: str
    title: str
    description: str = ""
    prerequisites: list[str] = []
    difficulty: Difficulty = "beginner"
    estimated_minutes: int = 30


class TierMeta(BaseModel):
    id: int = Field(..., ge=0)
    title: str
    description: str = ""
    unlock_threshold: float = Field(0.7, ge=0.0, le=1.0)  # fraction of modules completed
