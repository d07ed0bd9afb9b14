"""
Quiz grading - Derive correctness from content plus stored answers.

Provides:
- Quiz question extraction from a module
- Per-question grading of stored answer indices
- Quiz scoring

Only raw answer indices are persisted, so grades are always recomputed
against the current quiz content.
"""

from dataclasses import dataclass
from typing import Optional

from aiplayground.schemas import ModuleContent


@dataclass
class QuizQuestion:
    """Quiz question with the learner's stored answer, if any."""
    index: int
    step_id: str
    question: str
    options: list[str]
    correct_index: int
    explanation: str
    user_answer: Optional[int] = None

    @property
    def answered(self) -> bool:
        return self.user_answer is not None

    @property
    def is_correct(self) -> bool:
        return self.user_answer == self.correct_index


def extract_quiz_questions(
    module: ModuleContent,
    answers: Optional[dict[str, int]] = None,
) -> list[QuizQuestion]:
    """Extract quiz questions from module steps, attaching stored answers."""
    answers = answers or {}
    questions = []
    idx = 0
    for step in module.steps:
        if step.quiz is None:
            continue
        questions.append(QuizQuestion(
            index=idx,
            step_id=step.id,
            question=step.quiz.question,
            options=list(step.quiz.options),
            correct_index=step.quiz.correct_index,
            explanation=step.quiz.explanation,
            user_answer=answers.get(step.id),
        ))
        idx += 1
    return questions


def grade_answers(module: ModuleContent, answers: dict[str, int]) -> dict[str, bool]:
    """
    Grade stored answers against current content.

    Answers for steps that no longer carry a quiz are dropped.
    """
    graded = {}
    for step_id, index in answers.items():
        step = module.get_step(step_id)
        if step is None or step.quiz is None:
            continue
        graded[step_id] = step.quiz.is_correct(index)
    return graded


def calculate_quiz_score(questions: list[QuizQuestion]) -> dict:
    """
    Calculate quiz score.

    Args:
        questions: Questions with user answers attached

    Returns:
        Dict with score info
    """
    total = len(questions)
    if total == 0:
        return {"score": 1.0, "percent": 100, "correct": 0, "answered": 0, "total": 0}

    correct_count = sum(1 for q in questions if q.is_correct)
    score = correct_count / total
    return {
        "score": round(score, 2),
        "percent": round(score * 100),
        "correct": correct_count,
        "answered": sum(1 for q in questions if q.answered),
        "total": total,
    }
