"""
Scoring & Grading - pure functions over answer sheets and result snapshots.

Score  = correct / total * 100, rounded to two decimals.
Grades = >=90 A, >=80 B, >=70 C, >=60 D, else F (inclusive lower bounds).
"""

from typing import Iterable, Optional, Protocol, Sequence, Tuple

from pydantic import BaseModel


# (inclusive lower bound, letter), highest first
GRADE_THRESHOLDS: Tuple[Tuple[float, str], ...] = (
    (90.0, "A"),
    (80.0, "B"),
    (70.0, "C"),
    (60.0, "D"),
)
FAILING_GRADE = "F"


class AnswerLike(Protocol):
    selected_option: Optional[str]
    is_correct: bool


class TotalsLike(Protocol):
    total_questions: int
    correct_answers: int


class DayScore(BaseModel):
    """Totals for one answer sheet."""

    total_questions: int
    correct_answers: int
    wrong_answers: int
    skipped_questions: int
    score: float
    grade: str


class CumulativeScore(BaseModel):
    """Exam-level totals recomputed from result snapshots."""

    total_questions: int
    correct_answers: int
    overall_score: float
    grade: str


def percentage(correct: int, total: int) -> float:
    """correct/total as a percentage with two decimals; 0.0 when total is 0."""
    if total <= 0:
        return 0.0
    return round(correct / total * 100, 2)


def grade_for(score: float) -> str:
    """Letter grade for a percentage score."""
    for lower_bound, letter in GRADE_THRESHOLDS:
        if score >= lower_bound:
            return letter
    return FAILING_GRADE


def score_answers(answers: Sequence[AnswerLike], total_questions: Optional[int] = None) -> DayScore:
    """
    Score an answer sheet.

    ``total_questions`` defaults to the number of slots on the sheet; slots
    with no selected option count as skipped.
    """
    total = len(answers) if total_questions is None else total_questions
    correct = sum(1 for a in answers if a.selected_option is not None and a.is_correct)
    answered = sum(1 for a in answers if a.selected_option is not None)
    wrong = answered - correct
    skipped = max(total - answered, 0)
    score = percentage(correct, total)
    return DayScore(
        total_questions=total,
        correct_answers=correct,
        wrong_answers=wrong,
        skipped_questions=skipped,
        score=score,
        grade=grade_for(score),
    )


def cumulative_score(results: Iterable[TotalsLike]) -> CumulativeScore:
    """Sum correct / sum total across snapshots."""
    total = 0
    correct = 0
    for r in results:
        total += r.total_questions
        correct += r.correct_answers
    overall = percentage(correct, total)
    return CumulativeScore(
        total_questions=total,
        correct_answers=correct,
        overall_score=overall,
        grade=grade_for(overall),
    )
