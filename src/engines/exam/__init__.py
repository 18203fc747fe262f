"""
Exam Engine - multi-day mock examination campaigns.

One subject per day over a fixed number of days:
- Days unlock sequentially (previous day COMPLETED or MISSED)
- Day N closes at start_date + N days; overdue days are forced to MISSED
- Finished days are snapshotted and aggregated into a final grade

Grades: >=90 A, >=80 B, >=70 C, >=60 D, else F
"""

from src.engines.exam.grading import (
    DayScore,
    CumulativeScore,
    score_answers,
    cumulative_score,
    grade_for,
    percentage,
)
from src.engines.exam.question_pool import (
    QuestionPool,
    QuestionStore,
    SqlQuestionStore,
    QuestionRecord,
    PublicQuestion,
)
from src.engines.exam.day_state_machine import DayStateMachine, deadline_for
from src.engines.exam.answer_recorder import AnswerRecorder
from src.engines.exam.performance_rollup import PerformanceRollup
from src.engines.exam.deadline_sweeper import DeadlineSweeper, SweepReport, has_overdue_days, reconcile_exam
from src.engines.exam.orchestrator import (
    ExamOrchestrator,
    StartedDay,
    DayCompletion,
    GradeReport,
)

__all__ = [
    "DayScore",
    "CumulativeScore",
    "score_answers",
    "cumulative_score",
    "grade_for",
    "percentage",
    "QuestionPool",
    "QuestionStore",
    "SqlQuestionStore",
    "QuestionRecord",
    "PublicQuestion",
    "DayStateMachine",
    "deadline_for",
    "AnswerRecorder",
    "PerformanceRollup",
    "DeadlineSweeper",
    "SweepReport",
    "has_overdue_days",
    "reconcile_exam",
    "ExamOrchestrator",
    "StartedDay",
    "DayCompletion",
    "GradeReport",
]
