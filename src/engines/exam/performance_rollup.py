"""
Performance Rollup - folds finished exam days into per-topic running totals.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.engines.exam.grading import percentage
from src.kernel.models.analytics import PerformanceAnalytics

RollupKey = Tuple[uuid.UUID, Optional[uuid.UUID]]


class TopicTally(BaseModel):
    """Answers from one snapshot for a single (subject, topic) pair."""

    subject_id: uuid.UUID
    topic_id: Optional[uuid.UUID] = None
    attempts: int = 0
    correct: int = 0
    time_spent_seconds: int = 0

    @property
    def wrong(self) -> int:
        return self.attempts - self.correct


def tally_answers(subject_id: uuid.UUID, answers: Sequence[Dict[str, Any]]) -> List[TopicTally]:
    """Group answered slots of a snapshot by topic. Skipped slots are ignored."""
    tallies: Dict[RollupKey, TopicTally] = {}
    for answer in answers:
        if answer.get("selected_option") is None:
            continue
        raw_topic = answer.get("topic_id")
        topic_id = uuid.UUID(str(raw_topic)) if raw_topic else None
        key = (subject_id, topic_id)
        tally = tallies.get(key)
        if tally is None:
            tally = tallies[key] = TopicTally(subject_id=subject_id, topic_id=topic_id)
        tally.attempts += 1
        if answer.get("is_correct"):
            tally.correct += 1
        tally.time_spent_seconds += int(answer.get("time_spent_seconds") or 0)
    return list(tallies.values())


class PerformanceRollup:
    """Merges snapshot tallies into ``performance_analytics`` rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def apply(
        self,
        user_id: uuid.UUID,
        subject_id: uuid.UUID,
        answers: Sequence[Dict[str, Any]],
        now: datetime,
    ) -> List[PerformanceAnalytics]:
        tallies = tally_answers(subject_id, answers)
        if not tallies:
            return []

        q = select(PerformanceAnalytics).where(
            PerformanceAnalytics.user_id == user_id,
            PerformanceAnalytics.subject_id == subject_id,
        )
        result = await self.session.execute(q)
        existing: Dict[Optional[uuid.UUID], PerformanceAnalytics] = {
            row.topic_id: row for row in result.scalars().all()
        }
        # Rows added earlier in this transaction are not flushed yet
        for pending in self.session.new:
            if (
                isinstance(pending, PerformanceAnalytics)
                and pending.user_id == user_id
                and pending.subject_id == subject_id
            ):
                existing[pending.topic_id] = pending

        rows = []
        for tally in tallies:
            row = existing.get(tally.topic_id)
            if row is None:
                row = PerformanceAnalytics(
                    user_id=user_id,
                    subject_id=subject_id,
                    topic_id=tally.topic_id,
                    total_attempts=0,
                    correct_answers=0,
                    wrong_answers=0,
                    total_study_time=0,
                )
                self.session.add(row)
            row.total_attempts += tally.attempts
            row.correct_answers += tally.correct
            row.wrong_answers += tally.wrong
            row.total_study_time += tally.time_spent_seconds
            row.accuracy_rate = percentage(row.correct_answers, row.total_attempts)
            row.average_time_per_question = (
                row.total_study_time // row.total_attempts if row.total_attempts else 0
            )
            row.last_practiced = now
            rows.append(row)
        return rows
