"""Exam progression schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_LIVE_PREDICATE = sa.text("status IN ('not_started', 'in_progress')")


def upgrade() -> None:
    # Question store
    op.create_table(
        'subjects',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('code', sa.String(50), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'topics',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('subject_id', sa.Uuid(), sa.ForeignKey('subjects.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'questions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('explanation', sa.Text(), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('difficulty', sa.String(20), nullable=False, server_default='medium'),
        sa.Column('subject_id', sa.Uuid(), sa.ForeignKey('subjects.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('topic_id', sa.Uuid(), sa.ForeignKey('topics.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_questions_subject_active', 'questions', ['subject_id', 'is_active'])

    op.create_table(
        'question_options',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('question_id', sa.Uuid(), sa.ForeignKey('questions.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('label', sa.String(5), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint('question_id', 'label', name='uq_question_options_question_label'),
    )

    # Exam sessions (answer sheets)
    op.create_table(
        'exam_sessions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('subject_id', sa.Uuid(), sa.ForeignKey('subjects.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='in_progress'),
        sa.Column('question_count', sa.Integer(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'exam_answers',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('session_id', sa.Uuid(), sa.ForeignKey('exam_sessions.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('question_id', sa.Uuid(), sa.ForeignKey('questions.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('selected_option', sa.String(5), nullable=True),
        sa.Column('is_correct', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('time_spent_seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('answered_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('session_id', 'question_id', name='uq_exam_answers_session_question'),
    )

    # Exam campaigns
    op.create_table(
        'exams',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('subject_ids', sa.JSON(), nullable=False),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('total_days', sa.Integer(), nullable=False, server_default='7'),
        sa.Column('questions_per_day', sa.Integer(), nullable=False, server_default='40'),
        sa.Column('duration_per_day', sa.Integer(), nullable=False, server_default='180'),
        sa.Column('current_day', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', sa.String(20), nullable=False, server_default='not_started'),
        sa.Column('total_questions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('correct_answers', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('overall_score', sa.Float(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    # One live exam per user
    op.create_index(
        'uq_exams_user_live',
        'exams',
        ['user_id'],
        unique=True,
        postgresql_where=_LIVE_PREDICATE,
        sqlite_where=_LIVE_PREDICATE,
    )

    op.create_table(
        'exam_days',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('exam_id', sa.Uuid(), sa.ForeignKey('exams.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('day_number', sa.Integer(), nullable=False),
        sa.Column('subject_id', sa.Uuid(), sa.ForeignKey('subjects.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='locked'),
        sa.Column('session_id', sa.Uuid(), sa.ForeignKey('exam_sessions.id', ondelete='SET NULL'), nullable=True, unique=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('total_questions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('correct_answers', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('score', sa.Float(), nullable=True),
        sa.Column('grade', sa.String(2), nullable=True),
        sa.Column('time_spent_seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.UniqueConstraint('exam_id', 'day_number', name='uq_exam_days_exam_day_number'),
    )

    op.create_table(
        'subject_results',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('exam_id', sa.Uuid(), sa.ForeignKey('exams.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('exam_day_id', sa.Uuid(), sa.ForeignKey('exam_days.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('day_number', sa.Integer(), nullable=False),
        sa.Column('subject_id', sa.Uuid(), sa.ForeignKey('subjects.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('outcome', sa.String(20), nullable=False),
        sa.Column('total_questions', sa.Integer(), nullable=False),
        sa.Column('correct_answers', sa.Integer(), nullable=False),
        sa.Column('wrong_answers', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('skipped_questions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('score', sa.Float(), nullable=False),
        sa.Column('grade', sa.String(2), nullable=False),
        sa.Column('time_taken_seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('answers', sa.JSON(), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=False),
    )

    # Per-topic rollup
    op.create_table(
        'performance_analytics',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('subject_id', sa.Uuid(), sa.ForeignKey('subjects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('topic_id', sa.Uuid(), sa.ForeignKey('topics.id', ondelete='SET NULL'), nullable=True),
        sa.Column('total_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('correct_answers', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('wrong_answers', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('accuracy_rate', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_study_time', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('average_time_per_question', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_practiced', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint(
            'user_id', 'subject_id', 'topic_id',
            name='uq_performance_analytics_user_subject_topic',
        ),
    )

    # Audit log
    op.create_table(
        'event_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('event_type', sa.String(100), nullable=False, index=True),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('user_id', sa.Uuid(), nullable=True, index=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True),
    )
    op.create_index('ix_event_logs_entity', 'event_logs', ['entity_type', 'entity_id'])
    op.create_index('ix_event_logs_type_time', 'event_logs', ['event_type', 'created_at'])


def downgrade() -> None:
    op.drop_table('event_logs')
    op.drop_table('performance_analytics')
    op.drop_table('subject_results')
    op.drop_table('exam_days')
    op.drop_index('uq_exams_user_live', table_name='exams')
    op.drop_table('exams')
    op.drop_table('exam_answers')
    op.drop_table('exam_sessions')
    op.drop_table('question_options')
    op.drop_table('questions')
    op.drop_table('topics')
    op.drop_table('subjects')
