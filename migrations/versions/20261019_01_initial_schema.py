"""initial schema: users, tests, submissions and evaluation outbox

Revision ID: 20261019_01_initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_01_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


user_role = sa.Enum('student', 'teacher', 'admin', name='user_role')
evaluation_status = sa.Enum('pending', 'processing', 'done', 'failed', name='evaluation_status')


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=True),
        sa.Column('last_name', sa.String(length=100), nullable=True),
        sa.Column('role', user_role, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'tests',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('teacher_id', sa.Integer(), nullable=False),
        sa.Column('test_name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('test_code', sa.String(length=6), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('attempt_deadline', sa.DateTime(timezone=True), nullable=True),
        sa.Column('time_limit_minutes', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['teacher_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tests_teacher_id', 'tests', ['teacher_id'])
    op.create_index('ix_tests_test_code', 'tests', ['test_code'], unique=True)

    op.create_table(
        'questions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('test_id', sa.Integer(), nullable=False),
        sa.Column('question_text', sa.Text(), nullable=False),
        sa.Column('question_order', sa.Integer(), nullable=False),
        sa.Column('word_limit', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['test_id'], ['tests.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_questions_test_id', 'questions', ['test_id'])

    op.create_table(
        'test_submissions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('test_id', sa.Integer(), nullable=False),
        sa.Column('student_id', sa.Integer(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['test_id'], ['tests.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['student_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'test_id', name='uq_submission_student_test'),
    )
    op.create_index('ix_test_submissions_test_id', 'test_submissions', ['test_id'])
    op.create_index('ix_test_submissions_student_id', 'test_submissions', ['student_id'])

    op.create_table(
        'test_answers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('submission_id', sa.Integer(), nullable=False),
        sa.Column('question_id', sa.Integer(), nullable=False),
        sa.Column('answer_text', sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(['submission_id'], ['test_submissions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['question_id'], ['questions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_test_answers_submission_id', 'test_answers', ['submission_id'])

    op.create_table(
        'test_evaluations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('submission_id', sa.Integer(), nullable=False),
        sa.Column('status', evaluation_status, nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('next_attempt_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('review_score', sa.Integer(), nullable=True),
        sa.Column('grammar_score', sa.Integer(), nullable=True),
        sa.Column('content_score', sa.Integer(), nullable=True),
        sa.Column('creativity_score', sa.Integer(), nullable=True),
        sa.Column('summary_feedback', sa.Text(), nullable=True),
        sa.Column('grammar_issues', sa.Text(), nullable=True),
        sa.Column('suggestions', sa.Text(), nullable=True),
        sa.Column('final_remarks', sa.Text(), nullable=True),
        sa.Column('raw_response', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['submission_id'], ['test_submissions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('submission_id'),
    )
    op.create_index('ix_test_evaluations_status', 'test_evaluations', ['status'])


def downgrade() -> None:
    op.drop_index('ix_test_evaluations_status', table_name='test_evaluations')
    op.drop_table('test_evaluations')
    op.drop_index('ix_test_answers_submission_id', table_name='test_answers')
    op.drop_table('test_answers')
    op.drop_index('ix_test_submissions_student_id', table_name='test_submissions')
    op.drop_index('ix_test_submissions_test_id', table_name='test_submissions')
    op.drop_table('test_submissions')
    op.drop_index('ix_questions_test_id', table_name='questions')
    op.drop_table('questions')
    op.drop_index('ix_tests_test_code', table_name='tests')
    op.drop_index('ix_tests_teacher_id', table_name='tests')
    op.drop_table('tests')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')

    bind = op.get_bind()
    evaluation_status.drop(bind, checkfirst=True)
    user_role.drop(bind, checkfirst=True)
