"""Add examiner_stats, exam_examiners and copies tables

Revision ID: 001_add_allocation_tables
Revises: 
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_add_allocation_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the allocation engine tables."""
    op.create_table(
        'examiner_stats',
        sa.Column('examiner_id', sa.BigInteger(), nullable=False, autoincrement=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('total_copies_assigned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_copies_evaluated', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_copies_reassigned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('average_checking_time_hours', sa.Float(), nullable=False, server_default='0'),
        sa.Column('current_workload', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('performance_score', sa.Float(), nullable=True),
        sa.Column('score_computed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_active_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('warning_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('examiner_id'),
        sa.CheckConstraint('current_workload >= 0', name='ck_examiner_stats_workload_non_negative'),
    )
    op.create_index('ix_examiner_stats_is_active', 'examiner_stats', ['is_active'])
    op.create_index('idx_examiner_stats_active_score', 'examiner_stats', ['is_active', 'performance_score'])

    op.create_table(
        'exam_examiners',
        sa.Column('exam_id', sa.BigInteger(), nullable=False, autoincrement=False),
        sa.Column('examiner_id', sa.BigInteger(), nullable=False, autoincrement=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('exam_id', 'examiner_id'),
    )
    op.create_index('ix_exam_examiners_examiner_id', 'exam_examiners', ['examiner_id'])

    op.create_table(
        'copies',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('exam_id', sa.BigInteger(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='unassigned'),
        sa.Column('assigned_examiner_id', sa.BigInteger(), nullable=True),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('evaluation_started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_updated_by_examiner', sa.DateTime(timezone=True), nullable=True),
        sa.Column('evaluation_completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_warned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reassignment_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('needs_attention', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "status IN ('unassigned', 'assigned', 'examining', 'evaluated')",
            name='ck_copies_status',
        ),
    )
    op.create_index('ix_copies_exam_id', 'copies', ['exam_id'])
    op.create_index('ix_copies_status', 'copies', ['status'])
    op.create_index('ix_copies_assigned_examiner_id', 'copies', ['assigned_examiner_id'])
    op.create_index('idx_copies_exam_status', 'copies', ['exam_id', 'status'])
    op.create_index('idx_copies_status_examiner', 'copies', ['status', 'assigned_examiner_id'])


def downgrade() -> None:
    """Drop the allocation engine tables."""
    op.drop_index('idx_copies_status_examiner', table_name='copies')
    op.drop_index('idx_copies_exam_status', table_name='copies')
    op.drop_index('ix_copies_assigned_examiner_id', table_name='copies')
    op.drop_index('ix_copies_status', table_name='copies')
    op.drop_index('ix_copies_exam_id', table_name='copies')
    op.drop_table('copies')
    op.drop_index('ix_exam_examiners_examiner_id', table_name='exam_examiners')
    op.drop_table('exam_examiners')
    op.drop_index('idx_examiner_stats_active_score', table_name='examiner_stats')
    op.drop_index('ix_examiner_stats_is_active', table_name='examiner_stats')
    op.drop_table('examiner_stats')
