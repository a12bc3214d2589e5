"""initial tables

Revision ID: 3e1a9c47b2d0
Revises:
Create Date: 2026-10-17 10:12:31.204118
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3e1a9c47b2d0'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('region', sa.String(length=64), nullable=True),
        sa.Column('country', sa.String(length=64), nullable=True),
        sa.Column('school_level', sa.String(length=32), nullable=True),
        sa.Column('department', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_profiles_email', 'profiles', ['email'])

    op.create_table(
        'assignments',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('user_name', sa.String(length=255), nullable=True),
        sa.Column('user_email', sa.String(length=255), nullable=True),
        sa.Column('assignment_type', sa.String(length=64), nullable=False),
        sa.Column('course_name', sa.String(length=255), nullable=False),
        sa.Column('class_name', sa.String(length=255), nullable=False),
        sa.Column('teacher_name', sa.String(length=255), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('platform', sa.String(length=32), nullable=False),
        sa.Column('platform_contact', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('files', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('payment_amount', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('payment_currency', sa.String(length=8), nullable=True),
        sa.Column('complexity', sa.String(length=8), nullable=True),
        sa.Column('estimated_hours', sa.Integer(), nullable=True),
        sa.Column('urgency', sa.String(length=8), nullable=True),
        sa.Column('requirements', sa.JSON(), nullable=True),
        sa.Column('in_scope', sa.Boolean(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('payment_id', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_assignments_user_id', 'assignments', ['user_id'])
    op.create_index('ix_assignments_status', 'assignments', ['status'])
    op.create_index('ix_assignments_user_status', 'assignments', ['user_id', 'status'])

    op.create_table(
        'payments',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('assignment_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=8), nullable=False),
        sa.Column('provider', sa.String(length=32), nullable=False),
        sa.Column('transaction_reference', sa.String(length=128), nullable=False),
        sa.Column('provider_payment_id', sa.String(length=128), nullable=True),
        sa.Column('provider_transaction_id', sa.String(length=128), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['assignment_id'], ['assignments.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_reference', name='uq_payments_transaction_reference'),
    )
    op.create_index('ix_payments_assignment_id', 'payments', ['assignment_id'])
    op.create_index('ix_payments_user_id', 'payments', ['user_id'])
    op.create_index('ix_payments_status', 'payments', ['status'])
    op.create_index('ix_payments_transaction_reference', 'payments', ['transaction_reference'], unique=True)
    op.create_index('ix_payments_assignment_status', 'payments', ['assignment_id', 'status'])

    op.create_table(
        'activity_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('type', sa.String(length=48), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=True),
        sa.Column('user_name', sa.String(length=255), nullable=True),
        sa.Column('user_email', sa.String(length=255), nullable=True),
        sa.Column('assignment_id', sa.String(length=36), nullable=True),
        sa.Column('payment_id', sa.String(length=36), nullable=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_activity_logs_type', 'activity_logs', ['type'])
    op.create_index('ix_activity_logs_user_id', 'activity_logs', ['user_id'])
    op.create_index('ix_activity_logs_assignment_id', 'activity_logs', ['assignment_id'])
    op.create_index('ix_activity_logs_timestamp_id', 'activity_logs', ['timestamp', 'id'])

    op.create_table(
        'pricing_rules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('complexity', sa.String(length=8), nullable=False),
        sa.Column('assignment_type', sa.String(length=64), nullable=False),
        sa.Column('hourly_rate', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('complexity', 'assignment_type', name='uq_pricing_rules_complexity_type'),
    )
    op.create_index('ix_pricing_rules_id', 'pricing_rules', ['id'])


def downgrade() -> None:
    op.drop_table('pricing_rules')
    op.drop_table('activity_logs')
    op.drop_table('payments')
    op.drop_table('assignments')
    op.drop_table('profiles')
