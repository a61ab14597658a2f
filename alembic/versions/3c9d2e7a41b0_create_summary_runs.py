"""create summary_runs

Revision ID: 3c9d2e7a41b0
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = '3c9d2e7a41b0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'summary_runs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('account_id', sa.String(length=64), nullable=False),
        sa.Column('requested_by', sa.String(length=64), nullable=True),
        sa.Column('mode', sa.String(length=10), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('record_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('monthly_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quarterly_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('monthly_error_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quarterly_error_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('records_created', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('records_updated', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('records_failed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_summary_runs_account_id', 'summary_runs', ['account_id'])


def downgrade() -> None:
    op.drop_index('ix_summary_runs_account_id', table_name='summary_runs')
    op.drop_table('summary_runs')
