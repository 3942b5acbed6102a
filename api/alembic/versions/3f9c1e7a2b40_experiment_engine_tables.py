"""Experiment engine tables: ab_experiments + experiment_results

Revision ID: 3f9c1e7a2b40
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3f9c1e7a2b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PLATFORMS = ('tiktok', 'instagram', 'facebook', 'youtube', 'twitter', 'linkedin')
STATUSES = ('draft', 'running', 'paused', 'completed', 'cancelled')
TARGET_METRICS = ('engagement_rate', 'likes', 'comments', 'shares', 'views')


def upgrade() -> None:
    op.create_table('ab_experiments',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('platform', sa.Enum(*PLATFORMS, name='platform'), nullable=False),
        sa.Column('status', sa.Enum(*STATUSES, name='experimentstatus'), nullable=False),
        sa.Column('variants', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('target_metric', sa.Enum(*TARGET_METRICS, name='targetmetric'), nullable=False),
        sa.Column('minimum_sample_size', sa.Integer(), nullable=False, server_default='100'),
        sa.Column('confidence_level', sa.Float(), nullable=False, server_default='0.95'),
        sa.Column('prior_alpha', sa.Float(), nullable=True),
        sa.Column('prior_beta', sa.Float(), nullable=True),
        sa.Column('info_gain', sa.Float(), nullable=True),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('owner_id', sa.String(length=255), nullable=True),
        sa.Column('results', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('winning_variant', sa.String(length=255), nullable=True),
        sa.Column('statistical_significance', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_ab_experiments_platform'), 'ab_experiments', ['platform'], unique=False)
    op.create_index(op.f('ix_ab_experiments_status'), 'ab_experiments', ['status'], unique=False)
    op.create_index(op.f('ix_ab_experiments_owner_id'), 'ab_experiments', ['owner_id'], unique=False)

    op.create_table('experiment_results',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('experiment_id', sa.String(length=64), nullable=False),
        sa.Column('variant_id', sa.String(length=255), nullable=False),
        sa.Column('subject_id', sa.String(length=255), nullable=True),
        sa.Column('metric_value', sa.Float(), nullable=False),
        sa.Column('conversion_event', sa.Boolean(), nullable=False),
        sa.Column('metadata', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('recorded_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['experiment_id'], ['ab_experiments.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_experiment_results_experiment_id'), 'experiment_results', ['experiment_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_experiment_results_experiment_id'), table_name='experiment_results')
    op.drop_table('experiment_results')
    op.drop_index(op.f('ix_ab_experiments_owner_id'), table_name='ab_experiments')
    op.drop_index(op.f('ix_ab_experiments_status'), table_name='ab_experiments')
    op.drop_index(op.f('ix_ab_experiments_platform'), table_name='ab_experiments')
    op.drop_table('ab_experiments')
    sa.Enum(name='targetmetric').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='experimentstatus').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='platform').drop(op.get_bind(), checkfirst=True)
