"""create analytics tables

Revision ID: a7c1e2d3f4b5
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a7c1e2d3f4b5'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PLATFORMS = ('instagram', 'facebook', 'linkedin', 'x', 'youtube', 'tiktok')
POST_STATUSES = ('draft', 'scheduled', 'published', 'failed')
RUN_STATUSES = ('SUCCESS', 'ERROR', 'PARTIAL', 'FAILED')


def upgrade() -> None:
    op.create_table(
        'social_accounts',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('team_id', sa.String(36), nullable=False),
        sa.Column('platform', sa.Enum(*PLATFORMS, name='platform'), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('profile_id', sa.String(255), nullable=True),
        sa.Column('access_token', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_social_accounts_team_id', 'social_accounts', ['team_id'])

    op.create_table(
        'published_posts',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('team_id', sa.String(36), nullable=False),
        sa.Column('social_account_id', sa.String(36), nullable=False),
        sa.Column('platform_post_id', sa.String(255), nullable=True),
        sa.Column('status', sa.Enum(*POST_STATUSES, name='poststatus'), nullable=False),
        sa.Column('content_format', sa.String(50), nullable=True),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['social_account_id'], ['social_accounts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_published_posts_team_id', 'published_posts', ['team_id'])
    op.create_index('ix_published_posts_social_account_id', 'published_posts', ['social_account_id'])

    # One row per account per UTC day
    op.create_table(
        'account_analytics',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('social_account_id', sa.String(36), nullable=False),
        sa.Column('recorded_on', sa.Date(), nullable=False),
        sa.Column('recorded_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('followers_count', sa.Integer(), nullable=True),
        sa.Column('following_count', sa.Integer(), nullable=True),
        sa.Column('media_count', sa.Integer(), nullable=True),
        sa.Column('engagement_rate', sa.Float(), nullable=True),
        sa.Column('avg_reach_per_post', sa.Float(), nullable=True),
        sa.Column('avg_likes_per_post', sa.Float(), nullable=True),
        sa.Column('avg_comments_per_post', sa.Float(), nullable=True),
        sa.Column('avg_shares_per_post', sa.Float(), nullable=True),
        sa.Column('avg_engagement_per_post', sa.Float(), nullable=True),
        sa.Column('total_reach', sa.Integer(), nullable=True),
        sa.Column('total_impressions', sa.Integer(), nullable=True),
        sa.Column('total_likes', sa.Integer(), nullable=True),
        sa.Column('total_comments', sa.Integer(), nullable=True),
        sa.Column('total_shares', sa.Integer(), nullable=True),
        sa.Column('total_saves', sa.Integer(), nullable=True),
        sa.Column('total_clicks', sa.Integer(), nullable=True),
        sa.Column('previous_followers_count', sa.Integer(), nullable=True),
        sa.Column('previous_media_count', sa.Integer(), nullable=True),
        sa.Column('previous_engagement_rate', sa.Float(), nullable=True),
        sa.Column('previous_avg_reach', sa.Float(), nullable=True),
        sa.Column('followers_growth_percent', sa.Float(), nullable=True),
        sa.Column('media_growth_percent', sa.Float(), nullable=True),
        sa.Column('engagement_growth_percent', sa.Float(), nullable=True),
        sa.Column('reach_growth_percent', sa.Float(), nullable=True),
        sa.ForeignKeyConstraint(['social_account_id'], ['social_accounts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('social_account_id', 'recorded_on', name='uix_account_analytics_account_day'),
    )
    op.create_index('ix_account_analytics_social_account_id', 'account_analytics', ['social_account_id'])
    op.create_index('ix_account_analytics_recorded_at', 'account_analytics', ['recorded_at'])

    op.create_table(
        'post_analytics',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('published_post_id', sa.String(36), nullable=False),
        sa.Column('likes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('comments', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('shares', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('saves', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('clicks', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reach', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('impressions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('views', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('engagement', sa.Float(), nullable=False, server_default='0'),
        sa.Column('content_format', sa.String(50), nullable=True),
        sa.Column('raw_insights', sa.JSON(), nullable=True),
        sa.Column('recorded_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['published_post_id'], ['published_posts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_post_analytics_published_post_id', 'post_analytics', ['published_post_id'])
    op.create_index('ix_post_analytics_recorded_at', 'post_analytics', ['recorded_at'])

    op.create_table(
        'engagement_hotspots',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('team_id', sa.String(36), nullable=False),
        sa.Column('social_account_id', sa.String(36), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('hour_of_day', sa.Integer(), nullable=False),
        sa.Column('score', sa.Float(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['social_account_id'], ['social_accounts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('social_account_id', 'day_of_week', 'hour_of_day', name='uix_engagement_hotspots_slot'),
    )
    op.create_index('ix_engagement_hotspots_team_id', 'engagement_hotspots', ['team_id'])
    op.create_index('ix_engagement_hotspots_social_account_id', 'engagement_hotspots', ['social_account_id'])

    op.create_table(
        'sync_run_logs',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('status', sa.Enum(*RUN_STATUSES, name='runstatus'), nullable=False),
        sa.Column('executed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sync_run_logs_name', 'sync_run_logs', ['name'])
    op.create_index('ix_sync_run_logs_executed_at', 'sync_run_logs', ['executed_at'])


def downgrade() -> None:
    op.drop_table('sync_run_logs')
    op.drop_table('engagement_hotspots')
    op.drop_table('post_analytics')
    op.drop_table('account_analytics')
    op.drop_table('published_posts')
    op.drop_table('social_accounts')
    op.execute("DROP TYPE IF EXISTS runstatus")
    op.execute("DROP TYPE IF EXISTS poststatus")
    op.execute("DROP TYPE IF EXISTS platform")
