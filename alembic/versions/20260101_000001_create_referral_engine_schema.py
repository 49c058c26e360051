"""Create referral engine schema.

Revision ID: 20260101_000001
Revises:
Create Date: 2026-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20260101_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create referral tree, badge, commission, balance, ledger and milestone tables."""

    # Referral tree
    op.create_table(
        'sponsor_links',
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('sponsor_id', sa.Uuid(), nullable=True),
        sa.Column('locked_at', sa.DateTime(timezone=True), nullable=True, comment='Set once the sponsor can no longer change'),
        sa.PrimaryKeyConstraint('user_id')
    )
    op.create_index('ix_sponsor_links_sponsor_id', 'sponsor_links', ['sponsor_id'])

    op.create_table(
        'referral_tree',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('ancestor_id', sa.Uuid(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('path', sa.JSON(), nullable=False, comment='Ancestor ids from level 1 up to this ancestor'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.CheckConstraint('level >= 1', name='check_referral_tree_level_positive'),
        sa.UniqueConstraint('user_id', 'ancestor_id', name='uq_referral_tree_user_ancestor'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_referral_tree_user_level', 'referral_tree', ['user_id', 'level'])
    op.create_index('idx_referral_tree_ancestor_level', 'referral_tree', ['ancestor_id', 'level'])

    # Badges
    op.create_table(
        'badge_holdings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('current_badge', sa.String(64), nullable=False),
        sa.Column('purchased_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_badge_holdings_user_purchased', 'badge_holdings', ['user_id', 'purchased_at'])

    op.create_table(
        'badge_thresholds',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('badge_name', sa.String(64), nullable=False, comment='Canonical badge name'),
        sa.Column('unlock_levels', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.CheckConstraint('unlock_levels >= 1 AND unlock_levels <= 50', name='check_badge_thresholds_unlock_levels_range'),
        sa.UniqueConstraint('badge_name'),
        sa.PrimaryKeyConstraint('id')
    )

    # Commission configuration
    op.create_table(
        'commission_settings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('max_levels', sa.Integer(), nullable=False, server_default='50'),
        sa.Column('cap_usd', sa.DECIMAL(18, 8), nullable=True, comment='Per-level payout cap'),
        sa.Column('vip_multiplier', sa.DECIMAL(6, 2), nullable=False, server_default='1.00'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.CheckConstraint('max_levels >= 1 AND max_levels <= 50', name='check_commission_settings_max_levels_range'),
        sa.CheckConstraint('vip_multiplier > 0', name='check_commission_settings_vip_multiplier_positive'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'commission_level_rates',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('percent', sa.DECIMAL(10, 4), nullable=False, server_default='0', comment='5 means 5%'),
        sa.CheckConstraint('level >= 1 AND level <= 50', name='check_commission_level_rates_level_range'),
        sa.CheckConstraint('percent >= 0', name='check_commission_level_rates_percent_non_negative'),
        sa.UniqueConstraint('level'),
        sa.PrimaryKeyConstraint('id')
    )

    # Balances
    op.create_table(
        'balance_accounts',
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('withdrawable_balance', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('total_earned_withdrawable', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('holding_balance', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('total_earned_holding', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.CheckConstraint('withdrawable_balance >= 0', name='check_balance_withdrawable_non_negative'),
        sa.CheckConstraint('total_earned_withdrawable >= 0', name='check_balance_total_withdrawable_non_negative'),
        sa.CheckConstraint('holding_balance >= 0', name='check_balance_holding_non_negative'),
        sa.CheckConstraint('total_earned_holding >= 0', name='check_balance_total_holding_non_negative'),
        sa.PrimaryKeyConstraint('user_id')
    )

    # Ledgers (append-only)
    op.create_table(
        'commission_ledger',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('event_id', sa.String(128), nullable=False),
        sa.Column('sponsor_id', sa.Uuid(), nullable=False),
        sa.Column('referee_id', sa.Uuid(), nullable=True),
        sa.Column('level', sa.Integer(), nullable=False, comment='0 for milestone rewards'),
        sa.Column('commission_bsk', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('earning_type', sa.String(64), nullable=False),
        sa.Column('commission_type', sa.String(32), nullable=False, server_default='team_income'),
        sa.Column('destination', sa.String(16), nullable=False, server_default='holding'),
        sa.Column('base_amount', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('commission_percent', sa.DECIMAL(10, 4), nullable=False),
        sa.Column('sponsor_badge_at_event', sa.String(64), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.UniqueConstraint('event_id', 'level', 'sponsor_id', name='uq_commission_ledger_event_level_sponsor'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_commission_ledger_sponsor_created', 'commission_ledger', ['sponsor_id', 'created_at'])
    op.create_index('idx_commission_ledger_referee', 'commission_ledger', ['referee_id'])

    op.create_table(
        'bonus_ledger',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('entry_type', sa.String(32), nullable=False),
        sa.Column('amount_bsk', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('asset', sa.String(16), nullable=False, server_default='BSK'),
        sa.Column('meta_json', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_bonus_ledger_user_created', 'bonus_ledger', ['user_id', 'created_at'])

    # Milestones
    op.create_table(
        'milestone_definitions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('vip_count_threshold', sa.Integer(), nullable=False),
        sa.Column('reward_inr_value', sa.DECIMAL(18, 8), nullable=False, comment='Paid as the same amount of BSK'),
        sa.Column('reward_description', sa.String(255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.CheckConstraint('vip_count_threshold >= 1', name='check_milestone_definitions_threshold_positive'),
        sa.CheckConstraint('reward_inr_value >= 0', name='check_milestone_definitions_reward_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_milestone_definitions_vip_count_threshold', 'milestone_definitions', ['vip_count_threshold'])

    op.create_table(
        'milestone_claims',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('milestone_id', sa.Integer(), nullable=False),
        sa.Column('vip_count_at_claim', sa.Integer(), nullable=False),
        sa.Column('bsk_rewarded', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['milestone_id'], ['milestone_definitions.id'], ondelete='RESTRICT'),
        sa.UniqueConstraint('user_id', 'milestone_id', name='uq_milestone_claims_user_milestone'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_milestone_claims_user_id', 'milestone_claims', ['user_id'])


def downgrade() -> None:
    """Drop referral engine schema."""

    op.drop_index('ix_milestone_claims_user_id', 'milestone_claims')
    op.drop_table('milestone_claims')
    op.drop_index('ix_milestone_definitions_vip_count_threshold', 'milestone_definitions')
    op.drop_table('milestone_definitions')

    op.drop_index('idx_bonus_ledger_user_created', 'bonus_ledger')
    op.drop_table('bonus_ledger')
    op.drop_index('idx_commission_ledger_referee', 'commission_ledger')
    op.drop_index('idx_commission_ledger_sponsor_created', 'commission_ledger')
    op.drop_table('commission_ledger')

    op.drop_table('balance_accounts')
    op.drop_table('commission_level_rates')
    op.drop_table('commission_settings')
    op.drop_table('badge_thresholds')

    op.drop_index('idx_badge_holdings_user_purchased', 'badge_holdings')
    op.drop_table('badge_holdings')

    op.drop_index('idx_referral_tree_ancestor_level', 'referral_tree')
    op.drop_index('idx_referral_tree_user_level', 'referral_tree')
    op.drop_table('referral_tree')
    op.drop_index('ix_sponsor_links_sponsor_id', 'sponsor_links')
    op.drop_table('sponsor_links')
