"""initial schema: users, ledger, subscriptions, leads, coupons, support

Revision ID: a1c0e2f4b601
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1c0e2f4b601'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('role', sa.Enum('admin', 'subadmin', 'user', name='user_role'), nullable=False),
        sa.Column('status', sa.Enum('active', 'inactive', 'pending', name='user_status'), nullable=False),
        sa.Column('verified', sa.Boolean(), nullable=False),
        sa.Column('permissions', sa.JSON(), nullable=True, comment='subadmin capability list'),
        sa.Column('lead_coins', sa.Integer(), server_default='0', nullable=False, comment='materialized ledger balance'),
        sa.Column('stripe_customer_id', sa.String(255), nullable=True),
        sa.Column('profile_image', sa.String(500), nullable=True),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stripe_customer_id'),
        sa.CheckConstraint('lead_coins >= 0', name='ck_users_lead_coins_non_negative'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'service_settings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('site_name', sa.String(255), nullable=False),
        sa.Column('site_url', sa.String(500), nullable=False),
        sa.Column('from_email', sa.String(255), nullable=False),
        sa.Column('resend_api_key_enc', sa.Text(), nullable=True),
        sa.Column('stripe_secret_key_enc', sa.Text(), nullable=True),
        sa.Column('stripe_publishable_key', sa.String(255), nullable=True),
        sa.Column('stripe_webhook_secret_enc', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Integer(), nullable=False, comment='price in cents'),
        sa.Column('lead_coins', sa.Integer(), nullable=False, comment='coins granted on activation'),
        sa.Column('duration_days', sa.Integer(), nullable=False),
        sa.Column('features', sa.JSON(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'user_subscriptions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('subscription_id', sa.Integer(), nullable=False),
        sa.Column(
            'status',
            sa.Enum('pending', 'active', 'cancelled', 'expired', name='user_subscription_status'),
            nullable=False,
        ),
        sa.Column('payment_verified', sa.Boolean(), nullable=False),
        sa.Column('payment_session_id', sa.String(255), nullable=True, comment='Stripe Checkout session id'),
        sa.Column('initial_lead_coins', sa.Integer(), nullable=False, comment='coins granted by this record'),
        sa.Column('lead_coins_left', sa.Integer(), nullable=False, comment='historical snapshot, not a balance'),
        sa.Column('start_date', sa.DateTime(), nullable=True),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('payment_session_id'),
        sa.CheckConstraint('lead_coins_left <= initial_lead_coins', name='ck_user_subscriptions_coins_left'),
        sa.CheckConstraint(
            'start_date IS NULL OR end_date IS NULL OR end_date >= start_date',
            name='ck_user_subscriptions_dates',
        ),
    )
    op.create_index('ix_user_subscriptions_user_id', 'user_subscriptions', ['user_id'])
    op.create_index('ix_user_subscriptions_subscription_id', 'user_subscriptions', ['subscription_id'])
    op.create_index('ix_user_subscriptions_status', 'user_subscriptions', ['status'])
    op.create_index('ix_user_subscriptions_end_date', 'user_subscriptions', ['end_date'])

    op.create_table(
        'coin_transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('admin_id', sa.Integer(), nullable=True),
        sa.Column('amount', sa.Integer(), nullable=False, comment='signed delta'),
        sa.Column(
            'type',
            sa.Enum(
                'signup_bonus', 'subscription', 'purchase', 'admin_topup', 'spent', 'coupon', 'refund',
                name='coin_transaction_type',
            ),
            nullable=False,
        ),
        sa.Column('description', sa.String(500), nullable=False),
        sa.Column('balance_after', sa.Integer(), nullable=False),
        sa.Column('reference', sa.String(100), nullable=True, comment='idempotency key, e.g. subscription:12'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['admin_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference'),
    )
    op.create_index('ix_coin_transactions_user_id', 'coin_transactions', ['user_id'])
    op.create_index('ix_coin_transactions_created_at', 'coin_transactions', ['created_at'])

    op.create_table(
        'lead_categories',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'leads',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=True),
        sa.Column('skills', sa.JSON(), nullable=True),
        sa.Column('work_type', sa.Enum('part_time', 'full_time', name='lead_work_type'), nullable=False),
        sa.Column('duration', sa.String(100), nullable=True),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('price', sa.Integer(), nullable=True, comment='informational, never charged to viewers'),
        sa.Column('total_members', sa.Integer(), nullable=True),
        sa.Column('images', sa.JSON(), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('contact_number', sa.String(50), nullable=True),
        sa.Column('creator_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['category_id'], ['lead_categories.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['creator_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_leads_category_id', 'leads', ['category_id'])
    op.create_index('ix_leads_creator_id', 'leads', ['creator_id'])

    op.create_table(
        'lead_views',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('lead_id', sa.Integer(), nullable=False),
        sa.Column('coins_spent', sa.Integer(), nullable=False),
        sa.Column(
            'view_type',
            sa.Enum('contact_info', 'detailed_info', 'full_access', name='lead_view_type'),
            nullable=False,
        ),
        sa.Column('viewed_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['lead_id'], ['leads.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'lead_id', name='uq_lead_views_user_lead'),
    )
    op.create_index('ix_lead_views_user_id', 'lead_views', ['user_id'])
    op.create_index('ix_lead_views_lead_id', 'lead_views', ['lead_id'])
    op.create_index('ix_lead_views_viewed_at', 'lead_views', ['viewed_at'])

    op.create_table(
        'lead_coin_settings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('contact_info_cost', sa.Integer(), nullable=False),
        sa.Column('detailed_info_cost', sa.Integer(), nullable=False),
        sa.Column('full_access_cost', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.execute(
        "INSERT INTO lead_coin_settings (contact_info_cost, detailed_info_cost, full_access_cost) VALUES (5, 10, 15)"
    )

    op.create_table(
        'coupons',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('max_uses', sa.Integer(), nullable=False),
        sa.Column('current_uses', sa.Integer(), nullable=False),
        sa.Column('coin_amount', sa.Integer(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('created_by_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('current_uses >= 0 AND current_uses <= max_uses', name='ck_coupons_uses'),
    )
    op.create_index('ix_coupons_code', 'coupons', ['code'], unique=True)

    op.create_table(
        'coupon_claims',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('coupon_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('coins_received', sa.Integer(), nullable=False),
        sa.Column('claimed_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['coupon_id'], ['coupons.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('coupon_id', 'user_id', name='uq_coupon_claims_coupon_user'),
    )
    op.create_index('ix_coupon_claims_coupon_id', 'coupon_claims', ['coupon_id'])
    op.create_index('ix_coupon_claims_user_id', 'coupon_claims', ['user_id'])

    op.create_table(
        'leadcoin_packages',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('lead_coins', sa.Integer(), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False, comment='price in cents'),
        sa.Column('active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'coin_purchases',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('package_id', sa.Integer(), nullable=True),
        sa.Column('payment_session_id', sa.String(255), nullable=True),
        sa.Column(
            'status',
            sa.Enum('pending', 'completed', 'failed', 'cancelled', name='coin_purchase_status'),
            nullable=False,
        ),
        sa.Column('lead_coins', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False, comment='amount paid in cents'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['package_id'], ['leadcoin_packages.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('payment_session_id'),
    )
    op.create_index('ix_coin_purchases_user_id', 'coin_purchases', ['user_id'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column(
            'type',
            sa.Enum('coin_received', 'low_balance', 'subscription_update', 'system', name='notification_type'),
            nullable=False,
        ),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('read', sa.Boolean(), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])

    op.create_table(
        'support_tickets',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('subject', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column(
            'status',
            sa.Enum('open', 'in_progress', 'resolved', 'closed', name='support_ticket_status'),
            nullable=False,
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_support_tickets_user_id', 'support_tickets', ['user_id'])

    op.create_table(
        'support_ticket_replies',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('ticket_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('is_from_staff', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['ticket_id'], ['support_tickets.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_support_ticket_replies_ticket_id', 'support_ticket_replies', ['ticket_id'])

    op.create_table(
        'processed_stripe_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('event_id', sa.String(255), nullable=False),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('processed_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_processed_stripe_events_event_id', 'processed_stripe_events', ['event_id'], unique=True)

    op.create_table(
        'payment_reconciliations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('payment_session_id', sa.String(255), nullable=False),
        sa.Column('kind', sa.Enum('subscription', 'coins', name='reconciliation_kind'), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('reference_id', sa.Integer(), nullable=True, comment='plan id or package id from checkout metadata'),
        sa.Column('reason', sa.String(255), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column(
            'status',
            sa.Enum('open', 'resolved', 'dismissed', name='reconciliation_status'),
            nullable=False,
        ),
        sa.Column('resolved_by_id', sa.Integer(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['resolved_by_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('payment_session_id'),
    )
    op.create_index('ix_payment_reconciliations_user_id', 'payment_reconciliations', ['user_id'])
    op.create_index('ix_payment_reconciliations_status', 'payment_reconciliations', ['status'])

    op.create_table(
        'system_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('level', sa.String(20), nullable=False, comment='INFO/WARNING/ERROR/CRITICAL'),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_system_logs_level', 'system_logs', ['level'])
    op.create_index('ix_system_logs_event_type', 'system_logs', ['event_type'])
    op.create_index('ix_system_logs_user_id', 'system_logs', ['user_id'])
    op.create_index('ix_system_logs_created_at', 'system_logs', ['created_at'])


def downgrade() -> None:
    for table in (
        'system_logs',
        'payment_reconciliations',
        'processed_stripe_events',
        'support_ticket_replies',
        'support_tickets',
        'notifications',
        'coin_purchases',
        'leadcoin_packages',
        'coupon_claims',
        'coupons',
        'lead_coin_settings',
        'lead_views',
        'leads',
        'lead_categories',
        'coin_transactions',
        'user_subscriptions',
        'subscriptions',
        'service_settings',
        'users',
    ):
        op.drop_table(table)
