"""initial_schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


tenant_status = sa.Enum('ACTIVE', 'SUSPENDED', name='tenantstatus')
location_status = sa.Enum('ACTIVE', 'TEMPORARILY_CLOSED', 'PERMANENTLY_CLOSED', name='locationstatus')
member_status = sa.Enum('PENDING', 'ACTIVE', 'SUSPENDED', 'FROZEN', 'CANCELLED', name='memberstatus')
user_role = sa.Enum('PLATFORM_ADMIN', 'CLUB_ADMIN', 'STAFF', 'TRAINER', 'MEMBER', name='userrole')
user_status = sa.Enum('ACTIVE', 'SUSPENDED', name='userstatus')
subscription_status = sa.Enum('PENDING_PAYMENT', 'ACTIVE', 'FROZEN', 'EXPIRED', 'CANCELLED', name='subscriptionstatus')
invoice_status = sa.Enum('DRAFT', 'ISSUED', 'PARTIALLY_PAID', 'PAID', 'OVERDUE', 'CANCELLED', name='invoicestatus')
payment_method = sa.Enum('CASH', 'CARD', 'BANK_TRANSFER', 'ONLINE', 'OTHER', name='paymentmethod')
attendance_status = sa.Enum('CHECKED_IN', 'CHECKED_OUT', 'AUTO_CHECKED_OUT', name='attendancestatus')
check_in_method = sa.Enum('MANUAL', 'QR_CODE', 'KIOSK', 'CARD', name='checkinmethod')
loyalty_tier = sa.Enum('BRONZE', 'SILVER', 'GOLD', 'PLATINUM', name='loyaltytier')
points_transaction_type = sa.Enum('EARNED', 'REDEEMED', 'BONUS', 'ADJUSTED', name='pointstransactiontype')
referral_status = sa.Enum('CLICKED', 'SIGNED_UP', 'CONVERTED', name='referralstatus')
discount_type = sa.Enum('PERCENTAGE', 'FIXED_AMOUNT', 'FREE_TRIAL', 'GIFT_CARD', name='discounttype')
delivery_status = sa.Enum('PENDING', 'DELIVERED', 'FAILED', 'EXHAUSTED', name='deliverystatus')
notification_type = sa.Enum(
    'SUBSCRIPTION_ACTIVATED', 'SUBSCRIPTION_EXPIRING', 'SUBSCRIPTION_EXPIRED',
    'INVOICE_ISSUED', 'INVOICE_PAID', 'INVOICE_OVERDUE',
    'POINTS_EARNED', 'POINTS_REDEEMED', 'REFERRAL_CONVERTED', 'GENERAL',
    name='notificationtype'
)
notification_entity_type = sa.Enum(
    'SUBSCRIPTION', 'INVOICE', 'POINTS', 'REFERRAL', 'MEMBER', name='notificationentitytype'
)

ENUMS = [
    tenant_status, location_status, member_status, user_role, user_status, subscription_status,
    invoice_status, payment_method, attendance_status, check_in_method, loyalty_tier,
    points_transaction_type, referral_status, discount_type, delivery_status,
    notification_type, notification_entity_type,
]


def _id():
    return sa.Column('id', sa.String(length=36), nullable=False)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def _tenant_id(nullable=False):
    return sa.Column('tenant_id', sa.String(length=36),
                     sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=nullable)


def _fk(name, target, ondelete=None, nullable=True):
    return sa.Column(name, sa.String(length=36), sa.ForeignKey(target, ondelete=ondelete), nullable=nullable)


def _indexes(table, *columns, unique=()):
    for column in columns:
        op.create_index(op.f(f'ix_{table}_{column}'), table, [column], unique=column in unique)


def upgrade():
    # ============ Clubs ============
    op.create_table(
        'tenants',
        _id(),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('status', tenant_status, nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('vat_rate', sa.Float(), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=False),
        sa.Column('contact_email', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('tenants', 'id', 'slug', 'status', unique=('slug',))

    op.create_table(
        'locations',
        _id(),
        _tenant_id(),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('status', location_status, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('locations', 'id', 'tenant_id', 'status')

    # ============ Members and users ============
    op.create_table(
        'members',
        _id(),
        _tenant_id(),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('gender', sa.String(length=10), nullable=True),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('status', member_status, nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'email', name='uq_members_tenant_email'),
    )
    _indexes('members', 'id', 'tenant_id', 'email', 'phone', 'status')

    op.create_table(
        'users',
        _id(),
        _tenant_id(nullable=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('role', user_role, nullable=False),
        sa.Column('status', user_status, nullable=False),
        _fk('member_id', 'members.id', ondelete='SET NULL'),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.Column('login_count', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('member_id'),
    )
    _indexes('users', 'id', 'tenant_id', 'email', 'role', 'status', unique=('email',))

    op.create_table(
        'refresh_tokens',
        _id(),
        _fk('user_id', 'users.id', ondelete='CASCADE', nullable=False),
        sa.Column('jti_hash', sa.String(length=64), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('refresh_tokens', 'id', 'user_id', 'jti_hash', 'expires_at', 'revoked_at', unique=('jti_hash',))

    # ============ Memberships ============
    op.create_table(
        'membership_plans',
        _id(),
        _tenant_id(),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('duration_days', sa.Integer(), nullable=False),
        sa.Column('class_limit', sa.Integer(), nullable=True),
        sa.Column('freeze_days', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('membership_plans', 'id', 'tenant_id', 'is_active')

    op.create_table(
        'subscriptions',
        _id(),
        _tenant_id(),
        _fk('member_id', 'members.id', ondelete='CASCADE', nullable=False),
        _fk('plan_id', 'membership_plans.id', nullable=False),
        sa.Column('status', subscription_status, nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('auto_renew', sa.Boolean(), nullable=True),
        sa.Column('classes_remaining', sa.Integer(), nullable=True),
        sa.Column('freeze_days_remaining', sa.Integer(), nullable=False),
        sa.Column('frozen_at', sa.Date(), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('voucher_code', sa.String(length=50), nullable=True),
        sa.Column('paid_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('subscriptions', 'id', 'tenant_id', 'member_id', 'plan_id', 'status', 'end_date')

    # ============ Billing ============
    op.create_table(
        'invoice_sequences',
        _tenant_id(),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('last_sequence', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('tenant_id', 'year'),
    )

    op.create_table(
        'invoices',
        _id(),
        _tenant_id(),
        _fk('member_id', 'members.id', ondelete='CASCADE', nullable=False),
        _fk('subscription_id', 'subscriptions.id', ondelete='SET NULL'),
        sa.Column('invoice_number', sa.String(length=50), nullable=False),
        sa.Column('status', invoice_status, nullable=False),
        sa.Column('issue_date', sa.Date(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('vat_rate', sa.Float(), nullable=False),
        sa.Column('vat_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('paid_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('payment_method', payment_method, nullable=True),
        sa.Column('payment_reference', sa.String(length=255), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'invoice_number', name='uq_invoices_tenant_number'),
    )
    _indexes('invoices', 'id', 'tenant_id', 'member_id', 'subscription_id', 'invoice_number', 'status', 'due_date')

    op.create_table(
        'invoice_line_items',
        _id(),
        _fk('invoice_id', 'invoices.id', ondelete='CASCADE', nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('line_total', sa.Numeric(12, 2), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('invoice_line_items', 'id', 'invoice_id')

    # ============ Attendance ============
    op.create_table(
        'attendance_records',
        _id(),
        _tenant_id(),
        _fk('member_id', 'members.id', ondelete='CASCADE', nullable=False),
        _fk('location_id', 'locations.id', ondelete='CASCADE', nullable=False),
        _fk('subscription_id', 'subscriptions.id', ondelete='SET NULL'),
        sa.Column('check_in_time', sa.DateTime(), nullable=False),
        sa.Column('check_out_time', sa.DateTime(), nullable=True),
        sa.Column('status', attendance_status, nullable=False),
        sa.Column('check_in_method', check_in_method, nullable=False),
        _fk('checked_in_by_user_id', 'users.id', ondelete='SET NULL'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('attendance_records', 'id', 'tenant_id', 'member_id', 'location_id', 'check_in_time', 'status')

    # ============ Loyalty ============
    op.create_table(
        'loyalty_configs',
        _id(),
        _tenant_id(),
        sa.Column('is_enabled', sa.Boolean(), nullable=True),
        sa.Column('points_per_visit', sa.Integer(), nullable=True),
        sa.Column('points_per_currency_unit', sa.Numeric(8, 2), nullable=True),
        sa.Column('silver_threshold', sa.Integer(), nullable=True),
        sa.Column('gold_threshold', sa.Integer(), nullable=True),
        sa.Column('platinum_threshold', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('loyalty_configs', 'id', 'tenant_id', unique=('tenant_id',))

    op.create_table(
        'member_points',
        _id(),
        _tenant_id(),
        _fk('member_id', 'members.id', ondelete='CASCADE', nullable=False),
        sa.Column('current_balance', sa.Integer(), nullable=True),
        sa.Column('total_earned', sa.Integer(), nullable=True),
        sa.Column('total_redeemed', sa.Integer(), nullable=True),
        sa.Column('tier', loyalty_tier, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('member_points', 'id', 'tenant_id', 'member_id', unique=('member_id',))

    op.create_table(
        'points_transactions',
        _id(),
        _tenant_id(),
        _fk('balance_id', 'member_points.id', ondelete='CASCADE', nullable=False),
        _fk('member_id', 'members.id', ondelete='CASCADE', nullable=False),
        sa.Column('transaction_type', points_transaction_type, nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('balance_before', sa.Integer(), nullable=False),
        sa.Column('balance_after', sa.Integer(), nullable=False),
        sa.Column('reference_type', sa.String(length=50), nullable=True),
        sa.Column('reference_id', sa.String(length=36), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        _fk('created_by_user_id', 'users.id', ondelete='SET NULL'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('points_transactions', 'id', 'tenant_id', 'balance_id', 'member_id', 'transaction_type',
             'reference_type', 'reference_id')

    # ============ Referrals ============
    op.create_table(
        'referral_configs',
        _id(),
        _tenant_id(),
        sa.Column('is_enabled', sa.Boolean(), nullable=True),
        sa.Column('code_prefix', sa.String(length=10), nullable=True),
        sa.Column('referrer_reward_points', sa.Integer(), nullable=True),
        sa.Column('max_referrals_per_member', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('referral_configs', 'id', 'tenant_id', unique=('tenant_id',))

    op.create_table(
        'referral_codes',
        _id(),
        _tenant_id(),
        _fk('member_id', 'members.id', ondelete='CASCADE', nullable=False),
        sa.Column('code', sa.String(length=30), nullable=False),
        sa.Column('click_count', sa.Integer(), nullable=True),
        sa.Column('conversion_count', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('member_id'),
    )
    _indexes('referral_codes', 'id', 'tenant_id', 'code', unique=('code',))

    op.create_table(
        'referrals',
        _id(),
        _tenant_id(),
        _fk('referral_code_id', 'referral_codes.id', ondelete='CASCADE', nullable=False),
        _fk('referrer_member_id', 'members.id', ondelete='CASCADE', nullable=False),
        _fk('referee_member_id', 'members.id', ondelete='CASCADE'),
        sa.Column('status', referral_status, nullable=False),
        _fk('subscription_id', 'subscriptions.id', ondelete='SET NULL'),
        sa.Column('signed_up_at', sa.DateTime(), nullable=True),
        sa.Column('converted_at', sa.DateTime(), nullable=True),
        sa.Column('reward_points', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('referee_member_id'),
    )
    _indexes('referrals', 'id', 'tenant_id', 'referral_code_id', 'referrer_member_id', 'status')

    # ============ Vouchers ============
    op.create_table(
        'vouchers',
        _id(),
        _tenant_id(),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('discount_type', discount_type, nullable=False),
        sa.Column('discount_percent', sa.Numeric(5, 2), nullable=True),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('free_trial_days', sa.Integer(), nullable=True),
        sa.Column('gift_card_balance', sa.Numeric(12, 2), nullable=True),
        sa.Column('max_uses', sa.Integer(), nullable=True),
        sa.Column('max_uses_per_member', sa.Integer(), nullable=True),
        sa.Column('current_use_count', sa.Integer(), nullable=False),
        sa.Column('valid_from', sa.DateTime(), nullable=True),
        sa.Column('valid_until', sa.DateTime(), nullable=True),
        sa.Column('first_time_member_only', sa.Boolean(), nullable=True),
        sa.Column('minimum_purchase', sa.Numeric(12, 2), nullable=True),
        sa.Column('applicable_plan_ids', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'code', name='uq_vouchers_tenant_code'),
    )
    _indexes('vouchers', 'id', 'tenant_id', 'code', 'is_active')

    op.create_table(
        'voucher_usages',
        _id(),
        _tenant_id(),
        _fk('voucher_id', 'vouchers.id', ondelete='CASCADE', nullable=False),
        _fk('member_id', 'members.id', ondelete='CASCADE', nullable=False),
        sa.Column('discount_applied', sa.Numeric(12, 2), nullable=False),
        _fk('invoice_id', 'invoices.id', ondelete='SET NULL'),
        _fk('subscription_id', 'subscriptions.id', ondelete='SET NULL'),
        sa.Column('used_at', sa.DateTime(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('voucher_usages', 'id', 'tenant_id', 'voucher_id', 'member_id')

    # ============ Webhooks ============
    op.create_table(
        'webhooks',
        _id(),
        _tenant_id(),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('url', sa.String(length=1000), nullable=False),
        sa.Column('secret', sa.String(length=255), nullable=False),
        sa.Column('events', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('webhooks', 'id', 'tenant_id', 'is_active')

    op.create_table(
        'webhook_deliveries',
        _id(),
        _tenant_id(),
        _fk('webhook_id', 'webhooks.id', ondelete='CASCADE'),
        sa.Column('event_type', sa.String(length=100), nullable=False),
        sa.Column('event_id', sa.String(length=36), nullable=False),
        sa.Column('payload', sa.Text(), nullable=False),
        sa.Column('status', delivery_status, nullable=False),
        sa.Column('attempt_count', sa.Integer(), nullable=False),
        sa.Column('max_attempts', sa.Integer(), nullable=False),
        sa.Column('next_retry_at', sa.DateTime(), nullable=True),
        sa.Column('last_attempt_at', sa.DateTime(), nullable=True),
        sa.Column('delivered_at', sa.DateTime(), nullable=True),
        sa.Column('last_response_code', sa.Integer(), nullable=True),
        sa.Column('last_response_body', sa.Text(), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('webhook_deliveries', 'id', 'tenant_id', 'webhook_id', 'event_type', 'event_id', 'status',
             'next_retry_at')

    # ============ Notifications ============
    op.create_table(
        'notifications',
        _id(),
        _tenant_id(),
        _fk('target_user_id', 'users.id', ondelete='CASCADE', nullable=False),
        sa.Column('type', notification_type, nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('related_entity_id', sa.String(length=36), nullable=True),
        sa.Column('related_entity_type', notification_entity_type, nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=True),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('notifications', 'id', 'tenant_id', 'target_user_id', 'type', 'related_entity_id', 'is_read')

    # ============ Jobs ============
    op.create_table(
        'scheduler_locks',
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('locked_until', sa.DateTime(), nullable=False),
        sa.Column('locked_at', sa.DateTime(), nullable=False),
        sa.Column('locked_by', sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint('name'),
    )


def downgrade():
    for table in [
        'scheduler_locks', 'notifications', 'webhook_deliveries', 'webhooks', 'voucher_usages',
        'vouchers', 'referrals', 'referral_codes', 'referral_configs', 'points_transactions',
        'member_points', 'loyalty_configs', 'attendance_records', 'invoice_line_items', 'invoices',
        'invoice_sequences', 'subscriptions', 'membership_plans', 'refresh_tokens', 'users',
        'members', 'locations', 'tenants',
    ]:
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in ENUMS:
        enum_type.drop(bind, checkfirst=True)
