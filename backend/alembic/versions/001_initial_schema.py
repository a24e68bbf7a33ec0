"""Initial LeaseKeeper schema

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-19

Accounts, properties, leases, payments and receipts, complaints, maintenance,
notifications, feature flags, system settings, audit log, jobs outbox and analytics snapshots.
Money as INTEGER CENTS (BIGINT).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UUID = postgresql.UUID(as_uuid=True)

ENUMS = {
    'userrole': ('SUPER_ADMIN', 'OWNER', 'MANAGER', 'TENANT'),
    'propertytype': ('APARTMENT', 'HOUSE', 'CONDO', 'TOWNHOUSE', 'COMMERCIAL'),
    'propertystatus': ('AVAILABLE', 'OCCUPIED', 'MAINTENANCE', 'UNAVAILABLE'),
    'leasestatus': ('PENDING', 'ACTIVE', 'EXPIRED', 'TERMINATED'),
    'paymentstatus': ('PENDING', 'PAID', 'OVERDUE', 'CANCELLED', 'REFUNDED'),
    'paymentmethod': ('CASH', 'CHECK', 'BANK_TRANSFER', 'CARD', 'ONLINE'),
    'complaintstatus': ('OPEN', 'IN_PROGRESS', 'RESOLVED', 'CLOSED'),
    'complaintcategory': ('NOISE', 'MAINTENANCE', 'NEIGHBOR', 'SECURITY', 'BILLING', 'OTHER'),
    'priority': ('LOW', 'MEDIUM', 'HIGH', 'URGENT'),
    'maintenancestatus': ('OPEN', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED'),
    'maintenancecategory': ('PLUMBING', 'ELECTRICAL', 'HVAC', 'APPLIANCE', 'STRUCTURAL', 'PEST', 'OTHER'),
    'notificationtype': (
        'LEASE', 'PAYMENT', 'PAYMENT_REMINDER', 'PAYMENT_OVERDUE', 'COMPLAINT', 'MAINTENANCE', 'SYSTEM',
    ),
    'auditaction': (
        'LEASE_CREATED', 'LEASE_UPDATED', 'LEASE_RENEWED', 'LEASE_TERMINATED', 'LEASE_DELETED',
        'PAYMENT_CREATED', 'PAYMENT_UPDATED', 'PAYMENT_SETTLED', 'PAYMENT_CANCELLED',
        'PAYMENT_REFUNDED', 'PAYMENT_DELETED', 'PROPERTY_DELETED', 'USER_CREATED', 'USER_DELETED',
        'MANAGER_PERMISSIONS_CHANGED', 'FEATURE_FLAG_CHANGED', 'SYSTEM_SETTING_CHANGED',
    ),
    'jobstatus': ('PENDING', 'PROCESSING', 'COMPLETED', 'FAILED', 'DEAD_LETTER'),
    'analyticsperiod': ('MONTHLY',),
}


def enum(name: str) -> postgresql.ENUM:
    # Types are created up front so tables can share them
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    # === USERS ===
    op.create_table(
        'users',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('firebase_uid', sa.String(128), unique=True, nullable=True, index=True),
        sa.Column('email', sa.String(255), unique=True, nullable=False, index=True),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('role', enum('userrole'), nullable=False, index=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('fcm_token', sa.String(512), nullable=True),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    # === OWNERS / MANAGERS ===
    op.create_table(
        'owners',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('user_id', UUID, sa.ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False),
        sa.Column('company_name', sa.String(255), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_table(
        'managers',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('user_id', UUID, sa.ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False),
        sa.Column('owner_id', UUID, sa.ForeignKey('owners.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('permissions', postgresql.JSONB(), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    # === PROPERTIES ===
    op.create_table(
        'properties',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('owner_id', UUID, sa.ForeignKey('owners.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('property_type', enum('propertytype'), nullable=False),
        sa.Column('status', enum('propertystatus'), nullable=False, index=True),
        sa.Column('address_line1', sa.String(255), nullable=False),
        sa.Column('address_line2', sa.String(255), nullable=True),
        sa.Column('city', sa.String(100), nullable=False),
        sa.Column('state', sa.String(50), nullable=False),
        sa.Column('zip_code', sa.String(20), nullable=False),
        sa.Column('country', sa.String(2), nullable=False, server_default='US'),
        sa.Column('bedrooms', sa.Integer(), nullable=True),
        sa.Column('bathrooms', sa.Integer(), nullable=True),
        sa.Column('square_feet', sa.Integer(), nullable=True),
        sa.Column('rent_amount_cents', sa.BigInteger(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    # === TENANTS ===
    op.create_table(
        'tenants',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('user_id', UUID, sa.ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False),
        sa.Column('property_id', UUID, sa.ForeignKey('properties.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('emergency_contact_name', sa.String(255), nullable=True),
        sa.Column('emergency_contact_phone', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    # === LEASES ===
    op.create_table(
        'leases',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('tenant_id', UUID, sa.ForeignKey('tenants.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('property_id', UUID, sa.ForeignKey('properties.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('status', enum('leasestatus'), nullable=False, index=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('monthly_rent_cents', sa.BigInteger(), nullable=False),
        sa.Column('security_deposit_cents', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('terms', sa.Text(), nullable=True),
        sa.Column('utilities', sa.Text(), nullable=True),
        sa.Column('termination_date', sa.Date(), nullable=True),
        sa.Column('termination_reason', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('end_date > start_date', name='ck_lease_dates_ordered'),
    )
    op.create_index('ix_leases_property_status', 'leases', ['property_id', 'status'])
    # A tenant holds at most one ACTIVE lease
    op.create_index(
        'uq_leases_tenant_active',
        'leases',
        ['tenant_id'],
        unique=True,
        postgresql_where=sa.text("status = 'ACTIVE'"),
    )

    # === PAYMENTS / RECEIPTS ===
    op.create_table(
        'payments',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('lease_id', UUID, sa.ForeignKey('leases.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('tenant_id', UUID, sa.ForeignKey('tenants.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('amount_cents', sa.BigInteger(), nullable=False),
        sa.Column('status', enum('paymentstatus'), nullable=False, index=True),
        sa.Column('due_date', sa.Date(), nullable=False, index=True),
        sa.Column('paid_date', sa.DateTime(), nullable=True),
        sa.Column('method', enum('paymentmethod'), nullable=True),
        sa.Column('transaction_id', sa.String(100), unique=True, nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('refunded_at', sa.DateTime(), nullable=True),
        sa.Column('refund_reason', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('amount_cents > 0', name='ck_payment_amount_positive'),
    )
    op.create_index('ix_payments_status_due', 'payments', ['status', 'due_date'])

    op.create_table(
        'receipts',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('payment_id', UUID, sa.ForeignKey('payments.id', ondelete='RESTRICT'), unique=True, nullable=False),
        sa.Column('receipt_number', sa.String(50), unique=True, nullable=False),
        sa.Column('amount_cents', sa.BigInteger(), nullable=False),
        sa.Column('object_path', sa.String(500), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('issued_at', sa.DateTime(), nullable=False),
    )

    # === COMPLAINTS ===
    op.create_table(
        'complaints',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('property_id', UUID, sa.ForeignKey('properties.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('tenant_id', UUID, sa.ForeignKey('tenants.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('reported_by_id', UUID, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('assigned_to_id', UUID, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category', enum('complaintcategory'), nullable=False),
        sa.Column('priority', enum('priority'), nullable=False),
        sa.Column('status', enum('complaintstatus'), nullable=False, index=True),
        sa.Column('resolution', sa.Text(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    # === MAINTENANCE REQUESTS ===
    op.create_table(
        'maintenance_requests',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('property_id', UUID, sa.ForeignKey('properties.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('requested_by_id', UUID, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('tenant_id', UUID, sa.ForeignKey('tenants.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('assigned_to_id', UUID, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category', enum('maintenancecategory'), nullable=False),
        sa.Column('priority', enum('priority'), nullable=False),
        sa.Column('status', enum('maintenancestatus'), nullable=False, index=True),
        sa.Column('estimated_cost_cents', sa.BigInteger(), nullable=True),
        sa.Column('actual_cost_cents', sa.BigInteger(), nullable=True),
        sa.Column('scheduled_date', sa.Date(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    # === NOTIFICATIONS ===
    op.create_table(
        'notifications',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('user_id', UUID, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('type', enum('notificationtype'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('data', postgresql.JSONB(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_notifications_user_unread', 'notifications', ['user_id', 'is_read'])

    # === FEATURE FLAGS ===
    op.create_table(
        'feature_flags',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('name', sa.String(100), unique=True, nullable=False, index=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_table(
        'feature_flag_overrides',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('flag_id', UUID, sa.ForeignKey('feature_flags.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('user_id', UUID, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=True),
        sa.Column('role', enum('userrole'), nullable=True),
        sa.Column('enabled', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('flag_id', 'user_id', name='uq_flag_override_user'),
        sa.UniqueConstraint('flag_id', 'role', name='uq_flag_override_role'),
    )

    # === SYSTEM SETTINGS ===
    op.create_table(
        'system_settings',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('key', sa.String(100), unique=True, nullable=False, index=True),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('type', sa.String(20), nullable=False, server_default='STRING'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('updated_by_id', UUID, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    # === AUDIT LOG ===
    op.create_table(
        'audit_log',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('user_id', UUID, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('action', enum('auditaction'), nullable=False, index=True),
        sa.Column('resource_type', sa.String(50), nullable=False, index=True),
        sa.Column('resource_id', UUID, nullable=False),
        sa.Column('details', postgresql.JSONB(), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, index=True),
    )

    # === LOGIN ATTEMPTS ===
    op.create_table(
        'login_attempts',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('email', sa.String(255), nullable=True, index=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('reason', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, index=True),
    )

    # === JOBS OUTBOX ===
    op.create_table(
        'jobs_outbox',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('type', sa.String(100), nullable=False, index=True),
        sa.Column('payload', postgresql.JSONB(), nullable=False),
        sa.Column('status', enum('jobstatus'), nullable=False, index=True),
        sa.Column('unique_scope', sa.String(500), unique=True, nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_attempts', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('run_after', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_jobs_outbox_pending', 'jobs_outbox', ['status', 'run_after'])

    # === ANALYTICS SNAPSHOTS ===
    op.create_table(
        'analytics_snapshots',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('owner_id', UUID, sa.ForeignKey('owners.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('period', enum('analyticsperiod'), nullable=False),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('period_end', sa.Date(), nullable=False),
        sa.Column('revenue_cents', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('payments_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_properties', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('occupied_properties', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('occupancy_bps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('data', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('owner_id', 'period', 'period_start', name='uq_analytics_owner_period'),
    )


def downgrade() -> None:
    op.drop_table('analytics_snapshots')
    op.drop_index('ix_jobs_outbox_pending')
    op.drop_table('jobs_outbox')
    op.drop_table('login_attempts')
    op.drop_table('audit_log')
    op.drop_table('system_settings')
    op.drop_table('feature_flag_overrides')
    op.drop_table('feature_flags')
    op.drop_index('ix_notifications_user_unread')
    op.drop_table('notifications')
    op.drop_table('maintenance_requests')
    op.drop_table('complaints')
    op.drop_table('receipts')
    op.drop_index('ix_payments_status_due')
    op.drop_table('payments')
    op.drop_index('uq_leases_tenant_active')
    op.drop_index('ix_leases_property_status')
    op.drop_table('leases')
    op.drop_table('tenants')
    op.drop_table('properties')
    op.drop_table('managers')
    op.drop_table('owners')
    op.drop_table('users')

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
