"""initial_schema

Revision ID: 3c1f0a9d2b7e
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '3c1f0a9d2b7e'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # 1. Users
    op.create_table('users',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=True),
        sa.Column('last_name', sa.String(length=100), nullable=True),
        sa.Column('is_admin', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('is_verified', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    # 2. Plans and subscriptions
    plans = op.create_table('subscription_plans',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price_monthly', sa.Numeric(10, 2), server_default='0', nullable=False),
        sa.Column('max_endpoints', sa.Integer(), nullable=False),
        sa.Column('max_requests_per_month', sa.Integer(), nullable=False),
        sa.Column('max_request_delay_ms', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )

    op.create_table('user_subscriptions',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('plan_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('status', sa.String(length=20), server_default='active', nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['plan_id'], ['subscription_plans.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_user_subscriptions_user_id'), 'user_subscriptions', ['user_id'], unique=False)
    op.create_index('ix_user_subscriptions_user_status', 'user_subscriptions', ['user_id', 'status'], unique=False)

    # 3. Mock endpoints
    op.create_table('mock_endpoints',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('method', sa.String(length=10), nullable=False),
        sa.Column('url_pattern', sa.String(length=500), nullable=False),
        sa.Column('request_schema', postgresql.JSONB(), nullable=True),
        sa.Column('response_data', postgresql.JSONB(), nullable=False),
        sa.Column('response_status_code', sa.Integer(), server_default='200', nullable=False),
        sa.Column('response_delay_ms', sa.Integer(), server_default='0', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint("method IN ('GET', 'POST', 'PUT', 'DELETE', 'PATCH')", name='ck_mock_endpoints_method'),
        sa.CheckConstraint('response_status_code >= 100 AND response_status_code < 600', name='ck_mock_endpoints_status_code'),
        sa.CheckConstraint('response_delay_ms >= 0', name='ck_mock_endpoints_delay'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_mock_endpoints_user_id'), 'mock_endpoints', ['user_id'], unique=False)
    op.create_index(op.f('ix_mock_endpoints_method'), 'mock_endpoints', ['method'], unique=False)
    op.create_index(op.f('ix_mock_endpoints_is_active'), 'mock_endpoints', ['is_active'], unique=False)
    op.create_index(
        'uq_mock_endpoints_owner_active',
        'mock_endpoints',
        ['user_id', 'method', 'url_pattern'],
        unique=True,
        postgresql_where=sa.text('is_active'),
    )

    # 4. Usage
    op.create_table('api_usage',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('endpoint_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('method', sa.String(length=10), nullable=False),
        sa.Column('url_pattern', sa.String(length=500), nullable=False),
        sa.Column('response_status_code', sa.Integer(), nullable=True),
        sa.Column('processing_time_ms', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('date_key', sa.Date(), server_default=sa.text("(now() AT TIME ZONE 'utc')::date"), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['endpoint_id'], ['mock_endpoints.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_api_usage_user_id'), 'api_usage', ['user_id'], unique=False)
    op.create_index('ix_api_usage_user_date', 'api_usage', ['user_id', 'date_key'], unique=False)

    # 5. API keys
    op.create_table('user_api_keys',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('key_hash', sa.String(length=255), nullable=False),
        sa.Column('key_prefix', sa.String(length=10), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('permissions', postgresql.JSONB(), server_default=sa.text('\'["read", "write"]\'::jsonb'), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_user_api_keys_user_id'), 'user_api_keys', ['user_id'], unique=False)
    op.create_index(op.f('ix_user_api_keys_key_hash'), 'user_api_keys', ['key_hash'], unique=False)

    # 6. Seed plans
    op.bulk_insert(plans, [
        {
            'name': 'free',
            'description': 'Getting started with API mocking',
            'price_monthly': 0,
            'max_endpoints': 10,
            'max_requests_per_month': 10,
            'max_request_delay_ms': 5000,
        },
        {
            'name': 'pro',
            'description': 'For professional development teams',
            'price_monthly': 29,
            'max_endpoints': 100,
            'max_requests_per_month': 10000,
            'max_request_delay_ms': 10000,
        },
        {
            'name': 'enterprise',
            'description': 'High-volume mocking',
            'price_monthly': 99,
            'max_endpoints': 1000,
            'max_requests_per_month': 1000000,
            'max_request_delay_ms': 10000,
        },
    ])


def downgrade():
    op.drop_table('user_api_keys')
    op.drop_table('api_usage')
    op.drop_index('uq_mock_endpoints_owner_active', table_name='mock_endpoints')
    op.drop_table('mock_endpoints')
    op.drop_table('user_subscriptions')
    op.drop_table('subscription_plans')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
