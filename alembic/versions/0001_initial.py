"""initial cinema schema

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-19 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('role', sa.String(length=50), nullable=False, server_default='Customer'),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tier', sa.String(length=16), nullable=False, server_default='BRONZE'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text("timezone('utc', now())"), nullable=False),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'], unique=False)

    op.create_table('shows',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('movie_id', sa.String(length=64), nullable=False),
        sa.Column('movie_title', sa.String(length=255), nullable=False),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text("timezone('utc', now())"), nullable=False),
    )
    op.create_index('ix_shows_movie_id', 'shows', ['movie_id'], unique=False)
    op.create_index('ix_shows_start_time', 'shows', ['start_time'], unique=False)

    op.create_table('payment_links',
        sa.Column('id', sa.String(length=32), primary_key=True),
        sa.Column('show_id', sa.Integer(), sa.ForeignKey('shows.id', ondelete='CASCADE'), nullable=False),
        sa.Column('seats', sa.JSON(), nullable=False),
        sa.Column('created_by', sa.String(length=64), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('used_by', sa.String(length=64), nullable=True),
        sa.Column('payment_session_id', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text("timezone('utc', now())"), nullable=False),
    )
    op.create_index('ix_payment_links_show_id', 'payment_links', ['show_id'], unique=False)
    op.create_index('ix_payment_links_status_expiry', 'payment_links', ['status', 'expires_at'], unique=False)

    op.create_table('bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('show_id', sa.Integer(), sa.ForeignKey('shows.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(length=64), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('seats', sa.JSON(), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('discount_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('coupon_code', sa.String(length=64), nullable=True),
        sa.Column('is_paid', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('payment_link', sa.String(length=1024), nullable=True),
        sa.Column('payment_session_id', sa.String(length=255), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text("timezone('utc', now())"), nullable=False),
        sa.UniqueConstraint('payment_session_id', name='bookings_payment_session_id_key'),
    )
    op.create_index('ix_bookings_show_id', 'bookings', ['show_id'], unique=False)
    op.create_index('ix_bookings_user_id', 'bookings', ['user_id'], unique=False)
    op.create_index('ix_bookings_is_paid', 'bookings', ['is_paid'], unique=False)
    op.create_index('ix_bookings_unpaid_expiry', 'bookings', ['is_paid', 'expires_at'], unique=False)

    op.create_table('seat_claims',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('show_id', sa.Integer(), sa.ForeignKey('shows.id', ondelete='CASCADE'), nullable=False),
        sa.Column('seat_label', sa.String(length=8), nullable=False),
        sa.Column('owner', sa.String(length=96), nullable=False),
        sa.Column('booking_id', sa.Integer(), sa.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=True),
        sa.Column('link_id', sa.String(length=32), sa.ForeignKey('payment_links.id', ondelete='SET NULL'), nullable=True),
        sa.Column('claimed_at', sa.DateTime(), server_default=sa.text("timezone('utc', now())"), nullable=False),
        sa.UniqueConstraint('show_id', 'seat_label', name='uq_show_seat'),
    )
    op.create_index('ix_seat_claims_show_id', 'seat_claims', ['show_id'], unique=False)
    op.create_index('ix_seat_claims_owner', 'seat_claims', ['owner'], unique=False)
    op.create_index('ix_seat_claims_booking_id', 'seat_claims', ['booking_id'], unique=False)
    op.create_index('ix_seat_claims_link_id', 'seat_claims', ['link_id'], unique=False)

    op.create_table('coupons',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('value', sa.Numeric(10, 2), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('min_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('valid_from', sa.DateTime(), nullable=True),
        sa.Column('valid_until', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_coupons_code', 'coupons', ['code'], unique=True)

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_id', sa.String(length=64), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.String(length=255), nullable=False),
        sa.Column('object_type', sa.String(length=128), nullable=True),
        sa.Column('object_id', sa.String(length=128), nullable=True),
        sa.Column('detail', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text("timezone('utc', now())"), nullable=False),
    )
    op.create_index('ix_audit_logs_actor_id', 'audit_logs', ['actor_id'], unique=False)


def downgrade():
    op.drop_index('ix_audit_logs_actor_id', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index('ix_coupons_code', table_name='coupons')
    op.drop_table('coupons')
    op.drop_index('ix_seat_claims_link_id', table_name='seat_claims')
    op.drop_index('ix_seat_claims_booking_id', table_name='seat_claims')
    op.drop_index('ix_seat_claims_owner', table_name='seat_claims')
    op.drop_index('ix_seat_claims_show_id', table_name='seat_claims')
    op.drop_table('seat_claims')
    op.drop_index('ix_bookings_unpaid_expiry', table_name='bookings')
    op.drop_index('ix_bookings_is_paid', table_name='bookings')
    op.drop_index('ix_bookings_user_id', table_name='bookings')
    op.drop_index('ix_bookings_show_id', table_name='bookings')
    op.drop_table('bookings')
    op.drop_index('ix_payment_links_status_expiry', table_name='payment_links')
    op.drop_index('ix_payment_links_show_id', table_name='payment_links')
    op.drop_table('payment_links')
    op.drop_index('ix_shows_start_time', table_name='shows')
    op.drop_index('ix_shows_movie_id', table_name='shows')
    op.drop_table('shows')
    op.drop_index('ix_users_role', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
