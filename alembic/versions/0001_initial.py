"""initial

Revision ID: 0001_initial
Revises:
Create Date: 2025-12-17 00:00:00.000000
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
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('role', sa.String(length=50), nullable=False, server_default='Admin'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('email', name='users_email_key'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=False)
    op.create_index('ix_users_role', 'users', ['role'], unique=False)

    op.create_table('regions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.UniqueConstraint('name', name='regions_name_key'),
    )

    op.create_table('routes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('region_id', sa.Integer(), nullable=True),
        sa.Column('pickup', sa.String(length=128), nullable=False),
        sa.Column('destination', sa.String(length=128), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['region_id'], ['regions.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_routes_region_id', 'routes', ['region_id'], unique=False)
    op.create_index('ix_routes_pickup', 'routes', ['pickup'], unique=False)
    op.create_index('ix_routes_destination', 'routes', ['destination'], unique=False)
    op.create_index('ix_routes_active', 'routes', ['active'], unique=False)

    op.create_table('buses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('number_plate', sa.String(length=64), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.UniqueConstraint('number_plate', name='buses_number_plate_key'),
    )
    op.create_index('ix_buses_number_plate', 'buses', ['number_plate'], unique=False)
    op.create_index('ix_buses_active', 'buses', ['active'], unique=False)

    op.create_table('sessions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('route_id', sa.Integer(), nullable=False),
        sa.Column('bus_id', sa.Integer(), nullable=False),
        sa.Column('departure_date', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['route_id'], ['routes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['bus_id'], ['buses.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('route_id', 'bus_id', 'departure_date', name='uq_session_journey'),
    )
    op.create_index('ix_sessions_route_id', 'sessions', ['route_id'], unique=False)
    op.create_index('ix_sessions_bus_id', 'sessions', ['bus_id'], unique=False)
    op.create_index('ix_sessions_departure_date', 'sessions', ['departure_date'], unique=False)

    op.create_table('referrals',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.UniqueConstraint('phone', name='referrals_phone_key'),
    )
    op.create_index('ix_referrals_phone', 'referrals', ['phone'], unique=False)

    op.create_table('passengers',
        sa.Column('phone', sa.String(length=32), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('emergency_contact', sa.String(length=32), nullable=True),
    )

    op.create_table('bookings',
        sa.Column('id', sa.String(length=32), primary_key=True),
        sa.Column('client_reference', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('emergency_contact', sa.String(length=32), nullable=True),
        sa.Column('route_id', sa.Integer(), nullable=True),
        sa.Column('bus_id', sa.Integer(), nullable=True),
        sa.Column('journey_date', sa.Date(), nullable=False),
        sa.Column('pickup', sa.String(length=128), nullable=False),
        sa.Column('destination', sa.String(length=128), nullable=False),
        sa.Column('bus_type', sa.String(length=128), nullable=True),
        sa.Column('seats', sa.JSON(), nullable=False),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('referral_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.String(length=255), nullable=True),
        sa.Column('hubtel_transaction_id', sa.String(length=128), nullable=True),
        sa.Column('payment_status', sa.String(length=50), nullable=True),
        sa.Column('amount_paid', sa.Numeric(10, 2), nullable=True),
        sa.Column('payment_method', sa.String(length=32), nullable=True),
        sa.ForeignKeyConstraint(['route_id'], ['routes.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['bus_id'], ['buses.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['referral_id'], ['referrals.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('client_reference', name='bookings_client_reference_key'),
    )
    op.create_index('ix_bookings_client_reference', 'bookings', ['client_reference'], unique=False)
    op.create_index('ix_bookings_phone', 'bookings', ['phone'], unique=False)
    op.create_index('ix_bookings_route_id', 'bookings', ['route_id'], unique=False)
    op.create_index('ix_bookings_bus_id', 'bookings', ['bus_id'], unique=False)
    op.create_index('ix_bookings_journey_date', 'bookings', ['journey_date'], unique=False)
    op.create_index('ix_bookings_referral_id', 'bookings', ['referral_id'], unique=False)
    op.create_index('ix_bookings_status', 'bookings', ['status'], unique=False)
    op.create_index('ix_bookings_created_at', 'bookings', ['created_at'], unique=False)
    op.create_index('ix_booking_journey', 'bookings', ['bus_id', 'route_id', 'journey_date', 'status'], unique=False)

    op.create_table('seat_holds',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_id', sa.String(length=32), nullable=False),
        sa.Column('bus_id', sa.Integer(), nullable=False),
        sa.Column('route_id', sa.Integer(), nullable=False),
        sa.Column('journey_date', sa.Date(), nullable=False),
        sa.Column('seat_number', sa.String(length=8), nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('bus_id', 'route_id', 'journey_date', 'seat_number', name='uq_journey_seat'),
    )
    op.create_index('ix_seat_holds_booking_id', 'seat_holds', ['booking_id'], unique=False)

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=255), nullable=False),
        sa.Column('object_type', sa.String(length=128), nullable=True),
        sa.Column('object_id', sa.String(length=128), nullable=True),
        sa.Column('detail', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['actor_id'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_audit_logs_actor_id', 'audit_logs', ['actor_id'], unique=False)


def downgrade():
    op.drop_index('ix_audit_logs_actor_id', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index('ix_seat_holds_booking_id', table_name='seat_holds')
    op.drop_table('seat_holds')
    for name in ('ix_booking_journey', 'ix_bookings_created_at', 'ix_bookings_status', 'ix_bookings_referral_id',
                 'ix_bookings_journey_date', 'ix_bookings_bus_id', 'ix_bookings_route_id', 'ix_bookings_phone',
                 'ix_bookings_client_reference'):
        op.drop_index(name, table_name='bookings')
    op.drop_table('bookings')
    op.drop_table('passengers')
    op.drop_index('ix_referrals_phone', table_name='referrals')
    op.drop_table('referrals')
    op.drop_index('ix_sessions_departure_date', table_name='sessions')
    op.drop_index('ix_sessions_bus_id', table_name='sessions')
    op.drop_index('ix_sessions_route_id', table_name='sessions')
    op.drop_table('sessions')
    op.drop_index('ix_buses_active', table_name='buses')
    op.drop_index('ix_buses_number_plate', table_name='buses')
    op.drop_table('buses')
    op.drop_index('ix_routes_active', table_name='routes')
    op.drop_index('ix_routes_destination', table_name='routes')
    op.drop_index('ix_routes_pickup', table_name='routes')
    op.drop_index('ix_routes_region_id', table_name='routes')
    op.drop_table('routes')
    op.drop_table('regions')
    op.drop_index('ix_users_role', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
