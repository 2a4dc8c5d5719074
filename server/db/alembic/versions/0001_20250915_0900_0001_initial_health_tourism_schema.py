"""Initial health tourism schema

Revision ID: 0001
Revises:
Create Date: 2025-09-15 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    # Create users table
    op.create_table('users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('country', sa.String(length=120), nullable=True),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    # Create packages table
    op.create_table('packages',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False),
        sa.Column('facility_name', sa.String(length=255), nullable=False),
        sa.Column('facility_type', sa.String(length=32), nullable=True),
        sa.Column('city', sa.String(length=120), nullable=False),
        sa.Column('country', sa.String(length=120), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('duration_days', sa.Integer(), nullable=False),
        sa.Column('duration_nights', sa.Integer(), nullable=False),
        sa.Column('base_price', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('includes_flights', sa.Boolean(), nullable=False),
        sa.Column('includes_accommodation', sa.Boolean(), nullable=False),
        sa.Column('includes_transfers', sa.Boolean(), nullable=False),
        sa.Column('meals', sa.String(length=20), nullable=False),
        sa.Column('discounts', sa.JSON(), nullable=False),
        sa.Column('available_from', sa.Date(), nullable=True),
        sa.Column('available_until', sa.Date(), nullable=True),
        sa.Column('blackout_dates', sa.JSON(), nullable=False),
        sa.Column('max_capacity', sa.Integer(), nullable=False),
        sa.Column('current_bookings', sa.Integer(), nullable=False),
        sa.Column('rating_average', sa.Float(), nullable=False),
        sa.Column('rating_count', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_featured', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('duration_days >= 1', name='ck_package_duration_days_min'),
        sa.CheckConstraint('duration_nights >= 0', name='ck_package_duration_nights_non_negative'),
        sa.CheckConstraint('base_price >= 0', name='ck_package_base_price_non_negative'),
        sa.CheckConstraint('length(currency) = 3', name='ck_package_currency_length'),
        sa.CheckConstraint('max_capacity >= 0', name='ck_package_max_capacity_non_negative'),
        sa.CheckConstraint('current_bookings >= 0', name='ck_package_current_bookings_non_negative'),
        sa.CheckConstraint('rating_average >= 0 AND rating_average <= 5', name='ck_package_rating_average_range'),
        sa.CheckConstraint('rating_count >= 0', name='ck_package_rating_count_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_packages_title'), 'packages', ['title'], unique=False)
    op.create_index(op.f('ix_packages_is_active'), 'packages', ['is_active'], unique=False)
    op.create_index('ix_packages_category_active', 'packages', ['category', 'is_active'], unique=False)
    op.create_index('ix_packages_city_country', 'packages', ['city', 'country'], unique=False)
    op.create_index('ix_packages_base_price', 'packages', ['base_price'], unique=False)
    op.create_index('ix_packages_rating_average', 'packages', ['rating_average'], unique=False)

    # Create package child tables
    op.create_table('package_services',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('package_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('included', sa.Boolean(), nullable=False),
        sa.Column('additional_cost', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.CheckConstraint('additional_cost >= 0', name='ck_package_service_cost_non_negative'),
        sa.ForeignKeyConstraint(['package_id'], ['packages.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('package_id', 'name', name='uq_package_service_name')
    )
    op.create_index(op.f('ix_package_services_package_id'), 'package_services', ['package_id'], unique=False)
    op.create_index(op.f('ix_package_services_name'), 'package_services', ['name'], unique=False)

    op.create_table('package_experience_types',
        sa.Column('package_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.ForeignKeyConstraint(['package_id'], ['packages.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('package_id', 'name')
    )

    op.create_table('package_tags',
        sa.Column('package_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.ForeignKeyConstraint(['package_id'], ['packages.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('package_id', 'name')
    )

    # Create bookings table
    op.create_table('bookings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('package_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('booking_number', sa.String(length=32), nullable=False),
        sa.Column('personal_info', sa.JSON(), nullable=False),
        sa.Column('health_info', sa.JSON(), nullable=False),
        sa.Column('travel_start', sa.Date(), nullable=False),
        sa.Column('travel_end', sa.Date(), nullable=False),
        sa.Column('flexibility', sa.String(length=20), nullable=False),
        sa.Column('adults', sa.Integer(), nullable=False),
        sa.Column('children', sa.Integer(), nullable=False),
        sa.Column('infants', sa.Integer(), nullable=False),
        sa.Column('selected_services', sa.JSON(), nullable=False),
        sa.Column('accommodation', sa.JSON(), nullable=False),
        sa.Column('base_price', sa.Integer(), nullable=False),
        sa.Column('additional_services', sa.Integer(), nullable=False),
        sa.Column('discounts', sa.Integer(), nullable=False),
        sa.Column('taxes', sa.Integer(), nullable=False),
        sa.Column('total_price', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('payment_plan', sa.String(length=20), nullable=False),
        sa.Column('payment_status', sa.String(length=20), nullable=False),
        sa.Column('payment_method', sa.String(length=20), nullable=True),
        sa.Column('transactions', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('inventory_reserved', sa.Boolean(), nullable=False),
        sa.Column('documents', sa.JSON(), nullable=False),
        sa.Column('communications', sa.JSON(), nullable=False),
        sa.Column('medical_appointments', sa.JSON(), nullable=False),
        sa.Column('itinerary', sa.JSON(), nullable=False),
        sa.Column('notes', sa.JSON(), nullable=False),
        sa.Column('feedback', sa.JSON(), nullable=True),
        sa.Column('cancellation', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('adults >= 1', name='ck_booking_adults_min'),
        sa.CheckConstraint('children >= 0', name='ck_booking_children_non_negative'),
        sa.CheckConstraint('infants >= 0', name='ck_booking_infants_non_negative'),
        sa.CheckConstraint('travel_end >= travel_start', name='ck_booking_travel_dates_ordered'),
        sa.CheckConstraint('base_price >= 0', name='ck_booking_base_price_non_negative'),
        sa.CheckConstraint('total_price >= 0', name='ck_booking_total_price_non_negative'),
        sa.CheckConstraint('length(booking_number) > 0', name='ck_booking_number_not_empty'),
        sa.ForeignKeyConstraint(['package_id'], ['packages.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_bookings_package_id'), 'bookings', ['package_id'], unique=False)
    op.create_index(op.f('ix_bookings_user_id'), 'bookings', ['user_id'], unique=False)
    op.create_index(op.f('ix_bookings_booking_number'), 'bookings', ['booking_number'], unique=True)
    op.create_index(op.f('ix_bookings_travel_start'), 'bookings', ['travel_start'], unique=False)
    op.create_index(op.f('ix_bookings_payment_status'), 'bookings', ['payment_status'], unique=False)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)
    op.create_index('ix_bookings_user_created', 'bookings', ['user_id', 'created_at'], unique=False)

    # Create reviews table
    op.create_table('reviews',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('package_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=100), nullable=False),
        sa.Column('comment', sa.Text(), nullable=False),
        sa.Column('is_verified', sa.Boolean(), nullable=False),
        sa.Column('helpful_votes', sa.Integer(), nullable=False),
        sa.Column('voted_users', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('rating >= 1 AND rating <= 5', name='ck_review_rating_range'),
        sa.CheckConstraint('helpful_votes >= 0', name='ck_review_helpful_votes_non_negative'),
        sa.CheckConstraint('length(title) > 0', name='ck_review_title_not_empty'),
        sa.ForeignKeyConstraint(['package_id'], ['packages.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('package_id', 'user_id', name='uq_review_package_user')
    )
    op.create_index(op.f('ix_reviews_package_id'), 'reviews', ['package_id'], unique=False)
    op.create_index(op.f('ix_reviews_user_id'), 'reviews', ['user_id'], unique=False)
    op.create_index('ix_reviews_package_created', 'reviews', ['package_id', 'created_at'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('reviews')
    op.drop_table('bookings')
    op.drop_table('package_tags')
    op.drop_table('package_experience_types')
    op.drop_table('package_services')
    op.drop_table('packages')
    op.drop_table('users')
