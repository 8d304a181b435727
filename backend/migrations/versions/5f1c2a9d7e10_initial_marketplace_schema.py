"""initial_marketplace_schema

Revision ID: 5f1c2a9d7e10
Revises:
Create Date: 2026-10-18 09:12:44.201533

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5f1c2a9d7e10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


user_role = sa.Enum('CONSUMER', 'SUPPLIER', 'ADMIN', name='user_role')
listing_category = sa.Enum(
    'VENUES', 'PHOTOGRAPHY', 'VIDEOGRAPHY', 'CATERING', 'MUSIC', 'FLOWERS', 'DECOR',
    'ATTIRE', 'BEAUTY', 'PLANNING', 'ELECTRONICS', 'FURNITURE', 'TOOLS', 'VEHICLES',
    'SPORTS', 'OTHER',
    name='listing_category',
)
subscription_plan = sa.Enum('NONE', 'ESSENTIAL', 'FEATURED', 'ELITE', name='subscription_plan')
thread_status = sa.Enum('PENDING', 'ACCEPTED', 'DECLINED', 'CLOSED', name='thread_status')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('role', user_role, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'cities',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'listings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', listing_category, nullable=False),
        sa.Column('description', sa.String(length=4000), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=False),
        sa.Column('price_range', sa.String(length=50), nullable=False, comment='Tier symbol ($..$$$$) or a daily rate'),
        sa.Column('images', sa.JSON(), nullable=False),
        sa.Column('website_url', sa.String(length=500), nullable=True),
        sa.Column('facebook_url', sa.String(length=500), nullable=True),
        sa.Column('instagram_url', sa.String(length=500), nullable=True),
        sa.Column('tiktok_url', sa.String(length=500), nullable=True),
        sa.Column('youtube_url', sa.String(length=500), nullable=True),
        sa.Column('subscription_plan', subscription_plan, nullable=False),
        sa.Column('subscription_end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('subscription_event_at', sa.DateTime(timezone=True), nullable=True, comment='Creation time of the last applied billing event'),
        sa.Column('rating', sa.Float(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "(subscription_plan = 'NONE') = (subscription_end_date IS NULL)",
            name='listing_subscription_consistent',
        ),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_listings_owner_id', 'listings', ['owner_id'])
    op.create_index('ix_listings_name', 'listings', ['name'])
    op.create_index('ix_listings_category', 'listings', ['category'])
    op.create_index('ix_listings_subscription_plan', 'listings', ['subscription_plan'])

    op.create_table(
        'listing_service_areas',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('listing_id', sa.Uuid(), nullable=False),
        sa.Column('city_id', sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(['listing_id'], ['listings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['city_id'], ['cities.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('listing_id', 'city_id', name='uq_service_area_listing_city'),
    )
    op.create_index('ix_listing_service_areas_listing_id', 'listing_service_areas', ['listing_id'])
    op.create_index('ix_listing_service_areas_city_id', 'listing_service_areas', ['city_id'])

    op.create_table(
        'consumer_profiles',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('primary_name', sa.String(length=255), nullable=False),
        sa.Column('partner_name', sa.String(length=255), nullable=True),
        sa.Column('location', sa.String(length=255), nullable=False),
        sa.Column('target_date', sa.Date(), nullable=True),
        sa.Column('budget', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_consumer_profiles_user_id', 'consumer_profiles', ['user_id'], unique=True)

    op.create_table(
        'threads',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('supplier_id', sa.Uuid(), nullable=False),
        sa.Column('consumer_id', sa.Uuid(), nullable=False),
        sa.Column('listing_id', sa.Uuid(), nullable=True, comment='Listing the consumer first contacted the supplier from'),
        sa.Column('status', thread_status, nullable=False),
        sa.Column('message_count', sa.Integer(), nullable=False),
        sa.Column('last_message_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_message_preview', sa.String(length=200), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('supplier_id <> consumer_id', name='thread_distinct_parties'),
        sa.ForeignKeyConstraint(['supplier_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['consumer_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['listing_id'], ['listings.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('supplier_id', 'consumer_id', name='uq_thread_parties'),
    )
    op.create_index('ix_threads_supplier_id', 'threads', ['supplier_id'])
    op.create_index('ix_threads_consumer_id', 'threads', ['consumer_id'])
    op.create_index('ix_threads_status', 'threads', ['status'])
    op.create_index('ix_threads_last_message_at', 'threads', ['last_message_at'])

    op.create_table(
        'messages',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('thread_id', sa.Uuid(), nullable=False),
        sa.Column('sender_id', sa.Uuid(), nullable=False),
        sa.Column('receiver_id', sa.Uuid(), nullable=False),
        sa.Column('content', sa.String(length=4000), nullable=False),
        sa.Column('is_automated', sa.Boolean(), nullable=False, comment='True for status notices appended by a transition'),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['thread_id'], ['threads.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('thread_id', 'sequence', name='uq_message_thread_sequence'),
    )
    op.create_index('ix_messages_thread_id', 'messages', ['thread_id'])
    op.create_index('ix_messages_sender_id', 'messages', ['sender_id'])
    op.create_index('ix_messages_receiver_id', 'messages', ['receiver_id'])
    op.create_index('ix_messages_created_at', 'messages', ['created_at'])

    op.create_table(
        'reviews',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('listing_id', sa.Uuid(), nullable=False),
        sa.Column('consumer_id', sa.Uuid(), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('content', sa.String(length=4000), nullable=False),
        sa.Column('response', sa.String(length=4000), nullable=True),
        sa.Column('response_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('rating >= 1 AND rating <= 5', name='review_rating_range'),
        sa.ForeignKeyConstraint(['listing_id'], ['listings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['consumer_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('listing_id', 'consumer_id', name='uq_review_listing_consumer'),
    )
    op.create_index('ix_reviews_listing_id', 'reviews', ['listing_id'])
    op.create_index('ix_reviews_consumer_id', 'reviews', ['consumer_id'])

    op.create_table(
        'saved_listings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('consumer_id', sa.Uuid(), nullable=False),
        sa.Column('listing_id', sa.Uuid(), nullable=False),
        sa.Column('note', sa.String(length=1000), nullable=True),
        sa.Column('saved_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['consumer_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['listing_id'], ['listings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('consumer_id', 'listing_id', name='uq_saved_listing'),
    )
    op.create_index('ix_saved_listings_consumer_id', 'saved_listings', ['consumer_id'])
    op.create_index('ix_saved_listings_listing_id', 'saved_listings', ['listing_id'])

    op.create_table(
        'processed_webhook_events',
        sa.Column('id', sa.String(length=255), nullable=False),
        sa.Column('event_type', sa.String(length=100), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_processed_webhook_events_event_type', 'processed_webhook_events', ['event_type'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('processed_webhook_events')
    op.drop_table('saved_listings')
    op.drop_table('reviews')
    op.drop_table('messages')
    op.drop_table('threads')
    op.drop_table('consumer_profiles')
    op.drop_table('listing_service_areas')
    op.drop_table('listings')
    op.drop_table('cities')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in (thread_status, subscription_plan, listing_category, user_role):
        enum_type.drop(bind, checkfirst=True)
