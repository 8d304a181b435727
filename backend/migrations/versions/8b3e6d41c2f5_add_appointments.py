"""add_appointments

Revision ID: 8b3e6d41c2f5
Revises: 5f1c2a9d7e10
Create Date: 2026-10-18 14:37:02.918114

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8b3e6d41c2f5'
down_revision: Union[str, Sequence[str], None] = '5f1c2a9d7e10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


appointment_status = sa.Enum('PENDING', 'CONFIRMED', 'CANCELLED', name='appointment_status')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'appointments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('supplier_id', sa.Uuid(), nullable=False),
        sa.Column('consumer_id', sa.Uuid(), nullable=False),
        sa.Column('listing_id', sa.Uuid(), nullable=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', appointment_status, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('end_time > start_time', name='appointment_time_order'),
        sa.ForeignKeyConstraint(['supplier_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['consumer_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['listing_id'], ['listings.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_appointments_supplier_id', 'appointments', ['supplier_id'])
    op.create_index('ix_appointments_consumer_id', 'appointments', ['consumer_id'])
    op.create_index('ix_appointments_start_time', 'appointments', ['start_time'])
    op.create_index('ix_appointments_status', 'appointments', ['status'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('appointments')
    appointment_status.drop(op.get_bind(), checkfirst=True)
