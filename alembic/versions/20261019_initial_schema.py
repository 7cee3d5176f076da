"""Initial schema - users, availability instances and matches

Revision ID: 3c7e1a9b4f20
Revises:
Create Date: 2026-10-19

Tables:
- users: People who publish availability
- availability_instances: Dated/timed slots; recurring series link back to
  their root through original_instance_id (not a foreign key)
- matches: Pairings awaiting consensus
- match_participants: Participants and their responses
- match_instances: Reference set of each match
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from letsmeet.models.base import GUID


# revision identifiers, used by Alembic.
revision: str = '3c7e1a9b4f20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('users',
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('id', GUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index('idx_user_email', ['email'], unique=False)
        batch_op.create_index('idx_user_name', ['name'], unique=False)

    op.create_table('availability_instances',
        sa.Column('user_id', GUID(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('time', sa.String(length=20), nullable=False),
        sa.Column('activity', sa.String(length=20), nullable=False),
        sa.Column('is_matched', sa.Boolean(), nullable=False),
        sa.Column('recurrence_pattern', sa.String(length=20), nullable=False),
        sa.Column('is_recurring', sa.Boolean(), nullable=False),
        sa.Column('original_instance_id', GUID(), nullable=True),
        sa.Column('id', GUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('availability_instances', schema=None) as batch_op:
        batch_op.create_index('idx_instance_slot', ['date', 'time', 'activity'], unique=False)
        batch_op.create_index('idx_instance_user', ['user_id'], unique=False)
        batch_op.create_index('idx_instance_original', ['original_instance_id'], unique=False)

    op.create_table('matches',
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('time', sa.String(length=20), nullable=False),
        sa.Column('activity', sa.String(length=20), nullable=False),
        sa.Column('is_confirmed', sa.Boolean(), nullable=False),
        sa.Column('id', GUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('matches', schema=None) as batch_op:
        batch_op.create_index('idx_match_slot', ['date', 'time', 'activity'], unique=False)
        batch_op.create_index('idx_match_created', ['created_at'], unique=False)

    op.create_table('match_participants',
        sa.Column('match_id', GUID(), nullable=False),
        sa.Column('user_id', GUID(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('response', sa.String(length=20), nullable=False),
        sa.Column('responded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('id', GUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['match_id'], ['matches.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('match_id', 'user_id', name='uq_match_participant')
    )
    with op.batch_alter_table('match_participants', schema=None) as batch_op:
        batch_op.create_index('idx_participant_user', ['user_id'], unique=False)

    op.create_table('match_instances',
        sa.Column('match_id', GUID(), nullable=False),
        sa.Column('instance_id', GUID(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('id', GUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['instance_id'], ['availability_instances.id'], ),
        sa.ForeignKeyConstraint(['match_id'], ['matches.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('match_id', 'instance_id', name='uq_match_instance')
    )
    with op.batch_alter_table('match_instances', schema=None) as batch_op:
        batch_op.create_index('idx_match_instance_instance', ['instance_id'], unique=False)


def downgrade() -> None:
    with op.batch_alter_table('match_instances', schema=None) as batch_op:
        batch_op.drop_index('idx_match_instance_instance')
    op.drop_table('match_instances')

    with op.batch_alter_table('match_participants', schema=None) as batch_op:
        batch_op.drop_index('idx_participant_user')
    op.drop_table('match_participants')

    with op.batch_alter_table('matches', schema=None) as batch_op:
        batch_op.drop_index('idx_match_created')
        batch_op.drop_index('idx_match_slot')
    op.drop_table('matches')

    with op.batch_alter_table('availability_instances', schema=None) as batch_op:
        batch_op.drop_index('idx_instance_original')
        batch_op.drop_index('idx_instance_user')
        batch_op.drop_index('idx_instance_slot')
    op.drop_table('availability_instances')

    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.drop_index('idx_user_name')
        batch_op.drop_index('idx_user_email')
    op.drop_table('users')
