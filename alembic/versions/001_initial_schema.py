"""Initial schema: users, plants and the ownership relation

Revision ID: 001
Revises:
Create Date: 2025-03-02

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create users, plants and user_plants tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('firebase_uid', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('location', sa.String(), nullable=True),
        sa.Column('sunlight_hours', sa.Float(), nullable=True),
        sa.Column('available_space', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_users_firebase_uid', 'users', ['firebase_uid'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'plants',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('success_rate', sa.String(), nullable=False),
        sa.Column('difficulty_level', sa.String(), nullable=False),
        sa.Column('steps', sa.JSON().with_variant(JSONB(), 'postgresql'), nullable=False),
        sa.Column('is_valid', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('location', sa.String(), nullable=True),
        sa.Column('sunlight_hours', sa.Float(), nullable=True),
        sa.Column('available_space', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_plants_is_active', 'plants', ['is_active'])

    op.create_table(
        'user_plants',
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('plant_id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('user_id', 'plant_id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['plant_id'], ['plants.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_user_plants_plant_id', 'user_plants', ['plant_id'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index('ix_user_plants_plant_id', table_name='user_plants')
    op.drop_table('user_plants')
    op.drop_index('ix_plants_is_active', table_name='plants')
    op.drop_table('plants')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_firebase_uid', table_name='users')
    op.drop_table('users')
