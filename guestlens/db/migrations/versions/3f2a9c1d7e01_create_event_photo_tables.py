"""create users, events, event_members and photos tables

Revision ID: 3f2a9c1d7e01
Revises:
Create Date: 2026-10-19 10:12:44.118302

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f2a9c1d7e01'
down_revision = None
branch_labels = None
depends_on = None

user_role = sa.Enum('member', 'admin', name='userrole')
member_role = sa.Enum('viewer', 'contributor', 'manager', name='memberrole')


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', user_role, nullable=False),
        sa.Column('plan_name', sa.String(length=50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('date', sa.DateTime(), nullable=False),
        sa.Column('event_code', sa.String(length=16), nullable=False),
        sa.Column('access_code', sa.String(length=16), nullable=False),
        sa.Column('is_public', sa.Boolean(), nullable=False),
        sa.Column('allow_guest_uploads', sa.Boolean(), nullable=False),
        sa.Column('require_approval', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_events_id', 'events', ['id'])
    op.create_index('ix_events_created_by', 'events', ['created_by'])
    op.create_index('ix_events_event_code', 'events', ['event_code'], unique=True)
    op.create_index('ix_events_access_code', 'events', ['access_code'], unique=True)

    op.create_table(
        'event_members',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', member_role, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('event_id', 'user_id', name='uq_event_members_event_user'),
    )
    op.create_index('ix_event_members_id', 'event_members', ['id'])
    op.create_index('ix_event_members_event_id', 'event_members', ['event_id'])
    op.create_index('ix_event_members_user_id', 'event_members', ['user_id'])

    op.create_table(
        'photos',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False),
        sa.Column('uploaded_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('file_path', sa.String(length=512), nullable=False),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('original_filename', sa.String(length=255), nullable=False),
        sa.Column('mime_type', sa.String(length=100), nullable=False),
        sa.Column('file_size', sa.BigInteger(), nullable=False),
        sa.Column('guest_name', sa.String(length=100), nullable=True),
        sa.Column('guest_email', sa.String(length=255), nullable=True),
        sa.Column('is_approved', sa.Boolean(), nullable=False),
        sa.Column('uploaded_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_photos_id', 'photos', ['id'])
    op.create_index('ix_photos_event_id', 'photos', ['event_id'])
    op.create_index('ix_photos_uploaded_by', 'photos', ['uploaded_by'])
    op.create_index('ix_photos_file_path', 'photos', ['file_path'], unique=True)
    op.create_index('ix_photos_is_approved', 'photos', ['is_approved'])
    op.create_index('ix_photos_uploaded_at', 'photos', ['uploaded_at'])


def downgrade() -> None:
    op.drop_table('photos')
    op.drop_table('event_members')
    op.drop_table('events')
    op.drop_table('users')
    member_role.drop(op.get_bind(), checkfirst=True)
    user_role.drop(op.get_bind(), checkfirst=True)
