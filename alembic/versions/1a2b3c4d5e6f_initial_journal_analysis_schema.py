"""initial_journal_analysis_schema

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-19

Creates:
- users and sessions for cookie auth
- subjects (dog profiles) and journal_entries
- analysis_records for AI photo assessments
- analysis_exclusions: entries re-admitted to the candidate list after
  their latest analysis was deleted

Note: After running this migration, create a user with:
    python -m app.cli create-user --email your@email.com
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = '1a2b3c4d5e6f'
down_revision = None
branch_labels = None
depends_on = None

ENTRY_TYPES = ('MEAL', 'POOP', 'EMOTION')


def upgrade() -> None:
    entry_type = postgresql.ENUM(*ENTRY_TYPES, name='entrytype', create_type=False)
    postgresql.ENUM(*ENTRY_TYPES, name='entrytype').create(op.get_bind(), checkfirst=True)

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('token', sa.String(64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('user_agent', sa.String(512), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_sessions_token'), 'sessions', ['token'], unique=True)
    op.create_index('idx_sessions_user_expires', 'sessions', ['user_id', 'expires_at'])

    op.create_table(
        'subjects',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('breed', sa.String(100), nullable=True),
        sa.Column('birth_date', sa.Date(), nullable=True),
        sa.Column('weight_kg', sa.Float(), nullable=True),
        sa.Column('medical_history', sa.JSON(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_subjects_owner_id', 'subjects', ['owner_id'])
    op.create_index('idx_subjects_owner_last_used', 'subjects', ['owner_id', 'last_used_at'])

    op.create_table(
        'journal_entries',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('subject_id', sa.Uuid(), nullable=False),
        sa.Column('type', entry_type, nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False, server_default=''),
        sa.Column('photo_ref', sa.String(1024), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_journal_entries_subject_id', 'journal_entries', ['subject_id'])
    op.create_index('idx_journal_entries_timestamp', 'journal_entries', ['timestamp'])
    op.create_index('idx_journal_entries_photo_ref', 'journal_entries', ['photo_ref'])
    op.create_index('idx_journal_entries_subject_type', 'journal_entries', ['subject_id', 'type'])

    op.create_table(
        'analysis_records',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('journal_entry_id', sa.Uuid(), nullable=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('image_ref', sa.String(1024), nullable=False, server_default=''),
        sa.Column('analysis_type', entry_type, nullable=False),
        sa.Column('health_score', sa.Integer(), nullable=False),
        sa.Column('confidence', sa.Float(), nullable=False),
        sa.Column('observations', sa.JSON(), nullable=False),
        sa.Column('recommendations', sa.JSON(), nullable=False),
        sa.Column('warnings', sa.JSON(), nullable=False),
        sa.Column('encouragement', sa.Text(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('model', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['journal_entry_id'], ['journal_entries.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_analysis_records_entry_id', 'analysis_records', ['journal_entry_id'])
    op.create_index('idx_analysis_records_user_id', 'analysis_records', ['user_id'])
    op.create_index('idx_analysis_records_created_at', 'analysis_records', ['created_at'])

    op.create_table(
        'analysis_exclusions',
        sa.Column('journal_entry_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['journal_entry_id'], ['journal_entries.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('journal_entry_id'),
    )
    op.create_index('idx_analysis_exclusions_user_id', 'analysis_exclusions', ['user_id'])


def downgrade() -> None:
    op.drop_index('idx_analysis_exclusions_user_id', table_name='analysis_exclusions')
    op.drop_table('analysis_exclusions')
    op.drop_index('idx_analysis_records_created_at', table_name='analysis_records')
    op.drop_index('idx_analysis_records_user_id', table_name='analysis_records')
    op.drop_index('idx_analysis_records_entry_id', table_name='analysis_records')
    op.drop_table('analysis_records')
    op.drop_index('idx_journal_entries_subject_type', table_name='journal_entries')
    op.drop_index('idx_journal_entries_photo_ref', table_name='journal_entries')
    op.drop_index('idx_journal_entries_timestamp', table_name='journal_entries')
    op.drop_index('idx_journal_entries_subject_id', table_name='journal_entries')
    op.drop_table('journal_entries')
    op.drop_index('idx_subjects_owner_last_used', table_name='subjects')
    op.drop_index('idx_subjects_owner_id', table_name='subjects')
    op.drop_table('subjects')
    op.drop_index('idx_sessions_user_expires', table_name='sessions')
    op.drop_index(op.f('ix_sessions_token'), table_name='sessions')
    op.drop_table('sessions')
    op.drop_table('users')
    postgresql.ENUM(name='entrytype').drop(op.get_bind(), checkfirst=True)
