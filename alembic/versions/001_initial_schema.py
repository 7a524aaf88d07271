"""Initial schema for the security core

Revision ID: 001
Revises: 
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create user, account lock, incident and event tables."""

    # Create users table
    op.create_table('user',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('username', sa.String(length=100), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_user')
    )
    op.create_index('ix_user_username', 'user', ['username'], unique=True)

    # Create account locks table (one row per user)
    op.create_table('account_lock',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('locked_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('locked_by', sa.Uuid(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], name='fk_account_lock_user_id_user', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['locked_by'], ['user.id'], name='fk_account_lock_locked_by_user', ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_account_lock'),
        sa.UniqueConstraint('user_id', name='uq_account_lock_user_id')
    )
    op.create_index('ix_account_lock_expires_at', 'account_lock', ['expires_at'], unique=False)

    # Create security incidents table
    op.create_table('security_incident',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('severity', sa.String(length=20), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('related_user_ids', sa.JSON(), nullable=True),
        sa.Column('username', sa.String(length=100), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=500), nullable=True),
        sa.Column('resolved', sa.Boolean(), nullable=False),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resolved_by', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], name='fk_security_incident_user_id_user', ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['resolved_by'], ['user.id'], name='fk_security_incident_resolved_by_user', ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_security_incident')
    )
    op.create_index('ix_security_incident_type', 'security_incident', ['type'], unique=False)
    op.create_index('ix_security_incident_severity', 'security_incident', ['severity'], unique=False)
    op.create_index('ix_security_incident_resolved', 'security_incident', ['resolved'], unique=False)
    op.create_index('ix_security_incident_created_at', 'security_incident', ['created_at'], unique=False)
    op.create_index('ix_security_incident_user_id', 'security_incident', ['user_id'], unique=False)
    op.create_index('idx_incident_filter', 'security_incident', ['type', 'severity', 'resolved', 'created_at'], unique=False)

    # Create security events table (append-only)
    op.create_table('security_event',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('event_type', sa.String(length=100), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_security_event')
    )
    op.create_index('ix_security_event_event_type', 'security_event', ['event_type'], unique=False)
    op.create_index('ix_security_event_created_at', 'security_event', ['created_at'], unique=False)


def downgrade() -> None:
    """Drop all security core tables."""
    op.drop_table('security_event')
    op.drop_table('security_incident')
    op.drop_table('account_lock')
    op.drop_table('user')
