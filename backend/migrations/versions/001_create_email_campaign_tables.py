"""Create email_jobs, email_logs and audit_logs tables

Revision ID: 001
Revises:
Create Date: 2026-02-09 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PENDING_ONLY = sa.text("status = 'PENDING'")


def upgrade() -> None:
    # Tables may already exist if created by Base.metadata.create_all
    conn = op.get_bind()
    inspector = inspect(conn)
    existing_tables = inspector.get_table_names()

    if 'email_jobs' not in existing_tables:
        op.create_table(
            'email_jobs',
            sa.Column('id', sa.String(length=32), nullable=False),
            sa.Column('user_id', sa.String(length=64), nullable=False),
            sa.Column('campaign', sa.String(length=32), nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='PENDING'),
            sa.Column('scheduled_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('error', sa.Text(), nullable=True),
            sa.Column('job_metadata', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_email_jobs_user_id', 'email_jobs', ['user_id'])
        op.create_index('ix_email_jobs_status_scheduled_at', 'email_jobs', ['status', 'scheduled_at'])
        op.create_index('ix_email_jobs_user_campaign_status', 'email_jobs', ['user_id', 'campaign', 'status'])
        # At most one PENDING job per (user, campaign)
        op.create_index(
            'uq_email_jobs_pending_campaign', 'email_jobs', ['user_id', 'campaign'],
            unique=True,
            postgresql_where=PENDING_ONLY,
            sqlite_where=PENDING_ONLY
        )

    if 'email_logs' not in existing_tables:
        op.create_table(
            'email_logs',
            sa.Column('id', sa.String(length=32), nullable=False),
            sa.Column('email_job_id', sa.String(length=32), nullable=True),
            sa.Column('user_id', sa.String(length=64), nullable=False),
            sa.Column('campaign', sa.String(length=32), nullable=False),
            sa.Column('recipient_email', sa.String(length=255), nullable=False),
            sa.Column('subject', sa.String(length=500), nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='QUEUED'),
            sa.Column('provider_message_id', sa.String(length=255), nullable=True),
            sa.Column('error', sa.Text(), nullable=True),
            sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['email_job_id'], ['email_jobs.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_email_logs_email_job_id', 'email_logs', ['email_job_id'])
        op.create_index('ix_email_logs_user_id', 'email_logs', ['user_id'])
        op.create_index('ix_email_logs_provider_message_id', 'email_logs', ['provider_message_id'])
        op.create_index('ix_email_logs_status_created_at', 'email_logs', ['status', 'created_at'])

    if 'audit_logs' not in existing_tables:
        op.create_table(
            'audit_logs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('actor', sa.String(length=255), nullable=False),
            sa.Column('action', sa.String(length=100), nullable=False),
            sa.Column('target', sa.String(length=255), nullable=False),
            sa.Column('details', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_audit_logs_id', 'audit_logs', ['id'])
        op.create_index('ix_audit_logs_actor', 'audit_logs', ['actor'])
        op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])


def downgrade() -> None:
    conn = op.get_bind()
    inspector = inspect(conn)
    existing_tables = inspector.get_table_names()

    if 'audit_logs' in existing_tables:
        op.drop_index('ix_audit_logs_action', table_name='audit_logs')
        op.drop_index('ix_audit_logs_actor', table_name='audit_logs')
        op.drop_index('ix_audit_logs_id', table_name='audit_logs')
        op.drop_table('audit_logs')

    if 'email_logs' in existing_tables:
        op.drop_index('ix_email_logs_status_created_at', table_name='email_logs')
        op.drop_index('ix_email_logs_provider_message_id', table_name='email_logs')
        op.drop_index('ix_email_logs_user_id', table_name='email_logs')
        op.drop_index('ix_email_logs_email_job_id', table_name='email_logs')
        op.drop_table('email_logs')

    if 'email_jobs' in existing_tables:
        op.drop_index('uq_email_jobs_pending_campaign', table_name='email_jobs')
        op.drop_index('ix_email_jobs_user_campaign_status', table_name='email_jobs')
        op.drop_index('ix_email_jobs_status_scheduled_at', table_name='email_jobs')
        op.drop_index('ix_email_jobs_user_id', table_name='email_jobs')
        op.drop_table('email_jobs')
