"""Add email opt-out, preferences and last login to users

Revision ID: 002
Revises: 001
Create Date: 2026-02-09 10:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    inspector = inspect(conn)
    columns = [col['name'] for col in inspector.get_columns('users')]
    indexes = [idx['name'] for idx in inspector.get_indexes('users')]

    if 'email_opt_out' not in columns:
        op.add_column('users', sa.Column('email_opt_out', sa.Boolean(), nullable=False, server_default='false'))
    if 'email_preferences' not in columns:
        op.add_column('users', sa.Column('email_preferences', sa.JSON(), nullable=True))
    if 'last_login_at' not in columns:
        op.add_column('users', sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True))
    if 'ix_users_last_login_at' not in indexes:
        op.create_index('ix_users_last_login_at', 'users', ['last_login_at'])

    # Abandoned resume detection scans DRAFT resumes by updated_at
    resume_indexes = [idx['name'] for idx in inspector.get_indexes('resumes')]
    if 'ix_resumes_status_updated_at' not in resume_indexes:
        op.create_index('ix_resumes_status_updated_at', 'resumes', ['status', 'updated_at'])


def downgrade() -> None:
    op.drop_index('ix_resumes_status_updated_at', table_name='resumes')
    op.drop_index('ix_users_last_login_at', table_name='users')
    op.drop_column('users', 'last_login_at')
    op.drop_column('users', 'email_preferences')
    op.drop_column('users', 'email_opt_out')
