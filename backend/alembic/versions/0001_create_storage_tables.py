"""create_storage_tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19 10:00:00.000000

Initial schema for the storage broker:
- drive_credentials: per-user encrypted OAuth tokens and cached usage
- workspaces: workspace metadata with lazily assigned Drive folder
- workspace_files: inline content or uploaded Drive files
- workspace_views: view records, removed with their workspace
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the storage broker tables."""

    # === Create drive_credentials table ===
    op.create_table(
        'drive_credentials',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False, unique=True),
        sa.Column('access_token_encrypted', sa.Text(), nullable=False),
        sa.Column('refresh_token_encrypted', sa.Text(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('scope', sa.Text(), nullable=False, server_default=''),
        sa.Column('drive_email', sa.String(255), nullable=True),
        sa.Column('total_storage_used', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )

    # === Create workspaces table ===
    op.create_table(
        'workspaces',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('slug', sa.String(255), nullable=False, unique=True),
        sa.Column('title', sa.String(512), nullable=False, server_default='Untitled'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('user_id', sa.String(255), nullable=True),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('drive_folder_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_workspaces_user_id', 'workspaces', ['user_id'])
    op.create_index('ix_workspaces_expires_at', 'workspaces', ['expires_at'])

    # === Create workspace_files table ===
    op.create_table(
        'workspace_files',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column(
            'workspace_id',
            sa.String(36),
            sa.ForeignKey('workspaces.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('filename', sa.String(512), nullable=False, server_default='untitled'),
        sa.Column('file_type', sa.String(8), nullable=False, server_default='TEXT'),  # FileType enum
        sa.Column('language', sa.String(64), nullable=True),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('drive_file_id', sa.String(255), nullable=True),
        sa.Column('file_size', sa.BigInteger(), nullable=True),
        sa.Column('mime_type', sa.String(255), nullable=True),
        sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_workspace_files_workspace_id', 'workspace_files', ['workspace_id'])

    # === Create workspace_views table ===
    op.create_table(
        'workspace_views',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column(
            'workspace_id',
            sa.String(36),
            sa.ForeignKey('workspaces.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('user_agent', sa.String(512), nullable=True),
        sa.Column('viewed_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )


def downgrade() -> None:
    """Drop the storage broker tables."""
    op.drop_table('workspace_views')
    op.drop_index('ix_workspace_files_workspace_id', table_name='workspace_files')
    op.drop_table('workspace_files')
    op.drop_index('ix_workspaces_expires_at', table_name='workspaces')
    op.drop_index('ix_workspaces_user_id', table_name='workspaces')
    op.drop_table('workspaces')
    op.drop_table('drive_credentials')
