"""initial schema

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the complete BoxCount schema:
- stores, assets: reference lists
- system_config: single-row availability state (mode, blocked, window)
- count_records, transit_count_records: one row per (store, asset); the
  unique constraint backs the one-submission-per-store guard
- integration_config, integration_access_logs: export token and audit trail
- webhook_config: single-row webhook target
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_initial'
down_revision = None
branch_labels = None
depends_on = None


def _count_record_table(name: str):
    op.create_table(
        name,
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.String(length=32), nullable=False),
        sa.Column('store_name', sa.String(length=120), nullable=False),
        sa.Column('submitter_email', sa.String(length=255), nullable=False),
        sa.Column('asset_id', sa.String(length=32), nullable=False),
        sa.Column('asset_name', sa.String(length=120), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('recorded_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('modified_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'asset_id', name=f'uq_{name}_store_asset'),
        sqlite_autoincrement=True
    )
    op.create_index(f'ix_{name}_store_id', name, ['store_id'])
    op.create_index(f'ix_{name}_asset_id', name, ['asset_id'])
    op.create_index(f'ix_{name}_recorded_at', name, ['recorded_at'])


def upgrade():
    op.create_table(
        'stores',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'assets',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'system_config',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('mode', sa.String(length=16), nullable=False),
        sa.Column('blocked', sa.Boolean(), nullable=False),
        sa.Column('window_start_date', sa.String(length=10), nullable=True),
        sa.Column('window_start_time', sa.String(length=8), nullable=True),
        sa.Column('window_end_date', sa.String(length=10), nullable=True),
        sa.Column('window_end_time', sa.String(length=8), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    _count_record_table('count_records')
    _count_record_table('transit_count_records')

    op.create_table(
        'integration_config',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=True),
        sa.Column('token_hint', sa.String(length=16), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('connection_count', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'integration_access_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('token_hint', sa.String(length=16), nullable=True),
        sa.Column('source_ip', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('accessed_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_integration_access_logs_accessed_at', 'integration_access_logs', ['accessed_at'])

    op.create_table(
        'webhook_config',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('url', sa.String(length=2048), nullable=False),
        sa.Column('token', sa.String(length=512), nullable=True),
        sa.Column('enabled', sa.Boolean(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )


def downgrade():
    op.drop_table('webhook_config')
    op.drop_index('ix_integration_access_logs_accessed_at', table_name='integration_access_logs')
    op.drop_table('integration_access_logs')
    op.drop_table('integration_config')
    for name in ('transit_count_records', 'count_records'):
        op.drop_index(f'ix_{name}_recorded_at', table_name=name)
        op.drop_index(f'ix_{name}_asset_id', table_name=name)
        op.drop_index(f'ix_{name}_store_id', table_name=name)
        op.drop_table(name)
    op.drop_table('system_config')
    op.drop_table('assets')
    op.drop_table('stores')
