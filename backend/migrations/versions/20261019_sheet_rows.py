"""Positional sheet rows for the local row store

Revision ID: 20261019_sheet_rows
Revises:
Create Date: 2026-10-19

Adds the sheet_rows table: one row per positional table row, keyed by
(sheet, position). Row 1 of each sheet is its header.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_sheet_rows'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('sheet_rows',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sheet', sa.String(length=255), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('values_json', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sheet_rows', schema=None) as batch_op:
        batch_op.create_index('ix_sheet_rows_sheet_position', ['sheet', 'position'], unique=False)


def downgrade():
    with op.batch_alter_table('sheet_rows', schema=None) as batch_op:
        batch_op.drop_index('ix_sheet_rows_sheet_position')

    op.drop_table('sheet_rows')
