"""create clients and settings

Revision ID: 5b1e2c7d9a40
Revises:
Create Date: 2026-10-18 11:02:37.418210

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5b1e2c7d9a40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'clients',
        sa.Column('id', sa.String(length=16), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_clients_created_at', 'clients', ['created_at'])

    op.create_table(
        'settings',
        sa.Column('key', sa.String(), primary_key=True),
        sa.Column('logo_key', sa.String(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    # the branding row always exists
    op.execute("INSERT INTO settings (key, logo_key) VALUES ('branding', NULL)")


def downgrade():
    op.drop_table('settings')
    op.drop_index('ix_clients_created_at', table_name='clients')
    op.drop_table('clients')
