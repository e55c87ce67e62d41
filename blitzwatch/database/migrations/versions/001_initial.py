"""
Initial migration - Create report and message tables

Revision ID: 001_initial
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from geoalchemy2 import Geometry

# Revision identifiers
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create all tables."""

    # Enable PostGIS extension
    op.execute("CREATE EXTENSION IF NOT EXISTS postgis")

    # Create reports table
    op.create_table(
        'reports',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('street', sa.Text(), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('license_plate', sa.String(20)),
        sa.Column('coordinates', Geometry('POINT', srid=4326, spatial_index=False)),
        sa.Column('votes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('user_id', sa.String(36)),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('votes >= 0', name='ck_reports_votes_non_negative'),
    )

    op.create_index('idx_report_coordinates', 'reports', ['coordinates'], postgresql_using='gist')
    op.create_index('idx_report_created_at', 'reports', ['created_at'])

    # Create community_messages table
    op.create_table(
        'community_messages',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_index('idx_message_created_at', 'community_messages', ['created_at'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('community_messages')
    op.drop_table('reports')
