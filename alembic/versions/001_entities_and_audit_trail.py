"""Create entities and audit_trail tables

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('entities',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('client_id', sa.String(100), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('status', sa.String(50), nullable=False),
        sa.Column('assignee_id', sa.String(100), nullable=True),
        sa.Column('created_by', sa.String(100), nullable=True),
        sa.Column('updated_by', sa.String(100), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_entities_client_id', 'entities', ['client_id'], unique=False)
    op.create_index('ix_entities_entity_type', 'entities', ['entity_type'], unique=False)
    op.create_index('ix_entities_status', 'entities', ['status'], unique=False)
    op.create_index('ix_entities_assignee_id', 'entities', ['assignee_id'], unique=False)
    op.create_index('ix_entities_client_type_status', 'entities', ['client_id', 'entity_type', 'status'], unique=False)

    op.create_table('audit_trail',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('client_id', sa.String(100), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.String(36), nullable=False),
        sa.Column('actor_id', sa.String(100), nullable=True),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('from_status', sa.String(50), nullable=True),
        sa.Column('to_status', sa.String(50), nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_audit_trail_client_id', 'audit_trail', ['client_id'], unique=False)
    op.create_index('ix_audit_trail_actor_id', 'audit_trail', ['actor_id'], unique=False)
    op.create_index('ix_audit_trail_entity', 'audit_trail', ['entity_type', 'entity_id', 'occurred_at'], unique=False)


def downgrade():
    op.drop_table('audit_trail')
    op.drop_table('entities')
