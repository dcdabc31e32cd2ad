"""create pipeline tables

Revision ID: 3b7e91c04d2a
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3b7e91c04d2a'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

AUDIT_EVENT_VALUES = (
    'DRAFTS_GENERATED', 'DRAFT_CREATED', 'DRAFT_EDITED',
    'DRAFT_DELETED', 'DRAFT_VERSION_DELETED', 'FIELD_REGENERATED',
    'STAGE_APPROVED', 'STAGE_REVOKED',
)


def _timestamps():
    return [
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def _scoped():
    return [
        sa.Column('store', sa.String(), nullable=False),
        sa.Column('stage', sa.String(), nullable=False),
        sa.Column('project_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('segment_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('pain_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('ordinal', sa.Integer(), nullable=False),
        sa.Column('payload', postgresql.JSONB(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'projects',
        *_timestamps(),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('brand_description', sa.Text(), nullable=True),
        sa.Column('product_description', sa.Text(), nullable=True),
        sa.Column('native_language', sa.String(length=8), nullable=False, server_default='en'),
        sa.Column('current_stage', sa.String(), nullable=True),
    )

    op.create_table(
        'segments',
        *_timestamps(),
        sa.Column('project_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
    )
    op.create_index('ix_segments_project_id', 'segments', ['project_id'])

    op.create_table(
        'draft_rows',
        *_timestamps(),
        *_scoped(),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
    )
    op.create_index('ix_draft_rows_store_scope', 'draft_rows', ['store', 'project_id', 'segment_id', 'pain_id'])

    op.create_table(
        'approved_records',
        *_timestamps(),
        *_scoped(),
        sa.Column('source_draft_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('source_version', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=False),
    )
    op.create_index(
        'ix_approved_records_store_scope', 'approved_records', ['store', 'project_id', 'segment_id', 'pain_id']
    )

    enum_values = ", ".join(f"'{v}'" for v in AUDIT_EVENT_VALUES)
    op.execute(f"DO $$ BEGIN IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'auditeventtype') THEN CREATE TYPE auditeventtype AS ENUM ({enum_values}); END IF; END $$;")

    op.create_table(
        'audit_events',
        *_timestamps(),
        sa.Column('project_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('event_type', postgresql.ENUM(*AUDIT_EVENT_VALUES, name='auditeventtype', create_type=False), nullable=False),
        sa.Column('stage', sa.String(), nullable=True),
        sa.Column('segment_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('pain_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('detail', postgresql.JSONB(), nullable=True),
    )
    op.create_index('ix_audit_events_project_id', 'audit_events', ['project_id'])

    op.create_table(
        'translation_cache_entries',
        *_timestamps(),
        sa.Column('cache_key', sa.String(length=64), nullable=False),
        sa.Column('fingerprint', sa.String(length=64), nullable=False),
        sa.Column('language', sa.String(length=8), nullable=False),
        sa.Column('scope_id', sa.String(), nullable=False),
        sa.Column('content', postgresql.JSONB(), nullable=False),
    )
    op.create_index(
        'ix_translation_cache_entries_cache_key', 'translation_cache_entries', ['cache_key'], unique=True
    )


def downgrade() -> None:
    op.drop_index('ix_translation_cache_entries_cache_key', table_name='translation_cache_entries')
    op.drop_table('translation_cache_entries')
    op.drop_index('ix_audit_events_project_id', table_name='audit_events')
    op.drop_table('audit_events')
    op.execute("DROP TYPE IF EXISTS auditeventtype")
    op.drop_index('ix_approved_records_store_scope', table_name='approved_records')
    op.drop_table('approved_records')
    op.drop_index('ix_draft_rows_store_scope', table_name='draft_rows')
    op.drop_table('draft_rows')
    op.drop_index('ix_segments_project_id', table_name='segments')
    op.drop_table('segments')
    op.drop_table('projects')
