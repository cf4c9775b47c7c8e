"""create design tables

Revision ID: 3e8a5c1d7b20
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3e8a5c1d7b20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

design_status = sa.Enum('ACTIVE', 'ARCHIVED', 'DELETED', name='designdocumentstatus')
annotation_status = sa.Enum('ACTIVE', 'ARCHIVED', name='annotationstatus')
requirement_status = sa.Enum('DRAFT', 'PUBLISHED', 'ARCHIVED', name='requirementdocumentstatus')
task_status = sa.Enum('PENDING', 'PROCESSING', 'COMPLETED', 'FAILED', 'CANCELED', name='codegenerationtaskstatus')
log_level = sa.Enum('INFO', 'WARN', 'ERROR', name='taskloglevel')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'design_documents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('uuid', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('source_url', sa.String(length=2048), nullable=True),
        sa.Column('dsl_data', sa.JSON(), nullable=True),
        sa.Column('dsl_revision', sa.Integer(), nullable=False),
        sa.Column('dsl_digest', sa.String(length=64), nullable=True),
        sa.Column('status', design_status, nullable=False),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        sa.Column('updated_by', sa.String(length=64), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('dsl_revision >= 1', name=op.f('ck_design_documents_dsl_revision_positive')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_design_documents')),
    )
    op.create_index(op.f('ix_design_documents_uuid'), 'design_documents', ['uuid'], unique=True)
    op.create_index(op.f('ix_design_documents_name'), 'design_documents', ['name'], unique=False)
    op.create_index(op.f('ix_design_documents_status'), 'design_documents', ['status'], unique=False)
    op.create_index(op.f('ix_design_documents_created_by'), 'design_documents', ['created_by'], unique=False)

    op.create_table(
        'design_component_annotations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('design_id', sa.Integer(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('root_annotation', sa.JSON(), nullable=False),
        sa.Column('expanded_keys', sa.JSON(), nullable=False),
        sa.Column('schema_version', sa.String(length=32), nullable=True),
        sa.Column('status', annotation_status, nullable=False),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        sa.Column('updated_by', sa.String(length=64), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('version >= 1', name=op.f('ck_design_component_annotations_version_positive')),
        sa.ForeignKeyConstraint(
            ['design_id'], ['design_documents.id'],
            name=op.f('fk_design_component_annotations_design_id_design_documents'), ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_design_component_annotations')),
        sa.UniqueConstraint('design_id', 'version', name=op.f('uq_design_component_annotations_design_id')),
    )
    op.create_index(op.f('ix_design_component_annotations_design_id'), 'design_component_annotations', ['design_id'], unique=False)
    op.create_index(op.f('ix_design_component_annotations_status'), 'design_component_annotations', ['status'], unique=False)
    op.create_index(op.f('ix_design_component_annotations_created_by'), 'design_component_annotations', ['created_by'], unique=False)

    op.create_table(
        'design_requirement_documents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('uuid', sa.String(length=36), nullable=False),
        sa.Column('design_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('status', requirement_status, nullable=False),
        sa.Column('object_key', sa.String(length=1024), nullable=True),
        sa.Column('export_formats', sa.JSON(), nullable=False),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        sa.Column('updated_by', sa.String(length=64), nullable=True),
        sa.Column('published_at', sa.DateTime(), nullable=True),
        sa.Column('archived_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['design_id'], ['design_documents.id'],
            name=op.f('fk_design_requirement_documents_design_id_design_documents'), ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_design_requirement_documents')),
    )
    op.create_index(op.f('ix_design_requirement_documents_uuid'), 'design_requirement_documents', ['uuid'], unique=True)
    op.create_index(op.f('ix_design_requirement_documents_design_id'), 'design_requirement_documents', ['design_id'], unique=False)
    op.create_index(op.f('ix_design_requirement_documents_status'), 'design_requirement_documents', ['status'], unique=False)

    op.create_table(
        'design_code_generation_tasks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('uuid', sa.String(length=36), nullable=False),
        sa.Column('design_id', sa.Integer(), nullable=False),
        sa.Column('requirement_document_id', sa.Integer(), nullable=True),
        sa.Column('task_type', sa.String(length=64), nullable=False),
        sa.Column('options', sa.JSON(), nullable=False),
        sa.Column('status', task_status, nullable=False),
        sa.Column('progress', sa.Integer(), nullable=False),
        sa.Column('logs', sa.JSON(), nullable=False),
        sa.Column('result', sa.JSON(), nullable=True),
        sa.Column('error', sa.JSON(), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        sa.Column('updated_by', sa.String(length=64), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('progress >= 0 AND progress <= 100', name=op.f('ck_design_code_generation_tasks_progress_range')),
        sa.ForeignKeyConstraint(
            ['design_id'], ['design_documents.id'],
            name=op.f('fk_design_code_generation_tasks_design_id_design_documents'), ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['requirement_document_id'], ['design_requirement_documents.id'],
            name=op.f('fk_design_code_generation_tasks_requirement_document_id_design_requirement_documents'),
            ondelete='SET NULL'
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_design_code_generation_tasks')),
    )
    op.create_index(op.f('ix_design_code_generation_tasks_uuid'), 'design_code_generation_tasks', ['uuid'], unique=True)
    op.create_index(
        'ix_design_code_generation_tasks_design_status', 'design_code_generation_tasks',
        ['design_id', 'status'], unique=False
    )

    op.create_table(
        'design_code_generation_task_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('task_id', sa.Integer(), nullable=False),
        sa.Column('level', log_level, nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('context', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ['task_id'], ['design_code_generation_tasks.id'],
            name=op.f('fk_design_code_generation_task_logs_task_id_design_code_generation_tasks'), ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_design_code_generation_task_logs')),
    )
    op.create_index(op.f('ix_design_code_generation_task_logs_task_id'), 'design_code_generation_task_logs', ['task_id'], unique=False)
    op.create_index(op.f('ix_design_code_generation_task_logs_created_at'), 'design_code_generation_task_logs', ['created_at'], unique=False)

    op.create_table(
        'design_path_assets',
        sa.Column('digest', sa.String(length=64), nullable=False),
        sa.Column('image_url', sa.String(length=2048), nullable=False),
        sa.Column('path_data', sa.Text(), nullable=False),
        sa.Column('fill_style', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('digest', name=op.f('pk_design_path_assets')),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('design_path_assets')
    op.drop_index(op.f('ix_design_code_generation_task_logs_created_at'), table_name='design_code_generation_task_logs')
    op.drop_index(op.f('ix_design_code_generation_task_logs_task_id'), table_name='design_code_generation_task_logs')
    op.drop_table('design_code_generation_task_logs')
    op.drop_index('ix_design_code_generation_tasks_design_status', table_name='design_code_generation_tasks')
    op.drop_index(op.f('ix_design_code_generation_tasks_uuid'), table_name='design_code_generation_tasks')
    op.drop_table('design_code_generation_tasks')
    op.drop_index(op.f('ix_design_requirement_documents_status'), table_name='design_requirement_documents')
    op.drop_index(op.f('ix_design_requirement_documents_design_id'), table_name='design_requirement_documents')
    op.drop_index(op.f('ix_design_requirement_documents_uuid'), table_name='design_requirement_documents')
    op.drop_table('design_requirement_documents')
    op.drop_index(op.f('ix_design_component_annotations_created_by'), table_name='design_component_annotations')
    op.drop_index(op.f('ix_design_component_annotations_status'), table_name='design_component_annotations')
    op.drop_index(op.f('ix_design_component_annotations_design_id'), table_name='design_component_annotations')
    op.drop_table('design_component_annotations')
    op.drop_index(op.f('ix_design_documents_created_by'), table_name='design_documents')
    op.drop_index(op.f('ix_design_documents_status'), table_name='design_documents')
    op.drop_index(op.f('ix_design_documents_name'), table_name='design_documents')
    op.drop_index(op.f('ix_design_documents_uuid'), table_name='design_documents')
    op.drop_table('design_documents')

    bind = op.get_bind()
    for enum_type in (log_level, task_status, requirement_status, annotation_status, design_status):
        enum_type.drop(bind, checkfirst=True)
