"""create rag document and chunk tables

Revision ID: create_rag_tables
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'create_rag_tables'
down_revision = None
branch_labels = None
depends_on = None


def _document_columns():
    return [
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('file_name', sa.String(512), nullable=False),
        sa.Column('file_key', sa.String(1024), nullable=True),
        sa.Column('file_url', sa.String(2048), nullable=True),
        sa.Column('mime_type', sa.String(255), nullable=True),
        sa.Column('size_bytes', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('chunk_count', sa.Integer(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def _chunk_columns(document_table):
    return [
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('document_id', sa.String(36), nullable=False),
        sa.Column('pinecone_id', sa.String(64), nullable=False),
        sa.Column('chunk_index', sa.Integer(), nullable=False),
        sa.Column('page_number', sa.String(255), nullable=True),
        sa.Column('token_count', sa.Integer(), nullable=True),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['document_id'], [f'{document_table}.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('pinecone_id'),
    ]


def upgrade():
    op.create_table(
        'rag_documents',
        *_document_columns(),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('chat_id', sa.String(36), nullable=True),
        sa.Column('source', sa.String(20), nullable=False, server_default='s3'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_rag_documents_user_id', 'rag_documents', ['user_id'])
    op.create_index('ix_rag_documents_chat_id', 'rag_documents', ['chat_id'])
    op.create_index('ix_rag_documents_file_name', 'rag_documents', ['file_name'])
    op.create_index('ix_rag_documents_status', 'rag_documents', ['status'])
    op.create_index('ix_rag_documents_created_at', 'rag_documents', ['created_at'])

    op.create_table(
        'rag_chunks',
        *_chunk_columns('rag_documents'),
        sa.UniqueConstraint('document_id', 'chunk_index', name='uq_rag_chunk_position'),
    )
    op.create_index('ix_rag_chunks_document_id', 'rag_chunks', ['document_id'])
    op.create_index('ix_rag_chunks_created_at', 'rag_chunks', ['created_at'])

    op.create_table(
        'library_documents',
        *_document_columns(),
        sa.Column('uploaded_by', sa.String(36), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_library_documents_uploaded_by', 'library_documents', ['uploaded_by'])
    op.create_index('ix_library_documents_file_name', 'library_documents', ['file_name'])
    op.create_index('ix_library_documents_status', 'library_documents', ['status'])
    op.create_index('ix_library_documents_created_at', 'library_documents', ['created_at'])

    op.create_table(
        'library_chunks',
        *_chunk_columns('library_documents'),
        sa.UniqueConstraint('document_id', 'chunk_index', name='uq_library_chunk_position'),
    )
    op.create_index('ix_library_chunks_document_id', 'library_chunks', ['document_id'])
    op.create_index('ix_library_chunks_created_at', 'library_chunks', ['created_at'])


def downgrade():
    op.drop_table('library_chunks')
    op.drop_table('library_documents')
    op.drop_table('rag_chunks')
    op.drop_table('rag_documents')
