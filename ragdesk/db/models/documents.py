from datetime import datetime
import enum

from sqlalchemy import Column, String, Text, ForeignKey, DateTime, Integer, JSON, UniqueConstraint
from sqlalchemy.orm import relationship

from ragdesk.db.base_class import BaseModel


class DocumentStatus(str, enum.Enum):
    """Document processing status"""
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class DocumentColumns:
    """Columns shared by personal and library documents"""
    file_name = Column(String(512), nullable=False, index=True)
    file_key = Column(String(1024), nullable=True)
    file_url = Column(String(2048), nullable=True)
    mime_type = Column(String(255), nullable=True)
    size_bytes = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default=DocumentStatus.PROCESSING.value, index=True)
    chunk_count = Column(Integer, nullable=False, default=0)
    meta = Column("metadata", JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class ChunkColumns:
    """Columns shared by personal and library chunks"""
    pinecone_id = Column(String(64), nullable=False, unique=True)
    chunk_index = Column(Integer, nullable=False)
    page_number = Column(String(255), nullable=True)
    token_count = Column(Integer, nullable=True)
    text = Column(Text, nullable=False)
    meta = Column("metadata", JSON, nullable=True)


class RagDocument(DocumentColumns, BaseModel):
    """Document uploaded by a user into one chat"""
    __tablename__ = "rag_documents"

    user_id = Column(String(36), nullable=False, index=True)
    chat_id = Column(String(36), nullable=True, index=True)
    source = Column(String(20), nullable=False, default="s3")

    chunks = relationship(
        "RagChunk",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="RagChunk.chunk_index",
    )


class RagChunk(ChunkColumns, BaseModel):
    """Embedded segment of a personal document"""
    __tablename__ = "rag_chunks"
    __table_args__ = (UniqueConstraint("document_id", "chunk_index", name="uq_rag_chunk_position"),)

    document_id = Column(String(36), ForeignKey("rag_documents.id", ondelete="CASCADE"), nullable=False, index=True)

    document = relationship("RagDocument", back_populates="chunks")


class LibraryDocument(DocumentColumns, BaseModel):
    """Admin-curated document shared with every user"""
    __tablename__ = "library_documents"

    uploaded_by = Column(String(36), nullable=True, index=True)

    chunks = relationship(
        "LibraryChunk",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="LibraryChunk.chunk_index",
    )


class LibraryChunk(ChunkColumns, BaseModel):
    """Embedded segment of a library document"""
    __tablename__ = "library_chunks"
    __table_args__ = (UniqueConstraint("document_id", "chunk_index", name="uq_library_chunk_position"),)

    document_id = Column(String(36), ForeignKey("library_documents.id", ondelete="CASCADE"), nullable=False, index=True)

    document = relationship("LibraryDocument", back_populates="chunks")
