from typing import Any, Dict, List, Optional, Tuple, Type
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from ragdesk.db.models.documents import (
    DocumentStatus,
    LibraryChunk,
    LibraryDocument,
    RagChunk,
    RagDocument,
)

logger = logging.getLogger(__name__)


class DocumentRepository:
    """
    Repository for document and chunk rows of one corpus.

    Subclasses bind the document and chunk models. Every write commits on
    success and rolls back before re-raising on failure.
    """

    document_model: Type = None
    chunk_model: Type = None

    async def create_processing(self, db: Session, document_id: str, **fields: Any):
        """
        Create a document row in the processing state.

        Args:
            db: Database session
            document_id: Pre-generated document ID
            **fields: Column values (file_name, mime_type, ...)

        Returns:
            Created document
        """
        try:
            document = self.document_model(
                id=document_id,
                status=DocumentStatus.PROCESSING.value,
                chunk_count=0,
                **fields,
            )
            db.add(document)
            db.commit()
            db.refresh(document)
            return document
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to create document {document_id}: {e}")
            raise

    async def get_by_id(self, db: Session, document_id: str):
        try:
            return db.query(self.document_model).filter(self.document_model.id == document_id).first()
        except Exception as e:
            logger.error(f"Failed to get document by ID {document_id}: {e}")
            raise

    async def mark_ready(self, db: Session, document_id: str, chunk_count: int):
        return await self._update(db, document_id, {
            "status": DocumentStatus.READY.value,
            "chunk_count": chunk_count,
            "error_message": None,
        })

    async def mark_failed(
        self,
        db: Session,
        document_id: str,
        error_message: str,
        extra_metadata: Optional[Dict[str, Any]] = None,
    ):
        """Move a document to failed; chunk_count is forced to zero"""
        update = {
            "status": DocumentStatus.FAILED.value,
            "chunk_count": 0,
            "error_message": error_message,
        }
        if extra_metadata:
            document = await self.get_by_id(db, document_id)
            if document is not None:
                update["meta"] = {**(document.meta or {}), **extra_metadata}
        return await self._update(db, document_id, update)

    async def _update(self, db: Session, document_id: str, update_data: Dict[str, Any]):
        try:
            document = db.query(self.document_model).filter(self.document_model.id == document_id).first()
            if not document:
                return None

            for key, value in update_data.items():
                setattr(document, key, value)

            db.commit()
            db.refresh(document)
            return document
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to update document {document_id}: {e}")
            raise

    async def save_chunks(self, db: Session, chunks: List[Dict[str, Any]]) -> None:
        """Insert all chunk rows of a document in one transaction"""
        if not chunks:
            return
        try:
            db.add_all([self.chunk_model(**chunk) for chunk in chunks])
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to save {len(chunks)} chunks: {e}")
            raise

    async def get_chunks(self, db: Session, document_id: str) -> List:
        try:
            return (
                db.query(self.chunk_model)
                .filter(self.chunk_model.document_id == document_id)
                .order_by(self.chunk_model.chunk_index)
                .all()
            )
        except Exception as e:
            logger.error(f"Failed to get chunks for document {document_id}: {e}")
            raise

    async def get_vector_ids(self, db: Session, document_id: str) -> List[str]:
        chunks = await self.get_chunks(db, document_id)
        return [chunk.pinecone_id for chunk in chunks]

    async def get_chunks_by_vector_ids(self, db: Session, vector_ids: List[str]) -> List[Tuple[Any, str]]:
        """
        Fetch chunks by their vector IDs together with the owning document's file name.

        Returns:
            List of (chunk, file_name) tuples
        """
        if not vector_ids:
            return []
        try:
            return (
                db.query(self.chunk_model, self.document_model.file_name)
                .join(self.document_model, self.chunk_model.document_id == self.document_model.id)
                .filter(self.chunk_model.pinecone_id.in_(vector_ids))
                .all()
            )
        except Exception as e:
            logger.error(f"Failed to get chunks by vector IDs: {e}")
            raise

    async def delete_chunks(self, db: Session, document_id: str) -> int:
        try:
            deleted = (
                db.query(self.chunk_model)
                .filter(self.chunk_model.document_id == document_id)
                .delete(synchronize_session=False)
            )
            db.commit()
            return deleted
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to delete chunks for document {document_id}: {e}")
            raise

    async def delete(self, db: Session, document_id: str) -> bool:
        """
        Delete a document; its chunk rows go with it.

        Returns:
            True if document was deleted, False otherwise
        """
        try:
            document = db.query(self.document_model).filter(self.document_model.id == document_id).first()
            if not document:
                return False

            db.delete(document)
            db.commit()
            return True
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to delete document {document_id}: {e}")
            raise


class RagDocumentRepository(DocumentRepository):
    """Repository for per-chat documents"""

    document_model = RagDocument
    chunk_model = RagChunk

    async def get_owned(self, db: Session, document_id: str, chat_id: str, user_id: str) -> Optional[RagDocument]:
        """A document, only if it belongs to this chat of this user"""
        return (
            db.query(RagDocument)
            .filter(RagDocument.id == document_id)
            .filter(RagDocument.chat_id == chat_id)
            .filter(RagDocument.user_id == user_id)
            .first()
        )

    async def list_by_chat(self, db: Session, chat_id: str, user_id: str) -> List[RagDocument]:
        return (
            db.query(RagDocument)
            .filter(RagDocument.chat_id == chat_id)
            .filter(RagDocument.user_id == user_id)
            .order_by(RagDocument.created_at.desc())
            .all()
        )

    async def list_by_user(self, db: Session, user_id: str) -> List[RagDocument]:
        return (
            db.query(RagDocument)
            .filter(RagDocument.user_id == user_id)
            .order_by(RagDocument.created_at.desc())
            .all()
        )

    async def search_by_file_name(
        self, db: Session, chat_id: str, user_id: str, search_term: str
    ) -> List[RagDocument]:
        pattern = f"%{search_term.strip().lower()}%"
        return (
            db.query(RagDocument)
            .filter(RagDocument.chat_id == chat_id)
            .filter(RagDocument.user_id == user_id)
            .filter(func.lower(RagDocument.file_name).like(pattern))
            .order_by(RagDocument.created_at.desc())
            .all()
        )

    async def search_chunks_by_text(
        self,
        db: Session,
        chat_id: str,
        user_id: str,
        search_text: str,
        document_id: Optional[str] = None,
        limit: int = 10,
    ) -> List[Tuple[RagChunk, str]]:
        """
        Literal, case-insensitive substring search over the chunks of one chat
        of one user.

        Returns:
            List of (chunk, file_name) tuples
        """
        try:
            query = (
                db.query(RagChunk, RagDocument.file_name)
                .join(RagDocument, RagChunk.document_id == RagDocument.id)
                .filter(RagDocument.chat_id == chat_id)
                .filter(RagDocument.user_id == user_id)
                .filter(func.lower(RagChunk.text).like(f"%{search_text.lower()}%"))
            )
            if document_id:
                query = query.filter(RagChunk.document_id == document_id)
            return query.order_by(RagDocument.created_at.desc(), RagChunk.chunk_index).limit(limit).all()
        except Exception as e:
            logger.error(f"Failed to search chunks in chat {chat_id}: {e}")
            raise

    async def preview_chunks(
        self, db: Session, document_id: str, chat_id: str, user_id: str, limit: int = 3
    ) -> List[RagChunk]:
        """First chunks of a document, only if it belongs to this chat of this user"""
        try:
            return (
                db.query(RagChunk)
                .join(RagDocument, RagChunk.document_id == RagDocument.id)
                .filter(RagChunk.document_id == document_id)
                .filter(RagDocument.chat_id == chat_id)
                .filter(RagDocument.user_id == user_id)
                .order_by(RagChunk.chunk_index)
                .limit(limit)
                .all()
            )
        except Exception as e:
            logger.error(f"Failed to get preview chunks for document {document_id}: {e}")
            raise


class LibraryDocumentRepository(DocumentRepository):
    """Repository for shared library documents"""

    document_model = LibraryDocument
    chunk_model = LibraryChunk

    SORT_OPTIONS = {
        "newest": LibraryDocument.created_at.desc(),
        "oldest": LibraryDocument.created_at.asc(),
        "name": LibraryDocument.file_name.asc(),
        "size": LibraryDocument.size_bytes.desc(),
    }

    async def get_by_file_name(self, db: Session, file_name: str) -> Optional[LibraryDocument]:
        """Case-insensitive exact match on the trimmed file name"""
        normalized = file_name.strip()
        if not normalized:
            return None
        return (
            db.query(LibraryDocument)
            .filter(func.lower(LibraryDocument.file_name) == normalized.lower())
            .order_by(LibraryDocument.created_at.desc())
            .first()
        )

    async def list_documents(
        self,
        db: Session,
        limit: int = 20,
        offset: int = 0,
        search: Optional[str] = None,
        status: Optional[str] = None,
        sort_by: str = "newest",
    ) -> Tuple[List[LibraryDocument], int, int]:
        """
        List library documents with search, status filter and sorting.

        Returns:
            (documents, total matching count, total size in bytes of matching documents)
        """
        try:
            query = db.query(LibraryDocument)
            if search:
                query = query.filter(func.lower(LibraryDocument.file_name).like(f"%{search.lower()}%"))
            if status and status != "all":
                query = query.filter(LibraryDocument.status == status)

            total = query.count()
            total_size = query.with_entities(func.coalesce(func.sum(LibraryDocument.size_bytes), 0)).scalar()

            order_by = self.SORT_OPTIONS.get(sort_by, self.SORT_OPTIONS["newest"])
            documents = query.order_by(order_by).offset(offset).limit(limit).all()
            return documents, total, int(total_size or 0)
        except Exception as e:
            logger.error(f"Failed to list library documents: {e}")
            raise

    async def list_all_ids(self, db: Session) -> List[str]:
        return [row[0] for row in db.query(LibraryDocument.id).all()]
