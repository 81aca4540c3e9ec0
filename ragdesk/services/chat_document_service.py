from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from ragdesk.core.exceptions import DocumentNotFound
from ragdesk.db.models.documents import DocumentStatus, RagDocument
from ragdesk.repositories.document_repository import RagDocumentRepository
from ragdesk.schemas.document import BatchIngestionResult, FileUpload
from ragdesk.services.rag.factory import RAGFactory
from ragdesk.services.rag.ingestion import ProgressCallback

logger = logging.getLogger(__name__)

PREVIEW_TEXT_LENGTH = 500


def _summarize_document(document: RagDocument) -> Dict[str, Any]:
    return {
        "id": document.id,
        "fileName": document.file_name,
        "status": document.status,
        "uploadedAt": document.created_at.isoformat() if document.created_at else None,
    }


class ChatDocumentService:
    """Documents uploaded into individual chats"""

    def __init__(self, factory: RAGFactory):
        self.factory = factory
        self.repository = RagDocumentRepository()
        self.deletion = factory.personal_deletion()

    async def upload(
        self,
        files: List[FileUpload],
        user_id: str,
        chat_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchIngestionResult:
        """Ingest files into a chat, in parallel"""
        return await self.factory.personal_batch(user_id, chat_id).run_parallel(files, on_progress)

    async def list_documents(self, db: Session, chat_id: str, user_id: str) -> Dict[str, Any]:
        """The user's documents in a chat with a count per status"""
        documents = await self.repository.list_by_chat(db, chat_id, user_id)
        summary = {status.value: 0 for status in DocumentStatus}
        for document in documents:
            summary[document.status] = summary.get(document.status, 0) + 1
        return {
            "summary": summary,
            "documents": [_summarize_document(document) for document in documents],
        }

    async def preview(self, db: Session, document_id: str, chat_id: str, user_id: str) -> List[Dict[str, Any]]:
        """
        First few chunks of a document, each cut to a short excerpt.

        Raises:
            DocumentNotFound: If the document is not in this chat of this user
        """
        if await self.repository.get_owned(db, document_id, chat_id, user_id) is None:
            raise DocumentNotFound(document_id)
        chunks = await self.repository.preview_chunks(
            db, document_id, chat_id, user_id, self.factory.settings.PREVIEW_CHUNKS
        )
        return [
            {
                "chunkIndex": chunk.chunk_index,
                "pageNumber": chunk.page_number,
                "text": chunk.text[:PREVIEW_TEXT_LENGTH] + ("..." if len(chunk.text) > PREVIEW_TEXT_LENGTH else ""),
            }
            for chunk in chunks
        ]

    async def search_by_name(self, db: Session, chat_id: str, user_id: str, search_term: str) -> List[Dict[str, Any]]:
        documents = await self.repository.search_by_file_name(db, chat_id, user_id, search_term)
        return [_summarize_document(document) for document in documents]

    async def search_chunks(
        self,
        db: Session,
        chat_id: str,
        user_id: str,
        search_text: str,
        document_id: Optional[str] = None,
        limit: int = 10,
    ) -> List[Dict[str, Any]]:
        """Exact phrase search over chunk text, as opposed to semantic search"""
        rows = await self.repository.search_chunks_by_text(db, chat_id, user_id, search_text, document_id, limit)
        return [
            {
                "id": chunk.id,
                "fileName": file_name,
                "chunkIndex": chunk.chunk_index,
                "pageNumber": chunk.page_number,
                "text": chunk.text,
            }
            for chunk, file_name in rows
        ]

    async def delete_document(self, db: Session, document_id: str, user_id: str) -> int:
        """
        Delete one of the user's documents.

        Raises:
            DocumentNotFound: If the document does not exist or belongs to someone else
        """
        document = await self.repository.get_by_id(db, document_id)
        if document is None or document.user_id != user_id:
            raise DocumentNotFound(document_id)
        return await self.deletion.delete(db, document_id)

    async def delete_all_for_user(self, db: Session, user_id: str) -> Dict[str, Any]:
        """
        Delete every document of a user.

        Failures are collected per document instead of aborting the sweep.
        """
        documents = await self.repository.list_by_user(db, user_id)
        failed: List[str] = []
        for document in documents:
            try:
                await self.deletion.delete(db, document.id)
            except Exception as e:
                logger.error(f"Failed to delete document {document.id} ({document.file_name}): {e}")
                failed.append(document.file_name)

        deleted = len(documents) - len(failed)
        result: Dict[str, Any] = {"success": not failed, "deleted": deleted}
        if failed:
            result["failed"] = len(failed)
            result["failedFiles"] = failed
            result["message"] = f"Deleted {deleted} items, failed to delete {len(failed)}"
        return result
