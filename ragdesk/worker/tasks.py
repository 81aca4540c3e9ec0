from typing import Any, Dict, List, Optional
import asyncio
import logging

from celery import shared_task

from ragdesk.core.exceptions import DocumentNotFound
from ragdesk.schemas.document import FileUpload
from ragdesk.services.chat_document_service import ChatDocumentService
from ragdesk.services.library_service import LibraryService
from ragdesk.services.rag.factory import RAGFactory

logger = logging.getLogger(__name__)


# Each task builds its own factory: async clients are bound to the event loop
# of the asyncio.run call that created them. Ingestion is single-attempt: a
# retry would create a second document row.
@shared_task(bind=True, max_retries=0)
def ingest_chat_documents(self, files: List[Dict[str, Any]], user_id: str, chat_id: str) -> Dict[str, Any]:
    """
    Ingest a batch of stored files into a chat, in parallel.

    Returns:
        The batch summary as a dict
    """
    logger.info(f"Starting chat ingestion of {len(files)} files for chat {chat_id}")
    uploads = [FileUpload(**file) for file in files]
    service = ChatDocumentService(RAGFactory.from_settings())
    result = asyncio.run(service.upload(uploads, user_id=user_id, chat_id=chat_id))
    logger.info(f"Chat ingestion finished: {result.success_count} ready, {result.fail_count} failed")
    return result.model_dump()


@shared_task(bind=True, max_retries=0)
def ingest_library_documents(self, files: List[Dict[str, Any]], uploaded_by: Optional[str]) -> Dict[str, Any]:
    """
    Ingest a batch of stored files into the library, one at a time.

    Files without a replace/skip decision that collide with an existing
    document are skipped; a background task has nobody to ask.
    """
    logger.info(f"Starting library ingestion of {len(files)} files")
    uploads = []
    for file in files:
        upload = FileUpload(**file)
        if upload.replace_existing is None:
            upload.replace_existing = False
        uploads.append(upload)

    factory = RAGFactory.from_settings()
    service = LibraryService(factory)

    async def _ingest():
        db = factory.session_factory()
        try:
            return await service.upload(db, uploads, uploaded_by=uploaded_by)
        finally:
            db.close()

    result = asyncio.run(_ingest())
    logger.info(
        f"Library ingestion finished: {result.success_count} ready, {result.fail_count} failed, "
        f"{len(result.skipped)} skipped"
    )
    return result.model_dump()


@shared_task(bind=True, max_retries=0)
def delete_library_document(self, document_id: str) -> Dict[str, Any]:
    """Delete a library document and its vectors"""
    factory = RAGFactory.from_settings()
    deletion = factory.library_deletion()

    async def _delete():
        db = factory.session_factory()
        try:
            return await deletion.delete(db, document_id)
        finally:
            db.close()

    try:
        removed = asyncio.run(_delete())
    except DocumentNotFound:
        logger.warning(f"Library document {document_id} already gone")
        return {"success": True, "deletedVectors": 0}
    return {"success": True, "deletedVectors": removed}
