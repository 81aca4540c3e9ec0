from typing import Optional
import logging

from celery import Celery
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ragdesk.api.deps import CurrentUser, get_chat_document_service, get_current_user
from ragdesk.core.exceptions import DeletionVectorCleanupError, DocumentNotFound
from ragdesk.db.database import get_db
from ragdesk.schemas.document import ChatUploadRequest
from ragdesk.services.chat_document_service import ChatDocumentService
from ragdesk.services.rag.factory import RAGFactory, get_rag_factory
from ragdesk.services.tools import ChatTools
from ragdesk.worker.celery import celery_app

router = APIRouter()
user_router = APIRouter()
logger = logging.getLogger(__name__)


def get_celery_app() -> Celery:
    return celery_app


@router.post("/{chat_id}/documents", status_code=202)
async def upload_chat_documents(
    chat_id: str,
    payload: ChatUploadRequest,
    current_user: CurrentUser = Depends(get_current_user),
    celery: Celery = Depends(get_celery_app),
):
    """
    Queue stored files for ingestion into a chat.

    Document rows appear in the processing state once the worker picks the
    batch up; poll the listing endpoint for progress.
    """
    task = celery.send_task(
        "ragdesk.worker.tasks.ingest_chat_documents",
        args=[[file.model_dump() for file in payload.files], current_user.id, chat_id],
    )
    logger.info(f"Queued {len(payload.files)} documents for chat {chat_id} (task {task.id})")
    return {"status": "queued", "task_id": task.id, "file_count": len(payload.files)}


@router.get("/{chat_id}/documents")
async def list_chat_documents(
    chat_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: ChatDocumentService = Depends(get_chat_document_service),
    db: Session = Depends(get_db),
):
    return await service.list_documents(db, chat_id, current_user.id)


@router.get("/{chat_id}/documents/search")
async def search_chat_documents(
    chat_id: str,
    query: str = Query(..., min_length=1),
    top_k: Optional[int] = None,
    current_user: CurrentUser = Depends(get_current_user),
    factory: RAGFactory = Depends(get_rag_factory),
    db: Session = Depends(get_db),
):
    """Semantic search over the chat's documents"""
    tools = ChatTools(factory, db, chat_id=chat_id, user_id=current_user.id)
    return await tools.rag_search(query, top_k)


@router.get("/{chat_id}/documents/{document_id}/preview")
async def preview_chat_document(
    chat_id: str,
    document_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: ChatDocumentService = Depends(get_chat_document_service),
    db: Session = Depends(get_db),
):
    try:
        preview = await service.preview(db, document_id, chat_id, current_user.id)
    except DocumentNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    return {"preview": preview}


@router.delete("/{chat_id}/documents/{document_id}")
async def delete_chat_document(
    chat_id: str,
    document_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: ChatDocumentService = Depends(get_chat_document_service),
    db: Session = Depends(get_db),
):
    try:
        removed_vectors = await service.delete_document(db, document_id, current_user.id)
    except DocumentNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    except DeletionVectorCleanupError as e:
        raise HTTPException(status_code=502, detail=e.message)
    return {"success": True, "deletedVectors": removed_vectors}


@user_router.delete("")
async def delete_all_documents(
    current_user: CurrentUser = Depends(get_current_user),
    service: ChatDocumentService = Depends(get_chat_document_service),
    db: Session = Depends(get_db),
):
    """Delete every document the current user uploaded; 207 when some failed"""
    result = await service.delete_all_for_user(db, current_user.id)
    if not result["success"]:
        return JSONResponse(status_code=207, content=result)
    return result
