from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ragdesk.api.deps import CurrentUser, get_current_user, get_library_service, require_admin
from ragdesk.core.exceptions import DeletionVectorCleanupError, DocumentConflict, DocumentNotFound
from ragdesk.db.database import get_db
from ragdesk.schemas.document import BatchIngestionResult, LibraryDeleteRequest, LibraryDocumentPage, LibraryUploadRequest
from ragdesk.services.library_service import LibraryService
from ragdesk.services.rag.factory import RAGFactory, get_rag_factory
from ragdesk.services.tools import library_search

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=LibraryDocumentPage)
async def list_library_documents(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    search: Optional[str] = None,
    status: Optional[str] = None,
    sort_by: str = "newest",
    current_user: CurrentUser = Depends(require_admin),
    library_service: LibraryService = Depends(get_library_service),
    db: Session = Depends(get_db),
):
    """List library documents with search, status filter and sorting"""
    try:
        return await library_service.list_documents(
            db, limit=limit, offset=offset, search=search, status=status, sort_by=sort_by
        )
    except Exception as e:
        logger.error(f"Error fetching library documents: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch documents")


@router.post("", response_model=BatchIngestionResult)
async def upload_library_documents(
    payload: LibraryUploadRequest,
    current_user: CurrentUser = Depends(require_admin),
    library_service: LibraryService = Depends(get_library_service),
    db: Session = Depends(get_db),
):
    """
    Ingest stored files into the library.

    Responds 409 when a file name already exists and the file carries no
    replace_existing decision; nothing is ingested in that case.
    """
    try:
        return await library_service.upload(db, payload.files, uploaded_by=current_user.id)
    except DocumentConflict as e:
        return JSONResponse(
            status_code=409,
            content={
                "error": e.message,
                "duplicate": True,
                "fileName": e.file_name,
                "existingDocumentId": e.existing_document_id,
            },
        )
    except DeletionVectorCleanupError as e:
        raise HTTPException(status_code=502, detail=e.message)
    except Exception as e:
        logger.error(f"Error processing library documents: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to process documents")


@router.delete("")
async def delete_library_documents(
    payload: LibraryDeleteRequest,
    current_user: CurrentUser = Depends(require_admin),
    library_service: LibraryService = Depends(get_library_service),
    db: Session = Depends(get_db),
):
    document_ids = payload.ids()
    if not document_ids:
        raise HTTPException(status_code=400, detail="No document ID provided")

    try:
        deleted = await library_service.delete_documents(db, document_ids)
    except DocumentNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    except DeletionVectorCleanupError as e:
        raise HTTPException(status_code=502, detail=e.message)
    return {"success": True, "deletedCount": deleted}


@router.get("/search")
async def search_library(
    query: str = Query(..., min_length=1),
    top_k: Optional[int] = None,
    current_user: CurrentUser = Depends(get_current_user),
    factory: RAGFactory = Depends(get_rag_factory),
    db: Session = Depends(get_db),
):
    return await library_search(factory, db, query, top_k)


@router.get("/{document_id}/download")
async def download_library_document(
    document_id: str,
    current_user: CurrentUser = Depends(require_admin),
    library_service: LibraryService = Depends(get_library_service),
    db: Session = Depends(get_db),
):
    """Presigned link to the stored file"""
    try:
        url = await library_service.get_download_url(db, document_id)
    except DocumentNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    return {"url": url}
