from typing import List, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from ragdesk.core.exceptions import DocumentConflict, DocumentNotFound
from ragdesk.repositories.document_repository import LibraryDocumentRepository
from ragdesk.schemas.document import (
    BatchIngestionResult,
    FileUpload,
    LibraryDocumentPage,
    LibraryDocumentResponse,
)
from ragdesk.services.rag.factory import RAGFactory
from ragdesk.services.rag.ingestion import ProgressCallback

logger = logging.getLogger(__name__)


class LibraryService:
    """
    Admin operations on the shared library.

    Uploads go through conflict resolution: a file whose name matches an
    existing library document (case-insensitive, exact) must say whether it
    replaces that document or is skipped. Matching is by name only; two
    different files with the same name are duplicates, identical content
    under different names is not.
    """

    def __init__(self, factory: RAGFactory):
        self.factory = factory
        self.repository = LibraryDocumentRepository()
        self.deletion = factory.library_deletion()

    async def resolve_conflicts(
        self,
        db: Session,
        files: List[FileUpload],
    ) -> Tuple[List[FileUpload], List[str], List[str]]:
        """
        Decide what happens to each file before anything is ingested.

        Returns:
            (files to ingest, skipped file names, IDs of documents to replace)

        Raises:
            DocumentConflict: If a file matches an existing document and
                carries no replace/skip decision, or repeats the name of an
                earlier file in the same upload without opting to skip
        """
        to_ingest: List[FileUpload] = []
        skipped: List[str] = []
        replaced: List[str] = []
        accepted_names = set()

        for file in files:
            name = file.file_name.strip().lower()
            if name in accepted_names:
                # Same name twice in one upload; only one of them can be kept
                if file.replace_existing is False:
                    logger.info(f"Skipping {file.file_name}: repeated in this upload")
                    skipped.append(file.file_name)
                    continue
                raise DocumentConflict(file.file_name, None)

            existing = await self.repository.get_by_file_name(db, file.file_name)
            if existing is None:
                to_ingest.append(file)
            elif file.replace_existing is None:
                raise DocumentConflict(file.file_name, existing.id)
            elif file.replace_existing:
                replaced.append(existing.id)
                to_ingest.append(file)
            else:
                logger.info(f"Skipping {file.file_name}: already in library as {existing.id}")
                skipped.append(file.file_name)
                continue
            accepted_names.add(name)

        return to_ingest, skipped, replaced

    async def upload(
        self,
        db: Session,
        files: List[FileUpload],
        uploaded_by: Optional[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchIngestionResult:
        """
        Ingest files into the library one at a time.

        A conflict aborts the whole upload before any document is touched.
        """
        to_ingest, skipped, replaced = await self.resolve_conflicts(db, files)

        for document_id in replaced:
            logger.info(f"Replacing library document {document_id}")
            await self.deletion.delete(db, document_id)

        result = await self.factory.library_batch(uploaded_by).run_sequential(to_ingest, on_progress)
        result.skipped = skipped
        return result

    async def list_documents(
        self,
        db: Session,
        limit: int = 20,
        offset: int = 0,
        search: Optional[str] = None,
        status: Optional[str] = None,
        sort_by: str = "newest",
    ) -> LibraryDocumentPage:
        documents, total, total_size = await self.repository.list_documents(
            db, limit=limit, offset=offset, search=search, status=status, sort_by=sort_by
        )
        return LibraryDocumentPage(
            documents=[LibraryDocumentResponse.model_validate(document) for document in documents],
            total=total,
            total_size=total_size,
            limit=limit,
            offset=offset,
        )

    async def delete_documents(self, db: Session, document_ids: List[str]) -> int:
        """Delete library documents and their vectors; returns the number deleted"""
        return await self.deletion.delete_many(db, document_ids)

    async def get_download_url(self, db: Session, document_id: str) -> str:
        """Time-limited link to the stored file of a library document"""
        document = await self.repository.get_by_id(db, document_id)
        if document is None:
            raise DocumentNotFound(document_id)
        return await self.factory.storage.presign_download_url(
            document.file_url or document.file_key, self.factory.settings.PRESIGN_TTL_SECONDS
        )
