"""
Single-document ingestion.

An orchestrator run takes one stored file through extraction, chunking,
embedding, vector upsert and chunk persistence. The document row is created
in ``processing`` before any I/O and moves exactly once to ``ready`` or
``failed``. Runs never raise; failures are reported through the returned
``IngestionResult`` and the document's ``error_message``.
"""
from typing import Any, Callable, Dict, List, Optional, Tuple
from datetime import datetime, timezone
import asyncio
import logging

from sqlalchemy.orm import Session

from ragdesk.core.config import Settings, settings as default_settings
from ragdesk.core.exceptions import NoExtractableContent, RagError
from ragdesk.db.base_class import generate_id
from ragdesk.repositories.document_repository import (
    DocumentRepository,
    LibraryDocumentRepository,
    RagDocumentRepository,
)
from ragdesk.schemas.document import FileUpload, IngestionResult, VectorRecord
from ragdesk.services.rag.chunker import SentenceChunker, TextChunk
from ragdesk.services.rag.embeddings import GeminiEmbeddingClient
from ragdesk.services.rag.extractor import ExtractionSource, ExtractorRegistry
from ragdesk.services.rag.vector_store import PineconeVectorIndex
from ragdesk.services.storage import StorageClient

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], Any]


def _no_progress(message: str) -> None:
    pass


class IngestionOrchestrator:
    """
    Coordinates extractor, chunker, embedding client, vector index and
    metadata store for one document.

    Subclasses supply the scope: which columns the document row carries and
    which tags every vector is stamped with.
    """

    repository_class = DocumentRepository
    label = "document"

    def __init__(
        self,
        vector_index: PineconeVectorIndex,
        embeddings: GeminiEmbeddingClient,
        extractors: ExtractorRegistry,
        storage: StorageClient,
        session_factory: Callable[[], Session],
        chunker: Optional[SentenceChunker] = None,
        settings: Settings = default_settings,
    ):
        self.repository = self.repository_class()
        self.vector_index = vector_index
        self.embeddings = embeddings
        self.extractors = extractors
        self.storage = storage
        self.session_factory = session_factory
        self.chunker = chunker or SentenceChunker(settings.CHUNK_SIZE_TOKENS, settings.CHUNK_OVERLAP_TOKENS)
        self.presign_ttl = settings.PRESIGN_TTL_SECONDS

    def document_fields(self) -> Dict[str, Any]:
        """Scope columns for the document row"""
        return {}

    def scope_metadata(self, document_id: str) -> Dict[str, Any]:
        """Scope tags stamped on every vector of the document"""
        return {"documentId": document_id}

    async def ingest(self, file: FileUpload, on_progress: Optional[ProgressCallback] = None) -> IngestionResult:
        """
        Ingest one stored file.

        The run is shielded: if the caller is cancelled, it still reaches its
        terminal state.

        Args:
            file: The stored file
            on_progress: Optional callback receiving human-readable stage labels

        Returns:
            IngestionResult with the new document ID
        """
        document_id = generate_id()
        return await asyncio.shield(self._run(document_id, file, on_progress or _no_progress))

    def _report(self, on_progress: ProgressCallback, message: str) -> None:
        try:
            on_progress(message)
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")

    async def _run(self, document_id: str, file: FileUpload, on_progress: ProgressCallback) -> IngestionResult:
        db = self.session_factory()
        try:
            self._report(on_progress, f"Processing {self.label}: {file.file_name}")
            try:
                await self.repository.create_processing(
                    db,
                    document_id,
                    file_name=file.file_name,
                    file_key=file.file_key,
                    file_url=file.file_url,
                    mime_type=file.mime_type,
                    size_bytes=file.size_bytes,
                    meta={"startedAt": datetime.now(timezone.utc).isoformat()},
                    **self.document_fields(),
                )
            except Exception as e:
                logger.error(f"Could not create document row for {file.file_name}: {e}", exc_info=True)
                return IngestionResult(
                    success=False, document_id=document_id, file_name=file.file_name, error=str(e)
                )

            attempted_vector_ids: List[str] = []
            try:
                chunk_count = await self._process(db, document_id, file, on_progress, attempted_vector_ids)
            except Exception as e:
                error = await self._fail(db, document_id, file, e, attempted_vector_ids)
                return IngestionResult(success=False, document_id=document_id, file_name=file.file_name, error=error)

            self._report(on_progress, "Document ready!")
            return IngestionResult(
                success=True, document_id=document_id, file_name=file.file_name, chunk_count=chunk_count
            )
        finally:
            db.close()

    async def _process(
        self,
        db: Session,
        document_id: str,
        file: FileUpload,
        on_progress: ProgressCallback,
        attempted_vector_ids: List[str],
    ) -> int:
        # Raises UnsupportedFileType before any download
        extension = self.extractors.extension_for(file.mime_type)
        generative = self.extractors.is_generative(file.mime_type)

        self._report(on_progress, "Downloading document...")
        url = await self.storage.presign_download_url(file.file_url, self.presign_ttl)
        source = ExtractionSource(url, file.file_name, file.mime_type)

        self._report(on_progress, "Analyzing image content..." if generative else "Reading document content...")
        units = await self.extractors.extract(source)

        self._report(on_progress, "Analyzing document content...")
        pending: List[Tuple[TextChunk, Optional[str]]] = []
        for unit in units:
            for chunk in self.chunker.split(unit.text):
                pending.append((chunk, unit.page_label))
        if not pending:
            raise NoExtractableContent("No valid text content extracted from the document")
        logger.info(f"Split {file.file_name} into {len(pending)} chunks")

        self._report(on_progress, "Generating embeddings...")
        vectors = await self.embeddings.embed_for_indexing([chunk.text for chunk, _ in pending])

        base_metadata = {
            **self.scope_metadata(document_id),
            "documentType": extension.lstrip("."),
            "fileName": file.file_name,
            "elementType": "image" if generative else "text",
        }
        records: List[VectorRecord] = []
        rows: List[Dict[str, Any]] = []
        for chunk_index, ((chunk, page_label), vector) in enumerate(zip(pending, vectors)):
            metadata = {**base_metadata, "text": chunk.text, "chunkIndex": chunk_index}
            if page_label is not None:
                metadata["pageNumber"] = page_label
            vector_id = generate_id()
            records.append(VectorRecord(id=vector_id, values=vector, metadata=metadata))
            rows.append({
                "id": generate_id(),
                "document_id": document_id,
                "pinecone_id": vector_id,
                "chunk_index": chunk_index,
                "page_number": page_label,
                "token_count": chunk.token_count,
                "text": chunk.text,
                "meta": metadata,
            })

        self._report(on_progress, "Uploading to search index...")
        attempted_vector_ids.extend(record.id for record in records)
        await self.vector_index.upsert(records)

        await self.repository.save_chunks(db, rows)
        await self.repository.mark_ready(db, document_id, len(rows))
        logger.info(f"Document {document_id} ({file.file_name}) ready with {len(rows)} chunks")
        return len(rows)

    async def _fail(
        self,
        db: Session,
        document_id: str,
        file: FileUpload,
        error: Exception,
        attempted_vector_ids: List[str],
    ) -> str:
        message = error.message if isinstance(error, RagError) else (str(error) or "Unknown error")
        logger.error(f"Ingestion failed for {file.file_name} (document {document_id}): {message}", exc_info=True)

        extra_metadata = None
        if attempted_vector_ids:
            logger.critical(
                f"Document {document_id} failed after vector upsert started; "
                f"{len(attempted_vector_ids)} vectors may be orphaned: {attempted_vector_ids}"
            )
            extra_metadata = {"orphanedVectorIds": attempted_vector_ids}

        try:
            await self.repository.delete_chunks(db, document_id)
            await self.repository.mark_failed(db, document_id, message, extra_metadata)
        except Exception as e:
            logger.error(f"Could not record failure for document {document_id}: {e}", exc_info=True)
        return message


class PersonalIngestionOrchestrator(IngestionOrchestrator):
    """Ingests a file uploaded into one chat"""

    repository_class = RagDocumentRepository

    def __init__(self, *args, user_id: str, chat_id: str, **kwargs):
        # Personal queries always filter on chatId
        if not chat_id:
            raise ValueError("chat_id is required for personal documents")
        super().__init__(*args, **kwargs)
        self.user_id = user_id
        self.chat_id = chat_id

    def document_fields(self) -> Dict[str, Any]:
        return {"user_id": self.user_id, "chat_id": self.chat_id, "source": "s3"}

    def scope_metadata(self, document_id: str) -> Dict[str, Any]:
        return {"documentId": document_id, "userId": self.user_id, "chatId": self.chat_id}


class LibraryIngestionOrchestrator(IngestionOrchestrator):
    """Ingests a file into the shared library"""

    repository_class = LibraryDocumentRepository
    label = "library document"

    def __init__(self, *args, uploaded_by: Optional[str], **kwargs):
        super().__init__(*args, **kwargs)
        self.uploaded_by = uploaded_by

    def document_fields(self) -> Dict[str, Any]:
        return {"uploaded_by": self.uploaded_by}

    def scope_metadata(self, document_id: str) -> Dict[str, Any]:
        metadata = {"documentId": document_id, "source": "library"}
        if self.uploaded_by:
            metadata["uploadedBy"] = self.uploaded_by
        return metadata
