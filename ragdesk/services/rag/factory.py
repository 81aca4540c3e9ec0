from typing import Callable, Optional
import logging

from sqlalchemy.orm import Session

from ragdesk.core.config import Settings, settings as default_settings
from ragdesk.repositories.document_repository import LibraryDocumentRepository, RagDocumentRepository
from ragdesk.services.rag.batch import BatchIngestionCoordinator
from ragdesk.services.rag.chunker import SentenceChunker
from ragdesk.services.rag.deletion import DeletionCoordinator
from ragdesk.services.rag.embeddings import GeminiEmbeddingClient
from ragdesk.services.rag.extractor import ExtractorRegistry
from ragdesk.services.rag.ingestion import LibraryIngestionOrchestrator, PersonalIngestionOrchestrator
from ragdesk.services.rag.search import LibraryQueryService, PersonalQueryService
from ragdesk.services.rag.vector_store import LIBRARY_SCOPE, PERSONAL_SCOPE, PineconeVectorIndex, get_vector_index
from ragdesk.services.storage import StorageClient

logger = logging.getLogger(__name__)


class RAGFactory:
    """
    Wires the ingestion and retrieval components together.

    One factory holds the shared clients (embeddings, vector indexes,
    extractors, storage); orchestrators and query services are cheap and
    built per use.
    """

    def __init__(
        self,
        personal_index: PineconeVectorIndex,
        library_index: PineconeVectorIndex,
        embeddings: GeminiEmbeddingClient,
        extractors: ExtractorRegistry,
        storage: StorageClient,
        session_factory: Callable[[], Session],
        chunker: Optional[SentenceChunker] = None,
        settings: Settings = default_settings,
    ):
        self.personal_index = personal_index
        self.library_index = library_index
        self.embeddings = embeddings
        self.extractors = extractors
        self.storage = storage
        self.session_factory = session_factory
        self.chunker = chunker or SentenceChunker(settings.CHUNK_SIZE_TOKENS, settings.CHUNK_OVERLAP_TOKENS)
        self.settings = settings

    @classmethod
    def from_settings(cls, settings: Settings = default_settings) -> "RAGFactory":
        """Build a factory backed by Pinecone, Gemini and local file storage"""
        from ragdesk.db.database import SessionLocal
        from ragdesk.services.llm.vision import VisionFactory
        from ragdesk.services.storage import LocalFileStorage

        factory = cls(
            personal_index=get_vector_index(PERSONAL_SCOPE, settings),
            library_index=get_vector_index(LIBRARY_SCOPE, settings),
            embeddings=GeminiEmbeddingClient(settings=settings),
            extractors=ExtractorRegistry(VisionFactory.create(settings=settings)),
            storage=LocalFileStorage(settings.UPLOAD_DIR),
            session_factory=SessionLocal,
            settings=settings,
        )
        logger.info("Created RAG factory from settings")
        return factory

    def _components(self) -> dict:
        return {
            "embeddings": self.embeddings,
            "extractors": self.extractors,
            "storage": self.storage,
            "session_factory": self.session_factory,
            "chunker": self.chunker,
            "settings": self.settings,
        }

    def personal_orchestrator(self, user_id: str, chat_id: str) -> PersonalIngestionOrchestrator:
        return PersonalIngestionOrchestrator(
            vector_index=self.personal_index, user_id=user_id, chat_id=chat_id, **self._components()
        )

    def library_orchestrator(self, uploaded_by: Optional[str]) -> LibraryIngestionOrchestrator:
        return LibraryIngestionOrchestrator(
            vector_index=self.library_index, uploaded_by=uploaded_by, **self._components()
        )

    def personal_batch(self, user_id: str, chat_id: str) -> BatchIngestionCoordinator:
        return BatchIngestionCoordinator(
            self.personal_orchestrator(user_id, chat_id), concurrency=self.settings.INGEST_CONCURRENCY
        )

    def library_batch(self, uploaded_by: Optional[str]) -> BatchIngestionCoordinator:
        return BatchIngestionCoordinator(self.library_orchestrator(uploaded_by), concurrency=1)

    def personal_query(self) -> PersonalQueryService:
        return PersonalQueryService(self.embeddings, self.personal_index)

    def library_query(self) -> LibraryQueryService:
        return LibraryQueryService(
            self.embeddings,
            self.library_index,
            shares_personal_index=self.settings.library_shares_personal_index,
        )

    def personal_deletion(self) -> DeletionCoordinator:
        return DeletionCoordinator(RagDocumentRepository(), self.personal_index)

    def library_deletion(self) -> DeletionCoordinator:
        return DeletionCoordinator(LibraryDocumentRepository(), self.library_index)


_factory: Optional[RAGFactory] = None


def get_rag_factory() -> RAGFactory:
    """Process-wide factory, created on first use"""
    global _factory
    if _factory is None:
        _factory = RAGFactory.from_settings()
    return _factory
