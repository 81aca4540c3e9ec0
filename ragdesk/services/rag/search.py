from typing import List
import logging

from sqlalchemy.orm import Session

from ragdesk.repositories.document_repository import LibraryDocumentRepository
from ragdesk.schemas.document import MatchedChunk, VectorMatch
from ragdesk.services.rag.embeddings import GeminiEmbeddingClient
from ragdesk.services.rag.vector_store import PineconeVectorIndex

logger = logging.getLogger(__name__)


class PersonalQueryService:
    """Semantic search over the documents of one chat"""

    def __init__(self, embeddings: GeminiEmbeddingClient, vector_index: PineconeVectorIndex):
        self.embeddings = embeddings
        self.vector_index = vector_index

    async def query(self, text: str, chat_id: str, user_id: str, top_k: int = 5) -> List[VectorMatch]:
        """
        Search the personal index within one chat of one user.

        Vector metadata carries the chunk text, so matches are returned as-is.
        """
        logger.info(f"Personal search in chat {chat_id}: {text!r} (top_k={top_k})")
        vector = await self.embeddings.embed_for_query(text)
        return await self.vector_index.query(vector, top_k, filter={"chatId": chat_id, "userId": user_id})


class LibraryQueryService:
    """
    Semantic search over the shared library.

    Matched vector IDs are joined back to chunk rows; the relational store is
    the canonical source of chunk text and file names.
    """

    def __init__(
        self,
        embeddings: GeminiEmbeddingClient,
        vector_index: PineconeVectorIndex,
        shares_personal_index: bool = False,
    ):
        self.embeddings = embeddings
        self.vector_index = vector_index
        self.repository = LibraryDocumentRepository()
        # Personal vectors in a shared index never carry source=library
        self.scope_filter = {"source": "library"} if shares_personal_index else None

    async def query(self, db: Session, text: str, top_k: int = 10) -> List[MatchedChunk]:
        logger.info(f"Library search: {text!r} (top_k={top_k})")
        vector = await self.embeddings.embed_for_query(text)
        matches = await self.vector_index.query(vector, top_k, filter=self.scope_filter)
        if not matches:
            return []

        scores = {match.id: match.score for match in matches}
        rows = await self.repository.get_chunks_by_vector_ids(db, list(scores))

        results = [
            MatchedChunk(
                id=chunk.id,
                document_id=chunk.document_id,
                file_name=file_name,
                text=chunk.text,
                page_number=chunk.page_number,
                chunk_index=chunk.chunk_index,
                score=scores[chunk.pinecone_id],
            )
            for chunk, file_name in rows
        ]
        results.sort(key=lambda result: result.score, reverse=True)

        if len(results) < len(matches):
            logger.warning(f"{len(matches) - len(results)} library matches have no chunk row")
        return results
