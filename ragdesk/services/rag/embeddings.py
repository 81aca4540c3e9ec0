from typing import List
import logging

from ragdesk.core.config import Settings, settings as default_settings
from ragdesk.core.exceptions import EmbeddingProviderError

logger = logging.getLogger(__name__)

INDEXING_TASK_TYPE = "RETRIEVAL_DOCUMENT"
QUERY_TASK_TYPE = "RETRIEVAL_QUERY"


class GeminiEmbeddingClient:
    """
    Embedding client backed by Google Gemini.

    Indexing and querying use different task types; the model encodes
    documents and questions asymmetrically.
    """

    def __init__(self, client=None, settings: Settings = default_settings):
        if client is None:
            from google import genai
            client = genai.Client(api_key=settings.GEMINI_API_KEY)

        self.client = client
        self.model = settings.EMBEDDING_MODEL
        self.dimension = settings.EMBEDDING_DIMENSION
        self.batch_size = settings.EMBEDDING_BATCH_SIZE

    async def _embed(self, texts: List[str], task_type: str) -> List[List[float]]:
        from google.genai import types

        try:
            result = await self.client.aio.models.embed_content(
                model=self.model,
                contents=texts,
                config=types.EmbedContentConfig(
                    task_type=task_type,
                    output_dimensionality=self.dimension,
                ),
            )
        except Exception as e:
            logger.error(f"Embedding call failed for {len(texts)} texts: {e}", exc_info=True)
            raise EmbeddingProviderError(f"Failed to generate embeddings: {e}") from e

        embeddings = result.embeddings or []
        if len(embeddings) != len(texts):
            raise EmbeddingProviderError(
                f"Embedding provider returned {len(embeddings)} vectors for {len(texts)} texts"
            )
        return [list(embedding.values) for embedding in embeddings]

    async def embed_for_indexing(self, texts: List[str]) -> List[List[float]]:
        """
        Embed chunk texts for storage in the vector index.

        Batches are sent one after another to stay under provider rate limits.
        A failure in any batch fails the whole call.

        Args:
            texts: Chunk texts, in order

        Returns:
            One vector per input text, in input order
        """
        if not texts:
            return []

        vectors: List[List[float]] = []
        total_batches = (len(texts) + self.batch_size - 1) // self.batch_size
        for i in range(0, len(texts), self.batch_size):
            batch = texts[i:i + self.batch_size]
            logger.info(f"Embedding batch {i // self.batch_size + 1}/{total_batches} ({len(batch)} texts)")
            vectors.extend(await self._embed(batch, INDEXING_TASK_TYPE))
        return vectors

    async def embed_for_query(self, text: str) -> List[float]:
        """Embed a search query"""
        return (await self._embed([text], QUERY_TASK_TYPE))[0]
