from typing import Any, Dict, List, Optional
import asyncio
import logging

from ragdesk.core.config import Settings, settings as default_settings
from ragdesk.core.exceptions import VectorIndexError
from ragdesk.schemas.document import VectorMatch, VectorRecord

logger = logging.getLogger(__name__)

PERSONAL_SCOPE = "personal"
LIBRARY_SCOPE = "library"


class PineconeVectorIndex:
    """
    Async adapter over one Pinecone index namespace.

    The Pinecone client is synchronous, so every call runs in a worker thread.
    Upserts and deletes are sent in batches of ``batch_size``.
    """

    def __init__(self, index, namespace: str = "", batch_size: int = 100):
        self.index = index
        self.namespace = namespace
        self.batch_size = batch_size

    async def upsert(self, records: List[VectorRecord]) -> None:
        """
        Upsert records; re-upserting an existing id overwrites it.

        Raises:
            VectorIndexError: If any batch fails. Earlier batches stay written.
        """
        vectors = [
            {"id": record.id, "values": [float(x) for x in record.values], "metadata": record.metadata}
            for record in records
        ]
        total_batches = (len(vectors) + self.batch_size - 1) // self.batch_size

        for i in range(0, len(vectors), self.batch_size):
            batch = vectors[i:i + self.batch_size]
            batch_num = (i // self.batch_size) + 1
            logger.info(f"Upserting batch {batch_num}/{total_batches} ({len(batch)} vectors)")
            try:
                await asyncio.to_thread(self.index.upsert, vectors=batch, namespace=self.namespace)
            except Exception as e:
                logger.error(f"Failed to upsert batch {batch_num}: {e}")
                raise VectorIndexError(f"Failed to upload to search index: {e}") from e

    async def query(
        self,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[VectorMatch]:
        """
        Find the nearest vectors.

        Args:
            vector: Query embedding
            top_k: Maximum number of matches
            filter: Equality constraints on metadata, e.g. {"chatId": "..."}

        Returns:
            Matches ordered by descending score
        """
        pinecone_filter = {key: {"$eq": value} for key, value in (filter or {}).items()} or None
        try:
            results = await asyncio.to_thread(
                self.index.query,
                vector=vector,
                top_k=top_k,
                filter=pinecone_filter,
                include_metadata=True,
                namespace=self.namespace,
            )
        except Exception as e:
            logger.error(f"Vector query failed: {e}", exc_info=True)
            raise VectorIndexError(f"Search index query failed: {e}") from e

        matches = [
            VectorMatch(id=match.id, score=float(match.score or 0.0), metadata=dict(match.metadata or {}))
            for match in (results.matches or [])
        ]
        matches.sort(key=lambda match: match.score, reverse=True)
        logger.info(f"Vector query returned {len(matches)} matches")
        return matches

    async def delete_many(self, ids: List[str]) -> None:
        """
        Delete records by id. Ids that do not exist are ignored.

        Raises:
            VectorIndexError: If any batch fails
        """
        for i in range(0, len(ids), self.batch_size):
            batch = ids[i:i + self.batch_size]
            try:
                await asyncio.to_thread(self.index.delete, ids=batch, namespace=self.namespace)
            except Exception as e:
                logger.error(f"Failed to delete {len(batch)} vectors: {e}")
                raise VectorIndexError(f"Failed to delete from search index: {e}") from e
        logger.info(f"Deleted {len(ids)} vectors from namespace '{self.namespace}'")


_indexes: Dict[str, PineconeVectorIndex] = {}


def get_vector_index(scope: str, settings: Settings = default_settings) -> PineconeVectorIndex:
    """
    Return the vector index adapter for a scope, creating it on first use.

    Args:
        scope: "personal" or "library"
    """
    if scope == PERSONAL_SCOPE:
        index_name, namespace = settings.CHATBOT_PINECONE_INDEX_NAME, settings.PINECONE_PERSONAL_NAMESPACE
    elif scope == LIBRARY_SCOPE:
        index_name, namespace = settings.library_index_name, settings.PINECONE_LIBRARY_NAMESPACE
    else:
        raise ValueError(f"Unknown vector scope: {scope}")

    if scope not in _indexes:
        from pinecone import Pinecone

        pc = Pinecone(api_key=settings.PINECONE_API_KEY)
        _indexes[scope] = PineconeVectorIndex(
            pc.Index(index_name),
            namespace=namespace,
            batch_size=settings.VECTOR_BATCH_SIZE,
        )
        logger.info(f"Initialized {scope} vector index '{index_name}' (namespace '{namespace}')")
    return _indexes[scope]
