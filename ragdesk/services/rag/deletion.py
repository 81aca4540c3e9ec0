from typing import List
import logging

from sqlalchemy.orm import Session

from ragdesk.core.exceptions import DeletionVectorCleanupError, DocumentNotFound
from ragdesk.repositories.document_repository import DocumentRepository
from ragdesk.services.rag.vector_store import PineconeVectorIndex

logger = logging.getLogger(__name__)


class DeletionCoordinator:
    """
    Deletes a document from the vector index and the metadata store.

    Vectors are removed first. If that fails the document row is left in
    place so the deletion can be retried.
    """

    def __init__(self, repository: DocumentRepository, vector_index: PineconeVectorIndex):
        self.repository = repository
        self.vector_index = vector_index

    async def delete(self, db: Session, document_id: str) -> int:
        """
        Delete one document, its chunks and their vectors.

        Returns:
            Number of vectors removed

        Raises:
            DocumentNotFound: If the document does not exist
            DeletionVectorCleanupError: If vector deletion failed; nothing was deleted
        """
        document = await self.repository.get_by_id(db, document_id)
        if document is None:
            raise DocumentNotFound(document_id)

        vector_ids = await self.repository.get_vector_ids(db, document_id)
        if vector_ids:
            try:
                await self.vector_index.delete_many(vector_ids)
            except Exception as e:
                logger.error(f"Vector cleanup failed for document {document_id}: {e}")
                raise DeletionVectorCleanupError(document_id, str(e)) from e

        await self.repository.delete(db, document_id)
        logger.info(f"Deleted document {document_id} ({document.file_name}) and {len(vector_ids)} vectors")
        return len(vector_ids)

    async def delete_many(self, db: Session, document_ids: List[str]) -> int:
        """
        Delete several documents, stopping at the first failure.

        Returns:
            Number of documents deleted
        """
        deleted = 0
        for document_id in document_ids:
            await self.delete(db, document_id)
            deleted += 1
        return deleted
