"""
Retrieval tools exposed to the chat model.

Each tool returns a JSON-serialisable dict with a human-readable ``message``.
Tools never raise: a failed lookup degrades to an empty result so the chat
turn can carry on.
"""
from typing import Any, Dict, Optional
import logging

from sqlalchemy.orm import Session

from ragdesk.core.exceptions import DocumentNotFound
from ragdesk.services.chat_document_service import ChatDocumentService
from ragdesk.services.rag.factory import RAGFactory

logger = logging.getLogger(__name__)

MIN_TOP_K = 1
MAX_TOP_K = 20


def clamp_top_k(top_k: Optional[int], default: int) -> int:
    if top_k is None:
        return default
    return max(MIN_TOP_K, min(MAX_TOP_K, int(top_k)))


class ChatTools:
    """Tools bound to one chat of one user"""

    def __init__(self, factory: RAGFactory, db: Session, chat_id: str, user_id: str):
        self.factory = factory
        self.db = db
        self.chat_id = chat_id
        self.user_id = user_id
        self.documents = ChatDocumentService(factory)

    async def rag_search(self, query: str, top_k: Optional[int] = None) -> Dict[str, Any]:
        """Semantic search over the documents uploaded into this chat"""
        top_k = clamp_top_k(top_k, self.factory.settings.PERSONAL_TOP_K)
        try:
            matches = await self.factory.personal_query().query(query, self.chat_id, self.user_id, top_k)
        except Exception as e:
            logger.error(f"RAG search error: {e}", exc_info=True)
            return {"message": "Failed to search documents.", "results": []}

        if not matches:
            return {"message": "No relevant content found in the uploaded documents.", "results": []}

        results = [
            {
                "documentId": match.metadata.get("documentId"),
                "fileName": match.metadata.get("fileName"),
                "text": match.metadata.get("text", ""),
                "pageNumber": match.metadata.get("pageNumber"),
                "chunkIndex": match.metadata.get("chunkIndex"),
                "score": match.score,
            }
            for match in matches
        ]
        return {"message": f"Found {len(results)} relevant section(s) in the uploaded documents.", "results": results}

    async def library_search(self, query: str, top_k: Optional[int] = None) -> Dict[str, Any]:
        """Semantic search over the shared knowledge library"""
        return await library_search(self.factory, self.db, query, top_k)

    async def list_chat_documents(self) -> Dict[str, Any]:
        try:
            listing = await self.documents.list_documents(self.db, self.chat_id, self.user_id)
        except Exception as e:
            logger.error(f"List documents error: {e}", exc_info=True)
            return {"message": "Failed to list documents.", "documents": []}

        if not listing["documents"]:
            return {"message": "No documents have been uploaded in this chat yet.", "documents": []}
        return {
            "message": f"Found {len(listing['documents'])} document(s) in this chat.",
            **listing,
        }

    async def get_document_preview(self, document_id: str) -> Dict[str, Any]:
        try:
            preview = await self.documents.preview(self.db, document_id, self.chat_id, self.user_id)
        except DocumentNotFound:
            preview = []
        except Exception as e:
            logger.error(f"Get document preview error: {e}", exc_info=True)
            return {"message": "Failed to get document preview.", "preview": []}

        if not preview:
            return {"message": "No content found for this document.", "preview": []}
        return {"message": f"Retrieved {len(preview)} preview section(s).", "preview": preview}

    async def search_documents_by_name(self, search_term: str) -> Dict[str, Any]:
        try:
            documents = await self.documents.search_by_name(self.db, self.chat_id, self.user_id, search_term)
        except Exception as e:
            logger.error(f"Search documents error: {e}", exc_info=True)
            return {"message": "Failed to search documents.", "documents": []}

        if not documents:
            return {"message": f'No documents found matching "{search_term}".', "documents": []}
        return {"message": f'Found {len(documents)} document(s) matching "{search_term}".', "documents": documents}

    async def search_document_chunks(
        self,
        search_text: str,
        document_id: Optional[str] = None,
        limit: int = 10,
    ) -> Dict[str, Any]:
        """Exact text search within chunks, for quotes and specific terms"""
        try:
            chunks = await self.documents.search_chunks(self.db, self.chat_id, self.user_id, search_text, document_id, limit)
        except Exception as e:
            logger.error(f"Search chunks error: {e}", exc_info=True)
            return {"message": "Failed to search document chunks.", "chunks": []}

        if not chunks:
            return {"message": f'No chunks found containing "{search_text}".', "chunks": []}
        return {"message": f'Found {len(chunks)} chunk(s) containing "{search_text}".', "chunks": chunks}


async def library_search(factory: RAGFactory, db: Session, query: str, top_k: Optional[int] = None) -> Dict[str, Any]:
    """
    Search the shared library.

    Returns:
        {"message": ..., "results": [MatchedChunk as camelCase dicts]}
    """
    top_k = clamp_top_k(top_k, factory.settings.LIBRARY_TOP_K)
    try:
        results = await factory.library_query().query(db, query, top_k)
    except Exception as e:
        logger.error(f"Library search error: {e}", exc_info=True)
        return {"message": "Failed to search knowledge library.", "results": []}

    if not results:
        return {"message": "No relevant documents found in the knowledge library.", "results": []}
    return {
        "message": f"Found {len(results)} relevant section(s) from the knowledge library.",
        "results": [result.model_dump(by_alias=True) for result in results],
    }
