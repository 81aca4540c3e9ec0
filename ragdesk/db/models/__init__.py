from ragdesk.db.models.documents import (
    DocumentStatus,
    RagDocument,
    RagChunk,
    LibraryDocument,
    LibraryChunk,
)

__all__ = [
    'DocumentStatus',
    'RagDocument',
    'RagChunk',
    'LibraryDocument',
    'LibraryChunk',
]
