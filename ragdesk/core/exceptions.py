"""
Error taxonomy for the ingestion and retrieval pipeline.

Every error carries a user-facing ``message``; the orchestrator stores it as the
document's ``error_message`` and the HTTP layer returns it in the response body.
"""
from typing import Optional


class RagError(Exception):
    """Base class for pipeline errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnsupportedFileType(RagError):
    def __init__(self, mime_type: Optional[str], supported: Optional[list] = None):
        self.mime_type = mime_type
        hint = f" Supported: {', '.join(supported)}" if supported else ""
        super().__init__(f"Unsupported file type: {mime_type}.{hint}")


class NoExtractableContent(RagError):
    """Extraction produced no usable text (scanned PDF, empty file)"""

    DEFAULT_MESSAGE = (
        "This document appears to have no extractable text. "
        "For scanned documents, try uploading the pages as images."
    )

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.DEFAULT_MESSAGE)


class ContentDownloadError(RagError):
    """The stored object could not be fetched"""


class EmbeddingProviderError(RagError):
    """Upstream embedding call failed"""


class VectorIndexError(RagError):
    """Upstream vector store call failed"""


class DocumentNotFound(RagError):
    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document {document_id} not found")


class DocumentConflict(RagError):
    """
    A library document with the same file name already exists, or the name
    repeats within one upload (``existing_document_id`` is None then)
    """

    def __init__(self, file_name: str, existing_document_id: Optional[str]):
        self.file_name = file_name
        self.existing_document_id = existing_document_id
        super().__init__(f'A file named "{file_name}" already exists')


class DeletionVectorCleanupError(RagError):
    """Vector deletion failed; the document row was left intact"""

    def __init__(self, document_id: str, reason: str):
        self.document_id = document_id
        super().__init__(f"Failed to remove search index entries for document {document_id}: {reason}")
