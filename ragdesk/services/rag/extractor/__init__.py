from ragdesk.services.rag.extractor.extractor import ExtractionSource, Extractor
from ragdesk.services.rag.extractor.extractor_factory import (
    DOCUMENT_MIME_TYPES,
    IMAGE_MIME_TYPES,
    ExtractorRegistry,
)

__all__ = [
    'ExtractionSource',
    'Extractor',
    'ExtractorRegistry',
    'DOCUMENT_MIME_TYPES',
    'IMAGE_MIME_TYPES',
]
