from typing import Dict, List, Optional, Tuple
import logging

from ragdesk.core.exceptions import NoExtractableContent, UnsupportedFileType
from ragdesk.schemas.document import ExtractedUnit
from ragdesk.services.llm.vision import VisionProvider
from ragdesk.services.rag.extractor.extractor import (
    DocxExtractor,
    ExtractionSource,
    Extractor,
    ImageExtractor,
    PDFExtractor,
    SpreadsheetExtractor,
    TextExtractor,
)

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"

DOCUMENT_MIME_TYPES: Dict[str, str] = {
    PDF_MIME: ".pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "text/plain": ".txt",
    "application/vnd.ms-excel": ".xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ".xlsx",
}

IMAGE_MIME_TYPES: Dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}

SCANNED_PDF_MESSAGE = (
    "This PDF appears to be a scanned or image-based document with no extractable text. "
    "Please upload a text-based PDF, or try uploading the document as images for analysis."
)


class ExtractorRegistry:
    """
    Dispatch table from MIME type to extraction strategy.

    Images are only registered when a vision provider is supplied; without one
    they are reported as unsupported.
    """

    def __init__(self, vision: Optional[VisionProvider] = None):
        pdf, docx, text, sheet = PDFExtractor(), DocxExtractor(), TextExtractor(), SpreadsheetExtractor()
        by_extension: Dict[str, Extractor] = {
            ".pdf": pdf,
            ".docx": docx,
            ".txt": text,
            ".xls": sheet,
            ".xlsx": sheet,
        }
        self._strategies: Dict[str, Tuple[str, Extractor]] = {
            mime: (ext, by_extension[ext]) for mime, ext in DOCUMENT_MIME_TYPES.items()
        }
        if vision is not None:
            image = ImageExtractor(vision)
            for mime, ext in IMAGE_MIME_TYPES.items():
                self._strategies[mime] = (ext, image)

    @staticmethod
    def _normalize(mime_type: Optional[str]) -> str:
        return (mime_type or "").split(";")[0].strip().lower()

    def is_supported(self, mime_type: Optional[str]) -> bool:
        return self._normalize(mime_type) in self._strategies

    def supported_extensions(self) -> List[str]:
        return sorted({ext for ext, _ in self._strategies.values()})

    def extension_for(self, mime_type: Optional[str]) -> str:
        return self._lookup(mime_type)[0]

    def is_generative(self, mime_type: Optional[str]) -> bool:
        return self._lookup(mime_type)[1].generative

    def _lookup(self, mime_type: Optional[str]) -> Tuple[str, Extractor]:
        strategy = self._strategies.get(self._normalize(mime_type))
        if strategy is None:
            raise UnsupportedFileType(mime_type, self.supported_extensions())
        return strategy

    async def extract(self, source: ExtractionSource) -> List[ExtractedUnit]:
        """
        Extract text units from a stored file.

        Raises:
            UnsupportedFileType: If no strategy handles the MIME type
            NoExtractableContent: If a literal format yields only blank text
        """
        ext, extractor = self._lookup(source.mime_type)
        logger.info(f"Extracting {source.file_name} with {extractor.__class__.__name__}")
        units = await extractor.extract(source)

        if not units:
            raise NoExtractableContent("No content extracted from document")

        if not extractor.generative and not any(unit.text.strip() for unit in units):
            if ext == ".pdf":
                raise NoExtractableContent(SCANNED_PDF_MESSAGE)
            raise NoExtractableContent()

        return units
