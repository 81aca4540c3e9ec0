from abc import ABC, abstractmethod
from typing import List, Optional
import asyncio
import io
import logging

import PyPDF2
import pandas as pd
from docx import Document as DocxDocument

from ragdesk.core.exceptions import NoExtractableContent
from ragdesk.schemas.document import ExtractedUnit
from ragdesk.services.llm.vision import VisionProvider
from ragdesk.services.storage import fetch_bytes

logger = logging.getLogger(__name__)


class ExtractionSource:
    """
    A stored file as seen by the extractors.

    Content is downloaded from the presigned URL on first use and cached, so
    extractors that never need the bytes (images) never download them.
    """

    def __init__(self, url: str, file_name: str, mime_type: str, content: Optional[bytes] = None):
        self.url = url
        self.file_name = file_name
        self.mime_type = mime_type
        self._content = content

    async def read(self) -> bytes:
        if self._content is None:
            self._content = await fetch_bytes(self.url)
            logger.info(f"Downloaded file: {self.file_name}, size: {len(self._content)} bytes")
        return self._content


class Extractor(ABC):
    """
    Abstract base class for extractors that turn a stored file into text units.
    """

    # Extraction is generative rather than literal for this format
    generative: bool = False

    @abstractmethod
    async def extract(self, source: ExtractionSource) -> List[ExtractedUnit]:
        """
        Extract ordered text units from a document.

        Args:
            source: The stored file

        Returns:
            Ordered list of units, each optionally tagged with a page or sheet label
        """
        pass


class PDFExtractor(Extractor):
    """
    Extractor for PDF documents, one unit per page.
    """

    async def extract(self, source: ExtractionSource) -> List[ExtractedUnit]:
        content = await source.read()
        return await asyncio.to_thread(self._extract_pages, content)

    @staticmethod
    def _extract_pages(content: bytes) -> List[ExtractedUnit]:
        reader = PyPDF2.PdfReader(io.BytesIO(content))
        units = []
        for i, page in enumerate(reader.pages):
            units.append(ExtractedUnit(text=page.extract_text() or "", page_label=str(i + 1)))
        logger.info(f"Extracted {len(units)} pages from PDF")
        return units


class DocxExtractor(Extractor):
    """
    Extractor for DOCX documents; paragraphs and table rows form a single unit.
    """

    async def extract(self, source: ExtractionSource) -> List[ExtractedUnit]:
        content = await source.read()
        return await asyncio.to_thread(self._extract_text, content)

    @staticmethod
    def _extract_text(content: bytes) -> List[ExtractedUnit]:
        doc = DocxDocument(io.BytesIO(content))
        lines = [paragraph.text for paragraph in doc.paragraphs if paragraph.text.strip()]
        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells]
                if any(cells):
                    lines.append("\t".join(cells))
        return [ExtractedUnit(text="\n".join(lines))]


class TextExtractor(Extractor):
    """
    Extractor for plain text documents.
    """

    async def extract(self, source: ExtractionSource) -> List[ExtractedUnit]:
        content = await source.read()
        return [ExtractedUnit(text=content.decode("utf-8-sig", errors="replace"))]


class SpreadsheetExtractor(Extractor):
    """
    Extractor for XLS/XLSX workbooks, one CSV unit per non-empty sheet.
    """

    async def extract(self, source: ExtractionSource) -> List[ExtractedUnit]:
        content = await source.read()
        return await asyncio.to_thread(self._extract_sheets, content)

    @staticmethod
    def _extract_sheets(content: bytes) -> List[ExtractedUnit]:
        sheets = pd.read_excel(io.BytesIO(content), sheet_name=None, header=None, dtype=str)
        units = []
        for sheet_name, frame in sheets.items():
            frame = frame.dropna(how="all").dropna(axis=1, how="all")
            csv_text = frame.to_csv(index=False, header=False)
            if not csv_text.strip():
                logger.info(f"Skipping empty sheet {sheet_name}")
                continue
            units.append(ExtractedUnit(text=csv_text, page_label=str(sheet_name)))
        return units


class ImageExtractor(Extractor):
    """
    Extractor for images; the vision model's description stands in for text.
    """

    generative = True

    def __init__(self, vision: VisionProvider):
        self.vision = vision

    async def extract(self, source: ExtractionSource) -> List[ExtractedUnit]:
        description = await self.vision.describe_image(source.url, source.file_name, source.mime_type)
        if not description.strip():
            raise NoExtractableContent("Could not extract content from image")
        return [ExtractedUnit(text=description)]
