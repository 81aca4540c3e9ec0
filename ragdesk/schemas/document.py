from typing import Any, Dict, List, Optional
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ragdesk.db.models.documents import DocumentStatus


class FileUpload(BaseModel):
    """A file that has already been stored and is ready for ingestion"""
    file_url: str = Field(..., description="Storage reference used to presign a download URL")
    file_name: str = Field(..., description="Display file name")
    file_key: Optional[str] = Field(default=None, description="Storage object key")
    mime_type: str = Field(..., description="MIME type reported by the uploader")
    size_bytes: Optional[int] = Field(default=None, description="Size of the file in bytes")
    replace_existing: Optional[bool] = Field(
        default=None,
        description="Library only: True replaces a same-named document, False skips the upload, unset asks",
    )


class ExtractedUnit(BaseModel):
    """One page, sheet or whole document worth of plain text"""
    text: str
    page_label: Optional[str] = None


class IngestionResult(BaseModel):
    success: bool
    document_id: str
    file_name: str
    chunk_count: int = 0
    error: Optional[str] = None


class BatchIngestionResult(BaseModel):
    results: List[IngestionResult] = Field(default_factory=list)
    success_count: int = 0
    fail_count: int = 0
    skipped: List[str] = Field(default_factory=list, description="File names skipped by conflict resolution")

    @classmethod
    def from_results(cls, results: List[IngestionResult], skipped: Optional[List[str]] = None) -> "BatchIngestionResult":
        success_count = sum(1 for r in results if r.success)
        return cls(
            results=results,
            success_count=success_count,
            fail_count=len(results) - success_count,
            skipped=skipped or [],
        )


class VectorRecord(BaseModel):
    id: str
    values: List[float]
    metadata: Dict[str, Any] = Field(default_factory=dict)


class VectorMatch(BaseModel):
    id: str
    score: float
    metadata: Dict[str, Any] = Field(default_factory=dict)


class MatchedChunk(BaseModel):
    """Search hit as handed to the tool-calling layer"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    document_id: str
    file_name: str
    text: str
    page_number: Optional[str] = None
    chunk_index: int
    score: float


class DocumentResponse(BaseModel):
    """Schema for document response"""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="ID of the document")
    file_name: str
    file_key: Optional[str] = None
    file_url: Optional[str] = None
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = None
    status: DocumentStatus
    chunk_count: int = 0
    error_message: Optional[str] = None
    meta: Optional[Dict[str, Any]] = Field(default=None, serialization_alias="metadata")
    created_at: datetime
    updated_at: datetime


class RagDocumentResponse(DocumentResponse):
    user_id: str
    chat_id: Optional[str] = None


class LibraryDocumentResponse(DocumentResponse):
    uploaded_by: Optional[str] = None


class LibraryDocumentPage(BaseModel):
    documents: List[LibraryDocumentResponse]
    total: int
    total_size: int
    limit: int
    offset: int


class LibraryUploadRequest(BaseModel):
    files: List[FileUpload] = Field(..., min_length=1)


class ChatUploadRequest(BaseModel):
    files: List[FileUpload] = Field(..., min_length=1)


class LibraryDeleteRequest(BaseModel):
    document_id: Optional[str] = None
    document_ids: Optional[List[str]] = None

    def ids(self) -> List[str]:
        return self.document_ids or ([self.document_id] if self.document_id else [])
