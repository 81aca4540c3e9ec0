"""
In-memory stand-ins for the Pinecone index and the google-genai client.

They sit at the SDK seam so the real adapters, orchestrator and services run
unchanged on top of them.
"""
import io
import math
import threading
import zlib
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

DIMENSION = 32

TXT = "text/plain"
PDF = "application/pdf"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PNG = "image/png"


def fake_embedding(text: str) -> List[float]:
    """Normalised bag-of-words vector; texts sharing words score higher"""
    vector = [0.0] * DIMENSION
    for word in text.lower().split():
        word = word.strip(".,!?;:\"'()")
        if word:
            vector[zlib.crc32(word.encode()) % DIMENSION] += 1.0
    norm = math.sqrt(sum(x * x for x in vector)) or 1.0
    return [x / norm for x in vector]


def word_count(text: str) -> int:
    return len(text.split())


class FakePineconeIndex:
    """Mimics the subset of pinecone.Index used by PineconeVectorIndex"""

    def __init__(self):
        self.vectors: Dict[str, Dict[str, Any]] = {}
        self.upsert_batches: List[int] = []
        self.delete_batches: List[int] = []
        self.queries: List[Dict[str, Any]] = []
        self.fail_upsert_after: Optional[int] = None
        self.fail_query = False
        self.fail_delete = False
        self._lock = threading.Lock()

    def upsert(self, vectors, namespace=""):
        with self._lock:
            if self.fail_upsert_after is not None and len(self.upsert_batches) >= self.fail_upsert_after:
                raise RuntimeError("pinecone upsert unavailable")
            self.upsert_batches.append(len(vectors))
            for vector in vectors:
                self.vectors[vector["id"]] = {
                    "values": list(vector["values"]),
                    "metadata": dict(vector["metadata"]),
                    "namespace": namespace,
                }
        return {"upserted_count": len(vectors)}

    @staticmethod
    def _matches_filter(metadata: Dict[str, Any], filter: Optional[Dict[str, Any]]) -> bool:
        for key, condition in (filter or {}).items():
            expected = condition["$eq"] if isinstance(condition, dict) else condition
            if metadata.get(key) != expected:
                return False
        return True

    def query(self, vector, top_k, filter=None, include_metadata=True, namespace=""):
        with self._lock:
            self.queries.append({"top_k": top_k, "filter": filter, "namespace": namespace})
            if self.fail_query:
                raise RuntimeError("pinecone query unavailable")
            scored = []
            for vector_id, record in self.vectors.items():
                if record["namespace"] != namespace or not self._matches_filter(record["metadata"], filter):
                    continue
                score = sum(a * b for a, b in zip(vector, record["values"]))
                scored.append(SimpleNamespace(id=vector_id, score=score, metadata=dict(record["metadata"])))
        scored.sort(key=lambda match: match.score, reverse=True)
        return SimpleNamespace(matches=scored[:top_k])

    def delete(self, ids, namespace=""):
        with self._lock:
            if self.fail_delete:
                raise RuntimeError("pinecone delete unavailable")
            self.delete_batches.append(len(ids))
            for vector_id in ids:
                self.vectors.pop(vector_id, None)
        return {}


class _FakeModels:
    def __init__(self, owner: "FakeGenaiClient"):
        self.owner = owner

    async def embed_content(self, model, contents, config=None):
        owner = self.owner
        owner.embed_calls.append({"size": len(contents), "task_type": config.task_type, "contents": list(contents)})
        if owner.fail_embed_on_call is not None and len(owner.embed_calls) >= owner.fail_embed_on_call:
            raise RuntimeError("embedding quota exceeded")
        embeddings = [SimpleNamespace(values=fake_embedding(text)) for text in contents]
        if owner.drop_embeddings:
            embeddings = embeddings[:-1]
        return SimpleNamespace(embeddings=embeddings)

    async def generate_content(self, model, contents):
        self.owner.generate_calls.append(contents)
        return SimpleNamespace(text=self.owner.image_description)


class FakeGenaiClient:
    """Mimics google.genai.Client().aio.models"""

    def __init__(self, image_description: str = "A bar chart of quarterly revenue. Revenue grew in every quarter."):
        self.embed_calls: List[Dict[str, Any]] = []
        self.generate_calls: List[Any] = []
        self.fail_embed_on_call: Optional[int] = None
        self.drop_embeddings = False
        self.image_description = image_description
        self.aio = SimpleNamespace(models=_FakeModels(self))


def make_pdf(pages: List[str]) -> bytes:
    """Minimal PDF with one line of Helvetica text per page"""
    page_ids = [4 + 2 * i for i in range(len(pages))]
    kids = " ".join(f"{page_id} 0 R" for page_id in page_ids)
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {len(pages)} >>".encode(),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for page_id, text in zip(page_ids, pages):
        stream = f"BT /F1 12 Tf 72 720 Td ({text}) Tj ET".encode()
        objects.append(
            f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            f"/Resources << /Font << /F1 3 0 R >> >> /Contents {page_id + 1} 0 R >>".encode()
        )
        objects.append(b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream")

    out = b"%PDF-1.4\n"
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"
    xref_offset = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode()
    out += f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref_offset}\n%%EOF\n".encode()
    return out


def make_blank_pdf(page_count: int = 2) -> bytes:
    """PDF whose pages carry no text, like a scan"""
    from PyPDF2 import PdfWriter

    writer = PdfWriter()
    for _ in range(page_count):
        writer.add_blank_page(width=612, height=792)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def make_docx(paragraphs: List[str], table_rows: Optional[List[List[str]]] = None) -> bytes:
    from docx import Document

    document = Document()
    for paragraph in paragraphs:
        document.add_paragraph(paragraph)
    if table_rows:
        table = document.add_table(rows=len(table_rows), cols=len(table_rows[0]))
        for row, values in zip(table.rows, table_rows):
            for cell, value in zip(row.cells, values):
                cell.text = value
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def make_xlsx(sheets: Dict[str, List[List[str]]]) -> bytes:
    import pandas as pd

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=name, index=False, header=False)
    return buffer.getvalue()
