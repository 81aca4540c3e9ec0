"""
Pytest configuration file with shared fixtures.
"""
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import ragdesk.db.models  # noqa: F401
from ragdesk.api.deps import create_access_token
from ragdesk.api.endpoints.chat_documents import get_celery_app
from ragdesk.core.config import settings
from ragdesk.db.base_class import Base
from ragdesk.db.database import get_db
from ragdesk.main import app
from ragdesk.schemas.document import FileUpload
from ragdesk.services.llm.vision import GeminiVisionProvider
from ragdesk.services.rag.chunker import SentenceChunker
from ragdesk.services.rag.embeddings import GeminiEmbeddingClient
from ragdesk.services.rag.extractor import ExtractorRegistry
from ragdesk.services.rag.factory import RAGFactory, get_rag_factory
from ragdesk.services.rag.vector_store import PineconeVectorIndex
from ragdesk.services.storage import LocalFileStorage
from tests.fakes import TXT, FakeGenaiClient, FakePineconeIndex, word_count

# Create a test database URL
TEST_DATABASE_URL = "sqlite://"

# Create a test engine
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Create a TestingSessionLocal
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """
    Create a fresh database for each test.
    """
    # Create the database tables
    Base.metadata.create_all(bind=engine)

    # Create a new session for the test
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

    # Drop the database tables
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def pinecone_index():
    """One physical index shared by the personal and library scopes"""
    return FakePineconeIndex()


@pytest.fixture
def genai_client():
    return FakeGenaiClient()


@pytest.fixture
def storage(tmp_path):
    return LocalFileStorage(str(tmp_path))


@pytest.fixture
def store_file(tmp_path):
    """Write bytes into the upload directory and describe them as a FileUpload"""
    def _store(file_name, content, mime_type=TXT, **kwargs):
        if isinstance(content, str):
            content = content.encode("utf-8")
        key = f"{len(list(tmp_path.iterdir()))}-{file_name}"
        (tmp_path / key).write_bytes(content)
        return FileUpload(
            file_url=key,
            file_key=key,
            file_name=file_name,
            mime_type=mime_type,
            size_bytes=len(content),
            **kwargs,
        )
    return _store


@pytest.fixture
def factory(db, pinecone_index, genai_client, storage):
    """RAG factory wired to the fakes and the test database"""
    return RAGFactory(
        personal_index=PineconeVectorIndex(pinecone_index, namespace=""),
        library_index=PineconeVectorIndex(pinecone_index, namespace=""),
        embeddings=GeminiEmbeddingClient(client=genai_client, settings=settings),
        extractors=ExtractorRegistry(GeminiVisionProvider(client=genai_client, settings=settings)),
        storage=storage,
        session_factory=TestingSessionLocal,
        chunker=SentenceChunker(chunk_size=40, chunk_overlap=8, token_counter=word_count),
        settings=settings,
    )


class FakeCelery:
    """Records send_task calls instead of talking to a broker"""

    def __init__(self):
        self.sent = []

    def send_task(self, name, args=None, kwargs=None):
        self.sent.append({"name": name, "args": args, "kwargs": kwargs})
        return SimpleNamespace(id=f"task-{len(self.sent)}")


@pytest.fixture
def celery():
    return FakeCelery()


@pytest.fixture(scope="function")
def client(db, factory, celery):
    """
    Create a test client with a database session.
    """
    def override_get_db():
        try:
            yield db
        finally:
            pass

    # Override the get_db dependency
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rag_factory] = lambda: factory
    app.dependency_overrides[get_celery_app] = lambda: celery

    # Create a test client
    with TestClient(app) as client:
        yield client

    # Remove the override
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_access_token('admin-1', role='admin')}"}


@pytest.fixture
def user_headers():
    return {"Authorization": f"Bearer {create_access_token('user-1')}"}
