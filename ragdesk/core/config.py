from typing import List, Optional, Union
from pydantic_settings import BaseSettings
from pydantic import AnyHttpUrl, field_validator


class Settings(BaseSettings):
    # App Settings
    APP_NAME: str = "RagDesk"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Security
    SECRET_KEY: str = "your-secret-key"
    ALGORITHM: str = "HS256"

    # Vector Store
    PINECONE_API_KEY: str = ""
    CHATBOT_PINECONE_INDEX_NAME: str = "ragdesk-chat"
    LIBRARY_PINECONE_INDEX_NAME: Optional[str] = None
    PINECONE_PERSONAL_NAMESPACE: str = ""
    PINECONE_LIBRARY_NAMESPACE: str = ""

    # Embeddings and vision (Gemini)
    GEMINI_API_KEY: str = ""
    EMBEDDING_MODEL: str = "gemini-embedding-001"
    EMBEDDING_DIMENSION: int = 768
    VISION_MODEL: str = "gemini-2.0-flash"

    # Pipeline
    EMBEDDING_BATCH_SIZE: int = 96  # provider limit per embed call
    VECTOR_BATCH_SIZE: int = 100  # Pinecone upsert/delete batch
    CHUNK_SIZE_TOKENS: int = 600
    CHUNK_OVERLAP_TOKENS: int = 100
    INGEST_CONCURRENCY: int = 10
    PRESIGN_TTL_SECONDS: int = 60 * 15

    # RAG
    PERSONAL_TOP_K: int = 5
    LIBRARY_TOP_K: int = 10
    PREVIEW_CHUNKS: int = 3

    # File Storage
    UPLOAD_DIR: str = "/data/uploads"

    # Database settings
    MYSQL_HOST: str = "localhost"
    MYSQL_PORT: int = 3306
    MYSQL_USER: str = "ragdesk"
    MYSQL_PASSWORD: str = "ragdesk"
    MYSQL_DATABASE: str = "ragdesk"

    @property
    def DATABASE_URL(self) -> str:
        """Get SQLAlchemy database URL"""
        return f"mysql+pymysql://{self.MYSQL_USER}:{self.MYSQL_PASSWORD}@{self.MYSQL_HOST}:{self.MYSQL_PORT}/{self.MYSQL_DATABASE}"

    @property
    def library_index_name(self) -> str:
        """Library index, falling back to the chat index when unset"""
        return self.LIBRARY_PINECONE_INDEX_NAME or self.CHATBOT_PINECONE_INDEX_NAME

    @property
    def library_shares_personal_index(self) -> bool:
        """True when both corpora live in the same physical index and namespace"""
        return (
            self.library_index_name == self.CHATBOT_PINECONE_INDEX_NAME
            and self.PINECONE_LIBRARY_NAMESPACE == self.PINECONE_PERSONAL_NAMESPACE
        )

    # Celery
    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    # CORS
    BACKEND_CORS_ORIGINS: List[AnyHttpUrl] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, (list, str)):
            return v

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
