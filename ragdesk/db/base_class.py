from datetime import datetime
import uuid

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base

# Create base class for SQLAlchemy models
Base = declarative_base()


def generate_id() -> str:
    return str(uuid.uuid4())


# Define a base model class with common fields
class BaseModel(Base):
    """Base model class with common fields for all SQLAlchemy models"""
    __abstract__ = True

    id = Column(String(36), primary_key=True, default=generate_id)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
