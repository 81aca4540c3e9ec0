from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel

from ragdesk.core.config import settings
from ragdesk.services.chat_document_service import ChatDocumentService
from ragdesk.services.library_service import LibraryService
from ragdesk.services.rag.factory import RAGFactory, get_rag_factory

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token")

ACCESS_TOKEN_EXPIRE_MINUTES = 60


class CurrentUser(BaseModel):
    """Identity carried by the bearer token; users are managed elsewhere"""
    id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


async def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id = payload.get("sub")
        if not user_id:
            raise HTTPException(status_code=401, detail="Invalid token")
        return CurrentUser(id=user_id, role=payload.get("role", "user"))
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")


async def require_admin(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not current_user.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden")
    return current_user


def create_access_token(user_id: str, role: str = "user", expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a new JWT access token for a user
    Args:
        user_id: The ID of the user
        role: "user" or "admin"
        expires_delta: Optional expiration time delta
    Returns:
        str: JWT access token
    """
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": user_id, "role": role, "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def get_library_service(factory: RAGFactory = Depends(get_rag_factory)) -> LibraryService:
    """Dependency for LibraryService"""
    return LibraryService(factory)


def get_chat_document_service(factory: RAGFactory = Depends(get_rag_factory)) -> ChatDocumentService:
    """Dependency for ChatDocumentService"""
    return ChatDocumentService(factory)
