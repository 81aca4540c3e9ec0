from fastapi import APIRouter

from ragdesk.api.endpoints import chat_documents, library

api_router = APIRouter()
api_router.include_router(library.router, prefix="/library", tags=["library"])
api_router.include_router(chat_documents.router, prefix="/chats", tags=["chat-documents"])
api_router.include_router(chat_documents.user_router, prefix="/documents", tags=["chat-documents"])
