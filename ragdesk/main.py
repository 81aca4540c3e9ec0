import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ragdesk.api.api import api_router
from ragdesk.core.config import settings
from ragdesk.core.exceptions import RagError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS] or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.exception_handler(RagError)
async def rag_error_handler(request: Request, exc: RagError):
    logger.error(f"Unhandled pipeline error on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=500, content={"detail": exc.message})


@app.get("/")
async def root():
    return {"message": "Welcome to RagDesk API"}
