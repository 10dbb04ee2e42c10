# main.py
"""Main application: logging, database initialization and routes"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from config import settings
from services.logger_config import setup_logging
from database.session import init_db
from api.endpoints import router

setup_logging()
logger = logging.getLogger(settings.LOGGER_NAME)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting application...")

    # Database initialization (chat session store)
    if settings.SESSION_STORE_TYPE == "sql":
        await init_db()
        logger.info("Database initialized")

    if not settings.GROQ_API_KEY:
        logger.warning("GROQ_API_KEY is not set: quiz generation and chat are disabled")
    if not settings.MISTRAL_API_KEY:
        logger.warning("MISTRAL_API_KEY is not set: PDF, image and slide-image OCR are disabled")

    logger.info("Services initialized")
    yield

    logger.info("Application shutdown complete")

app = FastAPI(
    title=settings.APP_TITLE,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

app.include_router(router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level="info"
    )
