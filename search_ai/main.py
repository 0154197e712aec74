import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from search_ai.api.v1 import ingestion
from search_ai.core.config import settings
from search_ai.core.database import SessionLocal, get_sessionmaker
from search_ai.core.rabbitmq import start_rabbitmq_consumer
from search_ai.services.description_provider import LLMImageDescriptionProvider
from search_ai.services.import_service import ProductImportService
from search_ai.services.llm_factory import (
    get_embeddings,
    get_fallback_vision_llm,
    get_vision_llm,
)
from search_ai.services.vector_index import build_vector_index

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Startup ---
    logger.info("🚀 Starting Search AI import service...")

    app.state.http_client = httpx.AsyncClient(timeout=settings.CATALOG_TIMEOUT_SECONDS)
    app.state.vector_index = build_vector_index(
        settings,
        session_factory=get_sessionmaker() if settings.VECTOR_BACKEND == "pgvector" else None,
        embeddings=get_embeddings() if settings.VECTOR_BACKEND == "pgvector" else None,
    )
    app.state.description_provider = LLMImageDescriptionProvider(
        llm=get_vision_llm(),
        fallback_llm=get_fallback_vision_llm(),
        http=app.state.http_client,
    )

    @asynccontextmanager
    async def import_service_scope():
        async with SessionLocal() as db:
            yield ProductImportService(
                db,
                vector_index=app.state.vector_index,
                provider=app.state.description_provider,
                http=app.state.http_client,
            )

    app.state.rabbitmq_connection = None
    if settings.RABBITMQ_URL:
        app.state.rabbitmq_connection = await start_rabbitmq_consumer(import_service_scope)
    else:
        logger.warning("RABBITMQ_URL not set, webhook event consumer disabled")

    yield

    # --- Shutdown ---
    logger.info("🛑 Shutting down services...")
    if app.state.rabbitmq_connection is not None:
        try:
            await app.state.rabbitmq_connection.close()
            logger.info("🐰 RabbitMQ connection closed.")
        except Exception as e:
            logger.error(f"Error closing RabbitMQ: {e}")
    await app.state.http_client.aclose()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

origins = [
    "*"
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ingestion.router, prefix=settings.API_V1_STR, tags=["ingestion"])


@app.get("/api/health")
def health_check():
    return {"status": "ok", "service": settings.PROJECT_NAME}
