import asyncio
import logging
from typing import Any, Callable, Dict, List, Protocol

from google.api_core.exceptions import ResourceExhausted
from pinecone import Pinecone
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from search_ai.core.config import Settings
from search_ai.core.exceptions import ConfigurationError, VectorIndexError
from search_ai.models.product import ProductEmbedding

logger = logging.getLogger(__name__)


def namespace_for(app_id: int) -> str:
    return f"app_{app_id}"


class VectorIndex(Protocol):
    async def upsert_batch(self, namespace: str, records: List[Dict[str, Any]]) -> None: ...

    async def delete_one(self, namespace: str, record_id: str) -> None: ...

    async def update_metadata(self, namespace: str, record_id: str, fields: Dict[str, Any]) -> None: ...


class PineconeVectorIndex:
    """Pinecone index with integrated embedding (the `text` field is embedded server-side)."""

    def __init__(self, index: Any):
        self.index = index

    async def _call(self, operation: str, fn: Callable, **kwargs) -> Any:
        try:
            # The Pinecone SDK is synchronous
            return await asyncio.to_thread(fn, **kwargs)
        except Exception as e:
            raise VectorIndexError(f"Pinecone {operation} failed: {e}", original_error=e) from e

    async def upsert_batch(self, namespace: str, records: List[Dict[str, Any]]) -> None:
        await self._call("upsert", self.index.upsert_records, namespace=namespace, records=records)

    async def delete_one(self, namespace: str, record_id: str) -> None:
        await self._call("delete", self.index.delete, ids=[record_id], namespace=namespace)

    async def update_metadata(self, namespace: str, record_id: str, fields: Dict[str, Any]) -> None:
        await self._call(
            "update", self.index.update, id=record_id, set_metadata=fields, namespace=namespace
        )


class PgVectorIndex:
    """Vector index stored in Postgres with pgvector; embeddings computed client-side."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], embeddings: Any):
        self.session_factory = session_factory
        self.embeddings = embeddings

    @retry(
        retry=retry_if_exception_type(ResourceExhausted),
        wait=wait_exponential(multiplier=1, min=2, max=60),
        stop=stop_after_attempt(5),
        reraise=True,
    )
    async def _embed_documents_safe(self, texts: List[str]) -> List[List[float]]:
        return await self.embeddings.aembed_documents(texts)

    async def upsert_batch(self, namespace: str, records: List[Dict[str, Any]]) -> None:
        try:
            vectors = await self._embed_documents_safe([r["text"] for r in records])
            async with self.session_factory() as db:
                for record, vector in zip(records, vectors):
                    metadata = {k: v for k, v in record.items() if k not in ("_id", "text")}
                    stmt = insert(ProductEmbedding).values(
                        namespace=namespace,
                        product_id=record["_id"],
                        embedding=vector,
                        content=record["text"],
                        metadata_=metadata,
                    )
                    stmt = stmt.on_conflict_do_update(
                        constraint="product_embeddings_namespace_product_uq",
                        set_={
                            "embedding": stmt.excluded["embedding"],
                            "content": stmt.excluded["content"],
                            "metadata": stmt.excluded["metadata"],
                        },
                    )
                    await db.execute(stmt)
                await db.commit()
        except Exception as e:
            raise VectorIndexError(f"pgvector upsert failed: {e}", original_error=e) from e

    async def delete_one(self, namespace: str, record_id: str) -> None:
        try:
            async with self.session_factory() as db:
                row = await self._get_row(db, namespace, record_id)
                if row:
                    await db.delete(row)
                    await db.commit()
        except Exception as e:
            raise VectorIndexError(f"pgvector delete failed: {e}", original_error=e) from e

    async def update_metadata(self, namespace: str, record_id: str, fields: Dict[str, Any]) -> None:
        try:
            async with self.session_factory() as db:
                row = await self._get_row(db, namespace, record_id)
                if row is None:
                    raise LookupError(f"record {record_id} not found in {namespace}")
                row.metadata_ = {**(row.metadata_ or {}), **fields}
                await db.commit()
        except Exception as e:
            raise VectorIndexError(f"pgvector update failed: {e}", original_error=e) from e

    @staticmethod
    async def _get_row(db: AsyncSession, namespace: str, record_id: str):
        result = await db.execute(
            select(ProductEmbedding).filter_by(namespace=namespace, product_id=record_id)
        )
        return result.scalars().first()


def build_vector_index(config: Settings, session_factory=None, embeddings=None) -> VectorIndex:
    """Resolves the configured backend; clients are created here, never at import."""
    backend = config.VECTOR_BACKEND.lower()

    if backend == "pinecone":
        if not config.PINECONE_API_KEY:
            raise ConfigurationError("PINECONE_API_KEY environment variable is required")
        client = Pinecone(api_key=config.PINECONE_API_KEY)
        logger.info(f"🌲 Using Pinecone index '{config.PINECONE_INDEX_NAME}'")
        return PineconeVectorIndex(client.Index(config.PINECONE_INDEX_NAME))

    if backend == "pgvector":
        if session_factory is None or embeddings is None:
            raise ConfigurationError("pgvector backend needs a session factory and an embedding model")
        logger.info("🐘 Using pgvector index")
        return PgVectorIndex(session_factory, embeddings)

    raise ConfigurationError(f"Unknown VECTOR_BACKEND: {config.VECTOR_BACKEND}")
