import asyncio
import logging
from typing import List

from search_ai.repositories.vector_mirror import VectorMirrorRepository
from search_ai.schemas.catalog import OperationResult, SearchRecord
from search_ai.services.vector_index import VectorIndex, namespace_for

logger = logging.getLogger(__name__)


class PersistenceSink:
    """
    The only writer of the vector index and of the relational mirror.

    Records go to the tenant namespace of the vector index first, in
    sub-batches sized for the index's request limit, and only then to the
    mirror. A vector index failure aborts the whole chunk write; mirror
    upserts are independent per record.
    """

    def __init__(
        self,
        mirror: VectorMirrorRepository,
        vector_index: VectorIndex,
        batch_size: int = 50,
        batch_pause: float = 0.1,
    ):
        self.mirror = mirror
        self.vector_index = vector_index
        self.batch_size = batch_size
        self.batch_pause = batch_pause

    async def write_chunk(self, records: List[SearchRecord], app_id: int) -> int:
        """Returns the number of mirror rows written; raises VectorIndexError."""
        if not records:
            return 0

        namespace = namespace_for(app_id)
        index_records = [record.to_index_record() for record in records]
        total_batches = (len(index_records) + self.batch_size - 1) // self.batch_size

        logger.info(
            f"[VectorIndex] Upserting {len(index_records)} records to namespace {namespace} in batches of {self.batch_size}"
        )
        for i in range(0, len(index_records), self.batch_size):
            batch = index_records[i : i + self.batch_size]
            batch_number = i // self.batch_size + 1
            try:
                await self.vector_index.upsert_batch(namespace, batch)
            except Exception as e:
                logger.error(f"[VectorIndex] Failed to upsert batch {batch_number}/{total_batches}: {e}")
                raise
            logger.info(f"[VectorIndex] Upserted batch {batch_number}/{total_batches} ({len(batch)} records)")

            if i + self.batch_size < len(index_records):
                await asyncio.sleep(self.batch_pause)

        written = 0
        for record in records:
            try:
                await self.mirror.upsert(record)
                written += 1
            except Exception as e:
                await self.mirror.db.rollback()
                logger.error(f"[Database] Failed to upsert product {record.product_id} for app {app_id}: {e}")

        logger.info(f"[Database] Upserted {written}/{len(records)} products for app {app_id}")
        return written

    async def delete_product(self, app_id: int, product_id: str) -> OperationResult:
        try:
            await self.vector_index.delete_one(namespace_for(app_id), product_id)
            await self.mirror.delete_product(app_id, product_id)
        except Exception as e:
            await self.mirror.db.rollback()
            logger.error(f"❌ Error deleting product {product_id} from app {app_id}: {e}")
            return OperationResult(success=False, message=str(e))

        return OperationResult(
            success=True,
            message=f"Product {product_id} deleted successfully from app {app_id}",
        )

    async def set_published(self, app_id: int, product_id: str, is_published: bool) -> OperationResult:
        try:
            await self.vector_index.update_metadata(
                namespace_for(app_id), product_id, {"isPublished": is_published}
            )
            await self.mirror.set_published(app_id, product_id, is_published)
        except Exception as e:
            await self.mirror.db.rollback()
            logger.error(
                f"❌ Error setting published status for product {product_id} in app {app_id}: {e}"
            )
            return OperationResult(success=False, message=str(e))

        return OperationResult(
            success=True,
            message=f"Published status for product {product_id} in app {app_id} set to {is_published}",
        )
