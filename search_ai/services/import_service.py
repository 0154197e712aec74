import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from search_ai.core.config import Settings, settings
from search_ai.core.exceptions import CatalogFetchError, ConfigurationError
from search_ai.repositories.app import AppRepository
from search_ai.repositories.vector_mirror import VectorMirrorRepository
from search_ai.schemas.catalog import (
    EnrichmentOutcome,
    ImportJobState,
    ImportResult,
    OperationResult,
    RawProduct,
)
from search_ai.services.catalog.base import CatalogRegistry, CatalogSource
from search_ai.services.catalog.registry import default_registry
from search_ai.services.description_cache import DescriptionCache
from search_ai.services.description_provider import ImageDescriptionProvider
from search_ai.services.enrichment import ProductEnricher, image_checksum
from search_ai.services.persistence import PersistenceSink
from search_ai.services.vector_index import VectorIndex

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


async def gather_in_groups(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    width: int,
    pause: float = 0.0,
) -> List[R]:
    """
    Runs `worker` over `items` with at most `width` calls in flight.

    Each group is awaited in full before the next one starts, with `pause`
    seconds between groups. Results keep the input order.
    """
    results: List[R] = []
    for start in range(0, len(items), width):
        group = items[start : start + width]
        results.extend(await asyncio.gather(*(worker(item) for item in group)))
        if start + width < len(items):
            await asyncio.sleep(pause)
    return results


class ImportJob:
    """Tracks the state of one tenant import."""

    def __init__(self, app_id: int):
        self.app_id = app_id
        self.state = ImportJobState.FETCHING
        self.chunk_number: Optional[int] = None

    def advance(self, state: ImportJobState, chunk_number: Optional[int] = None) -> None:
        self.state = state
        self.chunk_number = chunk_number
        suffix = f" ({chunk_number})" if chunk_number is not None else ""
        logger.debug(f"[Import app {self.app_id}] -> {state.value}{suffix}")


class ProductImportService:
    def __init__(
        self,
        db: AsyncSession,
        vector_index: VectorIndex,
        provider: ImageDescriptionProvider,
        http: httpx.AsyncClient,
        registry: CatalogRegistry = default_registry,
        config: Settings = settings,
    ):
        self.db = db
        self.http = http
        self.registry = registry
        self.apps = AppRepository(db)
        self.mirror = VectorMirrorRepository(db)
        self.cache = DescriptionCache(self.mirror)
        self.enricher = ProductEnricher(self.cache, provider)
        self.sink = PersistenceSink(
            self.mirror,
            vector_index,
            batch_size=config.VECTOR_UPSERT_BATCH_SIZE,
            batch_pause=config.VECTOR_BATCH_PAUSE_SECONDS,
        )
        self.chunk_size = config.IMPORT_CHUNK_SIZE
        self.max_concurrent_ai_calls = config.MAX_CONCURRENT_AI_CALLS
        self.ai_group_pause = config.AI_GROUP_PAUSE_SECONDS
        self.chunk_pause = config.CHUNK_PAUSE_SECONDS

    async def _open_catalog_source(self, app_id: int) -> CatalogSource:
        plugin_name = await self.apps.get_plugin_name(app_id)
        if not plugin_name:
            raise ConfigurationError(f"Plugin not found for app ID: {app_id}", app_id=app_id)

        source = self.registry.create(plugin_name, app_id, self.db, self.http)
        await source.init()
        return source

    async def _fetch_products(self, app_id: int) -> List[RawProduct]:
        source = await self._open_catalog_source(app_id)
        try:
            product_list = await source.fetch_all()
        except CatalogFetchError:
            raise
        except Exception as e:
            raise CatalogFetchError(
                f"Failed to get products for app {app_id}: {e}", app_id=app_id, original_error=e
            ) from e
        return list(product_list.products)

    async def process_and_store_products(self, app_id: int) -> ImportResult:
        job = ImportJob(app_id)

        try:
            products = await self._fetch_products(app_id)
        except (ConfigurationError, CatalogFetchError) as e:
            job.advance(ImportJobState.FAILED)
            logger.error(f"❌ Import for app {app_id} aborted: {e}")
            raise

        total_chunks = (len(products) + self.chunk_size - 1) // self.chunk_size
        logger.info(
            f"Processing {len(products)} products for app {app_id} in chunks of {self.chunk_size}"
        )

        imported = 0
        for i in range(0, len(products), self.chunk_size):
            chunk = products[i : i + self.chunk_size]
            chunk_number = i // self.chunk_size + 1
            logger.info(f"\n🔄 Processing chunk {chunk_number}/{total_chunks} ({len(chunk)} products)")

            job.advance(ImportJobState.CHUNK_PROCESSING, chunk_number)
            start_time = time.monotonic()
            outcomes = await self._process_chunk(chunk, app_id, chunk_number)
            records = [outcome.record for outcome in outcomes if outcome.ok]
            failed = [outcome for outcome in outcomes if not outcome.ok]
            logger.info(
                f"[Chunk {chunk_number}] Completed {len(records)}/{len(chunk)} products "
                f"in {time.monotonic() - start_time:.1f}s ({len(failed)} skipped)"
            )

            if records:
                job.advance(ImportJobState.PERSISTING, chunk_number)
                try:
                    await self.sink.write_chunk(records, app_id)
                    imported += len(records)
                    logger.info(
                        f"✅ [Chunk {chunk_number}] Stored {len(records)} products. Total processed: {imported}/{len(products)}"
                    )
                except Exception as e:
                    logger.error(f"❌ [Chunk {chunk_number}] Failed to store products: {e}")
            else:
                logger.warning(f"⚠️ [Chunk {chunk_number}] No products were successfully processed")

            if i + self.chunk_size < len(products):
                await asyncio.sleep(self.chunk_pause)

        job.advance(ImportJobState.COMPLETED if imported > 0 else ImportJobState.FAILED)
        logger.info(
            f"\n🎉 Completed {total_chunks} chunks for app {app_id}. Products stored: {imported}/{len(products)}"
        )

        if imported == len(products) and imported > 0:
            message = "All products processed and stored successfully"
        else:
            message = f"Processed {imported} out of {len(products)} products"

        return ImportResult(
            message=message,
            imported_count=imported,
            total_count=len(products),
            status=200 if imported > 0 else 500,
            state=job.state,
        )

    async def _prefetch_descriptions(
        self, chunk: List[RawProduct], app_id: int, chunk_number: int
    ) -> Dict[str, str]:
        checksums = [c for c in (image_checksum(p) for p in chunk) if c]
        if not checksums:
            logger.info(f"[Chunk {chunk_number}] No images to pre-check in this chunk")
            return {}

        logger.info(f"[Chunk {chunk_number}] Pre-checking {len(checksums)} image descriptions...")
        try:
            cached = await self.cache.lookup(app_id, checksums)
        except Exception as e:
            await self.db.rollback()
            logger.error(f"[Chunk {chunk_number}] Cache lookup failed, generating all descriptions: {e}")
            return {}

        logger.info(f"[Chunk {chunk_number}] Found {len(cached)} cached image descriptions")
        return cached

    async def _process_chunk(
        self, chunk: List[RawProduct], app_id: int, chunk_number: int
    ) -> List[EnrichmentOutcome]:
        cache = await self._prefetch_descriptions(chunk, app_id, chunk_number)

        fast_path: List[RawProduct] = []
        slow_path: List[RawProduct] = []
        for product in chunk:
            checksum_ = image_checksum(product)
            if checksum_ is None or checksum_ in cache:
                fast_path.append(product)
            else:
                slow_path.append(product)

        logger.info(
            f"[Chunk {chunk_number}] {len(fast_path)} products have cached data, "
            f"{len(slow_path)} need image processing"
        )

        outcomes = []
        for product in fast_path:
            outcomes.append(await self._enrich_outcome(product, app_id, cache, chunk_number))

        async def enrich_one(product: RawProduct) -> EnrichmentOutcome:
            return await self._enrich_outcome(product, app_id, cache, chunk_number)

        outcomes.extend(
            await gather_in_groups(
                slow_path, enrich_one, self.max_concurrent_ai_calls, self.ai_group_pause
            )
        )
        return outcomes

    async def _enrich_outcome(
        self, product: RawProduct, app_id: int, cache: Mapping[str, str], chunk_number: int
    ) -> EnrichmentOutcome:
        product_id = str(product.product_id) if product.product_id is not None else None
        try:
            record = await self.enricher.enrich_with_prefetched_cache(product, app_id, cache)
        except Exception as e:
            logger.error(f"[Chunk {chunk_number}] ❌ Failed to process product {product_id}: {e}")
            return EnrichmentOutcome.failure(product_id, str(e))

        if record is None:
            return EnrichmentOutcome.failure(product_id, "Product is missing id or name")
        return EnrichmentOutcome.success(record)

    async def upsert_single_product(self, product: RawProduct, app_id: int) -> ImportResult:
        try:
            record = await self.enricher.enrich(product, app_id)
            if record is None:
                return ImportResult(
                    message="Failed to process product",
                    imported_count=0,
                    total_count=1,
                    status=500,
                    state=ImportJobState.FAILED,
                )
            await self.sink.write_chunk([record], app_id)
        except Exception as e:
            logger.error(f"❌ Error upserting product {product.product_id} for app {app_id}: {e}", exc_info=True)
            return ImportResult(
                message=f"Failed to upsert product {product.product_id}: {e}",
                imported_count=0,
                total_count=1,
                status=500,
                state=ImportJobState.FAILED,
            )

        return ImportResult(
            message="Product processed and stored successfully",
            imported_count=1,
            total_count=1,
            status=200,
        )

    async def upsert_from_payload(self, app_id: int, payload: Dict[str, Any]) -> ImportResult:
        """Webhook path: the tenant's plugin maps the raw payload first."""
        source = await self._open_catalog_source(app_id)
        product = source.parse_product(payload)
        return await self.upsert_single_product(product, app_id)

    async def delete_product(self, app_id: int, product_id: str) -> OperationResult:
        return await self.sink.delete_product(app_id, product_id)

    async def set_published_status(self, app_id: int, product_id: str, is_published: bool) -> OperationResult:
        return await self.sink.set_published(app_id, product_id, is_published)

    async def set_published_status_with_fetch(
        self, app_id: int, product_id: str, is_published: bool
    ) -> OperationResult:
        try:
            if await self.mirror.exists(app_id, product_id):
                return await self.set_published_status(app_id, product_id, is_published)

            source = await self._open_catalog_source(app_id)
            if not source.supports_fetch_by_id:
                return OperationResult(
                    success=False,
                    message=f"Plugin {source.plugin_name} does not support fetching individual products",
                )

            product = await source.fetch_by_id(product_id)
            if product is None:
                return OperationResult(
                    success=False, message=f"Product {product_id} not found in external API"
                )

            # The webhook value wins over whatever the platform returned
            product = product.model_copy(update={"is_published": is_published})
            result = await self.upsert_single_product(product, app_id)
        except Exception as e:
            logger.error(
                f"❌ Error setting published status with fetch for product {product_id} in app {app_id}: {e}"
            )
            return OperationResult(success=False, message=str(e))

        if result.status != 200:
            return OperationResult(
                success=False, message=f"Failed to fetch and upsert product {product_id}"
            )
        return OperationResult(
            success=True,
            message=f"Product {product_id} fetched and published status set to {is_published}",
        )
