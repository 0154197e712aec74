import logging
import re
from typing import Mapping, Optional

from search_ai.core.exceptions import ImageDescriptionError
from search_ai.schemas.catalog import RawProduct, SearchRecord
from search_ai.services.checksum import checksum
from search_ai.services.description_cache import DescriptionCache
from search_ai.services.description_provider import ImageDescriptionProvider

logger = logging.getLogger(__name__)

_SENTENCE_BREAK = re.compile(r"([.!?]) ")
_CLAUSE_BREAK = re.compile(r"(\w+)([,;]) ", re.ASCII)


def normalize_image_description(text: str) -> str:
    """One sentence or clause per line, whitespace collapsed, no empty lines."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"\s+", " ", text).strip()
    text = _SENTENCE_BREAK.sub(r"\1\n", text)
    text = _CLAUSE_BREAK.sub(r"\1\2\n", text)
    lines = (line.strip() for line in text.split("\n"))
    return "\n".join(line for line in lines if line)


def image_checksum(product: RawProduct) -> Optional[str]:
    first_image_url = product.first_image_url
    return checksum(first_image_url) if first_image_url else None


class ProductEnricher:
    """Turns one catalog product into a storable search record."""

    def __init__(self, cache: DescriptionCache, provider: ImageDescriptionProvider):
        self.cache = cache
        self.provider = provider

    async def enrich(self, product: RawProduct, app_id: int) -> Optional[SearchRecord]:
        if not product.is_valid:
            logger.warning(f"⚠️ Product skipped for missing id or name: {product.product_id!r}")
            return None

        cached_description = None
        image_url_checksum = image_checksum(product)
        if image_url_checksum:
            cached_description = await self.cache.lookup_one(app_id, image_url_checksum)
            if cached_description:
                logger.info(f"✅ Found existing image description for: {product.name}")

        return await self._build_record(product, app_id, cached_description)

    async def enrich_with_prefetched_cache(
        self, product: RawProduct, app_id: int, cache: Mapping[str, str]
    ) -> Optional[SearchRecord]:
        if not product.is_valid:
            logger.warning(f"⚠️ Product skipped for missing id or name: {product.product_id!r}")
            return None

        image_url_checksum = image_checksum(product)
        cached_description = cache.get(image_url_checksum) if image_url_checksum else None
        return await self._build_record(product, app_id, cached_description)

    async def _describe_images(self, product: RawProduct) -> Optional[str]:
        logger.info(f"🖼️ Processing {len(product.images)} images for: {product.name}")
        try:
            description = await self.provider.describe(list(product.images), product.name)
        except ImageDescriptionError as e:
            logger.error(f"❌ Vision service error for {product.name}: {e}")
            return None

        if not description:
            logger.info(f"❌ Vision service returned empty description for: {product.name}")
            return None

        return normalize_image_description(description) or None

    async def _build_record(
        self, product: RawProduct, app_id: int, cached_description: Optional[str]
    ) -> SearchRecord:
        image_description = cached_description
        if not image_description and product.images:
            image_description = await self._describe_images(product)

        first_image_url = product.first_image_url
        base_text = f"{product.name} {product.description or ''}"
        text = "\n".join(part for part in (base_text, image_description) if part)

        return SearchRecord(
            app_id=app_id,
            product_id=str(product.product_id),
            product_name=product.name,
            product_description=product.description or "",
            text=text,
            text_checksum=checksum(text),
            first_image_url=first_image_url,
            image_url_checksum=checksum(first_image_url) if first_image_url else None,
            image_description=image_description,
            is_published=product.is_published,
        )
