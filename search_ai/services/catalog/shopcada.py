import asyncio
import json
import logging
import math
from typing import Any, Dict, List, Optional

import httpx

from search_ai.core.config import settings
from search_ai.core.exceptions import CatalogFetchError, ConfigurationError
from search_ai.repositories.app import AppRepository
from search_ai.schemas.catalog import ProductList, RawProduct
from search_ai.services.catalog.base import CatalogSource

logger = logging.getLogger(__name__)

PAGE_LIMIT = 20


def _safe_str(value: Any, fallback: str = "") -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return fallback
    if isinstance(value, (dict, list)):
        try:
            return json.dumps(value)
        except (TypeError, ValueError):
            return fallback
    if isinstance(value, (int, float, bool)):
        return str(value)
    return fallback


def _names(items: Any) -> List[str]:
    if not isinstance(items, list):
        return []
    names = (_safe_str(item.get("name")) for item in items if isinstance(item, dict))
    return [name for name in names if name]


class ShopcadaCatalogSource(CatalogSource):
    plugin_name = "shopcada"

    def __init__(self, app_id, db, http):
        super().__init__(app_id, db, http)
        self.api_hostname: Optional[str] = None
        self.api_key: Optional[str] = None

    async def init(self) -> None:
        config = await AppRepository(self.db).get_shopcada_config(self.app_id)
        if config is None:
            raise ConfigurationError("Shopcada plugin configuration not found", app_id=self.app_id)

        self.api_hostname = config.api_hostname.rstrip("/")
        self.api_key = config.api_key

    def _headers(self) -> Dict[str, str]:
        if not self.api_hostname or not self.api_key:
            raise ConfigurationError("Plugin not initialized. Call init() first.", app_id=self.app_id)
        return {"X-Shopcada-API-Key": self.api_key, "Content-Type": "application/json"}

    async def _get_page(self, page: int) -> httpx.Response:
        url = f"{self.api_hostname}/api/v3/products"
        logger.info(f"[Shopcada] Fetching page {page}: {url}")
        return await self.http.get(
            url,
            params={"page": page, "limit": PAGE_LIMIT},
            headers=self._headers(),
            timeout=settings.CATALOG_TIMEOUT_SECONDS,
        )

    async def fetch_all(self) -> ProductList:
        self._headers()  # raises when init() was skipped

        try:
            first_response = await self._get_page(0)
        except httpx.HTTPError as e:
            raise CatalogFetchError(
                f"Failed to fetch products: {e}. Check that the API hostname includes the protocol (https://)",
                app_id=self.app_id,
                original_error=e,
            ) from e

        if not first_response.is_success:
            raise CatalogFetchError(
                f"Failed to fetch products: {first_response.status_code} {first_response.reason_phrase}. "
                f"Response: {first_response.text[:200]}. Check that the API key is valid",
                app_id=self.app_id,
            )

        try:
            first_data = first_response.json()
        except ValueError as e:
            raise CatalogFetchError(
                f"Invalid response format: body is not JSON ({e})", app_id=self.app_id, original_error=e
            ) from e

        if not isinstance(first_data, dict) or not isinstance(first_data.get("products"), list):
            raise CatalogFetchError(
                f"Invalid response format: expected object with products array. Got: {type(first_data).__name__}",
                app_id=self.app_id,
            )

        raw_products: List[Dict[str, Any]] = list(first_data["products"])
        meta = first_data.get("meta") or {}
        total_products = meta.get("count") or len(raw_products)
        limit = meta.get("limit") or PAGE_LIMIT
        total_pages = math.ceil(total_products / limit)

        logger.info(
            f"[Shopcada] Total products: {total_products}, Limit: {limit}, Total pages: {total_pages}"
        )

        for page in range(1, total_pages):
            await asyncio.sleep(settings.CATALOG_PAGE_PAUSE_SECONDS)
            try:
                response = await self._get_page(page)
            except httpx.HTTPError as e:
                logger.error(f"[Shopcada] Failed to fetch page {page}: {e}")
                continue

            if not response.is_success:
                logger.error(
                    f"[Shopcada] Failed to fetch page {page}: {response.status_code} {response.reason_phrase}"
                )
                continue

            try:
                data = response.json()
            except ValueError as e:
                logger.error(f"[Shopcada] Failed to fetch page {page}: body is not JSON ({e})")
                continue

            if not isinstance(data, dict) or not isinstance(data.get("products"), list):
                logger.error(f"[Shopcada] Failed to fetch page {page}: unexpected response format")
                continue

            raw_products.extend(data["products"])
            logger.info(f"[Shopcada] Page {page} fetched {len(data['products'])} products")

        products = []
        for payload in raw_products:
            try:
                products.append(self.parse_product(payload))
            except (ValueError, TypeError) as e:
                logger.warning(f"⚠️ [Shopcada] Product skipped: {e}")

        logger.info(f"[Shopcada] Fetched {len(products)} total products from {total_pages} pages")
        return ProductList(products=products)

    async def fetch_by_id(self, product_id: str) -> Optional[RawProduct]:
        try:
            response = await self.http.get(
                f"{self.api_hostname}/api/v3/products/{product_id}",
                headers=self._headers(),
                timeout=settings.CATALOG_TIMEOUT_SECONDS,
            )
        except httpx.HTTPError as e:
            raise CatalogFetchError(
                f"Failed to fetch product {product_id}: {e}", app_id=self.app_id, original_error=e
            ) from e

        if response.status_code == 404:
            return None
        if not response.is_success:
            raise CatalogFetchError(
                f"Failed to fetch product {product_id}: {response.reason_phrase}", app_id=self.app_id
            )
        return self.parse_product(response.json())

    def parse_product(self, payload: Dict[str, Any]) -> RawProduct:
        if not isinstance(payload, dict):
            raise ValueError("Invalid product data provided")
        if not payload.get("product_id") or not payload.get("name"):
            raise ValueError("Product must have product_id and name fields")

        try:
            product_id: Any = int(payload["product_id"])
        except (TypeError, ValueError):
            product_id = _safe_str(payload["product_id"])

        description = _safe_str(payload.get("description")) or None
        categories = _names(payload.get("categories"))
        colors = _names(payload.get("colors"))
        color_hex = next(
            (
                _safe_str(c["color"])
                for c in payload.get("colors") or []
                if isinstance(c, dict) and c.get("color")
            ),
            "",
        )

        final_description = "\n".join(
            part
            for part in (
                description or "",
                categories and f"Categories: {', '.join(categories)}",
                colors and f"Colors: {', '.join(colors)}",
                color_hex and f"Color code: {color_hex}",
            )
            if part
        )

        images = payload.get("images")
        published = payload.get("published")

        return RawProduct(
            product_id=product_id,
            name=_safe_str(payload["name"]),
            description=final_description,
            images=[u for u in images if isinstance(u, str)] if isinstance(images, list) else [],
            is_published=published if isinstance(published, bool) else False,
        )
