from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from search_ai.core.exceptions import ConfigurationError
from search_ai.schemas.catalog import ProductList, RawProduct


class CatalogSource(ABC):
    """
    A merchant platform plugin. Pagination and payload mapping are the
    plugin's business; the pipeline only sees RawProduct values.
    """

    plugin_name: str = "unknown"

    def __init__(self, app_id: int, db: AsyncSession, http: httpx.AsyncClient):
        self.app_id = app_id
        self.db = db
        self.http = http

    @abstractmethod
    async def init(self) -> None:
        """Loads credentials; raises ConfigurationError when they are missing."""

    @abstractmethod
    async def fetch_all(self) -> ProductList:
        ...

    @abstractmethod
    def parse_product(self, payload: Dict[str, Any]) -> RawProduct:
        """Maps a platform payload (API page item or webhook body) to a RawProduct."""

    async def fetch_by_id(self, product_id: str) -> Optional[RawProduct]:
        raise NotImplementedError(f"Plugin {self.plugin_name} does not support fetching individual products")

    @property
    def supports_fetch_by_id(self) -> bool:
        return type(self).fetch_by_id is not CatalogSource.fetch_by_id


class CatalogRegistry:
    """Plugin identifier -> CatalogSource class, resolved once per job."""

    def __init__(self):
        self._plugins: Dict[str, Type[CatalogSource]] = {}

    def register(self, plugin_name: str, source_cls: Type[CatalogSource]) -> None:
        self._plugins[plugin_name] = source_cls

    def __contains__(self, plugin_name: str) -> bool:
        return plugin_name in self._plugins

    def create(
        self, plugin_name: str, app_id: int, db: AsyncSession, http: httpx.AsyncClient
    ) -> CatalogSource:
        source_cls = self._plugins.get(plugin_name)
        if source_cls is None:
            raise ConfigurationError(f"Plugin {plugin_name} not found", app_id=app_id)
        return source_cls(app_id, db, http)
