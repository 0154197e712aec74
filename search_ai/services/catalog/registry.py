from search_ai.services.catalog.base import CatalogRegistry
from search_ai.services.catalog.shopcada import ShopcadaCatalogSource

default_registry = CatalogRegistry()
default_registry.register(ShopcadaCatalogSource.plugin_name, ShopcadaCatalogSource)
