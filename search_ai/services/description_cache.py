import logging
from typing import Dict, Iterable, Optional

from search_ai.repositories.vector_mirror import VectorMirrorRepository

logger = logging.getLogger(__name__)


class DescriptionCache:
    """Reuses image descriptions already generated for the same tenant."""

    def __init__(self, mirror: VectorMirrorRepository):
        self.mirror = mirror

    async def lookup(self, app_id: int, image_checksums: Iterable[str]) -> Dict[str, str]:
        checksums = list(dict.fromkeys(c for c in image_checksums if c))
        if not checksums:
            return {}
        found = await self.mirror.find_descriptions(app_id, checksums)
        logger.debug(f"🗂️ Cache lookup for app {app_id}: {len(found)}/{len(checksums)} hits")
        return found

    async def lookup_one(self, app_id: int, image_checksum: str) -> Optional[str]:
        found = await self.lookup(app_id, [image_checksum])
        return found.get(image_checksum)
