from typing import Dict, Iterable, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from search_ai.models.vector import ProductVector
from search_ai.repositories.base import BaseRepository
from search_ai.schemas.catalog import SearchRecord


class VectorMirrorRepository(BaseRepository[ProductVector]):
    def __init__(self, db: AsyncSession):
        super().__init__(db, ProductVector)

    async def get_product(self, app_id: int, product_id: str) -> Optional[ProductVector]:
        result = await self.db.execute(
            select(self.model).where(
                self.model.app_id == app_id, self.model.product_id == product_id
            )
        )
        return result.scalars().first()

    async def exists(self, app_id: int, product_id: str) -> bool:
        return await self.get_product(app_id, product_id) is not None

    async def find_descriptions(
        self, app_id: int, image_checksums: Iterable[str]
    ) -> Dict[str, str]:
        """Maps image checksum -> stored description, non-empty descriptions only."""
        checksums = {c for c in image_checksums if c}
        if not checksums:
            return {}

        result = await self.db.execute(
            select(self.model.image_url_checksum, self.model.image_description).where(
                self.model.app_id == app_id,
                self.model.image_url_checksum.in_(checksums),
            )
        )
        found: Dict[str, str] = {}
        for image_checksum, description in result.all():
            if description:
                found.setdefault(image_checksum, description)
        return found

    async def upsert(self, record: SearchRecord) -> None:
        """Insert or fully replace the mirror row for (app_id, product_id)."""
        values = {
            "product_name": record.product_name,
            "text_checksum": record.text_checksum,
            "image_url_checksum": record.image_url_checksum or "",
            "image_description": record.image_description,
            "is_published": record.is_published,
        }
        stmt = self.insert().values(
            app_id=record.app_id, product_id=record.product_id, **values
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[self.model.app_id, self.model.product_id],
            set_={**values, "date_updated": func.now()},
        )
        await self.db.execute(stmt)
        await self.db.commit()

    async def delete_product(self, app_id: int, product_id: str) -> int:
        result = await self.db.execute(
            delete(self.model).where(
                self.model.app_id == app_id, self.model.product_id == product_id
            )
        )
        await self.db.commit()
        return result.rowcount

    async def set_published(self, app_id: int, product_id: str, is_published: bool) -> int:
        result = await self.db.execute(
            update(self.model)
            .where(self.model.app_id == app_id, self.model.product_id == product_id)
            .values(is_published=is_published, date_updated=func.now())
        )
        await self.db.commit()
        return result.rowcount
