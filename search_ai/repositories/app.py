from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from search_ai.models.app import ApiKey, App, PluginConfigShopcada
from search_ai.repositories.base import BaseRepository


class AppRepository(BaseRepository[App]):
    def __init__(self, db: AsyncSession):
        super().__init__(db, App)

    async def get_plugin_name(self, app_id: int) -> Optional[str]:
        result = await self.db.execute(
            select(self.model.plugin_name).where(self.model.app_id == app_id).limit(1)
        )
        return result.scalar()

    async def get_active_api_key(self, app_id: int) -> Optional[str]:
        result = await self.db.execute(
            select(ApiKey.api_key)
            .where(ApiKey.app_id == app_id, ApiKey.is_active.is_(True))
            .limit(1)
        )
        return result.scalar()

    async def get_shopcada_config(self, app_id: int) -> Optional[PluginConfigShopcada]:
        return await self.db.get(PluginConfigShopcada, app_id)
