import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from search_ai.core.database import Base
from search_ai.models.app import ApiKey, App, PluginConfigShopcada
from search_ai.models.vector import ProductVector

MIRROR_TABLES = [
    App.__table__,
    ApiKey.__table__,
    PluginConfigShopcada.__table__,
    ProductVector.__table__,
]


@pytest_asyncio.fixture
async def db():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, tables=MIRROR_TABLES)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def tenant(db):
    app = App(app_id=1, app_name="Test Store", plugin_name="fake")
    db.add(app)
    await db.commit()
    return app
