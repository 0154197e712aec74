from functools import lru_cache

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from search_ai.core.config import settings

Base = declarative_base()


@lru_cache
def get_engine() -> AsyncEngine:
    # Async connection, created on first use so importing models never needs a DB
    return create_async_engine(
        settings.SQLALCHEMY_DATABASE_URI,
        echo=False,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        pool_recycle=1800,
    )


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
    )


def SessionLocal() -> AsyncSession:
    return get_sessionmaker()()
