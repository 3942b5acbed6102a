from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine


def build_engine(database_url: str, echo: bool = False, **engine_options: Any) -> AsyncEngine:
    return create_async_engine(database_url, echo=echo, pool_pre_ping=True, **engine_options)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory used by the SQL store; sessions do not expire on commit."""
    return async_sessionmaker(engine, expire_on_commit=False)
