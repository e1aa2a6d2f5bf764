from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from notifier.config import settings

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def get_engine_args(database_url: str) -> dict[str, Any]:
    args: dict[str, Any] = {
        "echo": settings.debug,
        "future": True,
    }

    if not database_url.startswith("sqlite"):
        args["pool_pre_ping"] = True
        args["pool_recycle"] = 300

    return args


engine: AsyncEngine = create_async_engine(
    settings.database_url,
    **get_engine_args(settings.database_url),
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


def make_session_factory(
    session_maker: async_sessionmaker[AsyncSession],
) -> SessionFactory:
    """Build a ``get_db``-style context manager bound to another sessionmaker."""

    @asynccontextmanager
    async def session_scope() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            async with session.begin():
                yield session

    return session_scope


get_db: SessionFactory = make_session_factory(AsyncSessionLocal)
