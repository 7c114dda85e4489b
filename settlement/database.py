"""Database engine, session factory and request-scoped sessions"""

import re
import ssl
from typing import Any, AsyncGenerator, Dict, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from settlement.config import settings

_SSLMODE_REQUIRED = re.compile(r"[?&]sslmode=(require|required|verify-full)", re.I)


def build_database_url(url: str) -> str:
    """Convert postgresql:// to postgresql+asyncpg:// for async support"""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def split_ssl_options(url: str) -> Tuple[str, Dict[str, Any]]:
    """
    Move a libpq style ``sslmode`` out of the URL into asyncpg connect args.

    asyncpg takes ``ssl=SSLContext`` and rejects ``sslmode`` (asyncpg#737).
    """
    if not _SSLMODE_REQUIRED.search(url):
        return url, {}
    ssl_ctx = ssl.create_default_context()
    ssl_ctx.check_hostname = False
    ssl_ctx.verify_mode = ssl.CERT_NONE
    url = re.sub(r"([?&])sslmode=[^&]*&?", r"\1", url, flags=re.I)
    url = url.rstrip("?&")
    return url, {"ssl": ssl_ctx}


def engine_options(url: str) -> Dict[str, Any]:
    """Pool sizing applies to server databases only; SQLite keeps its default pool"""
    if url.startswith("sqlite"):
        return {"echo": settings.DEBUG}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "echo": settings.DEBUG,
    }


database_url, connect_args = split_ssl_options(build_database_url(settings.DATABASE_URL))

engine = create_async_engine(database_url, connect_args=connect_args, **engine_options(database_url))

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

# Base class for declarative models
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function to get database session.

    Services commit their own units of work; anything left pending when the
    request ends is committed here, and any exception rolls it back.

    Yields:
        AsyncSession: Database session
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker:
    """Dependency returning the session factory, for operations that open one session per item"""
    return AsyncSessionLocal


async def init_db() -> None:
    """Initialize database tables (for development only)"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections"""
    await engine.dispose()
