import ssl
from collections.abc import AsyncGenerator
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from reporter.config import get_settings
from reporter.core.logging import get_logger

logger = get_logger(__name__)

settings = get_settings()


def _clean_asyncpg_url(url: str) -> tuple[str, dict]:
    """
    Strip libpq-only query params that asyncpg rejects.

    - Remote hosts: SSL with default context
    - Local dev (localhost/127.0.0.1/db) and non-postgres URLs: untouched connect args
    """
    parsed = urlparse(url)
    if not parsed.scheme.startswith("postgresql"):
        return url, {}

    params = parse_qs(parsed.query)
    for param in ["sslmode", "channel_binding", "options"]:
        params.pop(param, None)

    new_query = urlencode(params, doseq=True)
    clean_url = urlunparse(parsed._replace(query=new_query))

    hostname = parsed.hostname or ""
    is_local = hostname in ("localhost", "127.0.0.1", "db")

    if is_local:
        return clean_url, {}
    else:
        ssl_context = ssl.create_default_context()
        return clean_url, {"ssl": ssl_context}


clean_url, connect_args = _clean_asyncpg_url(settings.database_url)


engine = create_async_engine(
    clean_url,
    echo=settings.debug,
    pool_pre_ping=True,
    connect_args=connect_args,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.bind(error=str(e)).error("database_transaction_rollback")
            await session.rollback()
            raise
