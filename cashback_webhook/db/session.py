import logging
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from cashback_webhook.core.config import settings
from cashback_webhook.db.base import Base
import cashback_webhook.models  # noqa: F401  registers tables on Base.metadata

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DB_ECHO,
    future=True,
    pool_pre_ping=True
)

async_session_factory = async_sessionmaker(
    bind=engine,
    autoflush=False,
    expire_on_commit=False
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides an async DB session
    and ensures it's closed after the request.
    """
    async with async_session_factory() as session:
        yield session


async def init_db(bind: AsyncEngine = engine) -> None:
    """
    Provision the cashback_events table and its indexes.

    Runs once from the app lifespan before traffic is accepted.
    create_all skips tables and indexes that already exist.
    """
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database schema ready")
