import logging

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from app.config import get_settings
from app.db.base import Base

logger = logging.getLogger(__name__)

settings = get_settings()

engine = create_async_engine(
    settings.DATABASE_URL,
    pool_size=settings.DATABASE_POOL_SIZE,
    max_overflow=settings.DATABASE_MAX_OVERFLOW,
    pool_pre_ping=True,  # Detect stale connections before using them
    echo=False,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db():
    """Create database tables that do not exist yet."""
    # Import all models to ensure they're registered with SQLAlchemy
    from app.models import user, receipt, user_usage  # noqa

    logger.info("Running create_all() for database initialization.")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
