from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from homepage_cms.config import settings

DATABASE_URL = settings.database_url


def _engine_options(url: str) -> dict:
    """Pool sizing per environment; SQLite manages its own pool."""
    if url.startswith("sqlite"):
        return {"echo": settings.debug}
    if settings.environment == "production":
        return {
            "pool_size": 20,
            "max_overflow": 50,
            "pool_timeout": 60,
            "pool_recycle": 1800,
            "pool_pre_ping": True,
        }
    return {
        "echo": settings.debug,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
    }


engine = create_async_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)

Base = declarative_base()
