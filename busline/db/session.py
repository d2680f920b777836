"""Async engine and session factory shared by every request and the sweeper."""
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from busline.config import settings

DATABASE_URL = str(settings.DATABASE_URL)


def engine_options(url: str) -> dict:
    # pooled connections are pinged on checkout
    options = {"echo": settings.DEBUG, "pool_pre_ping": True}
    if make_url(url).get_backend_name() != "sqlite":
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_recycle=settings.DB_POOL_RECYCLE_SECONDS,
        )
    return options


engine = create_async_engine(DATABASE_URL, **engine_options(DATABASE_URL))

# objects stay readable after commit; routers serialise them after the transaction
async_session = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncSession:
    async with async_session() as session:
        yield session
