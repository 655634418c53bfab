# db.py
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from writeedge.core.config import settings

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    future=True,
)
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
Base = declarative_base()


# Dependency
async def get_db():
    """
    Dependency that yields a new AsyncSession per request.
    The session is closed automatically when the request is done.
    """
    async with AsyncSessionLocal() as session:
        yield session


def get_session_factory() -> async_sessionmaker:
    """
    Dependency returning the session factory used by background evaluation work.
    Background tasks outlive the request session, so they open their own.
    """
    return AsyncSessionLocal
