from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from .settings import DATABASE_URL, SQL_ECHO

# pre_ping drops connections Postgres closed while the app sat idle
engine = create_async_engine(DATABASE_URL, echo=SQL_ECHO, pool_pre_ping=True)

# Orders are read back after commit to build the response and notifications
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()


async def get_db():
    """Request-scoped session; callers own commit and rollback."""
    async with AsyncSessionLocal() as session:
        yield session
