from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from app.config import settings


DATABASE_URL = str(settings.DATABASE_URL)

# create async engine
engine = create_async_engine(DATABASE_URL, echo=settings.DEBUG, future=True)

# session factory
async_session = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncSession:  # to be used as dependency
    async with async_session() as session:
        yield session


def get_session_factory() -> async_sessionmaker:
    """Factory dependency for services that open their own transactions."""
    return async_session


def create_task_engine():
    """Engine for Celery tasks; each task runs its own event loop so pooled
    connections cannot be shared between runs."""
    return create_async_engine(DATABASE_URL, poolclass=NullPool, future=True)
