from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from mirage.config import settings

# ─────────────────────────────────────────────────────────────
# Database Engine
# ─────────────────────────────────────────────────────────────

# Mock serving returns its connection before any simulated delay
# (see MockDispatchService), so the pool bounds concurrent store
# reads, not concurrent sleeping requests.
engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_timeout=settings.DB_POOL_TIMEOUT,
)

# ─────────────────────────────────────────────────────────────
# Session Factory
# ─────────────────────────────────────────────────────────────

# expire_on_commit=False: endpoint rows are read after their session
# has been released (BaseRepository.release) and by route handlers
# after commit.
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

# ─────────────────────────────────────────────────────────────
# Dependency for FastAPI
# ─────────────────────────────────────────────────────────────

async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    One session per request, shared by every dependency of that request
    (auth, quota check, repositories). Closed after the response.
    """
    async with AsyncSessionLocal() as session:
        yield session
