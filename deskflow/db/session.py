from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine
from deskflow.core.settings import settings

def build_engine(url: str = None) -> AsyncEngine:
    url = url or settings.db.url
    kwargs = {"echo": settings.log_level == "DEBUG"}
    # Pool sizing only applies to server databases, SQLite manages its own pool
    if not url.startswith("sqlite"):
        kwargs["pool_size"] = settings.db.pool_size
        kwargs["max_overflow"] = settings.db.max_overflow
    return create_async_engine(url, **kwargs)

def build_sessionmaker(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

# Create Async Engine
engine = build_engine()

# Session Factory
AsyncSessionLocal = build_sessionmaker(engine)
