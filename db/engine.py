"""
Database engine configuration.
"""
from sqlalchemy.ext.asyncio import create_async_engine

from config import settings

engine_options = {"echo": settings.debug, "pool_pre_ping": True}
if not settings.is_sqlite:
    engine_options.update(pool_size=10, max_overflow=20, pool_recycle=3600)

# Create async engine
engine = create_async_engine(settings.database_url, **engine_options)
