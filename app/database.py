"""
Database Connection
Raw async queries go through `databases`; the SQLAlchemy engine is only used
for schema work (Alembic, create_all in development and tests).

PostgreSQL (asyncpg) in production, SQLite (aiosqlite) locally.
"""

from databases import Database
from sqlalchemy import create_engine, MetaData
from sqlalchemy.orm import declarative_base
from app.config import settings
from app.logging_config import get_logger

logger = get_logger(__name__)

DATABASE_URL = settings.DATABASE_URL
IS_SQLITE = DATABASE_URL.startswith("sqlite")


def _pool_options(url: str) -> dict:
    # aiosqlite hands every option to sqlite3.connect(), so pool sizing is postgres only
    if IS_SQLITE:
        return {}
    # Supabase transaction pooler (pgbouncer) cannot use prepared statements
    if "pooler.supabase.com" in url or "supabase.com" in url:
        return {"min_size": 1, "max_size": 5, "statement_cache_size": 0}
    return {"min_size": 1, "max_size": 10}


def _sync_url(url: str) -> str:
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg2://", 1)
    return url


database = Database(DATABASE_URL, **_pool_options(DATABASE_URL))

engine = create_engine(_sync_url(DATABASE_URL))

metadata = MetaData()
Base = declarative_base(metadata=metadata)


def row_to_dict(row) -> dict:
    """Convert a `databases` record into a plain dict (None stays None)"""
    if row is None:
        return None
    return dict(row._mapping)


def create_schema():
    """Create every table known to the models (SQLite development and tests)"""
    import app.models  # noqa: F401

    Base.metadata.create_all(engine)


def drop_schema():
    Base.metadata.drop_all(engine)


async def connect_db():
    """Connect to database on startup"""
    await database.connect()
    logger.info("Database connected (%s)", "sqlite" if IS_SQLITE else "postgresql")


async def disconnect_db():
    """Disconnect from database on shutdown"""
    await database.disconnect()
    logger.info("Database disconnected")
