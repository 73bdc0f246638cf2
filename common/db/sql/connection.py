from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from sqlalchemy import text
from common.core.config import settings
import logging

logger = logging.getLogger(__name__)

Base = declarative_base()

# Connection Pool Sizing Strategy:
# pool_size = expected concurrent requests / instances
# Total connections = instances * (pool_size + max_overflow)

_engine = None
_session_factory = None


def create_engine(url: str = None) -> AsyncEngine:
    """Build an async engine; SQLite URLs get a single shared connection."""
    url = url or settings.sql_url
    if url.startswith("sqlite"):
        return create_async_engine(url, future=True, echo=False, poolclass=StaticPool)

    return create_async_engine(
        url,
        future=True,
        echo=False,
        pool_size=settings.db_pool_size,  # Base pool size per instance
        max_overflow=settings.db_max_overflow,  # Additional connections under load
        pool_pre_ping=True,  # Verify connections before use (prevents stale connections)
        pool_recycle=settings.db_pool_recycle,
        pool_timeout=settings.db_pool_timeout,
        connect_args={
            "server_settings": {
                "application_name": f"url_shortener_{settings.instance_id or 'default'}",
            },
            "command_timeout": 30,  # Query timeout
            "timeout": settings.db_connect_timeout,  # Connection timeout
        }
    )


def create_session_factory(engine: AsyncEngine):
    return sessionmaker(
        engine,
        expire_on_commit=False,
        class_=AsyncSession,
        autoflush=False  # Manual control for better performance
    )


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_engine()
        logger.info("SQL engine initialized")
    return _engine


def get_session_factory():
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory


async def close_engine():
    """Dispose of the shared engine on shutdown."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("SQL engine disposed")


async def check_sql_health(engine: AsyncEngine = None) -> bool:
    try:
        async with (engine or get_engine()).connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            return result.scalar() == 1
    except Exception as e:
        logger.error(f"SQL ping failed: {e}")
        return False


# --- Connection Pool Monitoring ---
def get_pool_status() -> dict:
    """Get current connection pool status for monitoring."""
    if _engine is None:
        return {"error": "engine not initialized"}
    pool = _engine.pool
    try:
        return {
            "pool_size": pool.size(),
            "checked_in": pool.checkedin(),
            "checked_out": pool.checkedout(),
            "overflow": pool.overflow(),
        }
    except AttributeError:
        return {"pool": pool.status()}
