from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
import os
from dotenv import load_dotenv
import logging

from app.core.error_handling import AppException

load_dotenv()

# Only show WARNING and above from the engine, even in development
sqlalchemy_logger = logging.getLogger("sqlalchemy.engine")
sqlalchemy_logger.setLevel(logging.WARNING)

# Get database URL from environment variable
# Default is a local SQLite file; PostgreSQL (asyncpg) is used in deployments
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    "sqlite+aiosqlite:///./frontdesk.db"
)

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
DEBUG = os.getenv("DEBUG", "False").lower() == "true"
ECHO_SQL = (ENVIRONMENT == "development" and DEBUG)

# Connection pool configuration (ignored for SQLite)
POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
MAX_OVERFLOW = int(os.getenv("DB_POOL_MAX_OVERFLOW", "20"))
POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "5"))
POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "7200"))
POOL_PRE_PING = os.getenv("DB_POOL_PRE_PING", "True").lower() == "true"

logger = logging.getLogger(__name__)

try:
    engine_kwargs = {"echo": ECHO_SQL, "future": True}
    if DATABASE_URL.lower().startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
    else:
        engine_kwargs.update(
            pool_pre_ping=POOL_PRE_PING,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            pool_recycle=POOL_RECYCLE,
        )

    engine = create_async_engine(DATABASE_URL, **engine_kwargs)
    logger.info(f"Database engine created for {engine.url.get_backend_name()}")
except Exception as e:
    logger.error(f"Failed to create database engine: {e}", exc_info=True)
    raise

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Base class for models
Base = declarative_base()


async def init_models():
    """Create all tables that do not exist yet"""
    # Import models so they are registered on Base.metadata
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# Dependency for FastAPI routes
async def get_db():
    """
    Dependency function to get database session
    Usage in FastAPI routes:
        async def my_route(db: AsyncSession = Depends(get_db)):

    Note: Session is automatically closed in the finally block to ensure
    connections are returned to the pool.
    """
    session = None
    try:
        session = AsyncSessionLocal()
        yield session
        await session.commit()
    except Exception as e:
        if session:
            await session.rollback()
        # Domain errors are logged by their exception handler
        if not isinstance(e, AppException):
            logger.error(f"Database error in session: {str(e)}", exc_info=True)
        raise
    finally:
        if session:
            try:
                await session.close()
            except Exception as close_error:
                logger.warning(f"Error closing session: {close_error}")

# Alias for consistency
get_async_session = get_db
