from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base
from dotenv import load_dotenv
import os
import logging

from config import settings

load_dotenv()

# Reduce SQLAlchemy engine verbosity, even in development
sqlalchemy_logger = logging.getLogger("sqlalchemy.engine")
sqlalchemy_logger.setLevel(logging.WARNING)

# Guias are stored by the surrounding application; this default targets a
# local SQLite file for development only
DATABASE_URL = settings.DATABASE_URL

ENVIRONMENT = settings.ENVIRONMENT
ECHO_SQL = os.getenv("DB_ECHO", "False").lower() == "true"

# Connection pool configuration (ignored for SQLite)
POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
MAX_OVERFLOW = int(os.getenv("DB_POOL_MAX_OVERFLOW", "20"))
POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "5"))
POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "7200"))
POOL_PRE_PING = os.getenv("DB_POOL_PRE_PING", "True").lower() == "true"

logger = logging.getLogger(__name__)

try:
    engine_kwargs = {
        "echo": ECHO_SQL,
        "future": True,
        "pool_pre_ping": POOL_PRE_PING,
    }
    if "sqlite" not in DATABASE_URL.lower():
        engine_kwargs.update(
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            pool_recycle=POOL_RECYCLE,
        )

    engine = create_async_engine(DATABASE_URL, **engine_kwargs)
    logger.info(f"Database engine created for environment={ENVIRONMENT}")
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


async def create_tables():
    """Create all tables registered on Base (startup helper)"""
    # Import models so they are registered on Base.metadata
    import faturamento.models.tiss  # noqa: F401

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
    except SQLAlchemyError as e:
        if session:
            await session.rollback()
        logger.error(f"Database error in session: {str(e)}", exc_info=True)
        raise
    except Exception:
        # Billing errors are logged by the API exception handlers
        if session:
            await session.rollback()
        raise
    finally:
        if session:
            await session.close()

# Alias for consistency
get_async_session = get_db
