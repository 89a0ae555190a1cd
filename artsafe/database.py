import asyncio
import ssl
from urllib.parse import urlparse
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from artsafe.config import settings
from artsafe.utils.logger import logger

SUPPORTED_SCHEMES = ("postgresql://", "postgresql+asyncpg://", "sqlite+aiosqlite://")


def normalize_database_url(database_url: str) -> str:
    """
    Return an async driver URL without query parameters.
    asyncpg doesn't understand sslmode and friends, SSL is handled via connect_args.
    """
    if not database_url or not database_url.strip():
        raise ValueError("DATABASE_URL environment variable is not set or is empty")

    if not database_url.startswith(SUPPORTED_SCHEMES):
        raise ValueError(
            f"Invalid DATABASE_URL format. Must start with one of {', '.join(SUPPORTED_SCHEMES)}. "
            f"Got: {database_url[:50]}..."
        )

    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    url = make_url(database_url)
    if url.query:
        logger.warning("Removed query parameters from DATABASE_URL")
    return url.set(query={}).render_as_string(hide_password=False)


def build_connect_args(url: str) -> dict:
    if not url.startswith("postgresql"):
        return {}

    connect_args = {
        "server_settings": {
            "application_name": "artsafe_backend"
        },
        "command_timeout": 60,
        "timeout": 90,
        "statement_cache_size": 0,  # pgbouncer transaction mode
    }

    # Supabase pooler sometimes has certificate chain issues
    if "supabase" in url.lower() or "pooler" in url.lower():
        ssl_context = ssl.create_default_context()
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE
        connect_args["ssl"] = ssl_context
        logger.info(f"SSL enabled (no cert verification) for database connection to: {urlparse(url).hostname}")

    return connect_args


clean_url = normalize_database_url(settings.DATABASE_URL)
logger.info(f"Using DATABASE_URL: {clean_url.split('@')[1] if '@' in clean_url else clean_url.split('://')[0]}")

# NullPool for pgbouncer transaction mode
engine = create_async_engine(
    clean_url,
    echo=settings.APP_DEBUG,
    poolclass=NullPool,
    connect_args=build_connect_args(clean_url)
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncSession:
    """
    Get database session with retry logic for connection issues.
    Only opening the session is retried; errors raised by the request itself propagate.
    """
    max_retries = 3
    retry_delay = 1  # seconds

    for attempt in range(max_retries):
        yielded = False
        try:
            async with AsyncSessionLocal() as session:
                try:
                    yielded = True
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise
                finally:
                    await session.close()
            break
        except Exception as e:
            if yielded:
                raise
            if attempt < max_retries - 1:
                logger.warning(f"Database connection attempt {attempt + 1} failed: {e}. Retrying...")
                await asyncio.sleep(retry_delay)
                retry_delay *= 2
            else:
                logger.error(f"Database connection failed after {max_retries} attempts: {e}")
                raise
