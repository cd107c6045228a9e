"""
Database connection and session management for SQLAlchemy 2.0.
Configured for async operations with PostgreSQL (asyncpg) or SQLite (aiosqlite).
"""
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy import select, text
from urllib.parse import urlparse
import logging
import socket

from wedding_invitation.config import settings

logger = logging.getLogger(__name__)

# Create declarative base for models
Base = declarative_base()

# Pool settings only apply to PostgreSQL (not SQLite)
_engine_args = {
    "echo": False,  # Set to True for SQL query logging in development
}

if settings.DATABASE_URL.startswith("postgresql"):
    _engine_args.update({
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,  # Verify connections before using (handles stale connections)
        "pool_recycle": 3600,
        "connect_args": {
            "server_settings": {
                "application_name": "wedding-invitation-api"
            }
        }
    })

engine = create_async_engine(settings.DATABASE_URL, **_engine_args)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncSession:
    """
    FastAPI dependency for database sessions.
    Provides async database session with automatic commit/rollback.

    Usage:
        @router.get("/endpoint")
        async def my_endpoint(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Database session error: {str(e)}", exc_info=True)
            raise
        finally:
            await session.close()


def _validate_database_url(url: str) -> tuple[bool, str]:
    """
    Validate database URL and provide diagnostic information.
    Returns (is_valid, diagnostic_message)
    """
    if not url:
        return False, "DATABASE_URL is empty"

    try:
        parsed = urlparse(url)

        if url.startswith("sqlite"):
            return True, f"SQLite database: {parsed.path or ':memory:'}"

        if not url.startswith(("postgresql://", "postgresql+asyncpg://")):
            return False, (
                "Invalid database URL scheme. Expected postgresql+asyncpg:// or sqlite+aiosqlite://, "
                f"got: {parsed.scheme}"
            )

        hostname = parsed.hostname
        if not hostname:
            return False, "No hostname found in DATABASE_URL"

        try:
            socket.getaddrinfo(hostname, None)
            dns_status = "DNS resolution successful"
        except socket.gaierror as e:
            dns_status = f"DNS resolution failed: {str(e)}"

        return True, f"Hostname: {hostname}, Port: {parsed.port or 5432}, Database: {parsed.path or '/postgres'}. {dns_status}"

    except Exception as e:
        return False, f"Error parsing DATABASE_URL: {str(e)}"


async def seed_admin_account(session: AsyncSession) -> None:
    """Create the configured admin account when the admin table is empty."""
    from wedding_invitation.models import AdminAccount
    from wedding_invitation.utils.auth import hash_password

    result = await session.execute(select(AdminAccount.id).limit(1))
    if result.scalar_one_or_none() is not None:
        return

    password_hash = settings.ADMIN_PASSWORD_HASH
    if not password_hash:
        logger.warning(
            "ADMIN_PASSWORD_HASH not configured - seeding admin account with ADMIN_DEFAULT_PASSWORD. "
            "Change it before going live."
        )
        password_hash = hash_password(settings.ADMIN_DEFAULT_PASSWORD)

    session.add(AdminAccount(username=settings.ADMIN_USERNAME, password=password_hash))
    await session.commit()
    logger.info(f"Seeded admin account '{settings.ADMIN_USERNAME}'")


async def init_db():
    """
    Verify the connection, create missing tables and seed the admin account.
    Used by the startup event.
    """
    is_valid, diagnostic = _validate_database_url(settings.DATABASE_URL)
    if not is_valid:
        logger.error(f"Invalid DATABASE_URL: {diagnostic}")
        raise ValueError(f"Invalid DATABASE_URL: {diagnostic}")

    logger.info(f"Database URL validation: {diagnostic}")

    # Import models so every table is registered on Base.metadata
    from wedding_invitation import models  # noqa: F401

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables verified")
    except Exception as e:
        error_msg = str(e)
        if "connection refused" in error_msg.lower() or "timeout" in error_msg.lower():
            logger.error(
                f"Database connection failed - Connection refused/timeout: {error_msg}\n"
                f"Diagnostic: {diagnostic}"
            )
        elif "authentication failed" in error_msg.lower() or "password" in error_msg.lower():
            logger.error(
                f"Database connection failed - Authentication error: {error_msg}\n"
                f"Diagnostic: {diagnostic}"
            )
        else:
            logger.error(
                f"Database connection failed ({type(e).__name__}): {error_msg}\n"
                f"Diagnostic: {diagnostic}"
            )
        raise

    async with AsyncSessionLocal() as session:
        await seed_admin_account(session)


async def close_db():
    """
    Close database connections.
    Used by the shutdown event.
    """
    await engine.dispose()
    logger.info("Database connections closed")
