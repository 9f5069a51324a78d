from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL
from sqlalchemy.orm import Session
from sqlalchemy.pool import QueuePool
from contextlib import contextmanager
import logging
import threading

from sales_indicators.config.settings import settings

# Set up logging
logger = logging.getLogger(__name__)

_engine = None
_engine_lock = threading.Lock()


def build_database_url() -> URL:
    """Build the SQL Server connection URL from settings."""
    return URL.create(
        "mssql+pyodbc",
        username=settings.DB_USER or None,
        password=settings.DB_PASSWORD or None,
        host=settings.DB_SERVER,
        port=settings.DB_PORT,
        database=settings.DB_DATABASE,
        query={
            "driver": settings.DB_DRIVER,
            "Encrypt": "yes" if settings.DB_ENCRYPT else "no",
            "TrustServerCertificate": "yes" if settings.DB_TRUST_SERVER_CERTIFICATE else "no",
        },
    )


def get_engine():
    """
    Get the SQLAlchemy engine, creating it on first use.

    The engine is shared by every request; connections are checked out
    per call and returned to the pool when the session closes.
    """
    global _engine

    if _engine is None:
        with _engine_lock:
            if _engine is None:
                url = build_database_url()
                logger.info(
                    f"Creating database engine for {settings.DB_SERVER}/{settings.DB_DATABASE} "
                    f"as {settings.DB_USER or '<trusted>'}"
                )
                _engine = create_engine(
                    url,
                    echo=settings.SQL_ECHO,
                    poolclass=QueuePool,
                    pool_size=settings.DB_POOL_MAX,
                    max_overflow=0,
                    pool_recycle=max(1, settings.DB_POOL_IDLE_TIMEOUT_MS // 1000),
                    pool_pre_ping=True,  # Verify connections before usage
                )

    return _engine


def reset_engine():
    """Dispose the engine so the next query reconnects."""
    global _engine

    with _engine_lock:
        if _engine is not None:
            _engine.dispose()
            logger.info("Database engine disposed")
            _engine = None


@contextmanager
def get_db_session():
    """Provide a short-lived, read-only session for one report query."""
    session = Session(bind=get_engine())
    try:
        yield session
    except Exception as e:
        session.rollback()
        logger.error(f"Database session error: {str(e)}")
        raise
    finally:
        session.close()


def check_database_connection() -> bool:
    """
    Check if database connection works

    Returns:
        bool: True if connection is working
    """
    try:
        with get_db_session() as session:
            session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {str(e)}")
        return False
