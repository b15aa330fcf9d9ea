from citecast.core.logging import get_logger
from citecast.config import settings
from sqlalchemy.engine import Engine
from sqlmodel import create_engine, SQLModel
from dotenv import load_dotenv
import time

# Load environment variables from .env file
load_dotenv()

logger = get_logger(__name__)


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL.

    PostgreSQL gets a connection pool sized from settings; SQLite gets
    cross-thread access so extraction threads and the API can share it.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
        )

    engine = create_engine(
        database_url,
        echo=echo,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_recycle=settings.db_pool_recycle,
    )
    logger.info(
        "database_engine_configured",
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=settings.db_pool_pre_ping,
    )
    return engine


# Engines connect lazily, so importing this module never touches the database
engine = build_engine(settings.database_url)


def init_db(target: Engine = None, max_retries: int = 5):
    """
    Creates all tables, retrying while the database comes up.
    """
    target = target or engine
    for i in range(max_retries):
        try:
            logger.info("connecting_to_database", attempt=i + 1)

            # Register tables
            from citecast import schema  # noqa: F401

            SQLModel.metadata.create_all(target)
            logger.info("database_initialized", status="success")
            return
        except Exception as e:
            logger.error("database_connection_failed", error=str(e), attempt=i + 1)
            if i < max_retries - 1:
                logger.info("retrying_connection", delay=2)
                time.sleep(2)
            else:
                logger.critical("initialization_failed")
                raise


if __name__ == "__main__":
    init_db()
