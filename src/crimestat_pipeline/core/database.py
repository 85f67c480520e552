from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from src.crimestat_pipeline.core.config import settings
from src.crimestat_pipeline.core.logging import get_logger

logger = get_logger(__name__)

class Base(DeclarativeBase):
    pass

def make_session_factory(db_url: str | None = None) -> sessionmaker:
    """
    Builds an engine + session factory. Each pipeline run gets its own
    sessions from this factory; nothing is shared between runs.
    """
    url = db_url or settings.database_url
    if not url:
        logger.critical("DATABASE_URL is not set in environment variables.")
        raise RuntimeError("DATABASE_URL is not set")

    engine = create_engine(url, pool_pre_ping=True)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)
