from src.crimestat_pipeline.core.database import Base, make_session_factory
from src.crimestat_pipeline.core.logging import setup_logging, get_logger
# Import models to register them
from src.crimestat_pipeline.models import (  # noqa: F401
    AdministrativeArea, Population, CrimeCategory, DataSource, CrimeObservation
)

logger = get_logger(__name__)

def main():
    setup_logging()
    session_factory = make_session_factory()
    logger.info("Creating tables...")
    Base.metadata.create_all(bind=session_factory.kw["bind"])
    logger.info("Tables created successfully.")

if __name__ == "__main__":
    main()
