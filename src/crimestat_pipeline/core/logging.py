import logging
import sys

from src.crimestat_pipeline.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Raised to WARNING by setup_logging
QUIET_LOGGERS = ("sqlalchemy", "sqlalchemy.engine", "sqlalchemy.pool")

def setup_logging(level: int | str | None = None) -> None:
    """
    Configures the project-wide logging. Falls back to LOG_LEVEL from settings.
    """
    logging.basicConfig(
        level=level or settings.log_level.upper(),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
