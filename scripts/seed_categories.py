from pathlib import Path

from src.crimestat_pipeline.core.database import make_session_factory
from src.crimestat_pipeline.core.logging import setup_logging
from src.crimestat_pipeline.etl.seeding import seed_reference_data

PROJECT_ROOT = Path(__file__).resolve().parents[1]
CATEGORIES_YAML = PROJECT_ROOT / "config" / "categories.yaml"

if __name__ == "__main__":
    setup_logging()
    seed_reference_data(make_session_factory(), CATEGORIES_YAML)
