import argparse
from pathlib import Path

from src.crimestat_pipeline.core.database import make_session_factory
from src.crimestat_pipeline.core.logging import setup_logging
from src.crimestat_pipeline.etl.seeding import seed_areas_from_csv

if __name__ == "__main__":
    setup_logging()

    parser = argparse.ArgumentParser(description="Seed subdivisions and populations from a CSV (code, year, population[, name])")
    parser.add_argument("population_csv")
    parser.add_argument("--level", default="department")
    args = parser.parse_args()

    seed_areas_from_csv(make_session_factory(), Path(args.population_csv), level=args.level)
