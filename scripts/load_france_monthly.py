import argparse
import sys
from pathlib import Path

import yaml

from src.crimestat_pipeline.core.database import make_session_factory
from src.crimestat_pipeline.core.exceptions import PipelineError
from src.crimestat_pipeline.core.logging import setup_logging, get_logger
from src.crimestat_pipeline.etl.category_mapper import build_etat4001_mapper
from src.crimestat_pipeline.etl.monthly_input import read_monthly_csv
from src.crimestat_pipeline.etl.pipeline import PipelineOptions, format_run_report, run_france_monthly_pipeline
from src.crimestat_pipeline.etl.population import DatabasePopulationReference, InMemoryPopulationReference

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG = PROJECT_ROOT / "config" / "france_monthly.yaml"

logger = get_logger(__name__)


def load_run_options(config_path: Path) -> dict:
    """Flattens the sectioned YAML into PipelineOptions fields."""
    if not config_path.exists():
        return {}

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    options = {}
    for key, value in data.items():
        if isinstance(value, dict):
            options.update(value)
        else:
            options[key] = value
    return options


def main() -> int:
    parser = argparse.ArgumentParser(description="Aggregate, enrich and load État 4001 monthly data")
    parser.add_argument("monthly_csv", help="Long-format monthly CSV (year, month, index, category_label, subdivision_code, count)")
    parser.add_argument("--population", help="Population CSV (code, year, population). Defaults to the population table.")
    parser.add_argument("--config", default=str(DEFAULT_CONFIG))
    parser.add_argument("--dry-run", action="store_true")
    parser.add_argument("--delete-existing", action="store_true")
    args = parser.parse_args()

    setup_logging()

    raw = load_run_options(Path(args.config))
    if args.dry_run:
        raw["dry_run"] = True
    if args.delete_existing:
        raw["delete_existing_source"] = True
    options = PipelineOptions(**raw)

    monthly_files, read_warnings = read_monthly_csv(args.monthly_csv)
    for w in read_warnings:
        logger.warning(w)

    mapper = build_etat4001_mapper()
    session_factory = None if options.dry_run and args.population else make_session_factory()

    try:
        if args.population:
            population = InMemoryPopulationReference.from_csv(args.population)
            result = run_france_monthly_pipeline(monthly_files, mapper, population, session_factory, options)
        else:
            codes = {code for f in monthly_files for row in f.rows for code in row.counts_by_subdivision}
            with session_factory() as db:
                population = DatabasePopulationReference(db, codes)
            result = run_france_monthly_pipeline(monthly_files, mapper, population, session_factory, options)
    except PipelineError as e:
        logger.error(f"Pipeline aborted: {e}")
        if e.result is not None:
            logger.error(
                f"Committed before failure: {e.result.inserted} inserted, "
                f"{e.result.updated} updated, {e.result.failed} failed"
            )
        return 1

    result.warnings = read_warnings + result.warnings
    print(format_run_report(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
